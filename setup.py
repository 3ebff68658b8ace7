from setuptools import setup, find_packages

setup(
    name="libforge",
    version="1.0.0",
    description="Incremental static library builds for vendored C/C++ code",
    packages=find_packages(include=["libforge"]),
    py_modules=["forge"],
    python_requires=">=3.10",
    install_requires=[],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["forge=forge:main"]},
)
