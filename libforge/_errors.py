"""Exception types raised by libforge."""


class ConfigurationError(ValueError):
    """A target or invocation is misconfigured. Raised before anything is compiled."""


class BuildError(RuntimeError):
    """An external build step (preprocess, compile, archive, link) did not succeed."""
