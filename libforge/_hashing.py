"""
Content hashing of preprocessed C/C++ output.

The preprocessor has already expanded every include and macro, so a hash of
its output changes whenever anything the source depends on changes. Spacing
between tokens is normalized so that reformatting does not force a rebuild.
"""

import hashlib
from pathlib import Path


class _LineScanner:
    """Walks a text file one stripped line at a time.
    Block comments and literals may continue onto following lines; the scanner
    pulls those lines in as it goes."""

    def __init__(self, f):
        self._f = f
        self.line = ""
        self.pos = 0

    def next_line(self) -> bool:
        raw = next(self._f, "")
        self.line = raw.strip()
        self.pos = 0
        return bool(raw)

    def at_end(self) -> bool:
        return self.pos >= len(self.line)

    def peek(self, n: int = 1) -> str:
        return self.line[self.pos:self.pos + n]

    def _continue_onto_next_line(self) -> bool:
        raw = next(self._f, "")
        self.line = raw
        self.pos = 0
        return bool(raw)

    def skip_block_comment(self) -> int:
        """Consume up to and including the closing */.
        Returns: Number of line breaks the comment spanned"""
        breaks = 0
        while True:
            end = self.line.find("*/", self.pos)
            if end >= 0:
                self.pos = end + 2
                return breaks
            breaks += 1
            if not self._continue_onto_next_line():
                return breaks

    def read_literal(self, quote: str) -> str:
        """Consume a string or character literal body and its closing quote.
        Returns: The body exactly as written, escapes included"""
        body = []
        while True:
            while self.pos < len(self.line):
                c = self.line[self.pos]
                if c == "\\":
                    body.append(self.line[self.pos:self.pos + 2])
                    self.pos += 2
                    continue
                self.pos += 1
                if c == quote:
                    return "".join(body)
                body.append(c)
            if not self._continue_onto_next_line():
                return "".join(body)

    def skip_blanks(self):
        while self.pos < len(self.line) and self.line[self.pos] in " \t":
            self.pos += 1


# Punctuators that never combine with a neighbouring character into a longer token
_SEPARATORS = "(){}[];,"


def _normalize_code_line(scanner: _LineScanner) -> str:
    out = []
    while not scanner.at_end():
        two = scanner.peek(2)
        c = scanner.peek()

        if two == "/*":
            scanner.pos += 2
            out.append("/*" + "\n" * scanner.skip_block_comment() + "*/")
        elif two == "//":
            out.append("//")
            break
        elif c in "\"'":
            scanner.pos += 1
            out.append(c + scanner.read_literal(c) + c)
        elif c in " \t":
            scanner.skip_blanks()
            prev_char = out[-1][-1:] if out else ""
            next_char = scanner.peek()
            # One space survives unless a separator sits on either side
            if prev_char and next_char and prev_char not in _SEPARATORS and next_char not in _SEPARATORS:
                out.append(" ")
        else:
            out.append(c)
            scanner.pos += 1
    return "".join(out).rstrip()


def hash_preprocessed(path: Path) -> int:
    """Calculate the 64-bit hash of a preprocessed translation unit.

    Normalization rules:
    1. Line markers and remaining directives (lines starting with #) are kept
       unchanged apart from surrounding whitespace, so moved code still changes
       the hash and debug line information never goes stale.
    2. Other lines drop indentation and trailing whitespace. A run of spaces
       collapses to one space, or to nothing next to a separator such as ( or ;.
       Operators and identifiers therefore never merge into different tokens.
    3. String and character literals are hashed exactly.
    4. Comments (present when the preprocessor was asked to keep them) keep
       only their line structure.

    Args:    path: Path to the .i/.ii file
    Returns: Unsigned 64-bit integer (BLAKE2b, 8-byte digest)"""
    h = hashlib.blake2b(digest_size=8)

    with open(path, "r", encoding="utf-8", errors="surrogateescape") as f:
        scanner = _LineScanner(f)
        while scanner.next_line():
            if scanner.line.startswith("#"):
                normalized = scanner.line
            else:
                normalized = _normalize_code_line(scanner)
            h.update(normalized.encode("utf-8", "surrogateescape"))
            h.update(b"\n")

    return int.from_bytes(h.digest(), "big")


def format_hash(value: int) -> str:
    """Render a hash the way the compile log stores it: 0x-prefixed, 16 hex digits."""
    return f"0x{value:016X}"


def parse_hash(text: str) -> int:
    """Parse a hash rendered by format_hash.
    Raises:  ValueError if text is not a 0x-prefixed 64-bit hexadecimal integer"""
    text = text.strip()
    if not text.lower().startswith("0x"):
        raise ValueError(f"Hash must be 0x-prefixed: {text!r}")
    value = int(text, 16)
    if value < 0 or value >= 1 << 64:
        raise ValueError(f"Hash out of 64-bit range: {text!r}")
    return value
