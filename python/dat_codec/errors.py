"""Exception types raised by the DAT codec.

Two branches are kept apart:

- InvalidFileError: the bytes handed to import are malformed. Callers are
  expected to catch this and report a bad input file.
- DatUsageError: the caller broke an API contract (misaligned offset, access
  past the end of a section, non-ASCII symbol). These indicate a bug in the
  calling code rather than bad input.
"""


class DatError(Exception):
    """Base class for all DAT codec errors."""


class InvalidFileError(DatError, ValueError):
    """Raised when a DAT buffer is truncated or its header is inconsistent."""


class DatUsageError(DatError):
    """Raised when a caller violates an accessor precondition."""


class AlignmentError(DatUsageError, ValueError):
    """Offset does not have the alignment the accessor requires."""

    def __init__(self, offset: int, alignment: int):
        self.offset = offset
        self.alignment = alignment
        super().__init__(
            f"Offset 0x{offset:x} is not {alignment}-byte aligned"
        )


class OutOfBoundsError(DatUsageError, IndexError):
    """Offset or index lies outside the section it addresses."""


class SymbolEncodingError(DatUsageError, ValueError):
    """Symbol cannot be stored in the symbol table."""
