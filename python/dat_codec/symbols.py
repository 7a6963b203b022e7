"""Symbol table: packed NUL-terminated ASCII strings addressed by byte offset.

Offsets are raw byte positions, so an offset pointing into the middle of a
string reads back its suffix.
"""

from typing import Iterator

from .errors import OutOfBoundsError, SymbolEncodingError


class SymbolTable:
    """Append-only blob of NUL-terminated ASCII strings."""

    def __init__(self, raw: bytes = b""):
        self.raw = bytearray(raw)

    def add(self, symbol: str) -> int:
        """Append a symbol and return the offset of its first byte.

        A terminating NUL is appended unless the symbol already ends with one.

        Raises:
            SymbolEncodingError: If the symbol is not ASCII
        """
        if not symbol.isascii():
            raise SymbolEncodingError(f"Symbol is not ASCII: {symbol!r}")

        offset = len(self.raw)
        encoded = symbol.encode("ascii")
        self.raw.extend(encoded)
        if not encoded.endswith(b"\x00"):
            self.raw.append(0)
        return offset

    def read(self, offset: int) -> str | None:
        """Read the symbol starting at offset.

        Returns:
            The symbol, or None if its bytes are not ASCII

        Raises:
            OutOfBoundsError: If offset is outside the table or no terminator
                follows it
        """
        if offset < 0 or offset >= len(self.raw):
            raise OutOfBoundsError(
                f"Symbol offset {offset} out of range (0..{len(self.raw) - 1})"
            )

        end = self.raw.find(b"\x00", offset)
        if end < 0:
            raise OutOfBoundsError(f"Symbol at offset {offset} is not NUL-terminated")

        try:
            return self.raw[offset:end].decode("ascii")
        except UnicodeDecodeError:
            return None

    def iter_symbols(self) -> Iterator[tuple[int, str | None]]:
        """Yield (offset, symbol) for every terminated string in table order."""
        offset = 0
        while offset < len(self.raw):
            end = self.raw.find(b"\x00", offset)
            if end < 0:
                return
            yield offset, self.read(offset)
            offset = end + 1

    def __len__(self) -> int:
        return len(self.raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SymbolTable):
            return NotImplemented
        return self.raw == other.raw

    def __repr__(self) -> str:
        return f"SymbolTable(size={len(self.raw)})"
