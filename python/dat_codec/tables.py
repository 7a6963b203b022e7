"""Root and extern-ref table entries.

Both tables are ordered sequences of (obj_offset, symbol_offset) pairs packed
as two big-endian uint32 per entry. Roots name entry points into the data
section; extern refs name data words patched with an externally resolved
address at load time.
"""

import struct
from dataclasses import dataclass
from typing import Iterable, TypeVar

from .errors import InvalidFileError
from .header import ENTRY_SIZE

_PAIR = struct.Struct(">II")


@dataclass(frozen=True)
class Root:
    """Named entry point into the data section."""

    obj_offset: int
    symbol_offset: int


@dataclass(frozen=True)
class ExternRef:
    """Data word to patch with an externally resolved symbol."""

    obj_offset: int
    symbol_offset: int


EntryT = TypeVar("EntryT", Root, ExternRef)


def parse_pairs(
    data: bytes, offset: int, count: int, entry_cls: type[EntryT]
) -> list[EntryT]:
    """Decode count entries starting at offset.

    Raises:
        InvalidFileError: If the table runs past the end of data
    """
    end = offset + count * ENTRY_SIZE
    if end > len(data):
        raise InvalidFileError(
            f"{entry_cls.__name__} table truncated: needs {end} bytes, file has {len(data)}"
        )
    return [
        entry_cls(*_PAIR.unpack_from(data, offset + i * ENTRY_SIZE))
        for i in range(count)
    ]


def pack_pairs(entries: Iterable[Root | ExternRef]) -> bytes:
    """Encode entries in order."""
    return b"".join(_PAIR.pack(e.obj_offset, e.symbol_offset) for e in entries)
