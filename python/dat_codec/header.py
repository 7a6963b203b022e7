"""Fixed 32-byte DAT header."""

import struct
from dataclasses import dataclass

from .errors import InvalidFileError

HEADER_SIZE = 0x20
ENTRY_SIZE = 8  # (obj_offset, symbol_offset)
RELOC_ENTRY_SIZE = 4

_HEADER_FORMAT = ">8I"


@dataclass
class DatHeader:
    """Parsed DAT header.

    Attributes:
        file_size: Total serialized size of the container
        data_size: Size of the data section
        reloc_count: Number of relocation offsets
        root_count: Number of root table entries
        ref_count: Number of extern-ref table entries
    """

    file_size: int = HEADER_SIZE
    data_size: int = 0
    reloc_count: int = 0
    root_count: int = 0
    ref_count: int = 0

    @classmethod
    def parse(cls, data: bytes) -> "DatHeader":
        """Parse a DAT header from the start of a file buffer.

        Header format (all fields uint32 big-endian):
          Offset | Size | Field
          -------|------|------
          0x00   | 4    | File size
          0x04   | 4    | Data section size
          0x08   | 4    | Relocation count
          0x0C   | 4    | Root count
          0x10   | 4    | Extern ref count
          0x14   | 4    | Version (reserved, zero)
          0x18   | 8    | Padding (reserved, zero)

        The reserved words are not validated.

        Args:
            data: The complete file buffer

        Returns:
            Parsed DatHeader

        Raises:
            InvalidFileError: If the buffer is shorter than the header or the
                declared file size does not match the buffer length
        """
        if len(data) < HEADER_SIZE:
            raise InvalidFileError(
                f"Header too short: {len(data)} bytes (need {HEADER_SIZE})"
            )

        file_size, data_size, reloc_count, root_count, ref_count, _, _, _ = (
            struct.unpack_from(_HEADER_FORMAT, data, 0)
        )

        if file_size != len(data):
            raise InvalidFileError(
                f"File size mismatch: header says {file_size}, buffer has {len(data)} bytes"
            )

        return cls(
            file_size=file_size,
            data_size=data_size,
            reloc_count=reloc_count,
            root_count=root_count,
            ref_count=ref_count,
        )

    def compute_file_size(self, symbol_size: int) -> int:
        """Total container size for these counts and a symbol table size."""
        return (
            HEADER_SIZE
            + self.data_size
            + self.reloc_count * RELOC_ENTRY_SIZE
            + (self.root_count + self.ref_count) * ENTRY_SIZE
            + symbol_size
        )

    def serialize(self) -> bytes:
        """Pack the header, always zeroing the version and padding words."""
        return struct.pack(
            _HEADER_FORMAT,
            self.file_size,
            self.data_size,
            self.reloc_count,
            self.root_count,
            self.ref_count,
            0,  # version
            0,
            0,
        )
