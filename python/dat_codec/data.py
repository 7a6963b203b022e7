"""Data section: the opaque payload plus allocation and scalar accessors.

All scalars are big-endian. Accessors check alignment first, then bounds.
"""

import struct

from .errors import AlignmentError, OutOfBoundsError

ALIGN_PADDING = "align"
LEGACY_PADDING = "legacy"
PADDING_MODES = (ALIGN_PADDING, LEGACY_PADDING)

_U32 = struct.Struct(">I")
_U16 = struct.Struct(">H")


class DataSection:
    """Growable byte buffer holding the DAT payload."""

    def __init__(self, raw: bytes = b"", padding: str = ALIGN_PADDING):
        if padding not in PADDING_MODES:
            raise ValueError(
                f"Unknown padding mode: {padding!r} (expected one of {', '.join(PADDING_MODES)})"
            )
        self.raw = bytearray(raw)
        self.padding = padding

    def __len__(self) -> int:
        return len(self.raw)

    def allocate(self, size: int) -> int:
        """Append size zero bytes and return their start offset.

        If the current length is not a multiple of 4 the buffer is padded
        first. With "align" padding the length is rounded up to the next
        multiple of 4. With "legacy" padding (len & 3) + 4 bytes are appended,
        which does not always restore alignment.
        """
        if size < 0:
            raise ValueError(f"Allocation size must be non-negative, got {size}")

        length = len(self.raw)
        if length & 3:
            if self.padding == LEGACY_PADDING:
                pad = (length & 3) + 4
            else:
                pad = 4 - (length & 3)
            self.raw.extend(bytes(pad))

        offset = len(self.raw)
        self.raw.extend(bytes(size))
        return offset

    def _check(self, offset: int, width: int) -> None:
        if offset % width != 0:
            raise AlignmentError(offset, width)
        if offset < 0 or offset + width > len(self.raw):
            raise OutOfBoundsError(
                f"{width}-byte access at 0x{offset:x} past data section end (0x{len(self.raw):x})"
            )

    def read_u32(self, offset: int) -> int:
        self._check(offset, 4)
        return _U32.unpack_from(self.raw, offset)[0]

    def write_u32(self, offset: int, value: int) -> None:
        self._check(offset, 4)
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"Value {value} does not fit in uint32")
        _U32.pack_into(self.raw, offset, value)

    def read_u16(self, offset: int) -> int:
        self._check(offset, 2)
        return _U16.unpack_from(self.raw, offset)[0]

    def write_u16(self, offset: int, value: int) -> None:
        self._check(offset, 2)
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"Value {value} does not fit in uint16")
        _U16.pack_into(self.raw, offset, value)

    def read_u8(self, offset: int) -> int:
        self._check(offset, 1)
        return self.raw[offset]

    def write_u8(self, offset: int, value: int) -> None:
        self._check(offset, 1)
        if not 0 <= value <= 0xFF:
            raise ValueError(f"Value {value} does not fit in uint8")
        self.raw[offset] = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataSection):
            return NotImplemented
        return self.raw == other.raw

    def __repr__(self) -> str:
        return f"DataSection(size={len(self.raw)})"
