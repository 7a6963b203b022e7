"""Relocation bitmap: one bit per 4-byte word of the data section.

On disk the relocation table is a list of absolute byte offsets into the data
section. In memory each word gets a bit, packed into 64-bit chunks:

    word  = offset // 4
    chunk = word // 64
    bit   = word % 64

Encoding walks chunks in order and bits 0..63 inside each chunk, so the
exported list is always ascending and free of duplicates.
"""

from typing import Iterable, Iterator

from .errors import AlignmentError, InvalidFileError, OutOfBoundsError

WORD_SIZE = 4
CHUNK_BITS = 64
CHUNK_SPAN = WORD_SIZE * CHUNK_BITS  # bytes of data covered by one chunk


def _locate(offset: int) -> tuple[int, int]:
    if offset < 0:
        raise OutOfBoundsError(f"Negative relocation offset: {offset}")
    if offset % WORD_SIZE != 0:
        raise AlignmentError(offset, WORD_SIZE)
    word = offset // WORD_SIZE
    return word // CHUNK_BITS, word % CHUNK_BITS


def chunk_count_for(data_size: int) -> int:
    """Number of chunks needed to cover a data section of data_size bytes."""
    return -(-data_size // CHUNK_SPAN)


class RelocationBitmap:
    """Set of relocated word offsets stored as 64-bit chunks."""

    def __init__(self, chunks: list[int] | None = None):
        self.chunks: list[int] = list(chunks) if chunks else []

    @classmethod
    def decode(
        cls, offsets: Iterable[int], data_size: int, strict: bool = True
    ) -> "RelocationBitmap":
        """Build a bitmap from an on-disk relocation offset list.

        Args:
            offsets: Absolute byte offsets into the data section
            data_size: Size of the data section; sizes the chunk array
            strict: Reject offsets whose word lies past data_size. When False
                the chunk array grows to hold them instead.

        Returns:
            RelocationBitmap with a bit set for every offset

        Raises:
            InvalidFileError: If an offset is misaligned, or out of range
                while strict
        """
        bitmap = cls([0] * chunk_count_for(data_size))
        for offset in offsets:
            if offset % WORD_SIZE != 0:
                raise InvalidFileError(
                    f"Relocation offset 0x{offset:x} is not {WORD_SIZE}-byte aligned"
                )
            if strict and offset + WORD_SIZE > data_size:
                raise InvalidFileError(
                    f"Relocation offset 0x{offset:x} lies outside the data section "
                    f"({data_size} bytes)"
                )
            bitmap.set(offset)
        return bitmap

    def encode(self) -> list[int]:
        """Return the set offsets as a sorted, duplicate-free list."""
        return list(self.offsets())

    def offsets(self, start: int = 0, end: int | None = None) -> Iterator[int]:
        """Iterate set offsets in ascending order within [start, end)."""
        first_chunk = max(start, 0) // CHUNK_SPAN
        for chunk_index in range(first_chunk, len(self.chunks)):
            mask = self.chunks[chunk_index]
            if not mask:
                continue
            base = chunk_index * CHUNK_BITS
            for bit in range(CHUNK_BITS):
                if mask & (1 << bit):
                    offset = (base + bit) * WORD_SIZE
                    if offset < start:
                        continue
                    if end is not None and offset >= end:
                        return
                    yield offset

    def _grow(self, chunk_index: int) -> None:
        if chunk_index >= len(self.chunks):
            self.chunks.extend([0] * (chunk_index + 1 - len(self.chunks)))

    def set(self, offset: int) -> None:
        """Mark the word at offset as relocated, growing the array if needed."""
        chunk_index, bit = _locate(offset)
        self._grow(chunk_index)
        self.chunks[chunk_index] |= 1 << bit

    def clear(self, offset: int) -> None:
        """Unmark the word at offset, growing the array if needed."""
        chunk_index, bit = _locate(offset)
        self._grow(chunk_index)
        self.chunks[chunk_index] &= ~(1 << bit)

    def check(self, offset: int) -> bool:
        """Whether the word at offset is relocated. False past the array."""
        chunk_index, bit = _locate(offset)
        if chunk_index >= len(self.chunks):
            return False
        return bool(self.chunks[chunk_index] & (1 << bit))

    def count(self) -> int:
        """Number of relocated words."""
        return sum(mask.bit_count() for mask in self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RelocationBitmap):
            return NotImplemented
        return self.encode() == other.encode()

    def __repr__(self) -> str:
        return f"RelocationBitmap(chunks={len(self.chunks)}, relocations={self.count()})"
