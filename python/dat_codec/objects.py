"""Object boundaries and deep copy across DAT containers.

The format has no object table. Object starts are inferred from everything
that points into the data section: values held by relocated words, root and
extern-ref offsets, and offsets returned by allocate(). An object runs from
its start to the next known start (or the end of the data section).
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import OutOfBoundsError
from .relocation import WORD_SIZE

if TYPE_CHECKING:
    from .dat_file import DatFile


@dataclass(frozen=True)
class ObjectSlice:
    """Location of an object inside the data section."""

    offset: int
    size: int

    @property
    def end(self) -> int:
        return self.offset + self.size


def object_offsets(dat: "DatFile") -> list[int]:
    """Sorted, de-duplicated start offsets of every known object."""
    data_size = len(dat.data)
    starts = set(dat.allocations)
    for reloc_offset in dat.relocation.offsets():
        # Bits past the data section can exist after non-strict imports.
        if reloc_offset + WORD_SIZE > data_size:
            break
        starts.add(dat.data.read_u32(reloc_offset))
    starts.update(root.obj_offset for root in dat.roots)
    starts.update(ref.obj_offset for ref in dat.extern_refs)
    return sorted(starts)


def _slice_for(starts: list[int], ptr: int, data_size: int) -> ObjectSlice | None:
    if not 0 <= ptr < data_size:
        return None
    index = bisect_right(starts, ptr) - 1
    if index < 0:
        return None
    start = starts[index]
    end = starts[index + 1] if index + 1 < len(starts) else data_size
    return ObjectSlice(offset=start, size=min(end, data_size) - start)


def object_at(dat: "DatFile", ptr: int) -> ObjectSlice | None:
    """Return the object containing ptr, or None if no known object does."""
    return _slice_for(object_offsets(dat), ptr, len(dat.data))


def _allocate_congruent(dst: "DatFile", size: int, src_offset: int) -> int:
    """Allocate size bytes at an offset equal to src_offset modulo WORD_SIZE.

    Objects can start mid-word when a relocated pointer targets an interior
    byte. Keeping the residue keeps their relocated words word-aligned.
    """
    base = dst.allocate(size)
    skew = (src_offset - base) % WORD_SIZE
    if not skew:
        return base

    # The new object is the zero-filled tail of the buffer; shift it right.
    dst.data.raw[base:base] = bytes(skew)
    dst.allocations.discard(base)
    dst.allocations.add(base + skew)
    return base + skew


def copy_object(dst: "DatFile", src: "DatFile", src_ref: int) -> int:
    """Deep-copy the object containing src_ref from src into dst.

    Every object reachable through relocated words is copied once; objects
    referenced from several places stay shared in the copy. Relocated words
    in the copies are re-pointed at the copied children.

    Args:
        dst: Destination container (may be src itself)
        src: Source container
        src_ref: Offset inside the object to copy

    Returns:
        Offset in dst corresponding to src_ref

    Raises:
        OutOfBoundsError: If src_ref, or any relocated pointer reachable from
            it, does not fall inside a known object of src
    """
    starts = object_offsets(src)
    data_size = len(src.data)

    def locate(ptr: int) -> ObjectSlice:
        location = _slice_for(starts, ptr, data_size)
        if location is None:
            raise OutOfBoundsError(
                f"Offset 0x{ptr:x} is not inside any object (data section is 0x{data_size:x} bytes)"
            )
        return location

    copied: dict[int, int] = {}  # src object start -> dst object start
    pending: list[ObjectSlice] = []

    def clone(location: ObjectSlice) -> None:
        dst_offset = _allocate_congruent(dst, location.size, location.offset)
        dst.data.raw[dst_offset:dst_offset + location.size] = (
            src.data.raw[location.offset:location.end]
        )
        copied[location.offset] = dst_offset
        pending.append(location)

    root = locate(src_ref)
    clone(root)

    while pending:
        location = pending.pop()
        dst_base = copied[location.offset]
        for reloc_offset in list(src.relocation.offsets(location.offset, location.end)):
            child_ref = src.data.read_u32(reloc_offset)
            child = locate(child_ref)
            if child.offset not in copied:
                clone(child)
            dst.set_ref(
                dst_base + (reloc_offset - location.offset),
                copied[child.offset] + (child_ref - child.offset),
            )

    return copied[root.offset] + (src_ref - root.offset)
