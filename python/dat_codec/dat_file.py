"""DAT container: data blob, relocation bitmap, root/extern-ref tables and
symbol table, with import/export to the on-disk layout.

File layout (all integers uint32 big-endian):

[Header - 32 bytes]
  file_size, data_size, reloc_count, root_count, ref_count,
  version (zero), padding (8 zero bytes)

[Data section - data_size bytes]

[Relocation table - reloc_count * 4 bytes]
  Absolute byte offsets into the data section of words holding internal
  offsets. Always written ascending and de-duplicated.

[Root table - root_count * 8 bytes]
  (obj_offset, symbol_offset) pairs

[Extern ref table - ref_count * 8 bytes]
  (obj_offset, symbol_offset) pairs

[Symbol table - remainder of file]
  NUL-terminated ASCII strings
"""

import struct
from pathlib import Path

from .config import DatConfig
from .data import DataSection
from .errors import InvalidFileError, OutOfBoundsError
from .header import ENTRY_SIZE, HEADER_SIZE, RELOC_ENTRY_SIZE, DatHeader
from .objects import ObjectSlice, copy_object, object_at, object_offsets
from .relocation import RelocationBitmap
from .symbols import SymbolTable
from .tables import ExternRef, Root, pack_pairs, parse_pairs


class DatFile:
    """In-memory DAT container.

    Usage:
        dat = DatFile.read(Path("lab.dat"))
        obj = dat.allocate(16)
        dat.set_ref(obj, dat.find_root("scene_data"))
        dat.write(Path("lab.out.dat"))

    The container is not thread-safe; callers that share one across threads
    must lock around every call.
    """

    def __init__(self, config: DatConfig | None = None):
        if config is None:
            config = DatConfig()

        self.config = config
        self.data = DataSection(padding=config.alloc_padding)
        self.relocation = RelocationBitmap()
        self.roots: list[Root] = []
        self.extern_refs: list[ExternRef] = []
        self.symbols = SymbolTable()

        # Offsets handed out by allocate(); used to find object boundaries.
        # Not part of the file format.
        self.allocations: set[int] = set()

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    @classmethod
    def import_bytes(cls, data: bytes, config: DatConfig | None = None) -> "DatFile":
        """Decode a complete DAT file buffer.

        Sections are decoded in file order and each one is bounds-checked
        against the buffer before it is read.

        Args:
            data: Complete file contents
            config: Import options; defaults to DatConfig()

        Returns:
            DatFile holding copies of every section

        Raises:
            InvalidFileError: If the buffer is too short, its size disagrees
                with the header, or any section runs past the end
        """
        dat = cls(config)

        if len(data) > dat.config.max_file_size:
            raise InvalidFileError(
                f"Input size {len(data)} exceeds maximum {dat.config.max_file_size} bytes"
            )

        header = DatHeader.parse(data)

        # data ----------
        data_offset = HEADER_SIZE
        data_end = data_offset + header.data_size
        if data_end > len(data):
            raise InvalidFileError(
                f"Data section truncated: needs {data_end} bytes, file has {len(data)}"
            )
        dat.data.raw[:] = data[data_offset:data_end]

        # relocation table ----------
        reloc_end = data_end + header.reloc_count * RELOC_ENTRY_SIZE
        if reloc_end > len(data):
            raise InvalidFileError(
                f"Relocation table truncated: needs {reloc_end} bytes, file has {len(data)}"
            )
        reloc_offsets = struct.unpack_from(f">{header.reloc_count}I", data, data_end)
        dat.relocation = RelocationBitmap.decode(
            reloc_offsets, header.data_size, strict=dat.config.strict_relocations
        )

        # root and extern ref tables ----------
        dat.roots = parse_pairs(data, reloc_end, header.root_count, Root)
        refs_offset = reloc_end + len(dat.roots) * ENTRY_SIZE
        dat.extern_refs = parse_pairs(data, refs_offset, header.ref_count, ExternRef)

        # symbol table: everything up to file_size ----------
        symbols_offset = refs_offset + len(dat.extern_refs) * ENTRY_SIZE
        dat.symbols = SymbolTable(data[symbols_offset:header.file_size])

        return dat

    def export(self) -> bytes:
        """Serialize to the canonical on-disk layout.

        Header counts and sizes are recomputed from the current contents, and
        relocations are written ascending with duplicates removed, so the
        output depends only on the container's state.
        """
        reloc_offsets = self.relocation.encode()
        header = self.header()

        out = bytearray(header.serialize())
        out += self.data.raw
        out += struct.pack(f">{len(reloc_offsets)}I", *reloc_offsets)
        out += pack_pairs(self.roots)
        out += pack_pairs(self.extern_refs)
        out += self.symbols.raw

        if len(out) != header.file_size:
            raise RuntimeError(
                f"Exported {len(out)} bytes but header declares {header.file_size}"
            )
        return bytes(out)

    def header(self) -> DatHeader:
        """Header describing the current contents, as export() would write it."""
        header = DatHeader(
            data_size=len(self.data),
            reloc_count=self.relocation.count(),
            root_count=len(self.roots),
            ref_count=len(self.extern_refs),
        )
        header.file_size = header.compute_file_size(len(self.symbols))
        return header

    @classmethod
    def read(cls, input_path: Path, config: DatConfig | None = None) -> "DatFile":
        """Read and import a DAT file from disk."""
        return cls.import_bytes(input_path.read_bytes(), config)

    def write(self, output_path: Path) -> int:
        """Export to a file, creating parent directories. Returns bytes written."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        data = self.export()
        output_path.write_bytes(data)
        return len(data)

    # ------------------------------------------------------------------
    # Data section
    # ------------------------------------------------------------------

    def allocate(self, size: int) -> int:
        """Allocate a zero-filled object of size bytes and return its offset."""
        offset = self.data.allocate(size)
        self.allocations.add(offset)
        return offset

    def read_u32(self, offset: int) -> int:
        return self.data.read_u32(offset)

    def write_u32(self, offset: int, value: int) -> None:
        self.data.write_u32(offset, value)

    def read_u16(self, offset: int) -> int:
        return self.data.read_u16(offset)

    def write_u16(self, offset: int, value: int) -> None:
        self.data.write_u16(offset, value)

    def read_u8(self, offset: int) -> int:
        return self.data.read_u8(offset)

    def write_u8(self, offset: int, value: int) -> None:
        self.data.write_u8(offset, value)

    # ------------------------------------------------------------------
    # Relocated pointers
    # ------------------------------------------------------------------

    def set_ref(self, offset: int, target: int) -> None:
        """Store target in the word at offset and mark the word as relocated."""
        self.data.write_u32(offset, target)
        self.relocation.set(offset)

    def remove_ref(self, offset: int) -> None:
        """Unmark the word at offset. The stored value is left untouched."""
        self.relocation.clear(offset)

    def check_ref(self, offset: int) -> bool:
        return self.relocation.check(offset)

    def read_ref(self, offset: int) -> int:
        """Read the internal offset stored in a pointer word."""
        return self.data.read_u32(offset)

    # ------------------------------------------------------------------
    # Symbols, roots and extern refs
    # ------------------------------------------------------------------

    def add_symbol(self, symbol: str) -> int:
        return self.symbols.add(symbol)

    def read_symbol(self, offset: int) -> str | None:
        return self.symbols.read(offset)

    def add_root(self, obj_offset: int, name: str, index: int | None = None) -> Root:
        """Register obj_offset as a root named name.

        Args:
            obj_offset: Offset of the root object in the data section
            name: Root symbol, appended to the symbol table
            index: Position in the root table; appends when None

        Returns:
            The new Root entry

        Raises:
            OutOfBoundsError: If index is past the end of the root table
        """
        if index is None:
            index = len(self.roots)
        if not 0 <= index <= len(self.roots):
            raise OutOfBoundsError(
                f"Root index {index} out of range (0..{len(self.roots)})"
            )

        root = Root(obj_offset=obj_offset, symbol_offset=self.symbols.add(name))
        self.roots.insert(index, root)
        return root

    def remove_root(self, index: int) -> Root:
        """Remove and return the root at index. Its symbol bytes are kept."""
        if not 0 <= index < len(self.roots):
            raise OutOfBoundsError(
                f"Root index {index} out of range (0..{len(self.roots) - 1})"
            )
        return self.roots.pop(index)

    def find_root(self, name: str) -> int | None:
        """Return the object offset of the first root named name, or None."""
        for root in self.roots:
            try:
                root_name = self.symbols.read(root.symbol_offset)
            except OutOfBoundsError:
                # Import does not validate symbol offsets.
                continue
            if root_name == name:
                return root.obj_offset
        return None

    def root_name(self, entry: Root | ExternRef) -> str | None:
        """Symbol name of a root or extern ref entry."""
        return self.symbols.read(entry.symbol_offset)

    def add_extern_ref(self, obj_offset: int, name: str) -> ExternRef:
        """Record that the word at obj_offset is patched with symbol name."""
        ref = ExternRef(obj_offset=obj_offset, symbol_offset=self.symbols.add(name))
        self.extern_refs.append(ref)
        return ref

    # ------------------------------------------------------------------
    # Object graph
    # ------------------------------------------------------------------

    def object_offsets(self) -> list[int]:
        return object_offsets(self)

    def object_at(self, ptr: int) -> ObjectSlice | None:
        return object_at(self, ptr)

    def copy_object_from(self, src: "DatFile", src_ref: int) -> int:
        """Deep-copy the object at src_ref (and its children) from src into self."""
        return copy_object(self, src, src_ref)

    def extract_root(self, name: str, out_name: str | None = None) -> "DatFile":
        """Build a new container holding a deep copy of one root.

        Args:
            name: Root to copy
            out_name: Root name in the new container; defaults to name

        Raises:
            ValueError: If no root is named name
        """
        root_offset = self.find_root(name)
        if root_offset is None:
            raise ValueError(f"Root '{name}' not found")

        out = DatFile(self.config)
        new_offset = copy_object(out, self, root_offset)
        out.add_root(new_offset, out_name or name)
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DatFile):
            return NotImplemented
        return (
            self.data == other.data
            and self.relocation == other.relocation
            and self.roots == other.roots
            and self.extern_refs == other.extern_refs
            and self.symbols == other.symbols
        )

    def __repr__(self) -> str:
        return (
            f"DatFile("
            f"data={len(self.data)}, "
            f"relocations={self.relocation.count()}, "
            f"roots={len(self.roots)}, "
            f"extern_refs={len(self.extern_refs)}, "
            f"symbols={len(self.symbols)})"
        )
