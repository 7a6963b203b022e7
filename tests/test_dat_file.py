"""Tests for DatFile import/export and mutators."""

import struct

import pytest

from dat_codec.config import DatConfig
from dat_codec.dat_file import DatFile
from dat_codec.errors import (
    AlignmentError,
    DatUsageError,
    InvalidFileError,
    OutOfBoundsError,
)
from dat_codec.tables import ExternRef, Root

EMPTY_DAT = struct.pack(">I", 32) + b"\x00" * 28


class TestImport:
    """Test decoding DAT buffers."""

    def test_empty_file(self):
        """Test a header-only file decodes to empty sections."""
        dat = DatFile.import_bytes(EMPTY_DAT)

        assert len(dat.data) == 0
        assert dat.relocation.encode() == []
        assert len(dat.relocation) == 0
        assert dat.roots == []
        assert dat.extern_refs == []
        assert len(dat.symbols) == 0

    def test_sections(self, make_dat_bytes):
        """Test every section lands in the right place."""
        data = struct.pack(">4I", 8, 0, 0xCAFE, 0)
        raw = make_dat_bytes(
            data=data,
            relocs=[0],
            roots=[(0, 0)],
            refs=[(12, 5)],
            symbols=b"root\x00ext\x00",
        )

        dat = DatFile.import_bytes(raw)

        assert bytes(dat.data.raw) == data
        assert dat.check_ref(0)
        assert not dat.check_ref(4)
        assert dat.read_ref(0) == 8
        assert dat.roots == [Root(obj_offset=0, symbol_offset=0)]
        assert dat.extern_refs == [ExternRef(obj_offset=12, symbol_offset=5)]
        assert dat.read_symbol(0) == "root"
        assert dat.read_symbol(5) == "ext"

    @pytest.mark.parametrize("size", [0, 1, 31])
    def test_too_short(self, size):
        with pytest.raises(InvalidFileError):
            DatFile.import_bytes(b"\x00" * size)

    def test_file_size_mismatch(self):
        raw = struct.pack(">I", 40) + b"\x00" * 28

        with pytest.raises(InvalidFileError, match="File size mismatch"):
            DatFile.import_bytes(raw)

    def test_truncated_data(self, make_dat_bytes):
        raw = make_dat_bytes(data=bytes(8), counts=(16, 0, 0, 0))

        with pytest.raises(InvalidFileError, match="Data section truncated"):
            DatFile.import_bytes(raw)

    def test_truncated_relocations(self, make_dat_bytes):
        raw = make_dat_bytes(data=bytes(8), relocs=[0], counts=(8, 2, 0, 0))

        with pytest.raises(InvalidFileError, match="Relocation table truncated"):
            DatFile.import_bytes(raw)

    def test_truncated_roots(self, make_dat_bytes):
        raw = make_dat_bytes(data=bytes(8), roots=[(0, 0)], counts=(8, 0, 3, 0))

        with pytest.raises(InvalidFileError, match="Root table truncated"):
            DatFile.import_bytes(raw)

    def test_truncated_extern_refs(self, make_dat_bytes):
        raw = make_dat_bytes(data=bytes(8), refs=[(0, 0)], counts=(8, 0, 0, 2))

        with pytest.raises(InvalidFileError, match="ExternRef table truncated"):
            DatFile.import_bytes(raw)

    def test_huge_counts_rejected(self, make_dat_bytes):
        """Test counts far past the buffer fail cleanly."""
        raw = make_dat_bytes(counts=(0, 0xFFFFFFFF, 0, 0))

        with pytest.raises(InvalidFileError):
            DatFile.import_bytes(raw)

    def test_relocation_outside_data_rejected(self, make_dat_bytes):
        raw = make_dat_bytes(data=bytes(8), relocs=[8])

        with pytest.raises(InvalidFileError, match="outside the data section"):
            DatFile.import_bytes(raw)

    def test_relocation_outside_data_allowed_when_not_strict(self, make_dat_bytes):
        raw = make_dat_bytes(data=bytes(8), relocs=[8, 0x400])

        dat = DatFile.import_bytes(raw, DatConfig(strict_relocations=False))

        assert dat.check_ref(0x400)
        assert dat.export() == raw

    def test_max_file_size(self):
        with pytest.raises(InvalidFileError, match="exceeds maximum"):
            DatFile.import_bytes(EMPTY_DAT + b"\x00" * 8, DatConfig(max_file_size=32))

    def test_reserved_fields_cleared_on_export(self, make_dat_bytes):
        raw = make_dat_bytes(data=bytes(4), reserved=(1, 2, 3))

        dat = DatFile.import_bytes(raw)

        assert dat.export() == make_dat_bytes(data=bytes(4))


class TestExport:
    """Test canonical serialization."""

    def test_empty_container(self):
        """Test a fresh container exports to a bare 32-byte header."""
        out = DatFile().export()

        assert out == EMPTY_DAT
        assert len(out) == 32

    def test_empty_file_round_trip(self):
        assert DatFile.import_bytes(EMPTY_DAT).export() == EMPTY_DAT

    def test_size_mismatch_raises(self, sample_dat, monkeypatch):
        """Test export refuses to emit a buffer its header doesn't describe."""
        wrong = sample_dat.header()
        wrong.file_size += 4
        monkeypatch.setattr(sample_dat, "header", lambda: wrong)

        with pytest.raises(RuntimeError, match="header declares"):
            sample_dat.export()

    def test_relocations_canonicalized(self, make_dat_bytes):
        """Test unsorted and duplicated relocations are normalized."""
        raw = make_dat_bytes(data=bytes(16), relocs=[8, 0, 8, 4])

        out = DatFile.import_bytes(raw).export()

        assert out == make_dat_bytes(data=bytes(16), relocs=[0, 4, 8])
        header = struct.unpack_from(">5I", out)
        assert header[0] == len(out)
        assert header[2] == 3

    def test_round_trip(self, sample_dat):
        """Test import(export(c)) reproduces every section."""
        loaded = DatFile.import_bytes(sample_dat.export())

        assert loaded == sample_dat
        assert loaded.roots == sample_dat.roots
        assert loaded.extern_refs == sample_dat.extern_refs

    def test_canonical_stability(self, sample_dat):
        """Test export(import(b)) == b for exported bytes."""
        out = sample_dat.export()

        assert DatFile.import_bytes(out).export() == out

    def test_layout(self, sample_dat):
        out = sample_dat.export()

        file_size, data_size, reloc_count, root_count, ref_count = struct.unpack_from(">5I", out)
        assert file_size == len(out) == 32 + 36 + 4 * 4 + 8 + 8 + 25
        assert data_size == 36
        assert reloc_count == 4
        assert root_count == 1
        assert ref_count == 1
        assert out[20:32] == b"\x00" * 12
        relocs = struct.unpack_from(">4I", out, 32 + 36)
        assert relocs == (0, 8, 12, 20)
        assert out.endswith(b"scene_data\x00external_func\x00")

    def test_independent_of_mutation_history(self):
        """Test two containers built in different orders export identically."""
        a = DatFile()
        a.allocate(16)
        a.set_ref(12, 0)
        a.set_ref(0, 4)

        b = DatFile()
        b.allocate(16)
        b.set_ref(0, 4)
        b.set_ref(4, 8)
        b.remove_ref(4)
        b.set_ref(12, 0)
        b.write_u32(4, 0)

        assert a.export() == b.export()

    def test_read_write_files(self, sample_dat, tmp_path):
        path = tmp_path / "out" / "sample.dat"

        written = sample_dat.write(path)

        assert written == path.stat().st_size
        assert DatFile.read(path) == sample_dat


class TestRefs:
    """Test relocated pointer mutators."""

    def test_set_check_remove(self):
        dat = DatFile()
        obj = dat.allocate(16)

        dat.set_ref(obj + 8, 0x1234)
        assert dat.check_ref(obj + 8)
        assert dat.read_u32(obj + 8) == 0x1234

        dat.remove_ref(obj + 8)
        assert not dat.check_ref(obj + 8)
        # value is left in place
        assert dat.read_u32(obj + 8) == 0x1234

    def test_set_ref_misaligned(self):
        dat = DatFile()
        dat.allocate(16)

        with pytest.raises(AlignmentError):
            dat.set_ref(2, 0)
        assert dat.relocation.count() == 0

    def test_set_ref_past_data(self):
        dat = DatFile()
        dat.allocate(8)

        with pytest.raises(OutOfBoundsError):
            dat.set_ref(8, 0)
        assert not dat.check_ref(8)

    def test_remove_ref_past_data_grows_bitmap(self):
        """Test the bitmap can outgrow the data section without changing export."""
        dat = DatFile()
        dat.allocate(8)

        dat.remove_ref(0x1000)

        assert len(dat.relocation) == 17
        assert dat.export() == DatFile.import_bytes(dat.export()).export()

    def test_check_ref_misaligned(self):
        with pytest.raises(AlignmentError):
            DatFile().check_ref(1)

    def test_check_ref_past_bitmap(self):
        assert DatFile().check_ref(4096) is False

    def test_usage_errors_share_base(self):
        assert issubclass(AlignmentError, DatUsageError)
        assert issubclass(OutOfBoundsError, DatUsageError)
        assert not issubclass(InvalidFileError, DatUsageError)


class TestAllocation:
    def test_monotonic_and_zeroed(self):
        dat = DatFile()
        offsets = [dat.allocate(size) for size in (5, 0, 12, 3, 7)]

        assert offsets == sorted(offsets)
        sizes = (5, 0, 12, 3, 7)
        for (offset, size), nxt in zip(zip(offsets, sizes), offsets[1:]):
            assert offset + size <= nxt
        for offset, size in zip(offsets, sizes):
            assert bytes(dat.data.raw[offset:offset + size]) == b"\x00" * size
            assert offset % 4 == 0

    def test_config_padding(self):
        dat = DatFile(DatConfig(alloc_padding="legacy"))
        dat.allocate(3)

        assert dat.allocate(4) == 10

    def test_allocations_tracked(self):
        dat = DatFile()
        a = dat.allocate(4)
        b = dat.allocate(4)

        assert dat.allocations == {a, b}


class TestRoots:
    """Test root and extern ref tables."""

    def test_add_insert_remove(self):
        dat = DatFile()
        root1 = dat.allocate(128)
        root2 = dat.allocate(128)
        root3 = dat.allocate(128)

        dat.add_root(root2, "root2", index=0)
        dat.add_root(root3, "root3", index=1)
        dat.add_root(root1, "root1", index=0)

        assert [r.obj_offset for r in dat.roots] == [root1, root2, root3]
        assert [dat.root_name(r) for r in dat.roots] == ["root1", "root2", "root3"]

        removed = dat.remove_root(1)
        assert removed.obj_offset == root2
        assert [dat.root_name(r) for r in dat.roots] == ["root1", "root3"]

    def test_append_by_default(self):
        dat = DatFile()
        dat.add_root(0, "a")
        dat.add_root(4, "b")

        assert [dat.root_name(r) for r in dat.roots] == ["a", "b"]

    def test_find_root(self, sample_dat):
        assert sample_dat.find_root("scene_data") == 0
        assert sample_dat.find_root("missing") is None
        assert sample_dat.find_root("scene") is None

    def test_find_root_skips_dangling_symbol(self, make_dat_bytes):
        """Test a root with a bad symbol offset doesn't hide later roots."""
        raw = make_dat_bytes(
            data=b"\x00" * 8, roots=[(0, 99), (4, 0)], symbols=b"good\x00"
        )
        dat = DatFile.import_bytes(raw)

        assert dat.find_root("good") == 4
        assert dat.find_root("bad") is None

    def test_index_out_of_range(self):
        dat = DatFile()

        with pytest.raises(OutOfBoundsError):
            dat.add_root(0, "a", index=1)
        with pytest.raises(OutOfBoundsError):
            dat.remove_root(0)

    def test_extern_ref(self, sample_dat):
        assert sample_dat.extern_refs == [ExternRef(obj_offset=0x20, symbol_offset=11)]
        assert sample_dat.root_name(sample_dat.extern_refs[0]) == "external_func"

    def test_root_and_extern_ref_are_distinct(self):
        assert Root(0, 0) != ExternRef(0, 0)


class TestSymbols:
    def test_add_read(self):
        dat = DatFile()
        foo = dat.add_symbol("foo")
        bar = dat.add_symbol("bar")

        assert dat.read_symbol(foo) == "foo"
        assert dat.read_symbol(bar) == "bar"
        assert bar == foo + len("foo") + 1
