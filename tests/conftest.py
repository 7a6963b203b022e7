import struct

import pytest

from dat_codec.dat_file import DatFile


@pytest.fixture
def make_dat_bytes():
    """Factory that hand-assembles a DAT file buffer.

    Counts in the header follow the sections passed in; file_size defaults
    to the assembled length but can be overridden to build broken files.
    """

    def _make(
        data: bytes = b"",
        relocs=(),
        roots=(),
        refs=(),
        symbols: bytes = b"",
        file_size: int | None = None,
        counts: tuple[int, int, int, int] | None = None,
        reserved: tuple[int, int, int] = (0, 0, 0),
    ) -> bytes:
        body = bytearray(data)
        for offset in relocs:
            body += struct.pack(">I", offset)
        for obj_offset, symbol_offset in list(roots) + list(refs):
            body += struct.pack(">II", obj_offset, symbol_offset)
        body += symbols

        if counts is None:
            counts = (len(data), len(relocs), len(roots), len(refs))
        if file_size is None:
            file_size = 0x20 + len(body)

        header = struct.pack(">8I", file_size, *counts, *reserved)
        return header + bytes(body)

    return _make


@pytest.fixture
def sample_dat() -> DatFile:
    """Small container with a pointer graph, a root and an extern ref.

    Layout of the data section:
      0x00 scene (16 bytes): +0 -> child, +8 -> leaf, +12 -> func_ptr
      0x10 child (8 bytes):  +4 -> leaf
      0x18 leaf (6 bytes + 2 padding): u16 0xBEEF at +0
      0x20 func_ptr (4 bytes): patched from "external_func"
    """
    dat = DatFile()
    scene = dat.allocate(16)
    child = dat.allocate(8)
    leaf = dat.allocate(6)
    func_ptr = dat.allocate(4)

    dat.set_ref(scene + 0, child)
    dat.set_ref(scene + 8, leaf)
    dat.set_ref(scene + 12, func_ptr)
    dat.set_ref(child + 4, leaf)
    dat.write_u16(leaf, 0xBEEF)

    dat.add_root(scene, "scene_data")
    dat.add_extern_ref(func_ptr, "external_func")
    return dat
