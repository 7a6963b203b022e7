"""MessagePack manifest describing a DAT container.

The manifest is a sidecar for inspection and diffing; it is never read back
into a container. Structure:

{
  "format_version": 1,
  "file_size": 4096,
  "data_size": 3800,
  "symbol_table_size": 42,
  "relocations": [0, 8, 64, ...],
  "roots": [{"offset": 0, "symbol_offset": 0, "name": "scene_data"}, ...],
  "extern_refs": [{"offset": 96, "symbol_offset": 11, "name": "func"}, ...],
  "objects": [{"offset": 0, "size": 64}, ...]
}

Names are None when the symbol bytes are not ASCII or the symbol offset
does not address a terminated string.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

import msgpack

from .errors import OutOfBoundsError
from .objects import object_offsets

if TYPE_CHECKING:
    from .dat_file import DatFile

MANIFEST_FORMAT_VERSION = 1


def _entry_name(dat: "DatFile", symbol_offset: int) -> str | None:
    try:
        return dat.symbols.read(symbol_offset)
    except OutOfBoundsError:
        return None


def build_manifest(dat: "DatFile") -> dict[str, Any]:
    """Describe a container as plain dicts and lists."""
    relocations = dat.relocation.encode()
    data_size = len(dat.data)

    objects = []
    starts = [s for s in object_offsets(dat) if s < data_size]
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else data_size
        objects.append({"offset": start, "size": end - start})

    return {
        "format_version": MANIFEST_FORMAT_VERSION,
        "file_size": dat.header().file_size,
        "data_size": data_size,
        "symbol_table_size": len(dat.symbols),
        "relocations": relocations,
        "roots": [
            {
                "offset": root.obj_offset,
                "symbol_offset": root.symbol_offset,
                "name": _entry_name(dat, root.symbol_offset),
            }
            for root in dat.roots
        ],
        "extern_refs": [
            {
                "offset": ref.obj_offset,
                "symbol_offset": ref.symbol_offset,
                "name": _entry_name(dat, ref.symbol_offset),
            }
            for ref in dat.extern_refs
        ],
        "objects": objects,
    }


def write_manifest(dat: "DatFile", output_path: Path) -> None:
    """Write the manifest of dat to output_path as MessagePack."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("wb") as f:
        msgpack.pack(build_manifest(dat), f, use_bin_type=True)


def read_manifest(input_path: Path) -> dict[str, Any]:
    """Load a manifest written by write_manifest()."""
    with input_path.open("rb") as f:
        manifest = msgpack.unpack(f, raw=False)

    if manifest.get("format_version") != MANIFEST_FORMAT_VERSION:
        raise ValueError(
            f"Unsupported manifest version: {manifest.get('format_version')} "
            f"(expected {MANIFEST_FORMAT_VERSION})"
        )
    return manifest
