"""Tool for inspecting, round-tripping and extracting from .dat containers."""

import argparse
import sys
from pathlib import Path

from dat_codec.config import DatConfig
from dat_codec.dat_file import DatFile
from dat_codec.errors import DatError, OutOfBoundsError
from dat_codec.manifest import write_manifest


def _load_config(args) -> DatConfig:
    if args.config is None:
        return DatConfig()
    return DatConfig.from_json(Path(args.config))


def _read_dat(args, config: DatConfig) -> DatFile | None:
    dat_path = Path(args.dat_file)
    if not dat_path.exists():
        print(f"Error: {dat_path} does not exist", file=sys.stderr)
        return None

    dat = DatFile.read(dat_path, config)
    if args.verbose:
        header = dat.header()
        print(f"Read {dat_path} ({header.file_size:,} bytes)", file=sys.stderr)
        print(f"  Data:        {header.data_size:,} bytes", file=sys.stderr)
        print(f"  Relocations: {header.reloc_count}", file=sys.stderr)
        print(f"  Roots:       {header.root_count}", file=sys.stderr)
        print(f"  Extern refs: {header.ref_count}", file=sys.stderr)
        print(f"  Symbols:     {len(dat.symbols):,} bytes", file=sys.stderr)
    return dat


def _display_name(dat: DatFile, entry) -> str:
    try:
        name = dat.root_name(entry)
    except OutOfBoundsError:
        return "<invalid>"
    return name if name is not None else "<non-ascii>"


def cmd_roundtrip(args, config: DatConfig) -> int:
    """Import a file and write it back in canonical form."""
    dat = _read_dat(args, config)
    if dat is None:
        return 1

    output_path = Path(args.output)
    written = dat.write(output_path)
    print(f"Wrote: {output_path} ({written:,} bytes)")
    return 0


def cmd_tree(args, config: DatConfig) -> int:
    """List roots, extern refs and objects of a dat file."""
    dat = _read_dat(args, config)
    if dat is None:
        return 1

    print(f"Dat: {Path(args.dat_file).name}")
    print(f"  Data size:   {len(dat.data):,} bytes")
    print(f"  Relocations: {dat.relocation.count()}")
    print()

    for root in dat.roots:
        print(f"ROOT   {root.obj_offset:06x} {_display_name(dat, root)}")
    for ref in dat.extern_refs:
        print(f"EXTERN {ref.obj_offset:06x} {_display_name(dat, ref)}")

    if args.objects:
        starts = [s for s in dat.object_offsets() if s < len(dat.data)]
        for i, start in enumerate(starts):
            end = starts[i + 1] if i + 1 < len(starts) else len(dat.data)
            print(f"OBJECT {start:06x} ({end - start})")

    return 0


def cmd_extract(args, config: DatConfig) -> int:
    """Copy one root and everything it references into a new dat file."""
    dat = _read_dat(args, config)
    if dat is None:
        return 1

    if dat.find_root(args.root_name) is None:
        print(f"Error: Root '{args.root_name}' not found in {args.dat_file}", file=sys.stderr)
        names = [_display_name(dat, r) for r in dat.roots]
        print(f"\nAvailable roots:", file=sys.stderr)
        for name in names[:10]:
            print(f"  {name}", file=sys.stderr)
        if len(names) > 10:
            print(f"  ... and {len(names) - 10} more", file=sys.stderr)
        return 1

    out_name = args.out_root_name or args.root_name
    extracted = dat.extract_root(args.root_name, out_name)

    output_path = Path(args.output) if args.output else Path(f"{out_name}.dat")
    written = extracted.write(output_path)
    print(f"Extracted: {args.root_name} -> {output_path} (root '{out_name}')")
    print(f"Size: {written:,} bytes, {extracted.relocation.count()} relocations")
    return 0


def cmd_manifest(args, config: DatConfig) -> int:
    """Write a MessagePack manifest describing a dat file."""
    dat = _read_dat(args, config)
    if dat is None:
        return 1

    output_path = Path(args.output)
    write_manifest(dat, output_path)
    print(f"Manifest: {output_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Inspect, round-trip and extract from .dat containers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Re-export a file in canonical form
  python -m dat_codec.tools.dat_tool roundtrip lab.dat lab.dat.out

  # List roots and extern refs
  python -m dat_codec.tools.dat_tool tree --objects lab.dat

  # Copy a root and its children into scene.dat
  python -m dat_codec.tools.dat_tool extract lab.dat scene_data scene
        """,
    )
    parser.add_argument("--config", help="JSON file with DatConfig overrides")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Print section sizes to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    roundtrip_parser = subparsers.add_parser(
        "roundtrip", help="Import a dat file and export it again"
    )
    roundtrip_parser.add_argument("dat_file", help="Path to input .dat file")
    roundtrip_parser.add_argument("output", help="Output file path")

    tree_parser = subparsers.add_parser("tree", help="List roots and extern refs")
    tree_parser.add_argument("dat_file", help="Path to .dat file")
    tree_parser.add_argument(
        "--objects", action="store_true", help="Also list inferred object boundaries"
    )

    extract_parser = subparsers.add_parser(
        "extract", help="Copy a root into a new dat file"
    )
    extract_parser.add_argument("dat_file", help="Path to .dat file")
    extract_parser.add_argument("root_name", help="Root to extract")
    extract_parser.add_argument(
        "out_root_name", nargs="?", help="Root name in the new file (default: same)"
    )
    extract_parser.add_argument(
        "-o", "--output", help="Output file path (default: <out_root_name>.dat)"
    )

    manifest_parser = subparsers.add_parser(
        "manifest", help="Write a MessagePack manifest"
    )
    manifest_parser.add_argument("dat_file", help="Path to .dat file")
    manifest_parser.add_argument("-o", "--output", required=True, help="Output file path")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "roundtrip": cmd_roundtrip,
        "tree": cmd_tree,
        "extract": cmd_extract,
        "manifest": cmd_manifest,
    }

    try:
        config = _load_config(args)
        return commands[args.command](args, config)
    except (DatError, ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
