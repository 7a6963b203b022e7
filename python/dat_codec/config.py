"""
Configuration for DAT import and allocation behavior.

Defaults reproduce the canonical codec; a JSON file can override them for
tooling that needs to read non-conforming files or reproduce old layouts.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path

from .data import ALIGN_PADDING, PADDING_MODES

MAX_DAT_FILE_SIZE = 0xFFFFFFFF  # file_size is a uint32


@dataclass
class DatConfig:
    """
    Options shared by import, allocation and the command line tool.

    Attributes:
        alloc_padding: "align" rounds the data section up to a word boundary
            before allocating; "legacy" appends (len & 3) + 4 bytes instead
        strict_relocations: Reject relocation offsets outside the data section
            on import. When False the relocation bitmap grows to hold them.
        max_file_size: Largest buffer accepted by import
    """

    alloc_padding: str = ALIGN_PADDING
    strict_relocations: bool = True
    max_file_size: int = MAX_DAT_FILE_SIZE

    def __post_init__(self):
        if self.alloc_padding not in PADDING_MODES:
            raise ValueError(
                f"Invalid alloc_padding '{self.alloc_padding}': must be one of {', '.join(PADDING_MODES)}"
            )

        if not isinstance(self.strict_relocations, bool):
            raise ValueError("'strict_relocations' must be a boolean")

        if not isinstance(self.max_file_size, int) or isinstance(self.max_file_size, bool):
            raise ValueError("'max_file_size' must be an integer")

        if not 0x20 <= self.max_file_size <= MAX_DAT_FILE_SIZE:
            raise ValueError(
                f"Invalid max_file_size {self.max_file_size}: must be between 32 and {MAX_DAT_FILE_SIZE}"
            )

    @classmethod
    def from_json(cls, json_path: Path) -> "DatConfig":
        """
        Load configuration from a JSON file.

        Missing keys keep their defaults.

        Args:
            json_path: Path to JSON configuration file

        Returns:
            DatConfig instance

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If JSON is invalid or configuration is malformed
        """
        if not json_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {json_path}")

        if json_path.stat().st_size == 0:
            raise ValueError(f"Configuration file is empty: {json_path}")

        try:
            with open(json_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {json_path}: {e}") from e
        except OSError as e:
            raise RuntimeError(f"Cannot read configuration file {json_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Configuration in {json_path} must be an object")

        unknown = set(data) - {"alloc_padding", "strict_relocations", "max_file_size"}
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        return cls(**data)

    def to_json(self, json_path: Path) -> None:
        """
        Write configuration to a JSON file.

        Args:
            json_path: Path where JSON file will be written
        """
        with open(json_path, "w") as f:
            json.dump(asdict(self), f, indent=2)
