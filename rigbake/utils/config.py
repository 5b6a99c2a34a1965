"""
Configuration management for rigbake.

Provides the import configuration dataclass and JSON load/save helpers.
"""

import json
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Union
from pathlib import Path

from ..core.constants import (
    DEDUP_HASH,
    DEDUP_STRATEGIES,
    DEFAULT_TEXTURE_EXTENSION_MAP,
    MAX_INFLUENCES,
)


@dataclass
class ImportConfig:
    """
    Configuration for scene import.

    Attributes:
        # Skinning
        max_influences: Influences kept per vertex (1..4)
        rebuild_rest_pose: Seed the rest pose from inverse bind poses after import

        # Mesh
        dedup_strategy: Vertex dedup strategy ('hash' or 'linear')
        uv_set: Index of the UV set imported as texcoord0

        # Materials
        texture_extension_map: Texture extension rewrites (source -> runtime),
            applied by SceneAssembler.import_file and load_scene
    """

    # Skinning
    max_influences: int = MAX_INFLUENCES
    rebuild_rest_pose: bool = True

    # Mesh
    dedup_strategy: str = DEDUP_HASH
    uv_set: int = 0

    # Materials
    texture_extension_map: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_TEXTURE_EXTENSION_MAP)
    )

    # Additional fields
    extra: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> 'ImportConfig':
        """
        Check value ranges.

        Returns:
            self, for chaining

        Raises:
            ValueError: On an out-of-range or unknown value
        """
        if not 1 <= self.max_influences <= MAX_INFLUENCES:
            raise ValueError(
                f"max_influences must be in [1, {MAX_INFLUENCES}], got {self.max_influences}"
            )
        if self.dedup_strategy not in DEDUP_STRATEGIES:
            raise ValueError(
                f"dedup_strategy must be one of {DEDUP_STRATEGIES}, got '{self.dedup_strategy}'"
            )
        if self.uv_set < 0:
            raise ValueError(f"uv_set must be non-negative, got {self.uv_set}")
        for source, target in self.texture_extension_map.items():
            if not source.startswith('.') or not target.startswith('.'):
                raise ValueError(
                    f"texture_extension_map entries must be extensions, got '{source}' -> '{target}'"
                )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ImportConfig':
        """Create config from dictionary; unknown keys land in extra."""
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        known_kwargs = {k: v for k, v in config_dict.items() if k in known_fields and k != 'extra'}
        extra_kwargs = dict(config_dict.get('extra') or {})
        extra_kwargs.update({k: v for k, v in config_dict.items() if k not in known_fields})

        config = cls(**known_kwargs)
        config.extra = extra_kwargs
        return config

    def update(self, **kwargs) -> 'ImportConfig':
        """Return a new config with updated values."""
        config_dict = self.to_dict()
        config_dict.update(kwargs)
        return ImportConfig.from_dict(config_dict)


def load_config(filepath: Union[str, Path]) -> ImportConfig:
    """
    Load configuration from JSON file.

    Args:
        filepath: Path to JSON config file

    Returns:
        ImportConfig object
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        config_dict = json.load(f)
    return ImportConfig.from_dict(config_dict)


def save_config(config: ImportConfig, filepath: Union[str, Path]) -> None:
    """
    Save configuration to JSON file.

    Args:
        config: ImportConfig object to save
        filepath: Output file path
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
