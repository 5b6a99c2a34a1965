"""
Utility functions for rigbake.

Includes import configuration and mesh export.
"""

from .config import ImportConfig, load_config, save_config
from .export import export_mesh

__all__ = [
    # Configuration
    "ImportConfig",
    "load_config",
    "save_config",
    # Export
    "export_mesh",
]
