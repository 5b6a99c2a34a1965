"""
Minimal material descriptors used to classify meshes for draw order.

Material parsing belongs to the host importer. The pipeline only needs the
alpha-enabled flag (opaque vs transparent bucket), the double-sided flag
(face culling) and the diffuse texture name, looked up by material name
through any callable ``MaterialLookup``.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath
from typing import Callable, Dict, Iterable, Mapping, Optional

from ..core.constants import DEFAULT_TEXTURE_EXTENSION_MAP


@dataclass(frozen=True)
class Material:
    """Material flags consumed by the import pipeline."""
    name: str
    opacity_enabled: bool = False
    double_sided: bool = False
    diffuse_texture_name: Optional[str] = None

    @property
    def is_transparent(self) -> bool:
        return self.opacity_enabled


# Any callable mapping a material name to its descriptor (None when unknown)
MaterialLookup = Callable[[str], Optional[Material]]


def normalize_texture_name(
    filename: Optional[str],
    extension_map: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """
    Reduce an authored texture path to the runtime texture name.

    Strips directories (both separators) and rewrites the extension through
    ``extension_map`` (case-insensitive), e.g. ``C:\\art\\skin.TGA`` ->
    ``skin.png`` with the default map.

    Args:
        filename: Texture path as stored in the source scene
        extension_map: Source -> runtime extension map

    Returns:
        Bare texture file name, or None for an empty input
    """
    if not filename:
        return None
    if extension_map is None:
        extension_map = DEFAULT_TEXTURE_EXTENSION_MAP

    base = PurePosixPath(PureWindowsPath(filename).name).name
    stem, dot, extension = base.rpartition('.')
    if not dot:
        return base

    replacement = {k.lower(): v for k, v in extension_map.items()}.get(f".{extension.lower()}")
    if replacement is None:
        return base
    return f"{stem}{replacement}"


class MaterialLibrary:
    """
    Dict-backed MaterialLookup.

    Example:
        >>> library = MaterialLibrary([Material('skin'), Material('glass', opacity_enabled=True)])
        >>> library('glass').opacity_enabled
        True
        >>> library('missing') is None
        True
    """

    def __init__(self, materials: Optional[Iterable[Material]] = None):
        self._materials: Dict[str, Material] = {}
        for material in materials or ():
            self.add(material)

    def add(self, material: Material) -> None:
        self._materials[material.name] = material

    def get(self, name: str) -> Optional[Material]:
        return self._materials.get(name)

    def __call__(self, name: str) -> Optional[Material]:
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._materials

    def __len__(self) -> int:
        return len(self._materials)

    @property
    def names(self):
        return list(self._materials)

    @classmethod
    def from_dicts(
        cls,
        entries: Iterable[Mapping],
        extension_map: Optional[Mapping[str, str]] = None
    ) -> 'MaterialLibrary':
        """
        Build a library from plain dicts.

        Each entry needs a 'name' and may carry 'opacity_enabled',
        'double_sided' and 'diffuse_texture' (an authored path, normalized
        with normalize_texture_name).
        """
        library = cls()
        for entry in entries:
            library.add(Material(
                name=entry['name'],
                opacity_enabled=bool(entry.get('opacity_enabled', False)),
                double_sided=bool(entry.get('double_sided', False)),
                diffuse_texture_name=normalize_texture_name(
                    entry.get('diffuse_texture'), extension_map
                ),
            ))
        return library
