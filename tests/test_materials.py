"""
Tests for material descriptors and texture name normalization.
"""

from dataclasses import FrozenInstanceError

import pytest

from rigbake.scene import Material, MaterialLibrary, normalize_texture_name


class TestNormalizeTextureName:
    """Tests for normalize_texture_name."""

    @pytest.mark.parametrize("filename, expected", [
        ("textures/skin.tga", "skin.png"),
        ("C:\\art\\chars\\skin.TGA", "skin.png"),
        ("hair.jpg", "hair.jpg"),
        ("noext", "noext"),
        ("/abs/path/eyes.tga", "eyes.png"),
    ])
    def test_default_map(self, filename, expected):
        """Directories are stripped and .tga becomes .png."""
        assert normalize_texture_name(filename) == expected

    def test_empty(self):
        """Empty and missing names give None."""
        assert normalize_texture_name(None) is None
        assert normalize_texture_name("") is None

    def test_custom_map(self):
        """A custom extension map replaces the default."""
        mapping = {".PSD": ".dds"}
        assert normalize_texture_name("a/b/c.psd", mapping) == "c.dds"
        assert normalize_texture_name("a/b/c.tga", mapping) == "c.tga"


class TestMaterialLibrary:
    """Tests for the dict-backed material lookup."""

    def test_lookup(self, material_library):
        """Known names resolve, unknown names give None."""
        assert material_library('glass').is_transparent
        assert not material_library('skin').is_transparent
        assert material_library('missing') is None

    def test_contains_and_len(self, material_library):
        """Membership and size."""
        assert 'skin' in material_library
        assert 'missing' not in material_library
        assert len(material_library) == 2
        assert material_library.names == ['skin', 'glass']

    def test_add_replaces(self):
        """Adding a name twice keeps the last one."""
        library = MaterialLibrary([Material('m')])
        library.add(Material('m', double_sided=True))
        assert library.get('m').double_sided
        assert len(library) == 1

    def test_from_dicts(self):
        """Dict entries are converted with texture normalization."""
        library = MaterialLibrary.from_dicts([
            {'name': 'skin', 'diffuse_texture': 'tex/skin.tga'},
            {'name': 'glass', 'opacity_enabled': True, 'double_sided': True},
        ])

        assert library('skin').diffuse_texture_name == 'skin.png'
        assert library('skin').opacity_enabled is False
        assert library('glass').opacity_enabled is True
        assert library('glass').double_sided is True
        assert library('glass').diffuse_texture_name is None

    def test_material_is_frozen(self):
        """Materials are immutable."""
        material = Material('m')
        with pytest.raises(FrozenInstanceError):
            material.opacity_enabled = True
