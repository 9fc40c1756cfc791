"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from comic_translator.core.group_registry import GroupRegistry  # noqa: E402
from comic_translator.core.group_store import GroupStore  # noqa: E402
from comic_translator.core.models import AnnotationArea  # noqa: E402


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def storage_root(tmp_path):
    """Provide an empty storage root."""
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def registry(storage_root):
    """Create a loaded registry over an empty storage root."""
    registry = GroupRegistry(storage_root)
    registry.load_all()
    return registry


@pytest.fixture
def store(storage_root):
    """Create a store for a group directory that does not exist yet."""
    return GroupStore("ch1", storage_root / "ch1")


@pytest.fixture
def sample_areas():
    """Two areas with non-ASCII text."""
    return [
        AnnotationArea(x=10, y=20, width=30, height=40, original="你好", translation="Hello"),
        AnnotationArea(x=100, y=50, width=80, height=20, original="再见", translation="Goodbye"),
    ]


@pytest.fixture
def sample_sidecar(storage_root):
    """Create a group directory with a sidecar file holding two files."""
    group_dir = storage_root / "existing"
    group_dir.mkdir()
    (group_dir / "translations.json").write_text(
        '{"p2.png": [{"x": 1, "y": 2, "width": 3, "height": 4, '
        '"original": "a", "translation": "b"}], '
        '"p1.png": [{"x": 5, "y": 6, "width": 7, "height": 8, '
        '"original": "c", "translation": "d", "color": "red"}]}',
        encoding="utf-8",
    )
    return group_dir
