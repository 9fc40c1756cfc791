"""Per-group annotation cache backed by a JSON sidecar file."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from .errors import MalformedDataError, StorageIOError
from .models import AnnotationArea, decode_group, encode_group

logger = logging.getLogger(__name__)

# Default sidecar file name inside each group directory
DEFAULT_SIDECAR_NAME = "translations.json"

# Suffix of the temporary file written before replacing the sidecar
TEMP_SUFFIX = ".tmp"


class GroupStore:
    """
    Annotation cache for a single group.

    Maps image filenames to their ordered list of annotation areas and
    keeps the group's sidecar file in step with it. Every mutation is
    followed by a save of the whole group.

    The mapping is replaced copy-on-write, so ``get`` reads a stable
    snapshot without taking the lock. ``set``, ``load`` and ``save``
    are serialized by a per-store lock so writes never interleave.

    Stores are owned by a GroupRegistry; other code should go through the
    registry by group name rather than keeping references to a store.
    """

    def __init__(
        self,
        name: str,
        directory: Path,
        sidecar_name: str = DEFAULT_SIDECAR_NAME,
        json_indent: int = 2
    ) -> None:
        """
        Initialize an empty store.

        Args:
            name: Group name
            directory: Group directory holding the sidecar and images
            sidecar_name: File name of the sidecar inside the directory
            json_indent: Indentation for the written JSON (0 = compact)
        """
        self.name = name
        self.directory = Path(directory)
        self.sidecar_name = sidecar_name
        self.json_indent = json_indent
        self.lock = threading.RLock()
        self._files: Dict[str, Tuple[AnnotationArea, ...]] = {}
        # Set by the registry once the group has been deleted
        self.detached = False

    @property
    def sidecar_path(self) -> Path:
        """Path of the group's JSON sidecar file."""
        return self.directory / self.sidecar_name

    @property
    def temp_path(self) -> Path:
        """Path of the temporary file used for atomic saves."""
        return self.directory / f"{self.sidecar_name}{TEMP_SUFFIX}"

    @property
    def area_count(self) -> int:
        """Total number of areas across all files."""
        return sum(len(areas) for areas in self._files.values())

    @property
    def is_empty(self) -> bool:
        """True if no file has any areas."""
        return self.area_count == 0

    def get(self, filename: str) -> List[AnnotationArea]:
        """
        Get the areas for a file.

        Args:
            filename: Image filename within the group

        Returns:
            List of areas in saved order, empty if the file is unknown
        """
        return list(self._files.get(filename, ()))

    def filenames(self) -> List[str]:
        """Get annotated filenames in insertion order."""
        return list(self._files.keys())

    def snapshot(self) -> Dict[str, List[AnnotationArea]]:
        """Get a copy of the whole mapping in insertion order."""
        return {filename: list(areas) for filename, areas in self._files.items()}

    def set(self, filename: str, areas: Iterable[AnnotationArea]) -> None:
        """
        Replace all areas for a file and save the group.

        The in-memory update is kept even when the save fails, so edits
        are not lost from the session; the caller may retry the save.

        Args:
            filename: Image filename within the group
            areas: New areas, replacing any existing ones

        Raises:
            StorageIOError: If the sidecar could not be written
        """
        new_areas = tuple(areas)
        with self.lock:
            files = dict(self._files)
            files[filename] = new_areas
            self._files = files
            logger.debug(f"Set {len(new_areas)} areas for {self.name}/{filename}")
            self.save()

    def load(self) -> Dict[str, List[AnnotationArea]]:
        """
        Load the sidecar file into memory, replacing the current cache.

        A missing, empty or malformed sidecar yields an empty group; the
        problem is logged and never raised.

        Returns:
            Dictionary mapping filenames to their areas
        """
        with self.lock:
            self._files = {}
            path = self.sidecar_path

            if not path.exists():
                logger.debug(f"No sidecar file found for group {self.name}")
                return {}

            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error(
                    f"Error reading sidecar {path}, starting group empty; "
                    f"it will be overwritten on next save: {e}"
                )
                return {}

            if not text.strip():
                logger.debug(f"Sidecar {path} is empty")
                return {}

            try:
                files = decode_group(json.loads(text))
            except json.JSONDecodeError as e:
                logger.warning(f"Error parsing sidecar {path}, starting group empty: {e}")
                return {}
            except MalformedDataError as e:
                logger.warning(f"Invalid sidecar {path}, starting group empty: {e}")
                return {}

            self._files = {filename: tuple(areas) for filename, areas in files.items()}
            logger.info(f"Loaded {self.area_count} areas for {len(self._files)} files from {path}")
            return self.snapshot()

    def to_json(self) -> str:
        """Serialize the whole group to sidecar JSON text."""
        indent = self.json_indent if self.json_indent > 0 else None
        return json.dumps(encode_group(self._files), ensure_ascii=False, indent=indent)

    def save(self) -> None:
        """
        Write the whole group to its sidecar file.

        The JSON is written to a temporary file next to the sidecar and
        then renamed over it, so a crash mid-write leaves the previous
        file intact.

        Raises:
            StorageIOError: If the file could not be written
        """
        with self.lock:
            path = self.sidecar_path
            temp_path = self.temp_path

            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(self.to_json())
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, path)
            except OSError as e:
                logger.error(f"Error writing sidecar {path}: {e}")
                self._discard_temp()
                raise StorageIOError(f"Failed to save group '{self.name}': {e}") from e

            logger.info(f"Saved {self.area_count} areas for group {self.name} to {path}")

    def relocate(self, name: str, directory: Path) -> None:
        """Point the store at a renamed group directory."""
        with self.lock:
            self.name = name
            self.directory = Path(directory)

    def _discard_temp(self) -> None:
        """Remove a leftover temporary file after a failed save."""
        try:
            self.temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary file {self.temp_path}: {e}")
