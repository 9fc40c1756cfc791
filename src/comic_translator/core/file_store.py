"""Image file storage inside group directories."""

from __future__ import annotations

import logging
import os
from pathlib import PurePosixPath, PureWindowsPath
from typing import List, Optional

from .errors import InvalidNameError, StorageIOError, UploadTooLargeError
from .group_registry import GroupRegistry
from .group_store import TEMP_SUFFIX

logger = logging.getLogger(__name__)

# Default upload limit (100 MB)
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def safe_filename(filename: Optional[str]) -> str:
    """
    Reduce a submitted filename to its final path component.

    Browsers may send full client paths with either separator style.

    Args:
        filename: Submitted filename

    Returns:
        Base name safe to join onto a group directory

    Raises:
        InvalidNameError: If nothing usable remains
    """
    if not filename:
        raise InvalidNameError("Filename must not be empty")

    name = PureWindowsPath(PurePosixPath(filename).name).name.strip()
    if not name or name.startswith(".") or "\x00" in name:
        raise InvalidNameError(f"Invalid filename: {filename!r}")
    return name


class ImageFileStore:
    """
    Stores uploaded images alongside a group's sidecar file.

    All paths are resolved through the registry, which validates group
    names and holds its lock while files are written, so uploads cannot
    race a rename or delete of the same group.
    """

    def __init__(
        self,
        registry: GroupRegistry,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    ) -> None:
        """
        Initialize the file store.

        Args:
            registry: Registry owning the group directories
            max_upload_bytes: Largest accepted file size
        """
        self.registry = registry
        self.max_upload_bytes = max_upload_bytes

    def _is_reserved(self, name: str) -> bool:
        """Check if a name belongs to the sidecar or its temporary file."""
        sidecar = self.registry.sidecar_name
        return name in (sidecar, f"{sidecar}{TEMP_SUFFIX}")

    def save_image(self, group: str, filename: str, data: bytes) -> str:
        """
        Save an uploaded image into a group, replacing any existing file.

        Args:
            group: Group name
            filename: Submitted filename; only its base name is used
            data: File contents

        Returns:
            The stored filename

        Raises:
            InvalidNameError: If the filename is unusable or reserved
            NotFoundError: If the group does not exist
            UploadTooLargeError: If the file exceeds the size limit
            StorageIOError: If the file could not be written
        """
        name = safe_filename(filename)
        if self._is_reserved(name):
            raise InvalidNameError(f"Filename is reserved: {name}")
        if len(data) > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"{name} is {len(data)} bytes, limit is {self.max_upload_bytes}"
            )

        with self.registry.group_directory(group) as directory:
            target = directory / name
            temp_path = directory / f".{name}.upload"
            try:
                with open(temp_path, "wb") as f:
                    f.write(data)
                os.replace(temp_path, target)
            except OSError as e:
                logger.error(f"Error saving image {target}: {e}")
                temp_path.unlink(missing_ok=True)
                raise StorageIOError(f"Failed to save {name} to group '{group}': {e}") from e

        logger.info(f"Saved image {name} ({len(data)} bytes) to group {group}")
        return name

    def list_images(self, group: str) -> List[str]:
        """
        List the image files of a group.

        The sidecar and hidden or temporary files are skipped.

        Args:
            group: Group name

        Returns:
            Sorted list of filenames

        Raises:
            NotFoundError: If the group does not exist
        """
        with self.registry.group_directory(group) as directory:
            try:
                return sorted(
                    entry.name
                    for entry in directory.iterdir()
                    if entry.is_file()
                    and not entry.name.startswith(".")
                    and not self._is_reserved(entry.name)
                )
            except OSError as e:
                logger.error(f"Error listing group directory {directory}: {e}")
                raise StorageIOError(f"Failed to list files of group '{group}': {e}") from e
