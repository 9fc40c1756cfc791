"""Registry of annotation groups and their lifecycle on disk."""

from __future__ import annotations

import logging
import re
import shutil
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from .errors import AlreadyExistsError, InvalidNameError, NotFoundError, StorageIOError
from .exporter import format_group_report, format_report
from .group_store import DEFAULT_SIDECAR_NAME, GroupStore
from .models import AnnotationArea

logger = logging.getLogger(__name__)

# Characters that are not allowed in group names on any supported platform
RESERVED_CHARACTERS = '<>:"|?*'

# Path separators and control characters
_FORBIDDEN_PATTERN = re.compile(r'[/\\\x00-\x1f\x7f]')

# Longest name most filesystems accept for a single path segment
MAX_NAME_BYTES = 255


def validate_group_name(name: Optional[str]) -> str:
    """
    Check that a group name can be used as a single directory name.

    This is the only guard between user-supplied names and the storage
    root, so anything that could escape the root or collide with hidden
    and temporary entries is rejected.

    Args:
        name: Candidate group name

    Returns:
        The validated name, unchanged

    Raises:
        InvalidNameError: If the name is unusable
    """
    if name is None or not name.strip():
        raise InvalidNameError("Group name must not be empty")
    if name != name.strip():
        raise InvalidNameError(f"Group name must not start or end with whitespace: {name!r}")
    if name in (".", "..") or name.startswith("."):
        raise InvalidNameError(f"Group name must not start with '.': {name!r}")
    if _FORBIDDEN_PATTERN.search(name):
        raise InvalidNameError(f"Group name contains a path separator or control character: {name!r}")
    bad = sorted({c for c in name if c in RESERVED_CHARACTERS})
    if bad:
        raise InvalidNameError(f"Group name contains reserved characters {''.join(bad)!r}: {name!r}")
    if len(name.encode("utf-8")) > MAX_NAME_BYTES:
        raise InvalidNameError(f"Group name is longer than {MAX_NAME_BYTES} bytes")
    return name


class GroupRegistry:
    """
    Registry mapping group names to their annotation stores.

    Each group is a directory under the storage root holding a JSON
    sidecar and the group's images. The registry keeps exactly one
    GroupStore per group and creates, renames and deletes directories
    and stores together.

    Locking: a single registry-wide lock covers every structural change
    and every name lookup. When a store lock is also needed it is always
    taken after the registry lock.
    """

    def __init__(
        self,
        root: Path,
        sidecar_name: str = DEFAULT_SIDECAR_NAME,
        json_indent: int = 2
    ) -> None:
        """
        Initialize the registry.

        Args:
            root: Storage root containing one directory per group
            sidecar_name: File name of the sidecar inside each group
            json_indent: Indentation for written sidecar JSON
        """
        self.root = Path(root)
        self.sidecar_name = sidecar_name
        self.json_indent = json_indent
        self._stores: Dict[str, GroupStore] = {}
        self._lock = threading.RLock()

    def _group_dir(self, name: str) -> Path:
        """Get the directory for a group, rejecting names that could escape the root."""
        return self.root / validate_group_name(name)

    def _new_store(self, name: str) -> GroupStore:
        """Create an unregistered store for a group."""
        return GroupStore(
            name,
            self._group_dir(name),
            sidecar_name=self.sidecar_name,
            json_indent=self.json_indent,
        )

    def _exists(self, name: str) -> bool:
        """Check memory and disk for a group."""
        return name in self._stores or self._group_dir(name).is_dir()

    def _require_store(self, name: str) -> GroupStore:
        """
        Get the store for an existing group, loading it if the directory
        appeared on disk after startup.
        """
        store = self._stores.get(name)
        if store is not None:
            return store

        if not self._group_dir(name).is_dir():
            raise NotFoundError(f"Group not found: {name}")

        store = self._new_store(name)
        store.load()
        self._stores[name] = store
        logger.info(f"Registered group {name} discovered on disk")
        return store

    def load_all(self) -> List[str]:
        """
        Scan the storage root and load every group.

        Groups are loaded in name order. A group whose sidecar cannot be
        read starts empty; startup continues for the others.

        Returns:
            Names of the loaded groups
        """
        with self._lock:
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageIOError(f"Cannot create storage root {self.root}: {e}") from e

            stores: Dict[str, GroupStore] = {}
            for name in self._scan():
                store = self._new_store(name)
                try:
                    store.load()
                except Exception as e:
                    logger.error(f"Error loading group {name}, starting empty: {e}", exc_info=True)
                stores[name] = store

            self._stores = stores
            logger.info(f"Loaded {len(stores)} groups from {self.root}")
            return list(stores.keys())

    def _scan(self) -> List[str]:
        """List group directory names on disk, sorted."""
        if not self.root.is_dir():
            return []

        names = []
        try:
            for entry in self.root.iterdir():
                if not entry.is_dir() or entry.name.startswith("."):
                    continue
                try:
                    names.append(validate_group_name(entry.name))
                except InvalidNameError as e:
                    logger.warning(f"Ignoring directory {entry}: {e}")
        except OSError as e:
            logger.error(f"Error scanning storage root {self.root}: {e}")
            raise StorageIOError(f"Cannot list groups in {self.root}: {e}") from e
        return sorted(names)

    def list_groups(self) -> List[str]:
        """
        List the groups currently on disk.

        Returns:
            Sorted list of group names
        """
        with self._lock:
            return self._scan()

    def has_group(self, name: str) -> bool:
        """Check if a group exists; invalid names never exist."""
        try:
            validate_group_name(name)
        except InvalidNameError:
            return False
        with self._lock:
            return self._exists(name)

    def create_group(self, name: str) -> None:
        """
        Create a new, empty group.

        Args:
            name: Name of the new group

        Raises:
            InvalidNameError: If the name is not a valid directory name
            AlreadyExistsError: If the group already exists
            StorageIOError: If the directory or sidecar could not be created
        """
        validate_group_name(name)

        with self._lock:
            if self._exists(name):
                raise AlreadyExistsError(f"Group already exists: {name}")

            directory = self._group_dir(name)
            try:
                directory.mkdir(parents=True)
            except FileExistsError as e:
                raise AlreadyExistsError(f"Group already exists: {name}") from e
            except OSError as e:
                logger.error(f"Error creating group directory {directory}: {e}")
                raise StorageIOError(f"Failed to create group '{name}': {e}") from e

            store = self._new_store(name)
            try:
                store.save()
            except Exception:
                # Leave no half-created group behind
                shutil.rmtree(directory, ignore_errors=True)
                raise

            self._stores[name] = store
            logger.info(f"Created group {name}")

    def delete_group(self, name: str) -> None:
        """
        Delete a group, its directory and everything in it.

        The store is only evicted once the directory is gone; if removal
        fails part way the error is raised and the group stays registered.

        Args:
            name: Name of the group to delete

        Raises:
            NotFoundError: If the group does not exist
            StorageIOError: If the directory could not be fully removed
        """
        with self._lock:
            if not self._exists(name):
                raise NotFoundError(f"Group not found: {name}")

            directory = self._group_dir(name)
            store = self._stores.get(name)

            # Wait for any in-flight save on this group
            with store.lock if store is not None else nullcontext():
                if directory.exists():
                    try:
                        shutil.rmtree(directory)
                    except OSError as e:
                        logger.error(f"Error deleting group directory {directory}: {e}")
                        raise StorageIOError(f"Failed to delete group '{name}': {e}") from e

                if store is not None:
                    store.detached = True
                self._stores.pop(name, None)

            logger.info(f"Deleted group {name}")

    def rename_group(self, old_name: str, new_name: str) -> None:
        """
        Rename a group, moving its directory and carrying its data over.

        The annotations are re-saved under the new name so the sidecar
        always matches the directory it lives in.

        Args:
            old_name: Current group name
            new_name: New group name

        Raises:
            NotFoundError: If the old group does not exist
            InvalidNameError: If the new name is empty or invalid
            AlreadyExistsError: If a group with the new name exists
            StorageIOError: If the directory could not be moved, or the
                sidecar could not be re-saved after the move
        """
        validate_group_name(new_name)

        with self._lock:
            if not self._exists(old_name):
                raise NotFoundError(f"Group not found: {old_name}")

            if new_name == old_name:
                raise InvalidNameError(f"Group is already named {new_name}")
            if self._exists(new_name):
                raise AlreadyExistsError(f"Group already exists: {new_name}")

            store = self._require_store(old_name)
            old_dir = self._group_dir(old_name)
            new_dir = self._group_dir(new_name)

            with store.lock:
                try:
                    if old_dir.is_dir():
                        old_dir.rename(new_dir)
                    else:
                        new_dir.mkdir(parents=True)
                except OSError as e:
                    logger.error(f"Error moving group {old_dir} to {new_dir}: {e}")
                    raise StorageIOError(f"Failed to rename group '{old_name}': {e}") from e

                store.relocate(new_name, new_dir)
                del self._stores[old_name]
                self._stores[new_name] = store
                logger.info(f"Renamed group {old_name} to {new_name}")

                store.save()

    def get_areas(self, group: str, filename: str) -> List[AnnotationArea]:
        """
        Get the areas for a file in a group.

        Args:
            group: Group name
            filename: Image filename within the group

        Returns:
            List of areas, empty if the group or file is unknown
        """
        try:
            validate_group_name(group)
            with self._lock:
                store = self._require_store(group)
        except (InvalidNameError, NotFoundError):
            return []
        return store.get(filename)

    def set_areas(self, group: str, filename: str, areas: Iterable[AnnotationArea]) -> None:
        """
        Replace the areas for a file in a group and save the group.

        A group that does not exist yet is created on first write.

        Args:
            group: Group name
            filename: Image filename within the group
            areas: New areas, replacing any existing ones

        Raises:
            InvalidNameError: If the group name is invalid
            StorageIOError: If the sidecar could not be written; the
                in-memory update is kept
        """
        validate_group_name(group)
        areas = list(areas)

        while True:
            with self._lock:
                store = self._stores.get(group)
                if store is None:
                    if self._group_dir(group).is_dir():
                        store = self._require_store(group)
                    else:
                        store = self._new_store(group)
                        self._stores[group] = store
                        logger.info(f"Created group {group} on first write")

            with store.lock:
                # The group was deleted between lookup and write; look it up again
                if store.detached:
                    continue
                store.set(filename, areas)
                return

    def group_files(self, name: str) -> List[str]:
        """
        Get the annotated filenames of a group.

        Raises:
            NotFoundError: If the group does not exist
        """
        with self._lock:
            return self._require_store(name).filenames()

    @contextmanager
    def group_directory(self, name: str) -> Iterator[Path]:
        """
        Hold the registry lock while working inside a group directory.

        Used by collaborators that place files in a group, so a concurrent
        rename or delete cannot move the directory from under them.

        Raises:
            NotFoundError: If the group does not exist on disk
        """
        with self._lock:
            directory = self._group_dir(validate_group_name(name))
            if not directory.is_dir():
                raise NotFoundError(f"Group not found: {name}")
            yield directory

    def export_group(self, name: str) -> str:
        """
        Render one group as a plain-text report.

        Raises:
            NotFoundError: If the group does not exist
        """
        with self._lock:
            files = self._require_store(name).snapshot()
        return format_group_report(name, files)

    def export_all(self) -> str:
        """Render every loaded group as a plain-text report, in name order."""
        with self._lock:
            groups = {name: self._stores[name].snapshot() for name in sorted(self._stores)}
        return format_report(groups)
