"""Exceptions raised by the annotation storage layer."""

from __future__ import annotations


class AnnotationStoreError(Exception):
    """Base class for all group and annotation storage errors."""


class InvalidNameError(AnnotationStoreError, ValueError):
    """A group name or filename cannot be used as a storage path segment."""


class AlreadyExistsError(AnnotationStoreError):
    """A group with the requested name already exists."""


class NotFoundError(AnnotationStoreError, LookupError):
    """The requested group does not exist."""


class StorageIOError(AnnotationStoreError):
    """Reading, writing, moving or deleting files on disk failed."""


class MalformedDataError(AnnotationStoreError, ValueError):
    """A sidecar file or annotation payload could not be decoded."""


class UploadTooLargeError(AnnotationStoreError):
    """An uploaded image exceeds the configured size limit."""
