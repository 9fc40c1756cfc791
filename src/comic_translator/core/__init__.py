"""Core annotation storage modules for Comic Translator."""

from .models import AnnotationArea
from .config import AppConfig, ConfigManager
from .errors import (
    AnnotationStoreError,
    AlreadyExistsError,
    InvalidNameError,
    MalformedDataError,
    NotFoundError,
    StorageIOError,
    UploadTooLargeError,
)
from .group_store import GroupStore
from .group_registry import GroupRegistry, validate_group_name
from .file_store import ImageFileStore
from .exporter import format_group_report, format_report

__all__ = [
    "AnnotationArea",
    "AppConfig",
    "ConfigManager",
    "AnnotationStoreError",
    "AlreadyExistsError",
    "InvalidNameError",
    "MalformedDataError",
    "NotFoundError",
    "StorageIOError",
    "UploadTooLargeError",
    "GroupStore",
    "GroupRegistry",
    "validate_group_name",
    "ImageFileStore",
    "format_group_report",
    "format_report",
]
