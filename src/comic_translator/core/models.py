"""Data models for Comic Translator annotations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping

from .errors import MalformedDataError

# Field order used when writing areas to the sidecar file
AREA_FIELDS = ("x", "y", "width", "height", "original", "translation")


def _coerce_int(data: Mapping[str, Any], key: str) -> int:
    """Read a numeric field, rounding fractional canvas coordinates."""
    value = data.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise MalformedDataError(f"Area field '{key}' must be a finite number, got {value!r}")
    # Half-up, matching Math.round in browser clients
    return math.floor(value + 0.5)


def _coerce_text(data: Mapping[str, Any], key: str) -> str:
    """Read a text field; missing values become an empty string."""
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedDataError(f"Area field '{key}' must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class AnnotationArea:
    """
    A rectangle on an image paired with its original and translated text.

    Areas have no identity beyond their position in the owning list and are
    replaced wholesale rather than edited in place.
    """

    x: int
    y: int
    width: int
    height: int
    original: str = ""
    translation: str = ""

    def __post_init__(self) -> None:
        """Reject geometry that cannot describe a pixel rectangle."""
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert the area to a dictionary for JSON serialization."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "original": self.original,
            "translation": self.translation,
        }

    @classmethod
    def from_dict(cls, data: Any) -> AnnotationArea:
        """
        Create an area from a decoded JSON object.

        Rectangles drawn from right to left or bottom to top arrive with a
        negative size; they are normalized so the origin is the top-left
        corner. Unknown keys are ignored.

        Args:
            data: Dictionary with x, y, width, height, original, translation

        Returns:
            New AnnotationArea instance

        Raises:
            MalformedDataError: If the payload is not an object or a field
                has the wrong type
        """
        if not isinstance(data, Mapping):
            raise MalformedDataError(f"Area must be a JSON object, got {type(data).__name__}")

        x = _coerce_int(data, "x")
        y = _coerce_int(data, "y")
        width = _coerce_int(data, "width")
        height = _coerce_int(data, "height")

        # Normalize inverted rectangles
        if width < 0:
            x, width = x + width, -width
        if height < 0:
            y, height = y + height, -height

        # Clip anything dragged past the top or left edge
        if x < 0:
            width = max(0, width + x)
            x = 0
        if y < 0:
            height = max(0, height + y)
            y = 0

        return cls(
            x=x,
            y=y,
            width=width,
            height=height,
            original=_coerce_text(data, "original"),
            translation=_coerce_text(data, "translation"),
        )


def areas_from_list(data: Any) -> List[AnnotationArea]:
    """
    Decode a JSON array of areas.

    Args:
        data: Decoded JSON value, expected to be a list of objects

    Returns:
        List of AnnotationArea in the same order

    Raises:
        MalformedDataError: If the value is not a list or an entry is invalid
    """
    if not isinstance(data, list):
        raise MalformedDataError(f"Areas must be a JSON array, got {type(data).__name__}")
    return [AnnotationArea.from_dict(item) for item in data]


def areas_to_list(areas: Iterable[AnnotationArea]) -> List[Dict[str, Any]]:
    """Encode areas as a list of dictionaries."""
    return [area.to_dict() for area in areas]


def decode_group(data: Any) -> Dict[str, List[AnnotationArea]]:
    """
    Decode a whole sidecar document.

    Args:
        data: Decoded JSON value, expected to map filenames to area arrays

    Returns:
        Dictionary mapping filenames to areas, in document order

    Raises:
        MalformedDataError: If the document structure is invalid
    """
    if not isinstance(data, dict):
        raise MalformedDataError(f"Sidecar must be a JSON object, got {type(data).__name__}")

    decoded: Dict[str, List[AnnotationArea]] = {}
    for filename, areas in data.items():
        if areas is None:
            # null decodes as no areas
            decoded[filename] = []
            continue
        decoded[filename] = areas_from_list(areas)
    return decoded


def encode_group(files: Mapping[str, Iterable[AnnotationArea]]) -> Dict[str, List[Dict[str, Any]]]:
    """Encode a filename-to-areas mapping as a sidecar document."""
    return {filename: areas_to_list(areas) for filename, areas in files.items()}
