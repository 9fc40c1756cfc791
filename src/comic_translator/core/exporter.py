"""Plain-text export of group translations."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from .models import AnnotationArea

# Attachment name and content type for export downloads
EXPORT_FILENAME = "translations.txt"
EXPORT_CONTENT_TYPE = "text/plain"


def format_areas(areas: Optional[Iterable[AnnotationArea]]) -> str:
    """
    Render the areas of one file.

    Each area is numbered from 1 and shows its pixel rectangle followed
    by the original and translated text.

    Args:
        areas: Areas in saved order

    Returns:
        Report text, empty if there are no areas
    """
    lines: List[str] = []
    for index, area in enumerate(areas or (), start=1):
        lines.append(
            f"区域 {index} [位置: {area.x}px, {area.y}px 尺寸: {area.width}x{area.height}]\n"
        )
        lines.append(f"原文: {area.original}\n")
        lines.append(f"翻译: {area.translation}\n\n")
    return "".join(lines)


def format_group_report(
    group: str,
    files: Optional[Mapping[str, Iterable[AnnotationArea]]]
) -> str:
    """
    Render one group as a plain-text report.

    Files appear in mapping order, areas in list order.

    Args:
        group: Group name
        files: Mapping of filename to areas; None renders only the header

    Returns:
        Report text
    """
    parts = [f"=== 分组 [{group}] ===\n"]
    for filename, areas in (files or {}).items():
        parts.append(f"--- 文件: {filename} ---\n")
        parts.append(format_areas(areas))
    return "".join(parts)


def format_report(
    groups: Optional[Mapping[str, Optional[Mapping[str, Iterable[AnnotationArea]]]]]
) -> str:
    """
    Render several groups, one after another.

    Args:
        groups: Mapping of group name to its filename-to-areas mapping

    Returns:
        Report text, empty if there are no groups
    """
    return "".join(
        format_group_report(group, files) for group, files in (groups or {}).items()
    )


def export_headers(filename: str = EXPORT_FILENAME) -> Dict[str, str]:
    """Get HTTP headers for serving a report as a download."""
    return {
        "Content-Type": EXPORT_CONTENT_TYPE,
        "Content-Disposition": f"attachment; filename={filename}",
    }
