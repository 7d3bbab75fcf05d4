# variant_preview/errors.py
"""Exceptions raised by the editing core."""

from __future__ import annotations

from typing import Optional


class VariantPreviewError(Exception):
    """Base exception for editing-core errors."""

    pass


class LoadError(VariantPreviewError, ValueError):
    """Raised when upstream analysis data does not have the expected shape.

    Attributes:
        source: File name (or other label) the data came from
        field: Offending field path, if known
    """

    def __init__(self, source: str, message: str, field: Optional[str] = None):
        self.source = source
        self.field = field
        where = f"{source}: {field}" if field else source
        super().__init__(f"Invalid {where}: {message}")


class SelectionError(VariantPreviewError, ValueError):
    """Raised when a selection references segment ids that do not exist."""

    def __init__(self, ids, segment_count: int):
        self.ids = list(ids)
        self.segment_count = segment_count
        super().__init__(
            f"Unknown segment id(s) {self.ids}; expected 1..{segment_count}"
        )
