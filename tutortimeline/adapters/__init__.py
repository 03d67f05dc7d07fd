"""
Adapters layer - Stored snapshot records and file-backed sources.
"""

from .json_snapshot import JsonSnapshotSource
from .snapshot_parser import (
    accepted_class_interval,
    parse_availability_block,
    parse_class,
    parse_lesson,
)

__all__ = [
    "JsonSnapshotSource",
    "accepted_class_interval",
    "parse_availability_block",
    "parse_class",
    "parse_lesson",
]
