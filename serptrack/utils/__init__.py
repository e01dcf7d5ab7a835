"""Utility modules for SERPTrack."""

from .config import Settings, get_settings
from .pagination import (
    build_cursor_pagination,
    build_pagination,
    decode_cursor,
    encode_cursor,
    paginate,
    parse_pagination,
)
from .export import export_as_csv, export_as_json, prepare_export_data

__all__ = [
    "Settings",
    "get_settings",
    # Pagination
    "build_cursor_pagination",
    "build_pagination",
    "decode_cursor",
    "encode_cursor",
    "paginate",
    "parse_pagination",
    # Export
    "export_as_csv",
    "export_as_json",
    "prepare_export_data",
]
