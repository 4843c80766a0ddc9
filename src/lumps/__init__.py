from __future__ import annotations

__all__ = [
    "cursor",
    "geom",
    "palette",
    "picture",
    "report",
    "wad",
]
