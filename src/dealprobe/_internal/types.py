"""Shared type aliases for dealprobe."""

from __future__ import annotations

from typing import Any

# HTTP headers dictionary.
Headers = dict[str, str]

# A deal serialized to its wire shape.
DealJson = dict[str, Any]
