"""Matrix command bot dispatching room messages to pluggable modules."""

from __future__ import annotations

__version__ = "0.1.0"
