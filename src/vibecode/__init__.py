"""vibecode - disposable Docker-in-Docker sandboxes for AI coding assistants."""

from __future__ import annotations

__version__ = "0.3.0"
