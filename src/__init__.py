"""Top-level package for the realty CRM application."""
from __future__ import annotations

__version__ = "1.0.0"
