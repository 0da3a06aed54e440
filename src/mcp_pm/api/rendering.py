"""Jinja2 templates for the browser-facing callback pages."""

from __future__ import annotations

__all__ = ["templates"]

from pathlib import Path

from fastapi.templating import Jinja2Templates

_TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))
