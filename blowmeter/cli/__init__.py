"""Command-line interface for blowmeter."""

from .commands import app

__all__ = ["app"]
