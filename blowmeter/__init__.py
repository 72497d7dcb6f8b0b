"""blowmeter - blow into the microphone to fill a progress bar.

This package provides a UI-independent blow detection controller, the
microphone host that feeds it, and a CLI built on both.
"""

from .cli.commands import app

__version__ = "1.0.0"

__all__ = ["app", "__version__"]
