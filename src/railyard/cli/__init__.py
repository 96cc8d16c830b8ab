"""
CLI layer for railyard.

Provides a Typer application that wires settings, the record store and the
scheduler together. All behaviour lives in ``railyard.scheduling``; this
package handles only terminal transport.

Entry point::

    railyard --help
"""

from railyard.cli.app import app

__all__ = ["app"]
