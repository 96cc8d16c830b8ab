"""railyard - chat-bot service scheduler over a flat-file record store."""

__version__ = "0.1.0"
