"""AhamAI: chat backend with tool cards."""

__version__ = "0.1.0"
