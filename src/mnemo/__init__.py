"""mnemo: chat memories stored as Markdown in a GitHub repository."""

__version__ = "0.1.0"
