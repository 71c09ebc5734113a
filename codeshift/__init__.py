"""codeshift — AI-assisted code migration backend."""

__version__ = "0.1.0"
