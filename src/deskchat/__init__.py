"""deskchat - multi-provider LLM gateway for the desktop chat application."""

__version__ = "0.1.0"
