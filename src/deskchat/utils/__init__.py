"""Utility functions."""

from .console import console
from .llm import parse_llm_response
from .logging import mask_secret, setup_logging

__all__ = [
    "console",
    "mask_secret",
    "parse_llm_response",
    "setup_logging",
]
