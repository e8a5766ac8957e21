"""Command groups for the mediasource CLI.

This package provides sub-apps that are mounted by mediasource.cli.
"""

from . import browse as browse  # noqa: F401
from . import config as config  # noqa: F401
from . import lookup as lookup  # noqa: F401

__all__ = [
    "browse",
    "lookup",
    "config",
]
