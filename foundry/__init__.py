"""Foundry: turn support conversations into AI training data."""

__version__ = "0.1.0"
