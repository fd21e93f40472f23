"""Wagr: pari-mutuel wager pricing and settlement backend."""

__version__ = "0.1.0"
__author__ = "Wagr Team"

__all__ = ["__version__", "__author__"]
