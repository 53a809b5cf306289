"""Stellar Chess: a rules-complete chess engine with an alpha-beta AI opponent."""

__version__ = "0.1.0"
