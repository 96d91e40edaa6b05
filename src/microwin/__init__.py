"""Micro-win task decomposition and progress tracking engine."""

__version__ = "0.1.0"
