"""Command-line interface for microwin."""
