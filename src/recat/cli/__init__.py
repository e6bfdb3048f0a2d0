"""Command line interface for recat."""
