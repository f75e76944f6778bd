"""Command line interface for puod."""
