"""Command-line interface for spannerload."""
