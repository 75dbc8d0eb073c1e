"""CLI commands for relctl."""
