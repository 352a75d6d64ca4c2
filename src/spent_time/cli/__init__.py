"""Command-line interface for Spent Time."""
