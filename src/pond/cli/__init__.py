"""Command-line interface for the pond cache."""
