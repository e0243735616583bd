"""Command-line tools for running the fraud engine."""
