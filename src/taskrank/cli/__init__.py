"""Command line handlers."""
