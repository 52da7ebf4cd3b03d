"""Command line interface for the request cache."""
