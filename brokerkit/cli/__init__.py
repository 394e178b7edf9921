"""Command line interface and reusable Typer option providers."""
