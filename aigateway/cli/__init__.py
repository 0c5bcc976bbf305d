"""Command-line diagnostics for the AI gateway."""
