"""Command-line interface for the lead assignment engine."""
