"""Command line interface for notify-service."""
