"""Repository and configuration helpers."""
