"""Server-side helpers."""
