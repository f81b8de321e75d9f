"""connwatch dashboard."""
