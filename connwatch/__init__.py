"""connwatch: connectivity monitoring with automatic offline-mode fallback."""

__version__ = "0.1.0"
