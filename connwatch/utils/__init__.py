"""Logging, settings loading and notification helpers."""
