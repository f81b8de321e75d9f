"""FastAPI backend for the connwatch dashboard."""
