"""In-memory stand-in for the active pizza backend."""
