"""Blueprint packages; each exposes its Blueprint object for the app factory."""
