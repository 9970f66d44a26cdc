"""Event check-in registry."""
