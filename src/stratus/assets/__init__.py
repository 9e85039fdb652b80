"""Static files bundled into every function archive."""
