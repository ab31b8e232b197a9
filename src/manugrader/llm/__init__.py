"""Oracle client layer."""
