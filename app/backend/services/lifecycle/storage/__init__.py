"""Storage backends for backup artifacts."""
