"""Domain models shared across the import pipeline."""
