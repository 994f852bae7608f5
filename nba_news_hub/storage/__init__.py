"""News cache and poll storage."""
