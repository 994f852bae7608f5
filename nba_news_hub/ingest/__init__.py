"""News ingestion: feed adapters, image enrichment and comment sources."""
