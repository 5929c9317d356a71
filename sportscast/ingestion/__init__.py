"""Event ingestion pipeline: adapters, normalization, deduplication, persistence."""
