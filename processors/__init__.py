"""Fact processing: ingestion normalization, deduplication, gap classification and verification."""
