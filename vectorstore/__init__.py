"""Vector source and similarity helpers for fact reconciliation.

Provides the OpenAI-compatible embedding client and cosine similarity used
by fact deduplication and gap classification.
"""
