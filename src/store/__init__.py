"""Durable store backends for cache entries, enrichments, embeddings and usage."""
