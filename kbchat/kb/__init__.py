"""Embedding-side knowledge tooling.

- ingestion: paragraph chunking of free-text corpora and entry embedding
- storage: in-memory or persistent Chroma index over entry embeddings
"""
