"""
Knowledge Retrieval Services

Hybrid search over indexed document chunks, combining pgvector cosine
similarity, Postgres full-text rank and trigram similarity into one score.
"""
