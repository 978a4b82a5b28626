"""
Knowledge Base Chat

A retrieval-augmented chat backend over a small corpus of documentation
articles: chunking, embedding, best-effort persistence and ranked retrieval.
"""

__version__ = "0.1.0"
