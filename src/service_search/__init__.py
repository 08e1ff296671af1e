"""
Semantic search over a service catalog.

Descriptions are embedded with an OpenAI-compatible embeddings API and
stored in a FAISS index; free-text intent is matched by cosine similarity.
"""

__version__ = "1.0.0"
