"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Frontmatter parsing
- Section-marker chunking and heading enrichment
- Chunk record building
- FAISS vector storage
- Semantic retrieval and result formatting
"""
