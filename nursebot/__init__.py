"""
Nursing Knowledge Chatbot - Core Application Package

This package contains the core functionality for the Nursing Knowledge Chatbot including:
- Configuration management
- Knowledge store adapters (in-memory and ChromaDB)
- Keyword index resolution and knowledge retrieval
- Per-user conversation memory
- Fallback replies and reply rendering
- Knowledge ingestion
- API endpoints
"""

__version__ = "1.0.0"
__author__ = "Nursing Knowledge Chatbot Team"
