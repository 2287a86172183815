"""
Study Material Layer

Staged ingestion pipeline that turns uploaded PDFs into searchable,
page-scoped chunks, plus lexical matching against an exam-question corpus.

Stages:
- uploaded: raw bytes stored, document registered
- extracted: per-page plain text persisted
- chunked: overlapping page-scoped chunks persisted
"""

__version__ = "0.1.0"
