"""
Material Layer source modules.

Pipeline:
    stage_store.py      - Raw files, artifacts, document registry
    extract_pages.py    - PDF → per-page text (pdfplumber / poppler)
    chunk_text.py       - Pages → overlapped chunks
    pipeline.py         - Idempotent extract/chunk orchestration
    material_search.py  - Term-frequency search over a document's chunks
    question_search.py  - Cached question corpus + weighted matching
    auto_search.py      - Document → generated query → question hits
    migrate.py          - Legacy artifact backfill
"""
