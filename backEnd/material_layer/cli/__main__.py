"""
CLI for the material layer.

Commands:
    upload     - Store a PDF and register it
    extract    - Extract per-page text
    chunk      - Build overlapping chunks
    search     - Search a document's chunks
    questions  - Search the question corpus directly
    auto       - Document → generated query → question hits
    status     - Show a document's record and stage
    list-docs  - List registered documents
    migrate    - Backfill legacy artifacts into the current schema
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table as RichTable

from ..src.errors import ApiError

app = typer.Typer(
    name="material-layer",
    help="Study Material Layer - PDF extraction, chunking and lexical search",
)
console = Console()

UPLOAD_DIR_OPTION = typer.Option("uploads", "--upload-dir", "-u", envvar="UPLOAD_DIR", help="Stage store root")
BACKEND_OPTION = typer.Option("pdfplumber", "--backend", "-b", envvar="EXTRACT_BACKEND", help="pdfplumber or poppler")
CSV_OPTION = typer.Option("data/questions.csv", "--csv", envvar="QUESTIONS_CSV_PATH", help="Question corpus path")
DELIMITER_OPTION = typer.Option(",", "--delimiter", envvar="QUESTIONS_CSV_DELIMITER", help="Corpus delimiter")


def _fail(error: ApiError) -> None:
    rprint(f"[red]{error.code}: {error.message}[/red]")
    if error.details:
        rprint(f"[dim]{error.details}[/dim]")
    raise typer.Exit(1)


def _orchestrator(upload_dir: Path, backend: str, max_concurrency: int = 4):
    from ..src.extract_pages import get_extractor
    from ..src.pipeline import PipelineOrchestrator
    from ..src.stage_store import StageStore

    store = StageStore(upload_dir)
    return PipelineOrchestrator(store, get_extractor(backend, max_concurrency))


@app.command()
def upload(
    pdf_path: Path = typer.Argument(..., help="Path to PDF file"),
    upload_dir: Path = UPLOAD_DIR_OPTION,
):
    """
    Store a PDF in the stage store.

    Examples:
        material-layer upload lecture_03.pdf
    """
    from ..src.stage_store import StageStore

    if not pdf_path.is_file():
        rprint(f"[red]File not found: {pdf_path}[/red]")
        raise typer.Exit(1)

    try:
        record = StageStore(upload_dir).put_raw(pdf_path.read_bytes(), pdf_path.name)
    except ApiError as e:
        _fail(e)

    rprint(f"\n[green]✓ Uploaded:[/green] {record.doc_id}")
    rprint(f"  File: {record.filename}")
    rprint(f"  Size: {record.size_bytes:,} bytes")
    rprint(f"  SHA256: {record.sha256[:16]}…")


@app.command()
def extract(
    doc_id: str = typer.Argument(..., help="Document ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-extract even if pages exist"),
    upload_dir: Path = UPLOAD_DIR_OPTION,
    backend: str = BACKEND_OPTION,
    max_concurrency: int = typer.Option(4, "--max-concurrency", envvar="EXTRACT_MAX_CONCURRENCY"),
):
    """
    Extract per-page text (no-op when already extracted, unless --force).
    """
    try:
        orchestrator = _orchestrator(upload_dir, backend, max_concurrency)
        if force:
            pages = asyncio.run(orchestrator.reextract(doc_id))
        else:
            pages = asyncio.run(orchestrator.ensure_extracted(doc_id))
    except ApiError as e:
        _fail(e)

    chars = sum(len(p.text) for p in pages.pages)
    rprint(f"\n[green]✓ Extracted:[/green] {doc_id}")
    rprint(f"  Pages: {pages.page_count}")
    rprint(f"  Characters: {chars:,}")
    rprint(f"  Extractor: {pages.extractor}")
    rprint(f"  Created: {pages.created_at}")


@app.command()
def chunk(
    doc_id: str = typer.Argument(..., help="Document ID"),
    chunk_size: int = typer.Option(800, "--chunk-size", envvar="CHUNK_SIZE", help="Characters per chunk"),
    overlap: int = typer.Option(150, "--overlap", envvar="CHUNK_OVERLAP", help="Overlap characters between chunks"),
    force: bool = typer.Option(False, "--force", "-f", help="Rebuild even if chunks exist"),
    upload_dir: Path = UPLOAD_DIR_OPTION,
    backend: str = BACKEND_OPTION,
):
    """
    Build chunks, extracting first if needed.

    Examples:
        material-layer chunk 3f2a9c0d... --chunk-size 600 --overlap 100 --force
    """
    try:
        orchestrator = _orchestrator(upload_dir, backend)
        if force:
            asyncio.run(orchestrator.ensure_extracted(doc_id))
            chunk_set = asyncio.run(orchestrator.rechunk(doc_id, chunk_size, overlap))
        else:
            chunk_set = asyncio.run(orchestrator.ensure_chunked(doc_id, chunk_size, overlap))
    except ApiError as e:
        _fail(e)

    rprint(f"\n[green]✓ Chunked:[/green] {doc_id}")
    rprint(f"  Chunks: {len(chunk_set.chunks)}")
    rprint(f"  Size/overlap: {chunk_set.chunk_size}/{chunk_set.overlap}")
    if chunk_set.chunk_size != chunk_size or chunk_set.overlap != overlap:
        rprint("  [yellow]Existing chunk set kept; use --force to rebuild with new parameters[/yellow]")


@app.command()
def search(
    doc_id: str = typer.Argument(..., help="Document ID"),
    query: str = typer.Argument(..., help="Search query"),
    top_k: int = typer.Option(5, "--top-k", "-k", min=1, max=20, help="Number of results"),
    upload_dir: Path = UPLOAD_DIR_OPTION,
):
    """
    Search a chunked document.

    Examples:
        material-layer search 3f2a9c0d... "igm hyper"
    """
    from ..src.material_search import search_document
    from ..src.stage_store import StageStore

    rprint(f"\n🔍 Searching: [cyan]{query}[/cyan]")

    try:
        chunk_set, hits = search_document(StageStore(upload_dir), doc_id, query, top_k)
    except ApiError as e:
        _fail(e)

    if not hits:
        rprint("[yellow]No results found[/yellow]")
        return

    rprint(f"\n[green]Found {len(hits)} results in {len(chunk_set.chunks)} chunks:[/green]\n")
    for i, hit in enumerate(hits, 1):
        rprint(f"[bold]{i}.[/bold] Score: {hit.score} | Page: {hit.page_start}")
        rprint(f"   [dim]{hit.snippet}[/dim]")
        rprint()


def _print_question_hits(hits) -> None:
    if not hits:
        rprint("[yellow]No matching questions[/yellow]")
        return

    table = RichTable(title=f"{len(hits)} matching questions")
    table.add_column("Code", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Title")
    table.add_column("Category")

    for hit in hits:
        table.add_row(hit.question_id, str(hit.score), hit.title, hit.meta.get("rbc_name") or "-")

    console.print(table)


@app.command()
def questions(
    query: str = typer.Argument(..., help="Full query string"),
    keyword: Optional[List[str]] = typer.Option(None, "--keyword", "-w", help="Keyword (repeatable)"),
    csv_path: Path = CSV_OPTION,
    delimiter: str = DELIMITER_OPTION,
    top_k: int = typer.Option(10, "--top-k", "-k", min=1, max=50),
):
    """
    Search the question corpus with an explicit query and keywords.

    Examples:
        material-layer questions "type 1 hypersensitivity" -w IgE -w mast
    """
    from ..src.question_search import QuestionCorpus, search_questions

    try:
        rows = QuestionCorpus().load(csv_path, delimiter)
    except ApiError as e:
        _fail(e)

    _print_question_hits(search_questions(rows, query, keyword or [], top_k))


@app.command()
def auto(
    doc_id: str = typer.Argument(..., help="Document ID"),
    csv_path: Path = CSV_OPTION,
    delimiter: str = DELIMITER_OPTION,
    top_k: int = typer.Option(10, "--top-k", "-k", help="Number of results (clamped to 1..50)"),
    upload_dir: Path = UPLOAD_DIR_OPTION,
    backend: str = BACKEND_OPTION,
):
    """
    Find questions related to a document using the offline keyword generator.
    """
    from ..src.auto_search import HeuristicQueryGenerator, auto_search
    from ..src.question_search import QuestionCorpus

    try:
        orchestrator = _orchestrator(upload_dir, backend)
        result = asyncio.run(
            auto_search(
                orchestrator,
                QuestionCorpus(),
                HeuristicQueryGenerator(),
                doc_id,
                csv_path,
                top_k=top_k,
                delimiter=delimiter,
            )
        )
    except ApiError as e:
        _fail(e)

    rprint(f"\n[bold]Query:[/bold] [cyan]{result.generated.query}[/cyan]")
    rprint(f"[bold]Keywords:[/bold] {', '.join(result.generated.keywords) or '-'}\n")
    _print_question_hits(result.hits)


@app.command()
def status(
    doc_id: str = typer.Argument(..., help="Document ID"),
    upload_dir: Path = UPLOAD_DIR_OPTION,
):
    """
    Show document info and pipeline stage.
    """
    from ..src.stage_store import StageStore

    store = StageStore(upload_dir)
    try:
        doc = store.describe(doc_id)
        stage = store.stage_of(doc_id)
        pages = store.read_extracted(doc_id)
        chunk_set = store.read_chunks(doc_id)
    except ApiError as e:
        _fail(e)

    rprint(f"\n[bold]Document: {doc.doc_id}[/bold]")
    rprint(f"  Original: {doc.filename}")
    rprint(f"  Size: {doc.size_bytes:,} bytes")
    rprint(f"  Uploaded: {doc.created_at}")
    rprint(f"  Stage: [cyan]{stage.value}[/cyan]")

    rprint("\n[bold]Artifacts:[/bold]")
    if pages:
        rprint(f"  ✓ extracted ({pages.page_count} pages, {pages.extractor})")
    else:
        rprint("  ✗ extracted [dim](not found)[/dim]")
    if chunk_set:
        rprint(f"  ✓ chunks ({len(chunk_set.chunks)} chunks, size={chunk_set.chunk_size}, overlap={chunk_set.overlap})")
    else:
        rprint("  ✗ chunks [dim](not found)[/dim]")


@app.command()
def list_docs(
    upload_dir: Path = UPLOAD_DIR_OPTION,
):
    """
    List all registered documents.
    """
    from ..src.stage_store import StageStore

    store = StageStore(upload_dir)
    try:
        records = store.list_documents()
    except ApiError as e:
        _fail(e)

    if not records:
        rprint("[yellow]No documents found[/yellow]")
        return

    table = RichTable(title=f"Documents in {store.root}")
    table.add_column("Doc ID", style="cyan")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Stage")

    for r in records:
        table.add_row(r.doc_id, r.filename, f"{r.size_bytes:,}", store.stage_of(r.doc_id).value)

    console.print(table)


@app.command()
def migrate(
    upload_dir: Path = UPLOAD_DIR_OPTION,
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without writing"),
):
    """
    Convert legacy artifacts in the store to the current schema.
    """
    from ..src.migrate import migrate_all
    from ..src.stage_store import StageStore

    try:
        results = migrate_all(StageStore(upload_dir), dry_run=dry_run)
    except ApiError as e:
        _fail(e)

    if not results:
        rprint("[yellow]No documents found[/yellow]")
        return

    table = RichTable(title="Migration dry run" if dry_run else "Migration results")
    table.add_column("Doc ID", style="cyan")
    table.add_column("Extracted")
    table.add_column("Chunks")
    table.add_column("Notes")

    for r in results:
        table.add_row(r.doc_id, r.extracted, r.chunks, "; ".join(r.notes) or "-")

    console.print(table)


if __name__ == "__main__":
    app()
