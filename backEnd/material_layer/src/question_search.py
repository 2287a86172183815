"""
Question corpus loading and weighted keyword search.

The corpus is a delimited file with a header row. Only question_code is
required; every other recognized column defaults to an empty string.

Loaded rows are cached by resolved source path in a QuestionCorpus object:
loaded once, reused until a different path is requested. There is no TTL and
no change detection; call reset() to force a reload.
"""

import csv
import logging
import threading
import time
from pathlib import Path
from typing import Optional

from .errors import CorpusSchemaError, NotFoundError
from .schemas.question import QuestionHit, QuestionRow

logger = logging.getLogger(__name__)

ID_COLUMN = "question_code"
TEXT_COLUMNS = (
    "rbc_id",
    "rbc_name",
    "environment",
    "body_statement",
    "choice_1",
    "choice_2",
    "choice_3",
    "choice_4",
    "choice_5",
    "answer",
    "comment",
)
CHOICE_LABELS = ("A", "B", "C", "D", "E")

# Scoring weights
FULL_QUERY_WEIGHT = 5
KEYWORD_WEIGHT = 2
BODY_KEYWORD_WEIGHT = 1

TITLE_MAX_LEN = 60

# Long explanations exceed the csv module default of 128 KiB per field
CSV_FIELD_SIZE_LIMIT = 16 * 1024 * 1024


def build_blob(row: QuestionRow) -> str:
    """Lower-cased, newline-joined non-empty searchable fields."""
    values = [row.question_code] + [getattr(row, column) for column in TEXT_COLUMNS]
    return "\n".join(v for v in values if v).lower()


def load_questions_csv(path: Path, delimiter: str = ",") -> list[QuestionRow]:
    """
    Parse a question corpus file.

    Args:
        path: Corpus file path
        delimiter: Field delimiter

    Returns:
        Rows in file order, each with its search blob precomputed

    Raises:
        NotFoundError: the file does not exist
        CorpusSchemaError: the header has no question_code column
            or the file is not well-formed delimited text
    """
    path = Path(path)
    if csv.field_size_limit() < CSV_FIELD_SIZE_LIMIT:
        csv.field_size_limit(CSV_FIELD_SIZE_LIMIT)

    try:
        with open(path, encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f, delimiter=delimiter)
            header = [name.strip() for name in next(reader, [])]

            if ID_COLUMN not in header:
                raise CorpusSchemaError(
                    f"question corpus must have column: {ID_COLUMN}",
                    field=ID_COLUMN,
                    header=header,
                    path=str(path),
                )

            positions = {
                name: header.index(name)
                for name in (ID_COLUMN, *TEXT_COLUMNS)
                if name in header
            }

            rows: list[QuestionRow] = []
            for cols in reader:
                if not any(c.strip() for c in cols):
                    continue
                values = {
                    name: cols[i].strip() if i < len(cols) else ""
                    for name, i in positions.items()
                }
                row = QuestionRow(**values)
                row.blob = build_blob(row)
                rows.append(row)
    except FileNotFoundError as e:
        raise NotFoundError(
            "questions corpus not found",
            {"path": str(path)},
        ) from e
    except UnicodeDecodeError as e:
        raise CorpusSchemaError(
            "question corpus is not valid UTF-8",
            field="path",
            path=str(path),
        ) from e
    except csv.Error as e:
        raise CorpusSchemaError(
            f"question corpus could not be parsed: {e}",
            field="path",
            path=str(path),
            reason=str(e),
        ) from e

    return rows


class QuestionCorpus:
    """
    Process-wide question cache keyed by resolved source path.

    Concurrent first loads may both parse the file; the last one to finish
    publishes its rows in a single assignment, so readers see either the
    previous rows or a complete new list.
    """

    def __init__(self):
        self._entry: Optional[tuple[Path, list[QuestionRow]]] = None
        self._load_count = 0
        self._count_lock = threading.Lock()

    @property
    def cached_path(self) -> Optional[Path]:
        """Resolved path of the cached corpus, if any."""
        entry = self._entry
        return entry[0] if entry else None

    @property
    def load_count(self) -> int:
        """How many times a corpus file has actually been parsed."""
        return self._load_count

    def load(self, path: Path | str, delimiter: str = ",") -> list[QuestionRow]:
        """Cached rows for path, parsing the file on first use or path change."""
        resolved = Path(path).resolve()

        entry = self._entry
        if entry is not None and entry[0] == resolved:
            logger.debug(f"Reusing {len(entry[1])} cached questions from {resolved}")
            return entry[1]

        started = time.perf_counter()
        rows = load_questions_csv(resolved, delimiter)
        with self._count_lock:
            self._load_count += 1

        self._entry = (resolved, rows)
        logger.info(f"Loaded {len(rows)} questions from {resolved} in {time.perf_counter() - started:.2f}s")
        return rows

    def reset(self) -> None:
        """Drop the cached corpus."""
        self._entry = None


def _normalize_keywords(keywords: list[str]) -> list[str]:
    cleaned = [(k or "").lower().strip() for k in keywords]
    return [k for k in cleaned if k]


def score_row(row: QuestionRow, query: str, keywords: list[str]) -> int:
    """
    Weighted match score for one row.

    +5 when the whole query appears in the blob, +2 per keyword in the blob,
    and +1 more per keyword inside body_statement.
    """
    blob = row.blob or build_blob(row)
    score = 0

    q = (query or "").lower().strip()
    if q and q in blob:
        score += FULL_QUERY_WEIGHT

    normalized = _normalize_keywords(keywords)
    for keyword in normalized:
        if keyword in blob:
            score += KEYWORD_WEIGHT

    body = row.body_statement.lower()
    for keyword in normalized:
        if keyword in body:
            score += BODY_KEYWORD_WEIGHT

    return score


def build_snippet(row: QuestionRow) -> str:
    """Labeled non-empty fields in fixed order, one per line."""
    lines = []
    if row.environment:
        lines.append(f"[Context] {row.environment}")
    if row.body_statement:
        lines.append(f"[Question] {row.body_statement}")
    for label, choice in zip(CHOICE_LABELS, row.choices):
        if choice:
            lines.append(f"{label}. {choice}")
    if row.answer:
        lines.append(f"[Answer] {row.answer}")
    if row.comment:
        lines.append(f"[Explanation] {row.comment}")
    return "\n".join(lines)


def to_hit(row: QuestionRow, score: int) -> QuestionHit:
    return QuestionHit(
        question_id=row.question_code,
        title=row.body_statement[:TITLE_MAX_LEN] or row.question_code,
        snippet=build_snippet(row),
        score=score,
        meta={
            "rbc_id": row.rbc_id,
            "rbc_name": row.rbc_name,
            "question_code": row.question_code,
        },
    )


def search_questions(
    rows: list[QuestionRow],
    query: str,
    keywords: list[str],
    top_k: int = 10,
) -> list[QuestionHit]:
    """
    Rank corpus rows against a generated query and its keywords.

    Returns:
        At most top_k hits with score >= 1; ties keep load order
    """
    if top_k < 1:
        return []

    scored = [(row, score_row(row, query, keywords)) for row in rows]
    scored = [(row, score) for row, score in scored if score > 0]
    scored.sort(key=lambda pair: pair[1], reverse=True)

    return [to_hit(row, score) for row, score in scored[:top_k]]
