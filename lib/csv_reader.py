# =============================================================================
# lib/csv_reader.py - CSV Parsing and Column Mapping Suggestions
# =============================================================================
# Turns an uploaded ordinance spreadsheet into the headers/rows shape used by
# the ingestion endpoint, and suggests which ordinance column each header
# should map to.
#
# All cells are read as strings; blank cells become "". Trimming and the
# "empty means null" rule are applied later by the ingestion service.
# =============================================================================

import csv
import io
import logging
import re

import pandas as pd

from core.models.ingestion import (
    ORDINANCE_COLUMNS,
    REQUIRED_ORDINANCE_COLUMNS,
    ParsedCSV,
    SuggestedMapping,
)

logger = logging.getLogger(__name__)

ENCODINGS_TO_TRY = ["utf-8", "utf-8-sig", "latin-1", "cp1252"]

# Minimum name similarity for a header to get a suggested destination
SUGGESTION_THRESHOLD = 0.7

# Prefix length used by the "header is part of the column name" rule
PREFIX_MATCH_LENGTH = 10


class CSVParseError(ValueError):
    """The uploaded bytes could not be read as a CSV table."""


def read_csv_bytes(content: bytes) -> pd.DataFrame:
    """
    Read CSV bytes into an all-string DataFrame.

    Tries common encodings in order.

    Raises:
        CSVParseError: Empty file, undecodable bytes or malformed CSV
    """
    if not content or not content.strip():
        raise CSVParseError("CSV file is empty")

    for encoding in ENCODINGS_TO_TRY:
        try:
            df = pd.read_csv(
                io.BytesIO(content),
                encoding=encoding,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        except (UnicodeDecodeError, UnicodeError):
            continue
        except pd.errors.EmptyDataError as e:
            raise CSVParseError("CSV file is empty") from e
        except (pd.errors.ParserError, csv.Error) as e:
            raise CSVParseError(f"Failed to parse CSV file: {e}") from e

        logger.info(f"Read CSV: {len(df)} rows × {len(df.columns)} columns ({encoding})")
        return df

    raise CSVParseError("Could not decode CSV file")


def normalize_column_name(name: str) -> str:
    """
    Normalize a column name for comparison.

    Example:
        "Max Height (ft)" -> "maxheightft"
        "max_height_ft"   -> "maxheightft"
    """
    return re.sub(r"[^a-z0-9]", "", name.lower())


def levenshtein_distance(s1: str, s2: str) -> int:
    """Minimum number of single-character edits turning s1 into s2."""
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def name_similarity(name1: str, name2: str) -> float:
    """Similarity of two column names from 0.0 to 1.0."""
    n1 = normalize_column_name(name1)
    n2 = normalize_column_name(name2)

    if n1 == n2:
        return 1.0

    max_len = max(len(n1), len(n2))
    if max_len == 0:
        return 1.0

    return max(0.0, 1.0 - levenshtein_distance(n1, n2) / max_len)


def _score(header: str, column: str) -> float:
    score = name_similarity(header, column)
    if score == 1.0:
        return score

    # "Code Reference #" -> "code_reference" style headers
    snake = re.sub(r"[^a-z0-9]", "_", header.strip().lower())[:PREFIX_MATCH_LENGTH]
    if len(snake) >= 3 and column.startswith(snake):
        score = max(score, 0.9)
    return score


def suggest_mappings(headers: list[str]) -> list[SuggestedMapping]:
    """
    Suggest a destination column for every header.

    Each destination is suggested at most once; when two headers compete for
    the same column, the better-scoring one (then the earlier one) wins.
    Headers without a good match are suggested as skipped (db_column None).
    """
    candidates = []
    for position, header in enumerate(headers):
        for column in ORDINANCE_COLUMNS:
            score = _score(header, column)
            if score >= SUGGESTION_THRESHOLD:
                candidates.append((score, position, column))

    # best score first, then leftmost header
    candidates.sort(key=lambda c: (-c[0], c[1]))

    chosen: dict[int, tuple[str, float]] = {}
    taken: set[str] = set()
    for score, position, column in candidates:
        if position in chosen or column in taken:
            continue
        chosen[position] = (column, score)
        taken.add(column)

    suggestions = []
    for position, header in enumerate(headers):
        column, score = chosen.get(position, (None, 0.0))
        suggestions.append(SuggestedMapping(csv_column=header, db_column=column, score=round(score, 3)))
    return suggestions


def missing_required(suggestions: list[SuggestedMapping]) -> list[str]:
    """Required ordinance columns that no suggestion targets."""
    mapped = {s.db_column for s in suggestions if s.db_column}
    return [column for column in REQUIRED_ORDINANCE_COLUMNS if column not in mapped]


def parse_csv_upload(filename: str, content: bytes) -> ParsedCSV:
    """
    Parse an uploaded CSV file for the column-mapping step.

    Raises:
        CSVParseError: If the file can't be read or has no header row
    """
    df = read_csv_bytes(content)

    headers = [str(column).strip() for column in df.columns]
    if not any(headers):
        raise CSVParseError("CSV file has no header row")

    rows = [[str(cell).strip() for cell in row] for row in df.itertuples(index=False, name=None)]
    suggestions = suggest_mappings(headers)

    return ParsedCSV(
        filename=filename,
        headers=headers,
        rows=rows,
        suggested_mappings=suggestions,
        missing_required=missing_required(suggestions),
    )
