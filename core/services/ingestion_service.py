# =============================================================================
# core/services/ingestion_service.py - Ordinance CSV Ingestion
# =============================================================================
# Maps uploaded tabular data onto jurisdiction_ordinances columns, validates
# the required fields per row, inserts accepted rows in fixed-size batches
# and aggregates a success/error report.
#
# Row and batch failures are recovered locally and tallied in the report;
# request-shape problems raise InvalidRequestError before any database call.
# Batches run strictly in order, one bulk insert each, with no retry.
# =============================================================================

import logging
from collections import defaultdict
from typing import Any

from app.auth.models import CallerIdentity
from app.exceptions import InvalidRequestError
from core.models.ingestion import (
    ATTRIBUTION_COLUMN,
    ORDINANCE_TABLE,
    REQUIRED_ORDINANCE_COLUMNS,
    ColumnMapping,
    CSVData,
    IngestionReport,
)
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import clean_cell

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_REPORTED_ERRORS = 10

# Data row N sits on line N + 1 of the file because of the header row,
# and messages are 1-indexed.
HEADER_ROW_OFFSET = 2


class RowValidationError(Exception):
    """A single row is missing a required field. Non-fatal, tallied."""

    def __init__(self, row_number: int, reason: str):
        super().__init__(f"Row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


class BatchPersistError(Exception):
    """The bulk insert for one batch failed. Fatal to that batch only."""

    def __init__(self, batch_number: int, reason: str, row_count: int):
        super().__init__(f"Batch {batch_number}: {reason}")
        self.batch_number = batch_number
        self.reason = reason
        self.row_count = row_count


def build_column_lookup(
    headers: list[str],
    mappings: list[ColumnMapping],
) -> dict[int, list[str]]:
    """
    Map header positions to destination columns.

    A source column missing from the headers is ignored. The lookup is keyed
    by destination, so the order of `mappings` never changes the result.

    Example:
        build_column_lookup(["Jurisdiction", "Zone"], [Zone->zone, Jurisdiction->jurisdiction])
        -> {0: ["jurisdiction"], 1: ["zone"]}
    """
    positions = {}
    for index, header in enumerate(headers):
        positions.setdefault(header, index)

    lookup: dict[int, list[str]] = defaultdict(list)
    for mapping in sorted(mappings, key=lambda m: m.db_column):
        index = positions.get(mapping.csv_column)
        if index is None:
            logger.debug(f"Mapped column '{mapping.csv_column}' not in headers, skipping")
            continue
        lookup[index].append(mapping.db_column)
    return dict(lookup)


def build_record(
    row: list[Any],
    lookup: dict[int, list[str]],
    caller_id: str,
    row_number: int,
) -> dict[str, Any]:
    """
    Build the ingestion record for one row.

    Raises:
        RowValidationError: If a required field is empty after trimming
    """
    record: dict[str, Any] = {ATTRIBUTION_COLUMN: caller_id}

    for index, cell in enumerate(row):
        columns = lookup.get(index)
        value = clean_cell(cell)
        if not columns or value is None:
            continue
        for column in columns:
            record[column] = value

    if any(not record.get(column) for column in REQUIRED_ORDINANCE_COLUMNS):
        raise RowValidationError(
            row_number,
            f"Missing required fields ({', '.join(REQUIRED_ORDINANCE_COLUMNS)})",
        )
    return record


class OrdinanceIngestionService:
    """
    CSV ingestion pipeline for jurisdiction ordinances.

    Example:
        service = OrdinanceIngestionService(supabase)
        report = service.ingest(csv_data, mappings, caller)
        print(report.success_count, report.error_count)
    """

    def __init__(
        self,
        supabase: SupabaseClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_reported_errors: int = DEFAULT_MAX_REPORTED_ERRORS,
        table: str = ORDINANCE_TABLE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._supabase = supabase
        self._batch_size = batch_size
        self._max_reported_errors = max_reported_errors
        self._table = table

    @staticmethod
    def validate_request(
        csv_data: CSVData | None,
        mappings: list[ColumnMapping] | None,
    ) -> tuple[CSVData, list[ColumnMapping]]:
        """
        Check the request shape before any external call.

        Raises:
            InvalidRequestError: Missing headers, rows or mappings, or a
                destination column mapped more than once
        """
        if csv_data is None or not csv_data.headers or not mappings:
            raise InvalidRequestError("CSV data and column mappings are required")
        if not csv_data.rows:
            raise InvalidRequestError("CSV data must contain at least one data row")

        seen: set[str] = set()
        duplicates: list[str] = []
        for mapping in mappings:
            if mapping.db_column in seen and mapping.db_column not in duplicates:
                duplicates.append(mapping.db_column)
            seen.add(mapping.db_column)

        if duplicates:
            raise InvalidRequestError(
                f"Duplicate column mappings detected: {', '.join(duplicates)}",
                details={"duplicates": duplicates},
            )
        return csv_data, mappings

    def ingest(
        self,
        csv_data: CSVData | None,
        mappings: list[ColumnMapping] | None,
        caller: CallerIdentity,
    ) -> IngestionReport:
        """
        Run one ingestion.

        Args:
            csv_data: Headers and rows to import
            mappings: Source -> destination column pairs
            caller: Identity that passed the AuthorizationGate; stored in
                the attribution column of every record

        Returns:
            IngestionReport with counts and the first error messages

        Raises:
            InvalidRequestError: If the request shape is invalid
        """
        csv_data, mappings = self.validate_request(csv_data, mappings)
        rows = csv_data.rows
        caller_id = str(caller.id)

        logger.info(f"Processing CSV upload with {len(rows)} rows for user {caller_id}")

        lookup = build_column_lookup(csv_data.headers, mappings)
        success_count = 0
        error_count = 0
        errors: list[str] = []

        for batch_start in range(0, len(rows), self._batch_size):
            batch = rows[batch_start:batch_start + self._batch_size]
            batch_number = batch_start // self._batch_size + 1
            records = []

            for row_offset, row in enumerate(batch):
                row_number = batch_start + row_offset + HEADER_ROW_OFFSET
                try:
                    records.append(build_record(row, lookup, caller_id, row_number))
                except RowValidationError as e:
                    errors.append(str(e))
                    error_count += 1

            if not records:
                continue

            try:
                self._persist_batch(records, batch_number)
            except BatchPersistError as e:
                logger.error(f"Batch insert error: {e}")
                errors.append(str(e))
                error_count += e.row_count
            else:
                success_count += len(records)
                logger.info(f"Successfully inserted batch of {len(records)} records")

        logger.info(f"Upload completed: {success_count} successful, {error_count} errors")

        return IngestionReport(
            success_count=success_count,
            error_count=error_count,
            errors=errors[:self._max_reported_errors],
            total_processed=len(rows),
        )

    def _persist_batch(self, records: list[dict[str, Any]], batch_number: int) -> None:
        """
        Insert one batch in a single bulk write.

        Raises:
            BatchPersistError: If the write fails (the whole batch counts as failed)
        """
        try:
            self._supabase.insert_rows(self._table, records)
        except SupabaseClientError as e:
            raise BatchPersistError(batch_number, e.message, len(records)) from e
