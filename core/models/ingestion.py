# =============================================================================
# core/models/ingestion.py - CSV Ingestion Schemas
# =============================================================================
# These models define the API contract for ordinance CSV ingestion:
# - CSVData: Parsed tabular input (headers + string rows)
# - ColumnMapping: One source column -> destination column pair
# - IngestRequest: Body of POST /ordinances/upload
# - IngestionReport: Aggregate outcome of one ingestion run
# - ParsedCSV / SuggestedMapping: Output of POST /ordinances/parse
#
# Field aliases keep the camelCase JSON contract used by the web client.
# =============================================================================

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Destination table and the columns the mapping step may target
ORDINANCE_TABLE = "jurisdiction_ordinances"

REQUIRED_ORDINANCE_COLUMNS = ("jurisdiction", "zone")

ORDINANCE_COLUMNS = (
    "tag_1",
    "tag_2",
    "jurisdiction",
    "zone",
    "code_reference",
    "definition_lot_coverage",
    "lot_coverage",
    "definition_floor_area",
    "floor_area_ratio",
    "min_setback_front_ft",
    "min_setback_side_ft",
    "min_setback_rear_ft",
    "min_setback_corner_ft",
    "max_height_ft",
    "exemption_max_height",
    "daylight_plan_rear",
    "daylight_plan_side",
    "exemption_substandard_lot",
    "exemption_side_setback_encroachment",
    "exemption_front_setback_encroachment",
    "min_garage_length",
    "min_garage_width",
    "parking",
    "ordinance_source_link",
    "notes",
)

# Column that records who performed the import
ATTRIBUTION_COLUMN = "last_updated_by"


class CSVData(BaseModel):
    """
    Tabular input for one ingestion run.

    Example:
        {
            "headers": ["Jurisdiction", "Zone", "Notes"],
            "rows": [["CityA", "R-1", "ok"], ["CityB", "", ""]]
        }
    """

    headers: list[str] = Field(
        default_factory=list,
        description="Header row, in column order"
    )

    # Cells may be null in JSON; they are treated as empty
    rows: list[list[Optional[str]]] = Field(
        default_factory=list,
        description="Data rows, each a list of cell values"
    )


class ColumnMapping(BaseModel):
    """Maps one CSV header to one destination column."""
    model_config = ConfigDict(populate_by_name=True)

    csv_column: str = Field(..., alias="csvColumn", min_length=1)
    db_column: str = Field(..., alias="dbColumn", min_length=1)


class IngestRequest(BaseModel):
    """
    Body of the ingestion endpoint.

    Both fields are optional at the schema level so that missing fields are
    reported by the service as INVALID_REQUEST rather than a schema error.
    """
    model_config = ConfigDict(populate_by_name=True)

    csv_data: Optional[CSVData] = Field(default=None, alias="csvData")
    column_mappings: Optional[list[ColumnMapping]] = Field(default=None, alias="columnMappings")


class IngestionReport(BaseModel):
    """
    Outcome of one ingestion run.

    Invariant: success_count + error_count == total_processed.
    `errors` is capped (first N messages) while error_count is the true total.
    """
    model_config = ConfigDict(populate_by_name=True)

    success_count: int = Field(default=0, ge=0, alias="successCount")
    error_count: int = Field(default=0, ge=0, alias="errorCount")
    errors: list[str] = Field(default_factory=list)
    total_processed: int = Field(default=0, ge=0, alias="totalProcessed")


class SuggestedMapping(BaseModel):
    """Suggested destination for one CSV header (None means skip)."""
    model_config = ConfigDict(populate_by_name=True)

    csv_column: str = Field(..., alias="csvColumn")
    db_column: Optional[str] = Field(default=None, alias="dbColumn")
    score: float = Field(default=0.0, ge=0.0, le=1.0)


class ParsedCSV(BaseModel):
    """Result of parsing an uploaded CSV file for the mapping step."""
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    headers: list[str]
    rows: list[list[str]]
    suggested_mappings: list[SuggestedMapping] = Field(default_factory=list, alias="suggestedMappings")
    missing_required: list[str] = Field(default_factory=list, alias="missingRequired")
