# =============================================================================
# core/models/feasibility.py - Feasibility Lookup Schemas
# =============================================================================
# Property research for a project address: lot size, zoning code and the
# permitting jurisdiction, plus the ordinances matching that zone.
# =============================================================================

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

PROPERTY_FIELDS = ("lot_size", "zone", "jurisdiction")


class FeasibilityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_address: Optional[str] = Field(default=None, alias="projectAddress")
    prompt: str = ""


class ExtractedPropertyData(BaseModel):
    """Normalized extraction result; None means the field wasn't found."""
    lot_size: Optional[str] = None
    zone: Optional[str] = None
    jurisdiction: Optional[str] = None

    @property
    def extracted_fields(self) -> list[str]:
        return [name for name in PROPERTY_FIELDS if getattr(self, name)]

    @property
    def missing_fields(self) -> list[str]:
        return [name for name in PROPERTY_FIELDS if not getattr(self, name)]


class AddressValidation(BaseModel):
    is_valid: bool
    suggestions: list[str] = Field(default_factory=list)


class FeasibilityAnalytics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model_used: str = Field(..., alias="modelUsed")
    processing_time_ms: int = Field(..., alias="processingTimeMs")
    extraction_rate: str = Field(..., alias="extractionRate")
    success_rate: str = Field(..., alias="successRate")
    ordinances_found: int = Field(..., alias="ordinancesFound")
    address_validation: str = Field(..., alias="addressValidation")
    warnings_found: bool = Field(..., alias="warningsFound")


class FeasibilityWarnings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    missing_fields: list[str] = Field(default_factory=list, alias="missingFields")
    suggestions: list[str] = Field(default_factory=list)


class FeasibilityResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    feasibility_analysis: dict[str, Any] = Field(..., alias="feasibilityAnalysis")
    ordinances: list[dict[str, Any]] = Field(default_factory=list)
    extracted_data: ExtractedPropertyData = Field(..., alias="extractedData")
    analytics: FeasibilityAnalytics
    warnings: Optional[FeasibilityWarnings] = None
