# =============================================================================
# core/services/feasibility_service.py - Property Feasibility Lookup
# =============================================================================
# Researches a project address with an online-search LLM (Perplexity, via
# the OpenAI-compatible API) to find lot size, zoning code and permitting
# jurisdiction, stores the result and returns matching ordinances.
#
# Extraction strategy:
#   1. One JSON-only request for all three fields
#   2. If the answer is empty or truncated, one compact "salvage" request
#   3. Targeted fallback requests for each field still missing
# Transient provider errors are retried by the SDK (max_retries).
# =============================================================================

import json
import logging
import re
import time
from typing import Any

from openai import OpenAI, OpenAIError

from app.auth.models import CallerIdentity
from app.exceptions import (
    DeliveryFailedError,
    DeliveryNotConfiguredError,
    ExtractionFailedError,
    InvalidRequestError,
)
from core.models.feasibility import (
    PROPERTY_FIELDS,
    AddressValidation,
    ExtractedPropertyData,
    FeasibilityAnalytics,
    FeasibilityRequest,
    FeasibilityResult,
    FeasibilityWarnings,
)
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import normalize_field

logger = logging.getLogger(__name__)

PROVIDER = "Perplexity"

US_STATE_PATTERN = re.compile(
    r"\b(AL|AK|AZ|AR|CA|CO|CT|DE|FL|GA|HI|ID|IL|IN|IA|KS|KY|LA|ME|MD|MA|MI|MN|MS|MO|MT|NE|NV|NH|NJ|"
    r"NM|NY|NC|ND|OH|OK|OR|PA|RI|SC|SD|TN|TX|UT|VT|VA|WA|WV|WI|WY)\b",
    re.IGNORECASE,
)
JSON_OBJECT_PATTERN = re.compile(r"\{[^{}]*\}", re.DOTALL)

SYSTEM_PROMPT = """You are a US property research AI specializing in property data extraction. \
Extract lot_size, zone, and jurisdiction data with MAXIMUM ACCURACY, prioritizing official government records.

LOT SIZE: prefer county assessor/parcel records, then city property records, then real estate sites.
ZONING: use official municipal zoning maps and planning department websites.
JURISDICTION: the building/planning department responsible for permits at the address.

REQUIRED JSON FORMAT:
{
  "lot_size": "exact size with units (e.g., '8,276 sq ft', '0.19 acres') or null",
  "zone": "official zoning code (e.g., 'R-1', 'RS-6000') or null",
  "jurisdiction": "building/planning dept (e.g., 'City of Palo Alto', 'Los Angeles County') or null"
}

- NEVER return empty strings, use null for unknown values
- Always include units for lot_size (prefer sq ft over acres)
- Respond with ONLY the JSON object, no explanatory text"""

SALVAGE_PROMPT = (
    'Extract property data. Return only JSON: '
    '{"lot_size": "value or null", "zone": "value or null", "jurisdiction": "value or null"}'
)

MISSING_FIELD_SUGGESTIONS = {
    "lot_size": "Verify the address exists in public tax records",
    "zone": "Check municipal zoning maps or planning department website",
    "jurisdiction": "Confirm the city/county responsible for building permits",
}

PERPLEXITY_OPTIONS = {
    "return_images": False,
    "return_related_questions": False,
}


def validate_address(address: str) -> AddressValidation:
    """
    Heuristic US address check. Failures only produce warnings.

    Valid means: at least 10 characters, a street number and a state code.
    """
    if not address or len(address.strip()) < 10:
        return AddressValidation(is_valid=False, suggestions=["Address must be at least 10 characters long"])

    has_number = any(char.isdigit() for char in address)
    has_state = bool(US_STATE_PATTERN.search(address))
    has_comma = "," in address

    suggestions = []
    if not has_number:
        suggestions.append('Include street number (e.g., "123 Main St")')
    if not has_comma:
        suggestions.append('Separate city/state with comma (e.g., "Street, City, State")')
    if not has_state:
        suggestions.append('Include state abbreviation (e.g., "CA", "NY")')

    return AddressValidation(is_valid=has_number and has_state, suggestions=suggestions)


def parse_json_object(content: str) -> dict[str, Any]:
    """
    Parse the JSON object from a model answer.

    Reasoning models may wrap the answer in <think> blocks or prose, so the
    last flat {...} object in the text is used when the whole text isn't JSON.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    text = content.strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        candidates = JSON_OBJECT_PATTERN.findall(text)
        if not candidates:
            raise ValueError(f"No JSON object in response: {text[:200]}")
        parsed = json.loads(candidates[-1])

    if not isinstance(parsed, dict):
        raise ValueError("Response JSON is not an object")
    return parsed


class FeasibilityAnalyzer:
    """
    Property research plus ordinance matching.

    Example:
        analyzer = FeasibilityAnalyzer(supabase, OpenAI(api_key=..., base_url=...))
        result = analyzer.analyze(FeasibilityRequest(projectAddress="..."), caller)
    """

    def __init__(
        self,
        supabase: SupabaseClient,
        llm: OpenAI | None,
        model: str = "sonar-reasoning",
    ):
        self._supabase = supabase
        self._llm = llm
        self._model = model

    def analyze(self, request: FeasibilityRequest, caller: CallerIdentity) -> FeasibilityResult:
        """
        Raises:
            InvalidRequestError: No address given
            DeliveryNotConfiguredError: No Perplexity key configured
            DeliveryFailedError: The provider call or its JSON failed
            ExtractionFailedError: Nothing could be extracted (422)
            SupabaseClientError: The analysis couldn't be stored
        """
        started = time.monotonic()
        address = (request.project_address or "").strip()
        if not address:
            raise InvalidRequestError("Project address is required")

        validation = validate_address(address)
        if not validation.is_valid:
            logger.warning(f"⚠️ Address validation warning for {address!r}: {validation.suggestions}")

        if self._llm is None:
            raise DeliveryNotConfiguredError(PROVIDER, "PERPLEXITY_API_KEY")

        logger.info(f"🏠 Processing feasibility analysis for address: {address}")

        data = self._normalize(self._extract(address, request.prompt))
        if data.missing_fields:
            data = self._fill_missing(address, data)

        extracted = data.extracted_fields
        missing = data.missing_fields
        logger.info(f"📈 Extraction rate {len(extracted)}/3 for {address!r}, missing={missing}")

        if not extracted:
            raise ExtractionFailedError(address)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        analysis = self._supabase.insert_row("feasibility_analyses", {
            "project_address": address,
            "lot_size": data.lot_size,
            "zone": data.zone,
            "jurisdiction": data.jurisdiction,
            "user_id": str(caller.id),
            "last_updated_by": str(caller.id),
            "notes": (
                f"Analysis completed using {self._model}. Processing time: {elapsed_ms}ms. "
                f"Fields extracted: {len(extracted)}/3"
            ),
        })

        ordinances = self._match_ordinances(data)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        logger.info(f"🎉 Analysis {analysis.get('id')} completed in {elapsed_ms}ms")

        return FeasibilityResult(
            feasibility_analysis=analysis,
            ordinances=ordinances,
            extracted_data=data,
            analytics=FeasibilityAnalytics(
                model_used=self._model,
                processing_time_ms=elapsed_ms,
                extraction_rate=f"{len(extracted)}/3",
                success_rate=f"{round(len(extracted) / 3 * 100)}%",
                ordinances_found=len(ordinances),
                address_validation="PASSED" if validation.is_valid else "FAILED",
                warnings_found=bool(missing),
            ),
            warnings=FeasibilityWarnings(
                missing_fields=missing,
                suggestions=[MISSING_FIELD_SUGGESTIONS[name] for name in missing],
            ) if missing else None,
        )

    # -------------------------------------------------------------------------
    # LLM calls
    # -------------------------------------------------------------------------

    def _complete(self, system: str, user: str, max_tokens: int) -> tuple[str | None, str | None]:
        """Run one chat completion; returns (content, finish_reason)."""
        response = self._llm.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            max_tokens=max_tokens,
            temperature=0.2,
            top_p=0.9,
            extra_body=PERPLEXITY_OPTIONS,
        )
        choice = response.choices[0] if response.choices else None
        if choice is None:
            return None, None
        logger.debug(f"{PROVIDER} usage: {getattr(response, 'usage', None)}")
        return choice.message.content, choice.finish_reason

    def _extract(self, address: str, prompt: str) -> dict[str, Any]:
        user_message = (
            f"ADDRESS: {address}\n"
            f"CONTEXT: {prompt}\n"
            "Extract lot_size, zone, jurisdiction. Respond with JSON only."
        )
        try:
            content, finish_reason = self._complete(SYSTEM_PROMPT, user_message, max_tokens=1000)
            if not content or finish_reason == "length":
                logger.info(f"⚠️ {PROVIDER} returned empty/truncated content, attempting salvage call")
                content, _ = self._complete(SALVAGE_PROMPT, f"Address: {address}", max_tokens=200)
                if not content:
                    raise ValueError("Salvage call also returned empty content")
            return parse_json_object(content)
        except OpenAIError as e:
            raise DeliveryFailedError(PROVIDER, str(e)) from e
        except ValueError as e:
            raise DeliveryFailedError(PROVIDER, f"Failed to parse response as JSON: {e}") from e

    def _fill_missing(self, address: str, data: ExtractedPropertyData) -> ExtractedPropertyData:
        """Targeted follow-up questions for each missing field."""
        values = data.model_dump()

        if not values["lot_size"] and (values["jurisdiction"] or values["zone"]):
            values["lot_size"] = self._ask_field(
                "lot_size",
                'Find the exact lot size for this address. Check Zillow.com, Redfin.com, county assessor '
                'records. Return only JSON: {"lot_size": "value with units or null"}',
                f"Find lot size for: {address}. Check multiple sources including Zillow, Redfin, county assessor.",
            )

        if not values["zone"] and values["jurisdiction"]:
            values["zone"] = self._ask_field(
                "zone",
                'Find the official zoning designation for this address. Check municipal zoning maps and '
                'planning department websites. Return only JSON: {"zone": "official zoning code or null"}',
                f"Find zoning for: {address} in {values['jurisdiction']}. Check official municipal zoning maps.",
            )

        if not values["jurisdiction"]:
            values["jurisdiction"] = self._ask_field(
                "jurisdiction",
                'Find which city or county building/planning department handles permits for this address. '
                'Return only JSON: {"jurisdiction": "department name or null"}',
                f"Find building permit jurisdiction for: {address}. "
                "Which city/county department handles building permits here?",
            )

        return ExtractedPropertyData(**values)

    def _ask_field(self, field: str, system: str, user: str) -> str | None:
        """One fallback request; failures are logged and leave the field empty."""
        logger.info(f"🔄 Attempting {field} fallback")
        try:
            content, _ = self._complete(system, user, max_tokens=500)
            if not content:
                return None
            value = normalize_field(parse_json_object(content).get(field))
        except (OpenAIError, ValueError) as e:
            logger.warning(f"⚠️ {field} fallback failed: {e}")
            return None

        if value:
            logger.info(f"✅ {field} fallback successful: {value}")
        return value

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _normalize(raw: dict[str, Any]) -> ExtractedPropertyData:
        return ExtractedPropertyData(**{name: normalize_field(raw.get(name)) for name in PROPERTY_FIELDS})

    def _match_ordinances(self, data: ExtractedPropertyData) -> list[dict[str, Any]]:
        if not (data.jurisdiction and data.zone):
            logger.info("⚠️ Insufficient data for ordinance matching (missing jurisdiction or zone)")
            return []
        try:
            ordinances = self._supabase.search_ordinances(jurisdiction=data.jurisdiction, zone=data.zone)
        except SupabaseClientError as e:
            logger.warning(f"⚠️ Ordinance query error: {e.message}")
            return []
        logger.info(f"📋 Found {len(ordinances)} matching ordinances")
        return ordinances
