# =============================================================================
# core/services/checklist_service.py - Checklist Extraction Agent
# =============================================================================
# Reads architectural plans and city correction letters with an OpenAI model
# and stores every correction item as a row of checklist_items.
#
# Flow:
#   1. Validate the uploaded documents (count, size, emptiness)
#   2. Resolve the system prompt: request prompt, stored default, built-in
#   3. Upload the documents to OpenAI and ask for {"items": [...]} JSON
#   4. Delete the uploaded documents again, whatever the outcome
#   5. Parse the answer tolerantly, fill blanks with 'unspecified', insert
# =============================================================================

import base64
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
    InvalidRequestError,
    NoChecklistItemsError,
)
from core.models.checklist import (
    CHECKLIST_FIELDS,
    CHECKLIST_PROMPT_NAME,
    CHECKLIST_TABLE,
    UNSPECIFIED,
    ChecklistExtractionData,
    ChecklistExtractionResult,
    SourceDocument,
)
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

PROVIDER = "OpenAI"

FALLBACK_PROMPT = (
    "You are an AI assistant specialized in analyzing architectural plans and city "
    "correction letters to extract compliance checklists."
)

FORMAT_INSTRUCTIONS = f"""CRITICAL RESPONSE FORMAT REQUIREMENTS:
1. You MUST respond with ONLY valid JSON - no explanatory text, no markdown, no additional commentary
2. Start your response immediately with {{ and end with }}
3. Use this exact structure: {{"items": [array of correction items]}}
4. Each item must have these exact field names: {", ".join(CHECKLIST_FIELDS)}
5. Use '{UNSPECIFIED}' for any unknown values - never leave fields empty or null
6. Process ALL correction items - count them first, then extract every single one
7. DO NOT include any text before or after the JSON object
8. Ensure the JSON is complete and not truncated"""

EXTRACTION_REQUEST = (
    "Please analyze the uploaded architectural plans and correction documents to extract "
    "compliance checklist items according to your instructions. CRITICAL: First, count the "
    "total number of correction items mentioned in the city's correction letter. Then extract "
    "EVERY SINGLE correction item - do not skip any. Focus on identifying specific building "
    "code violations, accessibility issues, fire safety requirements, and any reviewer "
    "comments that need to be addressed."
)

MISSING_ISSUE = "No issue specified"

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*")
TRAILING_COMMA_PATTERN = re.compile(r",(\s*[}\]])")
ITEMS_OBJECT_PATTERN = re.compile(r'\{[\s\S]*?"items"\s*:\s*\[[\s\S]*\][\s\S]*?\}')
ITEMS_ARRAY_PATTERN = re.compile(r'"items"\s*:\s*(\[[\s\S]*\])')
ANY_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


# =============================================================================
# Response Parsing
# =============================================================================

def clean_json_text(content: str) -> str:
    """Strip markdown fences and trailing commas from a model answer."""
    text = CODE_FENCE_PATTERN.sub("", content).strip()
    return TRAILING_COMMA_PATTERN.sub(r"\1", text)


def _parse_strategies(text: str):
    yield lambda: json.loads(text)

    def items_object():
        match = ITEMS_OBJECT_PATTERN.search(text)
        if not match:
            raise ValueError("No JSON object with items found")
        return json.loads(match.group(0))

    def items_array():
        match = ITEMS_ARRAY_PATTERN.search(text)
        if not match:
            raise ValueError("No items array found")
        return {"items": json.loads(match.group(1))}

    def any_array():
        match = ANY_ARRAY_PATTERN.search(text)
        if not match:
            raise ValueError("No JSON array found")
        return {"items": json.loads(match.group(0))}

    yield items_object
    yield items_array
    yield any_array


def parse_checklist_items(content: str) -> list[dict[str, Any]]:
    """
    Pull the list of checklist items out of a model answer.

    Tries, in order: the whole answer as JSON, an object holding "items",
    the "items" array alone, and finally any JSON array in the text.

    Raises:
        ValueError: If no strategy yields an items array
    """
    text = clean_json_text(content)
    for number, strategy in enumerate(_parse_strategies(text), start=1):
        try:
            parsed = strategy()
        except ValueError as e:
            logger.debug(f"JSON strategy {number} failed: {e}")
            continue

        if isinstance(parsed, list):
            parsed = {"items": parsed}
        items = parsed.get("items") if isinstance(parsed, dict) else None
        if isinstance(items, list):
            return [item for item in items if isinstance(item, dict)]
        logger.debug(f"JSON strategy {number} found no items array")

    raise ValueError("All JSON extraction strategies failed")


def normalize_checklist_item(item: dict[str, Any], index: int, user_id: str) -> dict[str, Any]:
    """Fill every checklist column, using 'unspecified' for blanks."""
    row = {"user_id": user_id}
    for field in CHECKLIST_FIELDS:
        row[field] = item.get(field) or UNSPECIFIED

    row["issue_to_check"] = item.get("issue_to_check") or item.get("issue") or MISSING_ISSUE
    if row["issue_to_check"] == UNSPECIFIED:
        logger.warning(f"⚠️ Checklist item {index + 1} has no issue description")
        row["issue_to_check"] = f"Checklist item {index + 1} - description not provided"
    return row


# =============================================================================
# Extractor
# =============================================================================

class ChecklistExtractor:
    """
    Turns uploaded plans and correction letters into checklist_items rows.

    Example:
        extractor = ChecklistExtractor(supabase, OpenAI(api_key=...))
        result = extractor.extract([SourceDocument(...)], caller)
    """

    def __init__(
        self,
        supabase: SupabaseClient,
        llm: OpenAI | None,
        model: str = "gpt-4.1-2025-04-14",
        max_files: int = 10,
        max_file_size: int = 512 * 1024 * 1024,
    ):
        self._supabase = supabase
        self._llm = llm
        self._model = model
        self._max_files = max_files
        self._max_file_size = max_file_size

    def validate_documents(self, documents: list[SourceDocument]) -> None:
        """
        Raises:
            InvalidRequestError: No documents, too many, or an empty or oversized one
        """
        if not documents:
            raise InvalidRequestError("No files provided")
        if len(documents) > self._max_files:
            raise InvalidRequestError(
                f"Too many files. Maximum {self._max_files} files allowed.",
                details={"file_count": len(documents)},
            )
        for document in documents:
            if document.size == 0:
                raise InvalidRequestError(f"File {document.filename} is empty")
            if document.size > self._max_file_size:
                raise InvalidRequestError(
                    f"File {document.filename} is too large. "
                    f"Maximum size is {self._max_file_size // (1024 * 1024)}MB.",
                    details={"filename": document.filename, "size_bytes": document.size},
                )

    def resolve_prompt(self, custom_prompt: str | None = None) -> str:
        """Request prompt, else the stored default, else the built-in prompt."""
        if custom_prompt and custom_prompt.strip():
            logger.info("Using custom prompt from request")
            return custom_prompt.strip()

        try:
            stored = self._supabase.fetch_agent_prompt(CHECKLIST_PROMPT_NAME)
        except SupabaseClientError as e:
            logger.warning(f"⚠️ Default prompt lookup failed, using fallback prompt: {e.message}")
            stored = None

        if stored and stored.get("prompt"):
            return stored["prompt"]

        logger.warning("⚠️ No custom or default prompt available, using fallback prompt")
        return FALLBACK_PROMPT

    def extract(
        self,
        documents: list[SourceDocument],
        caller: CallerIdentity,
        custom_prompt: str | None = None,
    ) -> ChecklistExtractionResult:
        """
        Raises:
            InvalidRequestError: The documents failed validation
            DeliveryNotConfiguredError: No OpenAI key configured
            DeliveryFailedError: The provider call or its JSON failed
            NoChecklistItemsError: The model found no correction items (422)
            SupabaseClientError: The items couldn't be stored
        """
        started = time.monotonic()
        self.validate_documents(documents)

        if self._llm is None:
            raise DeliveryNotConfiguredError(PROVIDER, "OPENAI_API_KEY")

        system_prompt = f"{self.resolve_prompt(custom_prompt)}\n\n{FORMAT_INSTRUCTIONS}"
        logger.info(f"📄 Extracting checklist from {len(documents)} file(s) for user {caller.id}")

        content = self._ask_model(system_prompt, documents)
        try:
            raw_items = parse_checklist_items(content)
        except ValueError as e:
            raise DeliveryFailedError(PROVIDER, f"Failed to parse AI response as JSON: {e}") from e

        if not raw_items:
            raise NoChecklistItemsError(
                "No checklist items were extracted from the documents",
                suggestion="Upload the city's correction letter with the plans, or adjust the extraction prompt",
            )

        user_id = str(caller.id)
        rows = [normalize_checklist_item(item, index, user_id) for index, item in enumerate(raw_items)]
        inserted = self._supabase.insert_rows(CHECKLIST_TABLE, rows)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"🎉 Extracted {len(rows)} checklist items in {elapsed_ms}ms")

        return ChecklistExtractionResult(
            message=f"Successfully extracted {len(rows)} checklist items from {len(documents)} files",
            data=ChecklistExtractionData(
                extracted_items=len(rows),
                inserted_items=len(inserted),
                execution_time_ms=elapsed_ms,
                items=inserted,
            ),
        )

    # -------------------------------------------------------------------------
    # LLM calls
    # -------------------------------------------------------------------------

    def _ask_model(self, system_prompt: str, documents: list[SourceDocument]) -> str:
        uploaded_ids: list[str] = []
        try:
            parts: list[dict[str, Any]] = [{"type": "text", "text": EXTRACTION_REQUEST}]
            for document in documents:
                parts.append(self._document_part(document, uploaded_ids))

            response = self._llm.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": parts},
                ],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise DeliveryFailedError(PROVIDER, str(e)) from e
        finally:
            self._delete_uploads(uploaded_ids)

        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice else None
        if not content:
            raise DeliveryFailedError(PROVIDER, "No response received from the model")
        logger.debug(f"{PROVIDER} usage: {getattr(response, 'usage', None)}")
        return content

    def _document_part(self, document: SourceDocument, uploaded_ids: list[str]) -> dict[str, Any]:
        """Images go inline; everything else is uploaded as a user_data file."""
        if document.content_type.startswith("image/"):
            encoded = base64.b64encode(document.content).decode("ascii")
            return {
                "type": "image_url",
                "image_url": {"url": f"data:{document.content_type};base64,{encoded}"},
            }

        uploaded = self._llm.files.create(file=(document.filename, document.content), purpose="user_data")
        uploaded_ids.append(uploaded.id)
        logger.info(f"Uploaded {document.filename} as {uploaded.id}")
        return {"type": "file", "file": {"file_id": uploaded.id}}

    def _delete_uploads(self, file_ids: list[str]) -> None:
        for file_id in file_ids:
            try:
                self._llm.files.delete(file_id)
            except OpenAIError as e:
                logger.warning(f"⚠️ Failed to delete uploaded file {file_id}: {e}")
