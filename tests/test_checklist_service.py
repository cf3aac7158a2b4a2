# =============================================================================
# tests/test_checklist_service.py - Checklist Extraction Tests
# =============================================================================
# This module contains tests for:
# - Tolerant parsing of {"items": [...]} model answers
# - Row normalization ('unspecified' defaults, missing issue text)
# - Document validation and prompt resolution
# - Upload, completion and cleanup of provider files
#
# The OpenAI client is a MagicMock returning canned chat completions.
# =============================================================================

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from app.exceptions import (
    DeliveryFailedError,
    DeliveryNotConfiguredError,
    InvalidRequestError,
    NoChecklistItemsError,
)
from core.models.checklist import CHECKLIST_FIELDS, SourceDocument
from core.services.checklist_service import (
    FALLBACK_PROMPT,
    ChecklistExtractor,
    normalize_checklist_item,
    parse_checklist_items,
)
from lib.supabase_client import SupabaseClientError

ITEM = {
    "sheet_name": "A-1.1",
    "issue_to_check": "Clarify project scope",
    "location": "Site plan",
    "city": "Sunnyvale",
}


def _completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")], usage=None)


def _pdf(name="plans.pdf", content=b"%PDF-1.7 plans"):
    return SourceDocument(filename=name, content=content, content_type="application/pdf")


@pytest.fixture
def llm():
    client = MagicMock()
    client.files.create.return_value = SimpleNamespace(id="file-1")
    client.chat.completions.create.return_value = _completion(json.dumps({"items": [ITEM]}))
    return client


@pytest.fixture
def extractor(mock_supabase, llm):
    mock_supabase.fetch_agent_prompt.return_value = None
    mock_supabase.insert_rows.side_effect = lambda table, rows: [dict(row, id=f"ci-{i}") for i, row in enumerate(rows)]
    return ChecklistExtractor(mock_supabase, llm, max_files=3, max_file_size=1024)


# =============================================================================
# Parsing Tests
# =============================================================================

class TestParseChecklistItems:
    def test_plain_object(self):
        assert parse_checklist_items(json.dumps({"items": [ITEM]})) == [ITEM]

    def test_markdown_fence_and_trailing_comma(self):
        content = '```json\n{"items": [{"issue_to_check": "Add smoke alarms",},]}\n```'

        assert parse_checklist_items(content) == [{"issue_to_check": "Add smoke alarms"}]

    def test_object_inside_prose(self):
        content = 'Here are the items: {"items": [{"issue_to_check": "Egress window"}]} Let me know.'

        assert parse_checklist_items(content) == [{"issue_to_check": "Egress window"}]

    def test_bare_array(self):
        assert parse_checklist_items('[{"issue_to_check": "Guard height"}]') == [{"issue_to_check": "Guard height"}]

    def test_no_json(self):
        with pytest.raises(ValueError):
            parse_checklist_items("I could not read the documents.")


class TestNormalizeChecklistItem:
    def test_blank_fields_are_unspecified(self):
        row = normalize_checklist_item(ITEM, 0, "user-1")

        assert row["user_id"] == "user-1"
        assert row["sheet_name"] == "A-1.1"
        assert row["zip_code"] == "unspecified"
        assert set(CHECKLIST_FIELDS) <= set(row)

    def test_issue_alias(self):
        row = normalize_checklist_item({"issue": "Show setbacks"}, 0, "user-1")

        assert row["issue_to_check"] == "Show setbacks"

    def test_unspecified_issue_gets_placeholder(self):
        row = normalize_checklist_item({"issue_to_check": "unspecified"}, 4, "user-1")

        assert row["issue_to_check"] == "Checklist item 5 - description not provided"


# =============================================================================
# Extractor Tests
# =============================================================================

class TestValidateDocuments:
    def test_no_files(self, extractor):
        with pytest.raises(InvalidRequestError) as exc_info:
            extractor.validate_documents([])

        assert exc_info.value.message == "No files provided"

    def test_too_many_files(self, extractor):
        with pytest.raises(InvalidRequestError) as exc_info:
            extractor.validate_documents([_pdf(f"p{i}.pdf") for i in range(4)])

        assert exc_info.value.message == "Too many files. Maximum 3 files allowed."

    def test_empty_file(self, extractor):
        with pytest.raises(InvalidRequestError) as exc_info:
            extractor.validate_documents([_pdf("blank.pdf", b"")])

        assert exc_info.value.message == "File blank.pdf is empty"

    def test_oversized_file(self, extractor):
        with pytest.raises(InvalidRequestError):
            extractor.validate_documents([_pdf("huge.pdf", b"x" * 2048)])


class TestResolvePrompt:
    def test_custom_prompt_wins(self, extractor, mock_supabase):
        assert extractor.resolve_prompt("  Only fire items ") == "Only fire items"
        mock_supabase.fetch_agent_prompt.assert_not_called()

    def test_stored_default(self, extractor, mock_supabase):
        mock_supabase.fetch_agent_prompt.return_value = {"name": "default_checklist_extractor", "prompt": "Stored"}

        assert extractor.resolve_prompt(None) == "Stored"
        mock_supabase.fetch_agent_prompt.assert_called_once_with("default_checklist_extractor")

    def test_lookup_error_uses_fallback(self, extractor, mock_supabase):
        mock_supabase.fetch_agent_prompt.side_effect = SupabaseClientError("timeout")

        assert extractor.resolve_prompt("") == FALLBACK_PROMPT


class TestExtract:
    def test_success(self, extractor, mock_supabase, llm, user_caller):
        result = extractor.extract([_pdf()], user_caller)

        assert result.success
        assert result.message == "Successfully extracted 1 checklist items from 1 files"
        assert result.data.extracted_items == 1
        assert result.data.inserted_items == 1
        table, rows = mock_supabase.insert_rows.call_args.args
        assert table == "checklist_items"
        assert rows[0]["user_id"] == str(user_caller.id)
        assert rows[0]["reviewer_name"] == "unspecified"

    def test_request_shape(self, extractor, llm, user_caller):
        """The document is attached as a file part and JSON output is requested."""
        extractor.extract([_pdf()], user_caller, custom_prompt="Find fire items")

        llm.files.create.assert_called_once_with(file=("plans.pdf", b"%PDF-1.7 plans"), purpose="user_data")
        kwargs = llm.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        system, user = kwargs["messages"]
        assert system["content"].startswith("Find fire items")
        assert "CRITICAL RESPONSE FORMAT REQUIREMENTS" in system["content"]
        assert user["content"][1] == {"type": "file", "file": {"file_id": "file-1"}}

    def test_images_sent_inline(self, extractor, llm, user_caller):
        image = SourceDocument(filename="letter.png", content=b"\x89PNG", content_type="image/png")

        extractor.extract([image], user_caller)

        llm.files.create.assert_not_called()
        part = llm.chat.completions.create.call_args.kwargs["messages"][1]["content"][1]
        assert part["image_url"]["url"].startswith("data:image/png;base64,")

    def test_uploads_deleted_after_provider_error(self, extractor, llm, user_caller):
        llm.chat.completions.create.side_effect = openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        )

        with pytest.raises(DeliveryFailedError):
            extractor.extract([_pdf()], user_caller)

        llm.files.delete.assert_called_once_with("file-1")

    def test_not_configured(self, mock_supabase, user_caller):
        extractor = ChecklistExtractor(mock_supabase, llm=None)

        with pytest.raises(DeliveryNotConfiguredError):
            extractor.extract([_pdf()], user_caller)

    def test_validation_before_provider(self, extractor, llm, user_caller):
        with pytest.raises(InvalidRequestError):
            extractor.extract([], user_caller)

        llm.files.create.assert_not_called()

    def test_unparseable_answer(self, extractor, llm, user_caller):
        llm.chat.completions.create.return_value = _completion("Sorry, no items here.")

        with pytest.raises(DeliveryFailedError) as exc_info:
            extractor.extract([_pdf()], user_caller)

        assert "Failed to parse AI response as JSON" in exc_info.value.details["error"]

    def test_no_items(self, extractor, mock_supabase, llm, user_caller):
        llm.chat.completions.create.return_value = _completion('{"items": []}')

        with pytest.raises(NoChecklistItemsError) as exc_info:
            extractor.extract([_pdf()], user_caller)

        assert exc_info.value.status_code == 422
        mock_supabase.insert_rows.assert_not_called()
