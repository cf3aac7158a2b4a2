# =============================================================================
# tests/test_supabase_client.py - Supabase Wrapper Tests
# =============================================================================
# This module contains tests for:
# - Agent prompt reads (no-row answers from .single())
# - Agent prompt writes (update, insert when missing)
# - Checklist item filters
#
# The supabase-py Client is a MagicMock; query builders chain on it.
# =============================================================================

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from lib.supabase_client import NO_ROWS_CODE, SupabaseClient, SupabaseClientError


class PostgrestError(Exception):
    def __init__(self, code: str):
        super().__init__(f"postgrest error {code}")
        self.code = code


@pytest.fixture
def raw():
    return MagicMock()


@pytest.fixture
def client(raw):
    return SupabaseClient(raw)


class TestAgentPrompts:
    def _single(self, raw):
        return raw.table.return_value.select.return_value.eq.return_value.single.return_value.execute

    def test_fetch(self, client, raw):
        self._single(raw).return_value = SimpleNamespace(data={"name": "default_plan_checker", "prompt": "p"})

        assert client.fetch_agent_prompt("default_plan_checker") == {"name": "default_plan_checker", "prompt": "p"}
        raw.table.assert_called_with("agent_prompts")

    def test_no_row_is_none(self, client, raw):
        self._single(raw).side_effect = PostgrestError(NO_ROWS_CODE)

        assert client.fetch_agent_prompt("default_plan_checker") is None

    def test_other_errors_raise(self, client, raw):
        self._single(raw).side_effect = PostgrestError("42P01")

        with pytest.raises(SupabaseClientError) as exc_info:
            client.fetch_agent_prompt("default_plan_checker")

        assert exc_info.value.code == "FETCH_PROMPT_FAILED"

    def test_save_updates_existing(self, client, raw):
        table = raw.table.return_value
        table.update.return_value.eq.return_value.execute.return_value = SimpleNamespace(
            data=[{"name": "default_plan_checker", "prompt": "new"}]
        )

        row = client.save_agent_prompt("default_plan_checker", "new")

        assert row["prompt"] == "new"
        table.insert.assert_not_called()

    def test_save_inserts_when_missing(self, client, raw):
        table = raw.table.return_value
        table.update.return_value.eq.return_value.execute.return_value = SimpleNamespace(data=[])
        table.insert.return_value.execute.return_value = SimpleNamespace(
            data=[{"name": "default_plan_checker", "prompt": "new"}]
        )

        row = client.save_agent_prompt("default_plan_checker", "new")

        assert row == {"name": "default_plan_checker", "prompt": "new"}
        table.insert.assert_called_once_with([{"name": "default_plan_checker", "prompt": "new"}])


class TestChecklistItems:
    def test_city_filter_is_case_insensitive_exact(self, client, raw):
        query = raw.table.return_value.select.return_value
        query.eq.return_value.ilike.return_value.execute.return_value = SimpleNamespace(data=[{"id": "ci-1"}])

        items = client.fetch_checklist_items(user_id="user-1", city="Sunnyvale")

        assert items == [{"id": "ci-1"}]
        query.eq.assert_called_once_with("user_id", "user-1")
        query.eq.return_value.ilike.assert_called_once_with("city", "Sunnyvale")
