"""Unit tests for the per-entity sync workflow.

Uses the InMemoryEntityGateway test double from conftest -- no HTTP calls.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

from structlog.testing import capture_logs

from src.product_sync.sync.errors import RemoteError
from src.product_sync.sync.schemas import FieldMode, SyncOutcome


# ── End-to-End Scenarios ───────────────────────────────────────────────────


class TestSyncScenarios:
    async def test_text_mode_writes_product_name(self, gateway, text_orchestrator):
        """F1 -> P1 "Atlas" in text mode writes the literal name once."""
        gateway.add_feature("F1", parent={"product": {"id": "P1"}})
        gateway.add_product("P1", "Atlas")

        outcome = await text_orchestrator.sync_entity("F1")

        assert outcome == SyncOutcome.UPDATED
        assert len(gateway.writes) == 1
        entity_id, field_id, value = gateway.writes[0]
        assert (entity_id, field_id) == ("F1", "cf-product")
        assert value.to_payload() == "Atlas"

    async def test_enumerated_mode_writes_matching_option(self, gateway, enum_orchestrator):
        """F2 -> P2 "Nimbus" with options Nimbus/Orbit writes option o1."""
        gateway.add_feature("F2", product={"id": "P2"})
        gateway.add_product("P2", "Nimbus")
        gateway.add_field("cf-product", [("o1", "Nimbus"), ("o2", "Orbit")])

        outcome = await enum_orchestrator.sync_entity("F2")

        assert outcome == SyncOutcome.UPDATED
        assert len(gateway.writes) == 1
        _, _, value = gateway.writes[0]
        assert value.mode == FieldMode.ENUMERATED
        assert value.to_payload() == {"optionId": "o1"}

    async def test_no_parent_skips_without_write(self, gateway, text_orchestrator):
        """F3 with no parent reference: no write, no error."""
        gateway.add_feature("F3", name="Orphan")

        outcome = await text_orchestrator.sync_entity("F3")

        assert outcome == SyncOutcome.SKIPPED_NO_PARENT
        assert gateway.writes == []
        assert "get_product" not in gateway.calls

    async def test_no_matching_option_reports_error_without_write(self, gateway, enum_orchestrator):
        """F4 -> P4 "Zephyr" with only a Nimbus option: error, no write."""
        gateway.add_feature("F4", parent={"product": {"id": "P4"}})
        gateway.add_product("P4", "Zephyr")
        gateway.add_field("cf-product", [("o1", "Nimbus")])

        outcome = await enum_orchestrator.sync_entity("F4")

        assert outcome == SyncOutcome.NO_MATCHING_OPTION
        assert gateway.writes == []
        assert gateway.calls.count("get_field_definition") == 1

    async def test_product_without_name_skips(self, gateway, text_orchestrator):
        gateway.add_feature("F5", product={"id": "P5"})
        gateway.add_product("P5", None)

        outcome = await text_orchestrator.sync_entity("F5")

        assert outcome == SyncOutcome.SKIPPED_NO_PRODUCT_NAME
        assert gateway.writes == []

    async def test_product_with_empty_name_skips(self, gateway, text_orchestrator):
        gateway.add_feature("F5", product={"id": "P5"})
        gateway.add_product("P5", "")

        outcome = await text_orchestrator.sync_entity("F5")

        assert outcome == SyncOutcome.SKIPPED_NO_PRODUCT_NAME
        assert gateway.writes == []

    async def test_direct_product_reference_wins_over_parent(self, gateway, text_orchestrator):
        gateway.add_feature("F6", product={"id": "P-direct"}, parent={"product": {"id": "P-parent"}})
        gateway.add_product("P-direct", "Direct")
        gateway.add_product("P-parent", "Parent")

        await text_orchestrator.sync_entity("F6")

        assert gateway.writes[0][2].text == "Direct"

    async def test_text_mode_does_not_fetch_field_definition(self, gateway, text_orchestrator):
        gateway.add_feature("F1", product={"id": "P1"})
        gateway.add_product("P1", "Atlas")

        await text_orchestrator.sync_entity("F1")

        assert "get_field_definition" not in gateway.calls


# ── Idempotence ─────────────────────────────────────────────────────────────


class TestIdempotence:
    async def test_repeated_sync_performs_identical_write(self, gateway, enum_orchestrator):
        gateway.add_feature("F2", product={"id": "P2"})
        gateway.add_product("P2", "Nimbus")
        gateway.add_field("cf-product", [("o1", "Nimbus"), ("o2", "Orbit")])

        await enum_orchestrator.sync_entity("F2")
        await enum_orchestrator.sync_entity("F2")

        assert len(gateway.writes) == 2
        assert gateway.writes[0] == gateway.writes[1]

    async def test_product_rename_is_picked_up(self, gateway, text_orchestrator):
        gateway.add_feature("F1", product={"id": "P1"})
        gateway.add_product("P1", "Atlas")
        await text_orchestrator.sync_entity("F1")

        gateway.add_product("P1", "Atlas Prime")
        await text_orchestrator.sync_entity("F1")

        assert [w[2].text for w in gateway.writes] == ["Atlas", "Atlas Prime"]


# ── Failure Handling ────────────────────────────────────────────────────────


class TestFailureHandling:
    async def test_transient_error_is_retried(self, gateway, text_orchestrator):
        gateway.add_feature("F1", product={"id": "P1"})
        gateway.add_product("P1", "Atlas")
        gateway.fail_next("set_field_value", RemoteError(503, "unavailable"), RemoteError(429, "slow down"))

        outcome = await text_orchestrator.sync_entity("F1")

        assert outcome == SyncOutcome.UPDATED
        assert gateway.calls.count("set_field_value") == 3
        assert len(gateway.writes) == 1

    async def test_permanent_error_is_not_retried(self, gateway, text_orchestrator):
        gateway.add_feature("F1", product={"id": "P1"})
        gateway.add_product("P1", "Atlas")
        gateway.fail_next("get_product", RemoteError(403, "forbidden"))

        outcome = await text_orchestrator.sync_entity("F1")

        assert outcome == SyncOutcome.REMOTE_ERROR
        assert gateway.calls.count("get_product") == 1
        assert gateway.writes == []

    async def test_retries_exhausted_reports_remote_error(self, gateway, text_orchestrator):
        gateway.add_feature("F1", product={"id": "P1"})
        gateway.add_product("P1", "Atlas")
        gateway.fail_next("get_entity", *[RemoteError(None, "timeout")] * 3)

        outcome = await text_orchestrator.sync_entity("F1")

        assert outcome == SyncOutcome.REMOTE_ERROR
        assert gateway.calls.count("get_entity") == 3

    async def test_unexpected_exception_is_contained(self, gateway, text_orchestrator):
        gateway.get_entity = AsyncMock(side_effect=KeyError("boom"))

        outcome = await text_orchestrator.sync_entity("F1")

        assert outcome == SyncOutcome.FAILED


# ── Batches ────────────────────────────────────────────────────────────────


class TestSyncMany:
    async def test_failure_does_not_abort_siblings(self, gateway, enum_orchestrator):
        gateway.add_field("cf-product", [("o1", "Nimbus")])
        gateway.add_feature("F1", product={"id": "P1"})
        gateway.add_product("P1", "Zephyr")  # no matching option
        gateway.add_feature("F2", product={"id": "P2"})
        gateway.add_product("P2", "Nimbus")
        gateway.add_feature("F3")  # no parent

        result = await enum_orchestrator.sync_many(["F1", "missing", "F2", "F3"])

        assert result.updated == 1
        assert result.skipped == 1
        assert result.failed == 2
        assert result.processed == 4
        assert result.outcomes["F1"] == SyncOutcome.NO_MATCHING_OPTION
        assert result.outcomes["missing"] == SyncOutcome.REMOTE_ERROR
        assert result.outcomes["F2"] == SyncOutcome.UPDATED
        assert result.outcomes["F3"] == SyncOutcome.SKIPPED_NO_PARENT
        assert [w[0] for w in gateway.writes] == ["F2"]

    async def test_entities_processed_in_order(self, gateway, text_orchestrator):
        for fid in ("F3", "F1", "F2"):
            gateway.add_feature(fid, product={"id": "P1"})
        gateway.add_product("P1", "Atlas")

        await text_orchestrator.sync_many(["F3", "F1", "F2"])

        assert [w[0] for w in gateway.writes] == ["F3", "F1", "F2"]


# ── Log Records ────────────────────────────────────────────────────────────


def _events(logs: list[dict], name: str) -> list[dict]:
    return [entry for entry in logs if entry["event"] == name]


class TestLogRecords:
    async def test_no_parent_logs_skip(self, gateway, text_orchestrator):
        gateway.add_feature("F3", name="Orphan")

        with capture_logs() as logs:
            await text_orchestrator.sync_entity("F3")

        skipped = _events(logs, "sync.skipped_no_parent")
        assert len(skipped) == 1
        assert skipped[0]["entity_id"] == "F3"
        assert skipped[0]["log_level"] == "warning"

    async def test_no_matching_option_logs_context(self, gateway, enum_orchestrator):
        gateway.add_feature("F4", parent={"product": {"id": "P4"}})
        gateway.add_product("P4", "Zephyr")
        gateway.add_field("cf-product", [("o1", "Nimbus")])

        with capture_logs() as logs:
            await enum_orchestrator.sync_entity("F4")

        errors = _events(logs, "sync.no_matching_option")
        assert len(errors) == 1
        assert errors[0]["log_level"] == "error"
        assert errors[0]["entity_id"] == "F4"
        assert errors[0]["field_id"] == "cf-product"
        assert errors[0]["product_name"] == "Zephyr"

    async def test_batch_summary_lists_errors(self, gateway, text_orchestrator):
        gateway.add_feature("F1", product={"id": "P1"})
        gateway.add_product("P1", "Atlas")

        with capture_logs() as logs:
            result = await text_orchestrator.sync_many(["F1", "missing"])

        summary = _events(logs, "sync.batch_complete")
        assert len(summary) == 1
        assert summary[0]["errors"] == ["missing: remote_error"]
        assert result.errors == summary[0]["errors"]
