"""Tests for query construction."""

from __future__ import annotations

import logging

import pytest

from keychain_manager.items import SYNCHRONIZABLE_ANY, Accessibility, ItemClass
from keychain_manager.query import QueryBuilder, redacted


@pytest.fixture
def builder() -> QueryBuilder:
    return QueryBuilder("com.example.svc")


class TestBuild:
    def test_minimal_query(self, builder: QueryBuilder) -> None:
        query = builder.build(ItemClass.GENERIC, "alice")
        assert query == {"svce": "com.example.svc", "acct": "alice", "class": "genp", "sync": True}

    def test_accessibility_only_when_given(self, builder: QueryBuilder) -> None:
        assert "pdmn" not in builder.build(ItemClass.GENERIC, "alice")
        query = builder.build(ItemClass.GENERIC, "alice", Accessibility.AFTER_FIRST_UNLOCK)
        assert query["pdmn"] == "ck"

    def test_synchronizable_always_explicit(self, builder: QueryBuilder) -> None:
        assert builder.build(ItemClass.GENERIC, "alice", synchronizable=False)["sync"] is False
        assert builder.build(ItemClass.GENERIC, "alice", synchronizable=True)["sync"] is True

    def test_synchronizable_any_passes_through(self, builder: QueryBuilder) -> None:
        query = builder.build(ItemClass.GENERIC, "alice", synchronizable=SYNCHRONIZABLE_ANY)
        assert query["sync"] == "syna"

    def test_access_group_only_when_configured(self) -> None:
        assert "agrp" not in QueryBuilder("svc").build(ItemClass.GENERIC, "a")
        query = QueryBuilder("svc", access_group="team.shared").build(ItemClass.GENERIC, "a")
        assert query["agrp"] == "team.shared"

    def test_extra_attributes_are_merged(self, builder: QueryBuilder) -> None:
        query = builder.build(ItemClass.GENERIC, "alice", attributes={"labl": "Alice's token"})
        assert query["labl"] == "Alice's token"

    def test_extra_attributes_override_dimensions(self, builder: QueryBuilder) -> None:
        """Extra attributes win over every built key; callers rely on this."""
        query = builder.build(
            ItemClass.GENERIC,
            "alice",
            Accessibility.WHEN_UNLOCKED,
            attributes={"svce": "other.svc", "acct": "bob", "pdmn": "ck", "sync": False},
        )
        assert query["svce"] == "other.svc"
        assert query["acct"] == "bob"
        assert query["pdmn"] == "ck"
        assert query["sync"] is False

    def test_builds_fresh_dicts(self, builder: QueryBuilder) -> None:
        first = builder.build(ItemClass.GENERIC, "alice")
        first["v_Data"] = b"x"
        assert "v_Data" not in builder.build(ItemClass.GENERIC, "alice")


class TestScope:
    def test_scope_has_no_account(self, builder: QueryBuilder) -> None:
        query = builder.scope(ItemClass.CERTIFICATE, Accessibility.WHEN_UNLOCKED, False)
        assert query == {"svce": "com.example.svc", "class": "cert", "pdmn": "ak", "sync": False}

    def test_scope_for_wipe(self) -> None:
        query = QueryBuilder("svc", "grp").scope(ItemClass.IDENTITY, synchronizable=SYNCHRONIZABLE_ANY)
        assert query == {"svce": "svc", "class": "idnt", "agrp": "grp", "sync": "syna"}


class TestLogging:
    def test_redacted_hides_payload(self) -> None:
        query = {"acct": "a", "v_Data": b"secret"}
        assert redacted(query) == {"acct": "a", "v_Data": "<redacted>"}
        assert query["v_Data"] == b"secret"

    def test_build_logs_at_debug(self, builder: QueryBuilder, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="keychain_manager.query"):
            builder.build(ItemClass.GENERIC, "alice")
        assert "alice" in caplog.text
