"""Tests for the per-session ContextStore."""

import pytest

from review_orchestrator.session.context_store import ContextStore, result_key


def test_result_key_format():
    assert result_key("git") == "last_git_result"


def test_insertion_order_is_preserved():
    store = ContextStore({"pull_request": 1})
    store.add("repository_url", "/r")
    store.update({"branch": "main", "pull_request": 2})
    assert list(store) == ["pull_request", "repository_url", "branch"]
    assert store.get("pull_request") == 2


def test_record_result_uses_result_key():
    store = ContextStore()
    store.record_result("database", [{"count": 1}])
    assert "last_database_result" in store
    assert store.get("last_database_result") == [{"count": 1}]


def test_snapshot_is_immutable_and_detached():
    store = ContextStore({"a": 1})
    snapshot = store.snapshot()
    with pytest.raises(TypeError):
        snapshot["a"] = 2
    store.add("b", 2)
    assert "b" not in snapshot
    assert len(store) == 2


def test_clear_empties_store():
    store = ContextStore({"a": 1})
    store.clear()
    assert len(store) == 0
    assert store.get("a", "missing") == "missing"
