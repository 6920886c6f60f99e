"""Tests for audit export and deterministic re-verification."""

import json

import pytest

from lucky_draw.verify import build_audit, verify_audit, write_audit


def resolve_all(manager, coordinator, users, draw_id, words):
    for user, word in zip(users, words):
        coordinator.fulfill(manager.enter(user, draw_id), [word])


def test_audit_round_trip(tmp_path, manager, coordinator, users, draw_id):
    resolve_all(manager, coordinator, users, draw_id, [100, 1200, 9000])
    out = tmp_path / "audit.json"
    audit = write_audit(manager, draw_id, str(out))

    assert [r["tier_index"] for r in audit["results"]] == [0, 1, "default"]
    result = verify_audit(str(out))
    assert result["ok"] is True
    assert result["results_checked"] == 3
    assert result["winners_per_tier"] == [1, 1, 0]
    assert result["total_distributed"] == (50 + 10 + 1) * 10**6


def test_tampered_random_value_detected(tmp_path, manager, coordinator, users, draw_id):
    resolve_all(manager, coordinator, users, draw_id, [100, 1200, 9000])
    audit = build_audit(manager, draw_id)
    audit["results"][0]["random_value"] = "9000"
    path = tmp_path / "audit.json"
    path.write_text(json.dumps(audit), encoding="utf-8")

    with pytest.raises(RuntimeError, match="Resolution mismatch"):
        verify_audit(str(path))


def test_tampered_total_detected(tmp_path, manager, coordinator, users, draw_id):
    resolve_all(manager, coordinator, users, draw_id, [100])
    audit = build_audit(manager, draw_id)
    audit["metadata"]["total_distributed"] = "1"
    path = tmp_path / "audit.json"
    path.write_text(json.dumps(audit), encoding="utf-8")

    with pytest.raises(RuntimeError, match="Distributed mismatch"):
        verify_audit(str(path))


def test_pending_entries_not_in_audit(manager, coordinator, users, draw_id):
    resolve_all(manager, coordinator, users[:1], draw_id, [100])
    manager.enter(users[1], draw_id)
    audit = build_audit(manager, draw_id)
    assert [r["participant"] for r in audit["results"]] == [users[0]]
    assert audit["metadata"]["entrant_count"] == 2


def test_cancelled_draw_audit_verifies(tmp_path, manager, owner, coordinator, users, draw_id):
    resolve_all(manager, coordinator, users[:1], draw_id, [100])
    late = manager.enter(users[1], draw_id)
    manager.cancel_draw(owner, draw_id)
    coordinator.fulfill(late, [100])

    out = tmp_path / "audit.json"
    write_audit(manager, draw_id, str(out))
    assert verify_audit(str(out))["total_distributed"] == 50 * 10**6
