"""End-to-end tests of the operator CLI over a state file."""

import json

import pytest

from lucky_draw.addresses import derive_address
from lucky_draw.cli import main
from lucky_draw.config import Settings
from lucky_draw.state import load_state, save_state


@pytest.fixture
def state_file(tmp_path, monkeypatch):
    for name in (
        "RANDOMNESS_RPC_URL",
        "LUCKY_DRAW_OWNER",
        "LUCKY_DRAW_STATE_FILE",
        "LUCKY_DRAW_TOKEN_DECIMALS",
        "VRF_KEY_HASH",
        "VRF_SUBSCRIPTION_ID",
        "VRF_CALLBACK_GAS_LIMIT",
        "VRF_REQUEST_CONFIRMATIONS",
        "VRF_NATIVE_PAYMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return str(tmp_path / "state.json")


def run(state_file, *argv):
    with pytest.raises(SystemExit) as exc:
        main(["--state", state_file, *argv])
    return exc.value.code


def test_full_draw_lifecycle(state_file, capsys):
    assert run(state_file, "mint", "--amount", "1000") == 0
    assert run(state_file, "approve", "--amount", "1000") == 0
    assert run(state_file, "create-draw") == 0
    assert run(state_file, "set-tiers", "--draw", "0", "--tier", "50000000:500", "--tier", "10000000:1500") == 0
    assert run(state_file, "set-default-prize", "--draw", "0", "--amount", "1") == 0
    assert run(state_file, "fund-draw", "--draw", "0", "--amount", "1000") == 0
    assert run(state_file, "whitelist", "alice", "bob") == 0
    assert run(state_file, "--as", "alice", "enter", "--draw", "0") == 0
    assert run(state_file, "fulfill", "--request", "1", "--random", "100") == 0
    assert run(state_file, "--as", "bob", "enter", "--draw", "0") == 0
    assert run(state_file, "fulfill", "--request", "2", "--seed", "public-seed") == 0
    assert run(state_file, "close-draw", "--draw", "0") == 0
    assert run(state_file, "draw-info", "--draw", "0") == 0
    out = capsys.readouterr().out
    assert "Status            : Closed" in out

    state = load_state(state_file, Settings.from_env(state_file_override=state_file))
    alice = derive_address("alice")
    assert state.default_token.balance_of(alice) == 50 * 10**6
    result = state.manager.get_user_result(0, alice)
    assert (result.has_result, result.tier_index) == (True, 0)
    assert state.manager.get_user_result(0, derive_address("bob")).has_result is True

    assert run(state_file, "audit", "--draw", "0", "--out", "audit.json") == 0
    assert run(state_file, "verify", "--audit", "audit.json") == 0
    assert "AUDIT VERIFIED" in capsys.readouterr().out

    assert run(state_file, "withdraw-leftover", "--draw", "0") == 0
    assert run(state_file, "withdraw-leftover", "--draw", "0") == 0
    assert "No leftover to withdraw!" in capsys.readouterr().out


def test_errors_reported_with_exit_status(state_file, capsys):
    assert run(state_file, "create-draw") == 0
    assert run(state_file, "--as", "mallory", "enter", "--draw", "0") == 1
    assert "error: NotWhitelisted" in capsys.readouterr().out
    assert run(state_file, "--as", "mallory", "pause") == 1
    assert "error: AuthorizationError" in capsys.readouterr().out


def test_remote_oracle_run_keeps_local_request_ids(state_file, capsys):
    assert run(state_file, "mint", "--amount", "1000") == 0
    assert run(state_file, "approve", "--amount", "1000") == 0
    assert run(state_file, "create-draw") == 0
    assert run(state_file, "set-tiers", "--draw", "0", "--tier", "50000000:500") == 0
    assert run(state_file, "fund-draw", "--draw", "0", "--amount", "1000") == 0
    assert run(state_file, "whitelist", "alice", "bob") == 0
    assert run(state_file, "--as", "alice", "enter", "--draw", "0") == 0

    assert run(state_file, "--rpc-url", "http://127.0.0.1:9", "whitelist", "carol") == 0
    saved = json.loads(open(state_file, encoding="utf-8").read())
    assert saved["coordinator"]["next_request_id"] == 2
    assert "1" in saved["coordinator"]["outstanding"]

    assert run(state_file, "fulfill", "--request", "1", "--random", "100") == 0
    capsys.readouterr()
    assert run(state_file, "--as", "bob", "enter", "--draw", "0") == 0
    assert "randomness request id: 2" in capsys.readouterr().out


def test_local_ids_skip_past_remote_requests(state_file):
    settings = Settings.from_env(state_file_override=state_file)
    assert run(state_file, "create-draw") == 0
    state = load_state(state_file, settings)
    state.manager._pending.add(7, 0, derive_address("alice"))
    save_state(state_file, state)

    reloaded = load_state(state_file, settings)
    assert reloaded.local_coordinator.next_request_id == 8


def test_failed_command_does_not_save(state_file):
    assert run(state_file, "create-draw") == 0
    before = json.loads(open(state_file, encoding="utf-8").read())
    assert run(state_file, "set-tiers", "--draw", "0", "--tier", "1:6000", "--tier", "1:5000") == 1
    assert json.loads(open(state_file, encoding="utf-8").read()) == before


def test_update_randomness_config(state_file):
    assert run(state_file, "update-randomness-config", "--subscription-id", "999", "--native-payment", "true") == 0
    state = load_state(state_file, Settings.from_env(state_file_override=state_file))
    assert state.manager.randomness_config.subscription_id == 999
    assert state.manager.randomness_config.native_payment is True


def test_settings_from_env(monkeypatch, state_file):
    monkeypatch.setenv("LUCKY_DRAW_OWNER", "operator")
    monkeypatch.setenv("VRF_REQUEST_CONFIRMATIONS", "5")
    monkeypatch.setenv("VRF_NATIVE_PAYMENT", "true")
    s = Settings.from_env()
    assert s.owner == derive_address("operator")
    assert s.randomness.request_confirmations == 5
    assert s.randomness.native_payment is True
    assert s.state_file == "lucky_draw_state.json"

    monkeypatch.setenv("VRF_CALLBACK_GAS_LIMIT", "lots")
    with pytest.raises(RuntimeError, match="VRF_CALLBACK_GAS_LIMIT"):
        Settings.from_env()
