from __future__ import annotations

import argparse
import logging
from typing import Callable, List, Optional

from .addresses import resolve_principal
from .config import Settings
from .draw import DrawStatus
from .errors import LuckyDrawError
from .project_constants import BASIS_POINTS, NO_TIER
from .randomness import RandomnessConfig
from .state import LedgerState, load_state, save_state
from .tiers import parse_tier_arg
from .token import parse_display, to_display
from .verify import verify_audit, write_audit

log = logging.getLogger("lucky_draw")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _caller(args: argparse.Namespace, settings: Settings) -> str:
    return resolve_principal(args.as_) if args.as_ else settings.owner


def _amount(text: str, state: LedgerState, raw: bool) -> int:
    return int(text) if raw else parse_display(text, state.default_token.decimals)


def _fmt(amount: int, state: LedgerState) -> str:
    token = state.default_token
    return f"{to_display(amount, token.decimals)} {token.symbol}"


def cmd_create_draw(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    token = resolve_principal(args.token) if args.token else state.default_token.address
    draw_id = state.manager.create_draw(caller, token)
    print(f"Created draw #{draw_id} (token {token})")
    return 0


def cmd_set_tiers(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    tiers = [parse_tier_arg(t) for t in args.tier]
    state.manager.set_tiers(caller, args.draw, tiers)
    total = sum(t.win_probability for t in tiers)
    for i, t in enumerate(tiers):
        print(f"  Tier {i + 1}: {_fmt(t.prize_amount, state)} | {t.win_probability / 100}% win chance")
    print(f"  Remaining {(BASIS_POINTS - total) / 100}% will receive the default prize")
    return 0


def cmd_set_default_prize(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    amount = _amount(args.amount, state, args.raw)
    state.manager.set_default_prize(caller, args.draw, amount)
    print(f"Default prize for draw #{args.draw}: {_fmt(amount, state) if amount else 'disabled'}")
    return 0


def cmd_mint(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    to = resolve_principal(args.to) if args.to else caller
    amount = _amount(args.amount, state, args.raw)
    state.default_token.mint(to, amount)
    print(f"Minted {_fmt(amount, state)} to {to}")
    return 0


def cmd_approve(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    amount = _amount(args.amount, state, args.raw)
    state.default_token.approve(caller, state.manager.address, amount)
    print(f"Approved {_fmt(amount, state)} for the draw manager")
    return 0


def cmd_fund_draw(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    amount = _amount(args.amount, state, args.raw)
    manager = state.manager
    manager.fund_draw(caller, args.draw, amount)
    info = manager.get_draw(args.draw)
    required = manager.get_max_payout(args.draw)
    print(f"Total funded amount: {_fmt(info.funded_amount, state)}")
    print(f"Max possible payout: {_fmt(required, state)}")
    if info.funded_amount < required:
        print(f"Still need {_fmt(required - info.funded_amount, state)} to cover the worst case")
    return 0


def cmd_whitelist(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    users = [resolve_principal(u) for u in args.users]
    state.manager.set_whitelist_batch(caller, users, not args.remove)
    verb = "Removed" if args.remove else "Whitelisted"
    for u in users:
        print(f"{verb}: {u}")
    return 0


def cmd_pause(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    state.manager.pause(caller)
    print("Entries paused")
    return 0


def cmd_unpause(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    state.manager.unpause(caller)
    print("Entries resumed")
    return 0


def cmd_enter(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    request_id = state.manager.enter(caller, args.draw)
    print(f"Entered draw #{args.draw}; randomness request id: {request_id}")
    return 0


def cmd_fulfill(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    manager = state.manager
    local = state.local_coordinator
    if local is None:
        # remote oracle: pull the delivered words and hand them to the callback
        fulfilled, words = state.coordinator.get_request_status(args.request)
        if not fulfilled:
            print(f"Request {args.request} not fulfilled yet")
            return 2
        outcome = manager.fulfill_random_words(args.request, words)
    elif args.random is not None:
        outcome = local.fulfill(args.request, [int(args.random, 0)])
    else:
        outcome, word, seed_hash_hex = local.fulfill_from_seed(args.request, args.seed)
        print(f"Seed SHA-256 : {seed_hash_hex}")
        print(f"Random word  : {word}")

    print(f"Roll         : {outcome.roll}")
    print(f"Prize        : tier={_tier_label(outcome.tier_index)} amount={_fmt(outcome.prize_amount, state)}")
    return 0


def _tier_label(tier_index: int) -> str:
    return "default" if tier_index == NO_TIER else str(tier_index + 1)


def cmd_close_draw(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    state.manager.close_draw(caller, args.draw)
    print(f"Draw #{args.draw} closed")
    return 0


def cmd_cancel_draw(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    refund = state.manager.cancel_draw(caller, args.draw)
    print(f"Draw #{args.draw} cancelled; refunded {_fmt(refund, state)} to owner")
    return 0


def cmd_withdraw_leftover(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    recipient = resolve_principal(args.recipient) if args.recipient else caller
    amount = state.manager.withdraw_leftover(caller, args.draw, recipient)
    if amount == 0:
        print("No leftover to withdraw!")
    else:
        print(f"Withdrew {_fmt(amount, state)} to {recipient}")
    return 0


def cmd_update_randomness_config(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    current = state.manager.randomness_config
    config = RandomnessConfig(
        subscription_id=args.subscription_id if args.subscription_id is not None else current.subscription_id,
        key_hash=args.key_hash or current.key_hash,
        callback_gas_limit=args.callback_gas_limit or current.callback_gas_limit,
        request_confirmations=args.request_confirmations or current.request_confirmations,
        native_payment=current.native_payment if args.native_payment is None else args.native_payment == "true",
    )
    state.manager.update_randomness_config(caller, config)
    print("Randomness config updated:")
    for key, value in config.to_dict().items():
        print(f"  {key}: {value}")
    return 0


def cmd_draw_info(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    manager = state.manager
    info = manager.get_draw(args.draw)
    print("========================================")
    print(f"Draw #{args.draw}")
    print("========================================")
    print(f"Status            : {DrawStatus(info.status).name.title()}")
    print(f"Token             : {info.token}")
    print(f"Funded Amount     : {_fmt(info.funded_amount, state)}")
    print(f"Total Distributed : {_fmt(info.total_distributed, state)}")
    print(f"Available Funds   : {_fmt(info.available_funds, state)}")
    print(f"Default Prize     : {_fmt(info.default_prize, state) if info.default_prize else 'not set'}")
    print(f"Entrant Count     : {info.entrant_count}")
    print(f"Tier Count        : {info.tier_count}")

    for i in range(info.tier_count):
        tier = manager.get_tier(args.draw, i)
        print(f"Tier {i + 1}: {_fmt(tier.prize_amount, state)} | {tier.win_probability / 100}%"
              f" | winners {tier.winners_count} | paid {_fmt(tier.total_paid, state)}")
    if info.tier_count:
        remaining = BASIS_POINTS - manager.get_total_tier_probability(args.draw)
        print(f"Default Prize Probability: {remaining / 100}%")

    expected_total, _, expected_default = manager.get_expected_payout(args.draw)
    print("----------------------------------------")
    print(f"Expected payout   : {_fmt(expected_total, state)} (default {_fmt(expected_default, state)})")
    print(f"Max payout        : {_fmt(manager.get_max_payout(args.draw), state)}")
    return 0


def cmd_audit(args: argparse.Namespace, state: LedgerState, caller: str) -> int:
    audit = write_audit(state.manager, args.draw, args.out)
    print(f"Wrote audit for draw #{args.draw} ({len(audit['results'])} results): {args.out}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("AUDIT VERIFIED")
    print(f"Draw              : #{result['draw_id']}")
    print(f"Results checked   : {result['results_checked']}")
    print(f"Total distributed : {result['total_distributed']}")
    print(f"Winners per tier  : {result['winners_per_tier']}")
    return 0


def _with_state(
    func: Callable[[argparse.Namespace, LedgerState, str], int], mutates: bool = True
) -> Callable[[argparse.Namespace], int]:
    def run(args: argparse.Namespace) -> int:
        settings = Settings.from_env(state_file_override=args.state, rpc_url_override=args.rpc_url)
        state = load_state(settings.state_file, settings)
        log.debug("State file: %s (owner %s)", settings.state_file, settings.owner)
        try:
            code = func(args, state, _caller(args, settings))
            if mutates:
                save_state(settings.state_file, state)
            return code
        finally:
            state.close()

    return run


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lucky-draw",
        description="Whitelisted, tiered prize draw ledger.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--state", default=None, help="State file (else LUCKY_DRAW_STATE_FILE).")
    p.add_argument("--rpc-url", default=None, help="Remote randomness oracle URL (else env).")
    p.add_argument(
        "--as",
        dest="as_",
        default=None,
        help="Caller address or label (defaults to the owner).",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    def draw_cmd(name: str, help_: str, func, mutates: bool = True) -> argparse.ArgumentParser:
        sp = sub.add_parser(name, help=help_)
        sp.add_argument("--draw", required=True, type=int, help="Draw id.")
        sp.set_defaults(func=_with_state(func, mutates))
        return sp

    def amount_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--amount", required=True, help="Token amount (display units).")
        sp.add_argument("--raw", action="store_true", help="Amount is in raw units.")

    c = sub.add_parser("create-draw", help="Create a new draw.")
    c.add_argument("--token", default=None, help="Token address (defaults to the test token).")
    c.set_defaults(func=_with_state(cmd_create_draw))

    t = draw_cmd("set-tiers", "Replace a draw's prize tiers.", cmd_set_tiers)
    t.add_argument(
        "--tier",
        action="append",
        required=True,
        help="PRIZE:BPS in raw units and basis points, e.g. 50000000:500. Repeat per tier.",
    )

    d = draw_cmd("set-default-prize", "Set the consolation prize (0 disables).", cmd_set_default_prize)
    amount_args(d)

    f = draw_cmd("fund-draw", "Fund a draw's prize pool.", cmd_fund_draw)
    amount_args(f)

    m = sub.add_parser("mint", help="Mint test tokens.")
    m.add_argument("--to", default=None, help="Recipient (defaults to the caller).")
    amount_args(m)
    m.set_defaults(func=_with_state(cmd_mint))

    a = sub.add_parser("approve", help="Approve the draw manager to pull tokens.")
    amount_args(a)
    a.set_defaults(func=_with_state(cmd_approve))

    w = sub.add_parser("whitelist", help="Add or remove whitelisted participants.")
    w.add_argument("users", nargs="+", help="Addresses or labels.")
    w.add_argument("--remove", action="store_true", help="Remove instead of add.")
    w.set_defaults(func=_with_state(cmd_whitelist))

    sub.add_parser("pause", help="Pause new entries.").set_defaults(func=_with_state(cmd_pause))
    sub.add_parser("unpause", help="Resume entries.").set_defaults(func=_with_state(cmd_unpause))

    draw_cmd("enter", "Enter a draw as the caller.", cmd_enter)

    fl = sub.add_parser("fulfill", help="Deliver randomness for a pending request.")
    fl.add_argument("--request", required=True, type=int, help="Request id.")
    src = fl.add_mutually_exclusive_group()
    src.add_argument("--random", default=None, help="Random word (decimal or 0x hex).")
    src.add_argument("--seed", default="", help="Public seed; the word is sha256(seed:request).")
    fl.set_defaults(func=_with_state(cmd_fulfill))

    draw_cmd("close-draw", "Close a draw to new entries.", cmd_close_draw)
    draw_cmd("cancel-draw", "Cancel a draw and refund the owner.", cmd_cancel_draw)

    wl = draw_cmd("withdraw-leftover", "Withdraw undistributed funds of a closed draw.", cmd_withdraw_leftover)
    wl.add_argument("--recipient", default=None, help="Recipient (defaults to the caller).")

    u = sub.add_parser("update-randomness-config", help="Update randomness request settings.")
    u.add_argument("--subscription-id", type=int, default=None)
    u.add_argument("--key-hash", default=None)
    u.add_argument("--callback-gas-limit", type=int, default=None)
    u.add_argument("--request-confirmations", type=int, default=None)
    u.add_argument("--native-payment", choices=["true", "false"], default=None)
    u.set_defaults(func=_with_state(cmd_update_randomness_config))

    draw_cmd("draw-info", "Show a draw's state.", cmd_draw_info, mutates=False)

    au = draw_cmd("audit", "Write an audit JSON for a draw.", cmd_audit, mutates=False)
    au.add_argument("--out", default="audit.json", help="Audit output JSON path.")

    v = sub.add_parser("verify", help="Verify an existing audit JSON deterministically.")
    v.add_argument("--audit", required=True, help="Path to audit JSON.")
    v.set_defaults(func=cmd_verify)

    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except LuckyDrawError as e:
        print(f"error: {type(e).__name__}: {e}")
        code = 1
    raise SystemExit(code)
