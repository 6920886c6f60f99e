from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from .manager import LuckyDrawManager
from .project_constants import BASIS_POINTS, NO_TIER
from .resolution import resolve
from .tiers import TierInput


def build_audit(manager: LuckyDrawManager, draw_id: int) -> Dict[str, Any]:
    draw = manager.get_draw(draw_id)
    tiers = [manager.get_tier(draw_id, i) for i in range(draw.tier_count)]
    resolved = [(addr, r) for addr, r in manager.get_results(draw_id) if r.has_result]

    return {
        "metadata": {
            "tool": "lucky-draw-ledger",
            "version": "1.0.0",
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "draw_id": draw_id,
            "status": draw.status.name,
            "token": draw.token,
            "basis_points": BASIS_POINTS,
            "funded_amount": str(draw.funded_amount),
            "total_distributed": str(draw.total_distributed),
            "entrant_count": draw.entrant_count,
            "default_prize": str(draw.default_prize),
        },
        "tiers": [
            {
                "prize_amount": str(t.prize_amount),
                "win_probability": t.win_probability,
                "winners_count": t.winners_count,
                "total_paid": str(t.total_paid),
            }
            for t in tiers
        ],
        # Sorted by request id so anyone can replay in issue order.
        "results": [
            {
                "participant": addr,
                "request_id": str(r.request_id),
                "random_value": str(r.random_value),  # big int; store as string for safety
                "tier_index": "default" if r.tier_index == NO_TIER else r.tier_index,
                "prize_amount": str(r.prize_amount),
            }
            for addr, r in sorted(resolved, key=lambda item: item[1].request_id or 0)
        ],
    }


def write_audit(manager: LuckyDrawManager, draw_id: int, out_path: str) -> Dict[str, Any]:
    audit = build_audit(manager, draw_id)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(audit, f, indent=2)
    return audit


def verify_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)
    return verify_audit_data(audit)


def verify_audit_data(audit: Dict[str, Any]) -> Dict[str, Any]:
    meta = audit["metadata"]
    default_prize = int(meta["default_prize"])
    tiers = [
        TierInput(prize_amount=int(t["prize_amount"]), win_probability=int(t["win_probability"]))
        for t in audit["tiers"]
    ]
    cancelled = meta["status"] == "CANCELLED"

    winners = [0] * len(tiers)
    paid = [0] * len(tiers)
    total = 0
    for item in audit["results"]:
        who = item["participant"]
        random_value = int(item["random_value"])
        prize_expected = int(item["prize_amount"])
        tier_expected = NO_TIER if item["tier_index"] == "default" else int(item["tier_index"])

        outcome = resolve(random_value, tiers, default_prize)
        if cancelled and prize_expected == 0 and tier_expected == NO_TIER:
            # entries delivered after cancellation are closed out with nothing paid
            continue
        if (outcome.tier_index, outcome.prize_amount) != (tier_expected, prize_expected):
            raise RuntimeError(
                f"Resolution mismatch for {who}: audit=({item['tier_index']}, {prize_expected}) "
                f"recomputed=({'default' if outcome.is_default else outcome.tier_index}, "
                f"{outcome.prize_amount})"
            )
        total += outcome.prize_amount
        if not outcome.is_default:
            winners[outcome.tier_index] += 1
            paid[outcome.tier_index] += outcome.prize_amount

    if total != int(meta["total_distributed"]):
        raise RuntimeError(
            f"Distributed mismatch: audit={meta['total_distributed']} recomputed={total}"
        )
    for i, t in enumerate(audit["tiers"]):
        if (int(t["winners_count"]), int(t["total_paid"])) != (winners[i], paid[i]):
            raise RuntimeError(
                f"Tier {i} mismatch: audit=({t['winners_count']}, {t['total_paid']}) "
                f"recomputed=({winners[i]}, {paid[i]})"
            )

    return {
        "ok": True,
        "draw_id": meta["draw_id"],
        "results_checked": len(audit["results"]),
        "total_distributed": total,
        "winners_per_tier": winners,
    }
