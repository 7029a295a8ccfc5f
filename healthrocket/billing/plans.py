"""Subscription plan tiers offered in the profile menu."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    monthly_price: float
    description: str
    prize_eligible: bool = False
    coming_soon: bool = False

    @property
    def price(self) -> str:
        return f"${self.monthly_price:.2f}/month" if self.monthly_price else "$0/month"

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["price"] = self.price
        return d


PLANS: tuple[Plan, ...] = (
    Plan("free", "Free Plan", 0.0, "Start your health optimization journey"),
    Plan("pro", "Pro Plan", 59.95, "Level up with prizes and premium features", prize_eligible=True),
    Plan(
        "pro_family", "Pro + Family", 89.95, "Gamify health for your entire family",
        prize_eligible=True, coming_soon=True,
    ),
    Plan(
        "pro_team", "Pro + Team", 149.95, "Optimize and gamify health for your entire team",
        prize_eligible=True, coming_soon=True,
    ),
)


def get_plan(plan_id: str) -> Plan | None:
    return next((p for p in PLANS if p.id == plan_id), None)
