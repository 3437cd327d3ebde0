"""
Subscription plan catalogue.

Prices are whole USD. A limit of -1 means unlimited.
Legacy plan names (basic, pro) are still stored on some companies and map
onto the current catalogue.
"""

from typing import Dict, Optional

UNLIMITED = -1

PLAN_CONFIGS: Dict[str, dict] = {
    "free": {
        "name": "free",
        "label": "Free",
        "monthly_price": 0,
        "yearly_price": 0,
        "max_interviews": 10,
        "max_users": 2,
    },
    "starter": {
        "name": "starter",
        "label": "Starter",
        "monthly_price": 29,
        "yearly_price": 290,
        "max_interviews": 50,
        "max_users": 5,
    },
    "scale": {
        "name": "scale",
        "label": "Scale",
        "monthly_price": 79,
        "yearly_price": 790,
        "max_interviews": 200,
        "max_users": 25,
    },
    "enterprise": {
        "name": "enterprise",
        "label": "Enterprise",
        "monthly_price": 199,
        "yearly_price": 1990,
        "max_interviews": 1000,
        "max_users": 100,
    },
    "custom": {
        "name": "custom",
        "label": "Custom",
        "monthly_price": 0,
        "yearly_price": 0,
        "max_interviews": UNLIMITED,
        "max_users": UNLIMITED,
    },
}

LEGACY_ALIASES = {
    "basic": "starter",
    "pro": "scale",
}


def normalize_plan_name(plan_name: Optional[str]) -> str:
    """Resolve aliases and unknown names to a catalogue key."""
    name = (plan_name or "").strip().lower()
    name = LEGACY_ALIASES.get(name, name)
    return name if name in PLAN_CONFIGS else "free"


def get_plan_config(plan_name: Optional[str]) -> dict:
    return dict(PLAN_CONFIGS[normalize_plan_name(plan_name)])


def format_limit(value: int) -> str:
    """Human readable limit ("Unlimited" for -1)."""
    return "Unlimited" if value == UNLIMITED else str(value)


def is_within_limit(used: int, limit: int) -> bool:
    """True when one more unit still fits under the limit."""
    if limit == UNLIMITED:
        return True
    return used < limit


def list_plans() -> list:
    return [dict(config) for config in PLAN_CONFIGS.values()]
