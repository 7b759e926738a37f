from typing import Dict

# Daily request limits per subscription tier (rolling 24h window from first use)
# -1 means unlimited
UNLIMITED = -1

PLAN_LIMITS: Dict[str, Dict[str, int]] = {
    "anonymous": {
        "max_requests_per_day": 5,
    },
    "free": {
        "max_requests_per_day": 10,
    },
    "pay_per_use": {
        "max_requests_per_day": UNLIMITED,
    },
    "unlimited": {
        "max_requests_per_day": UNLIMITED,
    },
}

SUBSCRIPTION_TIERS = ("free", "pay_per_use", "unlimited")
DEFAULT_SUBSCRIPTION_TIER = "free"

RATE_LIMIT_WINDOW_HOURS = 24


def get_plan_limit(plan_tier: str, limit_type: str = "max_requests_per_day") -> int:
    """Get the limit value for a specific plan and limit type."""
    return PLAN_LIMITS.get(plan_tier, PLAN_LIMITS["free"]).get(limit_type, 0)


def is_unlimited(plan_tier: str) -> bool:
    return get_plan_limit(plan_tier) == UNLIMITED
