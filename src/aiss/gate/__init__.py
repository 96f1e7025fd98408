"""Request gating: bot filter and rate governor."""

from aiss.gate.bots import is_bot
from aiss.gate.ratelimit import FixedWindowLimiter, RateDecision, RateGovernor, hash_ip

__all__ = [
    "FixedWindowLimiter",
    "RateDecision",
    "RateGovernor",
    "hash_ip",
    "is_bot",
]
