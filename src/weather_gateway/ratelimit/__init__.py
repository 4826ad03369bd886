"""Rate limiting.

Fixed-window request quotas per caller, counted on the shared state backend
so that all gateway instances enforce the same budget.
"""

from weather_gateway.ratelimit.governor import RateDecision, RateGovernor, RatePolicy

__all__ = [
    "RateDecision",
    "RateGovernor",
    "RatePolicy",
]
