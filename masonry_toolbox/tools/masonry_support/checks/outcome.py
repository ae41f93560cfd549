from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict

from ..precision import round12


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of one structural check.

    utilization is applied/resistance x 100. A check that cannot be evaluated
    (missing capacity data, failed equilibrium) reports an infinite utilization.
    """

    name: str
    utilization: float
    passes: bool
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        u = self.utilization
        return {
            "name": self.name,
            "utilization": u if math.isfinite(u) else None,
            "passes": self.passes,
            "details": {k: (v if not isinstance(v, float) or math.isfinite(v) else None) for k, v in self.details.items()},
        }


def outcome(name: str, applied: float, resistance: float, **details: Any) -> VerificationOutcome:
    """Standard ratio check: passes iff applied/resistance x 100 <= 100 (equality passes)."""
    if resistance <= 0.0:
        return VerificationOutcome(name=name, utilization=math.inf, passes=False, details=details)
    u = round12(applied / resistance * 100.0)
    return VerificationOutcome(name=name, utilization=u, passes=u <= 100.0, details=details)


def failed(name: str, reason: str, **details: Any) -> VerificationOutcome:
    details["reason"] = reason
    return VerificationOutcome(name=name, utilization=math.inf, passes=False, details=details)
