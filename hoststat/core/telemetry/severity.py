from __future__ import annotations

import math
from enum import Enum

ELEVATED_AT = 50.0
CRITICAL_AT = 80.0


class Severity(str, Enum):
    NORMAL = "NORMAL"
    ELEVATED = "ELEVATED"
    CRITICAL = "CRITICAL"


def classify(percentage: float) -> Severity:
    """Cosmetic tag for a 0-100 reading. Thresholds are inclusive on the high side."""
    pct = float(percentage)
    if math.isnan(pct):
        return Severity.NORMAL
    pct = min(100.0, max(0.0, pct))
    if pct >= CRITICAL_AT:
        return Severity.CRITICAL
    if pct >= ELEVATED_AT:
        return Severity.ELEVATED
    return Severity.NORMAL
