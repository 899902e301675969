"""
@file outcome.py
@brief Immutable result record of one monitoring cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class CheckOutcome:
    """
    One record per resolved cycle.

    @param timestamp Wall-clock seconds since the epoch when the cycle resolved
    @param success True when the check itself completed (slots found or not)
    @param slots_found True when availability was detected
    @param slot_labels Date labels when slots_found, otherwise None
    @param duration_ms Cycle duration
    @param error Failure description for unsuccessful cycles
    """
    timestamp: float
    success: bool
    slots_found: bool
    slot_labels: Optional[Tuple[str, ...]] = None
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": datetime.fromtimestamp(self.timestamp).isoformat(timespec="seconds"),
            "success": self.success,
            "slots_found": self.slots_found,
            "slot_labels": list(self.slot_labels) if self.slot_labels is not None else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }
