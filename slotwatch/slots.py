"""
@file slots.py
@brief Slot extractor for the terminal availability check.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .element import UIElement, collect_texts
from .labels import DEFAULT_LABELS, Labels

logger = logging.getLogger(__name__)

# "7 февраля, Сб": day number, month name, two-letter weekday
DATE_PATTERN = re.compile(r"\d+\s+[а-яА-ЯёЁ]+,\s+[а-яА-ЯёЁ]{2}")


@dataclass(frozen=True)
class SlotReport:
    found: bool
    labels: Tuple[str, ...] = ()
    marker_present: bool = False

    @property
    def labels_or_none(self) -> Optional[List[str]]:
        return list(self.labels) if self.found else None


def match_dates(texts: Iterable[str]) -> List[str]:
    """Texts containing a date label, deduplicated in first-seen order."""
    seen = set()
    result: List[str] = []
    for text in texts:
        if not DATE_PATTERN.search(text):
            continue
        if text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


def extract_slots(
    snapshot: Optional[UIElement],
    labels: Labels = DEFAULT_LABELS,
    accept_dates_with_marker: bool = False,
) -> SlotReport:
    """
    Decide availability from the visible texts of a task-list snapshot.

    Args:
        snapshot: Current snapshot (the caller has confirmed the task label is visible)
        labels: Anchor vocabulary, provides the no-availability marker
        accept_dates_with_marker: Accept matched dates even when the
            no-availability marker is also on screen. Prone to false
            positives; off by default.

    Returns:
        SlotReport with found flag and date labels
    """
    texts = collect_texts(snapshot)
    marker = labels.no_availability.lower()
    marker_present = any(marker in t.lower() for t in texts)
    dates = match_dates(texts)

    if dates and not marker_present:
        return SlotReport(True, tuple(dates), False)

    if dates and accept_dates_with_marker:
        logger.warning(
            f"Accepting {len(dates)} date(s) although '{labels.no_availability}' is visible"
        )
        return SlotReport(True, tuple(dates), True)

    return SlotReport(False, (), marker_present)
