"""
@file classifier.py
@brief Heuristic screen classifier over UI snapshots.

Each known screen kind has a profile of weighted anchors. Positive
anchors add their weight when present, disqualifying anchors (evidence
of a different screen) subtract. Scores are clamped to [0, 1] and the
best kind wins only if it clears MIN_CONFIDENCE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Sequence

from .element import UIElement, collect_texts, find_first
from .labels import DEFAULT_LABELS, Labels

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.5


class ScreenKind(str, Enum):
    MAIN_HUB = "main_hub"
    RESOURCE_SELECTION_LIST = "resource_selection_list"
    RESOURCE_CARD = "resource_card"
    TASK_LIST = "task_list"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ScreenResult:
    kind: ScreenKind
    confidence: float
    matched_anchors: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_known(self) -> bool:
        return self.kind is not ScreenKind.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "confidence": self.confidence,
            "matched_anchors": sorted(self.matched_anchors),
        }


UNKNOWN_EMPTY = ScreenResult(ScreenKind.UNKNOWN, 0.0, frozenset())


class SnapshotView:
    """Flattened, case-folded view of one snapshot, built once per classification."""

    def __init__(self, root: UIElement):
        self.root = root
        self.texts: List[str] = collect_texts(root)
        self._folded = [t.lower() for t in self.texts]

    def contains(self, needle: str) -> bool:
        low = needle.lower()
        return any(low in t for t in self._folded)

    def equals(self, value: str) -> bool:
        low = value.lower()
        return any(low == t for t in self._folded)

    def has_node(self, predicate: Callable[[UIElement], bool]) -> bool:
        return find_first(self.root, predicate) is not None


@dataclass(frozen=True)
class Anchor:
    """
    One piece of evidence for (weight > 0) or against (weight < 0) a screen kind.

    Disqualifying anchors never appear in matched_anchors.
    """
    name: str
    weight: float
    test: Callable[[SnapshotView], bool]


@dataclass(frozen=True)
class ScreenProfile:
    kind: ScreenKind
    anchors: Sequence[Anchor]

    def score(self, view: SnapshotView) -> ScreenResult:
        total = 0.0
        matched: List[str] = []
        for anchor in self.anchors:
            if not anchor.test(view):
                continue
            total += anchor.weight
            if anchor.weight > 0:
                matched.append(anchor.name)
        clamped = round(min(1.0, max(0.0, total)), 4)
        return ScreenResult(self.kind, clamped, frozenset(matched))


def _contains(text: str) -> Callable[[SnapshotView], bool]:
    return lambda v: v.contains(text)


def _equals(text: str) -> Callable[[SnapshotView], bool]:
    return lambda v: v.equals(text)


def build_catalogue(location_name: str, task_name: str, labels: Labels = DEFAULT_LABELS) -> List[ScreenProfile]:
    """
    Build the fixed screen catalogue for one (location, task) target.

    Profiles are listed closest-to-goal first; on equal scores the first wins.
    """
    search_id = labels.search_id_fragment.lower()
    search_desc = labels.search_description.lower()
    nav_ids = tuple(labels.hub_nav_ids)

    def has_search_region(view: SnapshotView) -> bool:
        return view.has_node(
            lambda n: bool(
                (n.resource_id and search_id in n.resource_id.lower())
                or (n.description and search_desc in n.description.lower())
            )
        )

    def has_hub_nav(view: SnapshotView) -> bool:
        return view.has_node(
            lambda n: bool(n.resource_id and any(i in n.resource_id for i in nav_ids))
        )

    def has_enroll(view: SnapshotView) -> bool:
        return view.contains(labels.enroll) or view.contains(labels.schedule)

    task_list = ScreenProfile(ScreenKind.TASK_LIST, [
        Anchor(f"TASK:{task_name}", 0.5, _contains(task_name)),
        Anchor(labels.back_to_tasks, 0.25, _contains(labels.back_to_tasks)),
        Anchor(labels.choose_time, 0.25, _contains(labels.choose_time)),
        Anchor(labels.registration, 0.15, _contains(labels.registration)),
    ])

    resource_card = ScreenProfile(ScreenKind.RESOURCE_CARD, [
        Anchor(f"LOCATION:{location_name}", 0.25, _equals(location_name)),
        Anchor(labels.enroll, 0.4, has_enroll),
        Anchor(labels.location_region, 0.15, _contains(labels.location_region)),
        Anchor(f"!{labels.selection_header}", -0.3, _contains(labels.selection_header)),
    ])

    selection_list = ScreenProfile(ScreenKind.RESOURCE_SELECTION_LIST, [
        Anchor(labels.selection_header, 0.5, _contains(labels.selection_header)),
        Anchor(labels.map_toggle, 0.2, _equals(labels.map_toggle)),
        Anchor("SearchField", 0.2, has_search_region),
        Anchor(f"!{labels.enroll}", -0.4, _contains(labels.enroll)),
    ])

    main_hub = ScreenProfile(ScreenKind.MAIN_HUB, [
        Anchor("BottomNavigation", 0.3, has_hub_nav),
        Anchor(labels.category_tab, 0.2, _equals(labels.category_tab)),
    ] + [
        Anchor(tab, 0.15 if i == 0 else 0.2, _equals(tab))
        for i, tab in enumerate(labels.hub_tabs)
    ] + [
        Anchor(f"!{labels.selection_header}", -0.4, _contains(labels.selection_header)),
        Anchor(f"!{labels.enroll}", -0.3, _contains(labels.enroll)),
    ])

    return [task_list, resource_card, selection_list, main_hub]


class ScreenClassifier:
    """
    Scores a snapshot against the screen catalogue.

    Classification is pure: the same snapshot always yields the same result.
    """

    def __init__(
        self,
        location_name: str,
        task_name: str,
        labels: Labels = DEFAULT_LABELS,
        min_confidence: float = MIN_CONFIDENCE,
    ):
        self.location_name = location_name
        self.task_name = task_name
        self.labels = labels
        self.min_confidence = min_confidence
        self._profiles = build_catalogue(location_name, task_name, labels)

    def score_all(self, snapshot: Optional[UIElement]) -> List[ScreenResult]:
        """Raw per-kind scores in catalogue order (diagnostics)."""
        if snapshot is None:
            return []
        view = SnapshotView(snapshot)
        return [profile.score(view) for profile in self._profiles]

    def classify(self, snapshot: Optional[UIElement]) -> ScreenResult:
        if snapshot is None:
            logger.warning("classify: snapshot is empty")
            return UNKNOWN_EMPTY

        results = self.score_all(snapshot)
        best = results[0]
        for result in results[1:]:
            if result.confidence > best.confidence:
                best = result

        logger.debug(
            f"classify: best={best.kind.value} confidence={best.confidence:.2f} "
            f"anchors={sorted(best.matched_anchors)}"
        )

        if best.confidence >= self.min_confidence:
            return best
        logger.warning(f"Confidence too low ({best.confidence:.2f}), returning UNKNOWN")
        return ScreenResult(ScreenKind.UNKNOWN, best.confidence, best.matched_anchors)

    def task_visible_with_confirmation(self, snapshot: Optional[UIElement]) -> bool:
        """
        True when the target task label and at least one task-list marker are both visible.
        """
        if snapshot is None:
            return False
        view = SnapshotView(snapshot)
        if not view.contains(self.task_name):
            return False
        return any(view.contains(marker) for marker in self.labels.task_list_markers)
