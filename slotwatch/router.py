"""
@file router.py
@brief Maps a classified screen to the state that makes forward progress.

The router is a pure lookup: it never mutates engine state. It is
consulted at cycle bootstrap, after recovery and during periodic re-sync.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet

from .classifier import ScreenKind, ScreenResult
from .states import NavigationState

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_FLOOR = 0.3

ROUTES: Dict[ScreenKind, NavigationState] = {
    ScreenKind.TASK_LIST: NavigationState.FIND_TASK_CARD,
    ScreenKind.RESOURCE_CARD: NavigationState.CLICK_ENROLL,
    ScreenKind.RESOURCE_SELECTION_LIST: NavigationState.FIND_SEARCH_FIELD,
    ScreenKind.MAIN_HUB: NavigationState.FIND_CATEGORY_TAB,
    ScreenKind.UNKNOWN: NavigationState.RECOVERY,
}

# States whose handlers expect to be looking at the given screen.
SCREEN_STATES: Dict[ScreenKind, FrozenSet[NavigationState]] = {
    ScreenKind.TASK_LIST: frozenset({
        NavigationState.FIND_TASK_CARD,
        NavigationState.CHECK_AVAILABILITY,
        NavigationState.REFRESH_CYCLE,
    }),
    ScreenKind.RESOURCE_CARD: frozenset({NavigationState.CLICK_ENROLL}),
    ScreenKind.RESOURCE_SELECTION_LIST: frozenset({
        NavigationState.FIND_SEARCH_FIELD,
        NavigationState.TYPE_SEARCH_QUERY,
        NavigationState.SELECT_RESOURCE,
    }),
    ScreenKind.MAIN_HUB: frozenset({NavigationState.FIND_CATEGORY_TAB}),
    ScreenKind.UNKNOWN: frozenset(),
}


def route(screen: ScreenResult) -> NavigationState:
    """Shortest path toward the task list from the recognised screen."""
    decision = ROUTES[screen.kind]
    logger.debug(f"route: {screen.kind.value} (confidence={screen.confidence:.2f}) -> {decision.value}")
    return decision


def is_safe_to_automate(screen: ScreenResult) -> bool:
    """False only for an unrecognised screen with very low confidence."""
    if screen.kind is ScreenKind.UNKNOWN and screen.confidence < LOW_CONFIDENCE_FLOOR:
        logger.warning("is_safe_to_automate: false - UNKNOWN screen with low confidence")
        return False
    return True


def is_consistent(screen: ScreenResult, state: NavigationState) -> bool:
    """True when state is one whose handler operates on the classified screen."""
    return state in SCREEN_STATES[screen.kind]
