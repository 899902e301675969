"""
@file states.py
@brief Navigation states of the automation state machine.
"""

from enum import Enum


class NavigationState(str, Enum):
    """Exactly one state is current; IDLE is both initial and quiescent."""
    IDLE = "idle"
    BOOTSTRAP = "bootstrap"
    RECOVERY = "recovery"
    FIND_CATEGORY_TAB = "find_category_tab"
    FIND_SEARCH_FIELD = "find_search_field"
    TYPE_SEARCH_QUERY = "type_search_query"
    SELECT_RESOURCE = "select_resource"
    CLICK_ENROLL = "click_enroll"
    FIND_TASK_CARD = "find_task_card"
    CHECK_AVAILABILITY = "check_availability"
    REFRESH_CYCLE = "refresh_cycle"


# States in which the machine is near or at the terminal check.
NEAR_TERMINAL_STATES = frozenset({
    NavigationState.FIND_TASK_CARD,
    NavigationState.CHECK_AVAILABILITY,
    NavigationState.REFRESH_CYCLE,
})
