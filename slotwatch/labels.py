"""
@file labels.py
@brief Anchor vocabulary of the monitored application.

Every visible string or id fragment the engine matches against lives
here so that a layout or copy change in the target app is a config
change rather than a code change.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Tuple

from .exceptions import ConfigError


@dataclass(frozen=True)
class Labels:
    # Main hub (bottom navigation)
    category_tab: str = "Склады"
    category_tab_id: str = "warehouseTab"
    hub_nav_ids: Tuple[str, ...] = ("warehouseTab", "paymentTab", "recordsTab")
    hub_tabs: Tuple[str, ...] = ("Выплаты", "Записи")

    # Resource selection list
    selection_header: str = "Выберите склад"
    map_toggle: str = "Карта"
    search_id_fragment: str = "search"
    search_description: str = "поиск"
    search_input_id: str = "search_src_text"

    # Resource card
    enroll: str = "Записаться"
    schedule: str = "ГРАФИК"
    location_region: str = "Московская область"

    # Task list
    back_to_tasks: str = "К списку работ"
    choose_time: str = "Выберите время"
    registration: str = "регистрация"

    # Availability
    no_availability: str = "НЕТ МЕСТ"

    @property
    def task_list_markers(self) -> Tuple[str, ...]:
        """Secondary markers that confirm the task list is on screen."""
        return (self.back_to_tasks, self.choose_time, self.registration)

    def with_overrides(self, overrides: Dict[str, Any]) -> Labels:
        """Create a new Labels instance with overrides applied."""
        if not overrides:
            return self
        known = {f.name: f for f in fields(self)}
        unknown = set(overrides) - set(known)
        if unknown:
            raise ConfigError(f"labels: unknown keys: {sorted(unknown)}. Allowed: {sorted(known)}")
        values: Dict[str, Any] = {}
        for key, value in overrides.items():
            if isinstance(getattr(self, key), tuple):
                if isinstance(value, str):
                    value = (value,)
                values[key] = tuple(str(v) for v in value)
            else:
                values[key] = str(value)
        return replace(self, **values)


DEFAULT_LABELS = Labels()
