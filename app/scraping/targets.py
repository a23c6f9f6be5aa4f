"""
State -> cities target list used to expand a batch into search tasks.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from app.domain.batch import BatchTask
from app.domain.errors import NoValidStatesError, TargetListError, UnknownStateError

logger = logging.getLogger(__name__)

DEFAULT_TARGETS_PATH = Path(__file__).resolve().parent / "config" / "top_cities_by_state.json"


def build_search_term(business_type: str, city: str, state: str) -> str:
    return f"{business_type} - {city} - {state}"


class TargetList:
    """
    Ordered mapping of canonical state names to their target cities.
    """

    def __init__(self, cities_by_state: Mapping[str, Iterable[str]]) -> None:
        self._cities: dict[str, list[str]] = {}
        for state, cities in cities_by_state.items():
            name = str(state).strip()
            city_list = [str(city).strip() for city in cities if str(city).strip()]
            if not name:
                raise TargetListError("Target list contains an empty state name.")
            self._cities[name] = city_list
        self._by_key = {name.casefold(): name for name in self._cities}

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> "TargetList":
        target_path = Path(path) if path else DEFAULT_TARGETS_PATH
        if not target_path.is_file():
            raise TargetListError(f"Target list file not found: {target_path}")
        try:
            payload = json.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise TargetListError(f"Unable to read target list {target_path}: {exc}") from exc
        if not isinstance(payload, dict) or not all(isinstance(v, list) for v in payload.values()):
            raise TargetListError(
                f"Target list {target_path} must map state names to lists of cities."
            )
        return cls(payload)

    @property
    def states(self) -> list[str]:
        return list(self._cities)

    def canonical_state(self, state: str) -> str:
        resolved = self._by_key.get(state.strip().casefold())
        if resolved is None:
            raise UnknownStateError(state)
        return resolved

    def cities(self, state: str) -> list[str]:
        return list(self._cities[self.canonical_state(state)])

    def resolve_states(self, requested: Iterable[str] | None) -> list[str]:
        """
        Canonical names for a state filter, in target-list order.

        None or an empty filter selects every state. Unknown names are logged
        and skipped; a filter that matches nothing raises NoValidStatesError.
        """

        names = [name.strip() for name in (requested or []) if name and name.strip()]
        if not names:
            if not self._cities:
                raise NoValidStatesError([])
            return self.states

        wanted: set[str] = set()
        for name in names:
            try:
                wanted.add(self.canonical_state(name))
            except UnknownStateError:
                logger.warning("Ignoring unknown state in batch filter: %s", name)
        if not wanted:
            raise NoValidStatesError(names)
        return [state for state in self._cities if state in wanted]

    def build_tasks(self, states: Iterable[str], business_type: str) -> list[BatchTask]:
        tasks: list[BatchTask] = []
        for state in states:
            for city in self._cities[state]:
                tasks.append(
                    BatchTask(
                        state=state,
                        city=city,
                        search_term=build_search_term(business_type, city, state),
                    )
                )
        return tasks
