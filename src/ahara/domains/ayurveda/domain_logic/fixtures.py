"""Routing between canned fixture plans and live generation.

A small table of showcase patients is answered with a fixed plan before any
LLM work happens. ``select_route`` is a pure predicate over the patient data,
so the choice can be tested without running the generator.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Mapping, Union

from ahara.domains.ayurveda.domain_logic.library import CannedFixture, load_fixtures


@dataclass(frozen=True)
class FixtureRoute:
    fixture: CannedFixture

    def plan(self) -> dict[str, Any]:
        """A fresh copy of the canned plan."""
        return copy.deepcopy(self.fixture.plan)


@dataclass(frozen=True)
class LiveRoute:
    pass


Route = Union[FixtureRoute, LiveRoute]


def select_route(
    patient: Mapping[str, Any] | None,
    fixtures: tuple[CannedFixture, ...] | None = None,
) -> Route:
    """Pick the fixture route when the id or name matches a canned fixture.

    Matching is on the exact ``_id`` or a case-insensitive name substring.
    """
    data = patient or {}
    raw_id = data.get("_id")
    patient_id = str(raw_id) if raw_id is not None else None
    name = data.get("name")
    name = name if isinstance(name, str) else None

    for fixture in fixtures if fixtures is not None else load_fixtures():
        if fixture.matches(patient_id, name):
            return FixtureRoute(fixture)
    return LiveRoute()
