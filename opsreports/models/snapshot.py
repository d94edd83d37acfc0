"""Read-only view of the console's domain data."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]


@dataclass(frozen=True)
class DomainSnapshot:
    """Events, users, teams and product types as the console holds them.

    The engine only reads from a snapshot. Records keep the console's own
    camelCase keys (``startTime``, ``createdBy``, ``teamId`` ...).
    """

    events: Tuple[Record, ...] = field(default_factory=tuple)
    users: Tuple[Record, ...] = field(default_factory=tuple)
    teams: Tuple[Record, ...] = field(default_factory=tuple)
    product_types: Tuple[Record, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for name in ("events", "users", "teams", "product_types"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    def user_by_id(self) -> Dict[str, Record]:
        return {user.get("id"): user for user in self.users}

    def team_names(self) -> Dict[str, str]:
        return {team.get("id"): team.get("name") for team in self.teams}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "DomainSnapshot":
        data = data or {}
        return cls(
            events=_records(data.get("events")),
            users=_records(data.get("users")),
            teams=_records(data.get("teams")),
            product_types=_records(data.get("productTypes", data.get("product_types"))),
        )

    @classmethod
    def from_persisted_state(cls, raw: Optional[str]) -> "DomainSnapshot":
        """Build a snapshot from the console's persisted ``{"state": ..., "version": n}`` blob."""
        if not raw:
            return cls()
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.error("Persisted console state is not valid JSON, using an empty snapshot", exc_info=True)
            return cls()
        if not isinstance(payload, dict):
            logger.warning("Persisted console state has unexpected shape %s", type(payload).__name__)
            return cls()
        state = payload.get("state", payload)
        return cls.from_dict(state if isinstance(state, dict) else {})


def _records(value: Any) -> List[Record]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, Mapping)]
