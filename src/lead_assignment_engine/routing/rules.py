"""Assignment rules and their condition sets."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class AssignmentMethod(Enum):
    """How a matched rule picks its employee."""
    DIRECT = "direct"
    ROUND_ROBIN = "round_robin"
    WORKLOAD_BALANCED = "workload_balanced"
    SKILL_BASED = "skill_based"


class RuleType(Enum):
    """Administrative category of a rule."""
    GENERAL = "general"
    ROLE_BASED = "role_based"
    TERRITORY_BASED = "territory_based"
    VALUE_BASED = "value_based"
    SOURCE_BASED = "source_based"
    ROUND_ROBIN = "round_robin"


WILDCARD = "any"

_LIST_FIELDS = (
    "sources", "regions", "states", "cities", "countries",
    "industries", "roles", "departments", "days_of_week",
)

# Stored keys that differ from attribute names
_ALIASES = {
    "source": "sources",
    "region": "regions",
    "state": "states",
    "city": "cities",
    "country": "countries",
    "industry": "industries",
    "day_of_week": "days_of_week",
    "territory_match": "match_territory",
}


@dataclass
class RuleConditions:
    """Sparse condition set. Every field is optional; an unset field always passes.

    ``invalid`` holds stored values that could not be parsed, keyed by
    field name, so the evaluator can fail exactly that condition.
    """
    sources: Optional[Tuple[str, ...]] = None
    value_min: Optional[float] = None
    value_max: Optional[float] = None
    value_bracket: Optional[str] = None
    regions: Optional[Tuple[str, ...]] = None
    states: Optional[Tuple[str, ...]] = None
    cities: Optional[Tuple[str, ...]] = None
    countries: Optional[Tuple[str, ...]] = None
    industries: Optional[Tuple[str, ...]] = None
    roles: Optional[Tuple[str, ...]] = None
    departments: Optional[Tuple[str, ...]] = None
    lead_age_hours: Optional[float] = None
    time_of_day: Optional[str] = None
    days_of_week: Optional[Tuple[str, ...]] = None
    match_territory: bool = False
    invalid: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """True when the rule is a catch-all."""
        for f in fields(self):
            if f.name == "invalid":
                continue
            value = getattr(self, f.name)
            if value is not None and value is not False:
                return False
        return not self.invalid

    @property
    def has_value_condition(self) -> bool:
        return any(v is not None for v in (self.value_min, self.value_max, self.value_bracket))

    @classmethod
    def from_dict(cls, data: Any) -> "RuleConditions":
        """Parse the stored JSON shape without raising."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            return cls(invalid={"conditions": data})

        kwargs: Dict[str, Any] = {}
        invalid: Dict[str, Any] = {}
        known = {f.name for f in fields(cls)} - {"invalid"}

        for key, raw in data.items():
            name = _ALIASES.get(key, key)
            if name not in known or raw is None or raw == "" or raw == []:
                continue

            if name in _LIST_FIELDS:
                parsed = _parse_str_list(raw)
                if parsed is None:
                    invalid[name] = raw
                elif parsed:
                    kwargs[name] = parsed
            elif name in ("value_min", "value_max", "lead_age_hours"):
                number = _parse_number(raw)
                if number is None:
                    invalid[name] = raw
                else:
                    kwargs[name] = number
            elif name in ("value_bracket", "time_of_day"):
                if isinstance(raw, str):
                    kwargs[name] = raw.strip().lower()
                else:
                    invalid[name] = raw
            elif name == "match_territory":
                kwargs[name] = bool(raw)

        # A bare "any" source is the same as no source condition
        if kwargs.get("sources") and WILDCARD in kwargs["sources"]:
            del kwargs["sources"]

        return cls(invalid=invalid, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize set fields for storage."""
        data: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "invalid":
                continue
            value = getattr(self, f.name)
            if value is None or value is False:
                continue
            data[f.name] = list(value) if isinstance(value, tuple) else value
        data.update(self.invalid)
        return data


def _parse_str_list(raw: Any) -> Optional[Tuple[str, ...]]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return None
    if not all(isinstance(item, str) for item in raw):
        return None
    return tuple(item.strip() for item in raw if item.strip())


def _parse_number(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except ValueError:
            return None
    return None


@dataclass
class AssignmentRule:
    """Branch-scoped policy mapping lead conditions to an assignment method."""
    id: str
    branch_id: str
    name: str
    priority: int  # Lower = evaluated first
    target_employee_id: Optional[str] = None
    method: AssignmentMethod = AssignmentMethod.DIRECT
    rule_type: RuleType = RuleType.GENERAL
    workload_limit: Optional[int] = None
    conditions: RuleConditions = field(default_factory=RuleConditions)
    is_active: bool = True
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_territory_oriented(self) -> bool:
        return self.rule_type == RuleType.TERRITORY_BASED or self.conditions.match_territory

    def at_limit(self, workload: int) -> bool:
        """True when a candidate with this workload may not take another lead under this rule."""
        return self.workload_limit is not None and workload >= self.workload_limit


def order_rules(rules: List[AssignmentRule]) -> List[AssignmentRule]:
    """Active rules by ascending priority; equal priorities keep input order."""
    return sorted((r for r in rules if r.is_active), key=lambda r: r.priority)
