"""Rule condition evaluation.

A rule's conditions are ANDed together. Any condition the rule leaves unset
passes, so a rule with no conditions at all matches every lead. Checks run
in a fixed order: source, value, geography, industry, lead age, time of day,
day of week, candidate role/department, territory.

Time-based conditions are evaluated against the decision time passed in by
the caller, not the lead's creation time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..core.config import EngineConfig
from ..core.errors import RuleEvaluationError
from ..storage.models import Lead
from ..team.employees import Employee
from .rules import AssignmentRule

logger = logging.getLogger(__name__)

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

# (passed, detail), or None when the rule does not set the condition
CheckOutcome = Optional[Tuple[bool, str]]


@dataclass
class ConditionCheck:
    """Outcome of one condition, used for diagnostics."""
    name: str
    passed: bool
    detail: str = ""


class ConditionEvaluator:
    """Decide whether a lead satisfies a rule for a given candidate."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._checks: List[Tuple[str, Callable[..., CheckOutcome]]] = [
            ("source", self._check_source),
            ("value", self._check_value),
            ("geography", self._check_geography),
            ("industry", self._check_industry),
            ("lead_age", self._check_lead_age),
            ("time_of_day", self._check_time_of_day),
            ("day_of_week", self._check_day_of_week),
            ("role", self._check_role),
            ("department", self._check_department),
            ("territory", self._check_territory),
        ]

    def matches(
        self,
        lead: Lead,
        rule: AssignmentRule,
        candidate: Optional[Employee],
        now: datetime
    ) -> bool:
        """Total form of :meth:`check`: malformed rules simply do not match."""
        try:
            return self.check(lead, rule, candidate, now)
        except RuleEvaluationError as e:
            logger.warning(f"Skipping malformed rule '{rule.name}': {e}")
            return False

    def check(
        self,
        lead: Lead,
        rule: AssignmentRule,
        candidate: Optional[Employee],
        now: datetime
    ) -> bool:
        """Evaluate all conditions, stopping at the first failure.

        Raises RuleEvaluationError when the rule holds data that cannot be
        evaluated.
        """
        self._reject_invalid(rule, "conditions")
        for name, check in self._checks:
            outcome = check(lead, rule, candidate, now)
            if outcome is not None and not outcome[0]:
                logger.debug(f"Rule '{rule.name}' failed {name}: {outcome[1]}")
                return False
        return True

    def explain(
        self,
        lead: Lead,
        rule: AssignmentRule,
        candidate: Optional[Employee],
        now: datetime
    ) -> List[ConditionCheck]:
        """Run every condition the rule sets and report each outcome."""
        results = []
        if "conditions" in rule.conditions.invalid:
            results.append(ConditionCheck("conditions", False, "condition set is not a mapping"))
            return results

        for name, check in self._checks:
            try:
                outcome = check(lead, rule, candidate, now)
            except RuleEvaluationError as e:
                results.append(ConditionCheck(name, False, e.reason))
                continue
            if outcome is not None:
                results.append(ConditionCheck(name, outcome[0], outcome[1]))
        return results

    # === INDIVIDUAL CHECKS ===

    def _reject_invalid(self, rule: AssignmentRule, *names: str):
        for name in names:
            if name in rule.conditions.invalid:
                raw = rule.conditions.invalid[name]
                raise RuleEvaluationError(rule.id, name, f"unparseable value {raw!r}")

    def _check_source(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "sources")
        sources = rule.conditions.sources
        if not sources:
            return None
        if lead.source is None:
            return False, "lead has no source"
        return lead.source.value in sources, f"source {lead.source.value}"

    def _check_value(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "value_min", "value_max", "value_bracket")
        c = rule.conditions
        if not c.has_value_condition:
            return None
        if lead.value is None:
            return False, "lead has no value"

        value = lead.value
        if c.value_min is not None and value < c.value_min:
            return False, f"value {value:,.0f} below {c.value_min:,.0f}"
        if c.value_max is not None and value > c.value_max:
            return False, f"value {value:,.0f} above {c.value_max:,.0f}"

        if c.value_bracket is not None:
            bounds = self.config.value_brackets.get(c.value_bracket)
            if bounds is None:
                raise RuleEvaluationError(rule.id, "value_bracket", f"unknown bracket '{c.value_bracket}'")
            low, high = bounds
            if value < low or (high is not None and value >= high):
                return False, f"value {value:,.0f} outside {c.value_bracket} bracket"

        return True, f"value {value:,.0f}"

    def _check_geography(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "regions", "states", "cities", "countries")
        c = rule.conditions
        pairs = [
            ("region", c.regions, lead.region),
            ("state", c.states, lead.state),
            ("city", c.cities, lead.city),
            ("country", c.countries, lead.country),
        ]
        checked = []
        for label, allowed, actual in pairs:
            if not allowed:
                continue
            if actual is None:
                return False, f"lead has no {label}"
            if actual not in allowed:
                return False, f"{label} {actual} not in {list(allowed)}"
            checked.append(f"{label} {actual}")

        if not checked:
            return None
        return True, ", ".join(checked)

    def _check_industry(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "industries")
        industries = rule.conditions.industries
        if not industries:
            return None
        if lead.industry is None:
            return False, "lead has no industry"
        return lead.industry in industries, f"industry {lead.industry}"

    def _check_lead_age(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "lead_age_hours")
        ceiling = rule.conditions.lead_age_hours
        if ceiling is None:
            return None
        if lead.created_at is None:
            return False, "lead has no creation time"
        age = lead.age_hours(now)
        return age <= ceiling, f"lead is {age:.1f}h old (max {ceiling:g}h)"

    def _check_time_of_day(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "time_of_day")
        window = rule.conditions.time_of_day
        if window is None:
            return None

        hour = now.hour
        if window == "after_hours":
            start, end = self.config.time_windows["business_hours"]
            return not (start <= hour < end), f"hour {hour:02d} vs after_hours"

        bounds = self.config.time_windows.get(window)
        if bounds is None:
            raise RuleEvaluationError(rule.id, "time_of_day", f"unknown window '{window}'")
        start, end = bounds
        return start <= hour < end, f"hour {hour:02d} vs {window} {start:02d}-{end:02d}"

    def _check_day_of_week(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "days_of_week")
        days = rule.conditions.days_of_week
        if not days:
            return None

        weekday = now.weekday()  # 0 = Monday
        today = DAY_NAMES[weekday]
        for day in days:
            day = day.lower()
            if day == "weekdays":
                if weekday < 5:
                    return True, f"{today} is a weekday"
            elif day == "weekends":
                if weekday >= 5:
                    return True, f"{today} is a weekend"
            elif day in DAY_NAMES:
                if day == today:
                    return True, f"today is {today}"
            else:
                raise RuleEvaluationError(rule.id, "days_of_week", f"unknown day '{day}'")
        return False, f"{today} not in {list(days)}"

    def _check_role(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "roles")
        roles = rule.conditions.roles
        if not roles:
            return None
        if candidate is None:
            return False, "no candidate resolved"
        return candidate.role in roles, f"role {candidate.role}"

    def _check_department(self, lead, rule, candidate, now) -> CheckOutcome:
        self._reject_invalid(rule, "departments")
        departments = rule.conditions.departments
        if not departments:
            return None
        if candidate is None:
            return False, "no candidate resolved"
        if not candidate.department:
            return False, f"{candidate.full_name} has no department"
        return candidate.department in departments, f"department {candidate.department}"

    def _check_territory(self, lead, rule, candidate, now) -> CheckOutcome:
        if not rule.is_territory_oriented:
            return None
        if candidate is None or not candidate.territories:
            return None
        location = lead.location
        return (
            candidate.covers_location(location),
            f"location '{location}' vs territories {candidate.territories}"
        )
