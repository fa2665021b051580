"""Lead assignment orchestrator.

One call to :meth:`LeadAssignmentEngine.assign_lead` makes one decision for
one lead:

    START -> RELATIONSHIP_CHECK -> RULE_MATCHING -> METHOD_EXECUTION -> PERSIST -> DONE
                                   RULE_MATCHING (exhausted) -> FALLBACK_ROUND_ROBIN -> PERSIST
                                   FALLBACK_ROUND_ROBIN (empty pool) -> NO_CANDIDATE

Rules, candidates, workloads and the round-robin pointer are read once at
the start and the decision is made against that snapshot. The lead update
is a compare-and-swap on ``assigned_to``; the ledger append after it is
best-effort and never undoes the assignment.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.config import EngineConfig
from ..core.errors import (
    AssignmentTimeout,
    AuditWriteFailure,
    BranchNotFound,
    EmployeeNotFound,
    LeadNotFound,
    NoEligibleCandidate,
    PersistenceConflict,
)
from ..storage.models import Lead
from ..team.employees import CandidatePool, Employee
from .conditions import ConditionCheck, ConditionEvaluator
from .ledger import (
    MANUAL,
    MANUAL_ASSIGNMENT,
    RELATIONSHIP,
    ROUND_ROBIN_FALLBACK,
    AssignmentDecision,
)
from .methods import AssignmentMethodResolver
from .ports import AssignmentLedger, EmployeeDirectory, LeadStore, RelationshipLookup, RuleStore
from .rules import AssignmentRule, order_rules

logger = logging.getLogger(__name__)


class AssignmentStage(Enum):
    """Orchestrator states."""
    START = "start"
    RELATIONSHIP_CHECK = "relationship_check"
    RULE_MATCHING = "rule_matching"
    METHOD_EXECUTION = "method_execution"
    FALLBACK_ROUND_ROBIN = "fallback_round_robin"
    PERSIST = "persist"
    DONE = "done"
    NO_CANDIDATE = "no_candidate"


class AssignmentOutcome(Enum):
    """What the caller should show."""
    ASSIGNED = "assigned"
    ALREADY_ASSIGNED = "already_assigned"
    NO_CANDIDATE = "no_candidate"


@dataclass
class AssignmentResult:
    """Result of one assignment request."""
    outcome: AssignmentOutcome
    lead_id: str
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    method: Optional[str] = None
    audit_recorded: bool = True
    message: str = ""

    @property
    def success(self) -> bool:
        return self.outcome != AssignmentOutcome.NO_CANDIDATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "lead_id": self.lead_id,
            "assigned_to": self.employee_id,
            "assigned_name": self.employee_name,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "method": self.method,
            "audit_recorded": self.audit_recorded,
            "message": self.message,
        }


@dataclass
class Selection:
    """The employee a decision landed on and why."""
    employee: Employee
    method: str
    label: str  # stored on lead.assignment_rule
    rule: Optional[AssignmentRule] = None


@dataclass
class RuleTrace:
    """How one rule fared during a preview."""
    rule: AssignmentRule
    candidate: Optional[Employee]
    matched: bool
    reason: str = ""
    checks: List[ConditionCheck] = field(default_factory=list)


@dataclass
class AssignmentPreview:
    """Decision computed without writing anything."""
    lead: Lead
    selection: Optional[Selection]
    pool: CandidatePool
    traces: List[RuleTrace] = field(default_factory=list)


class LeadAssignmentEngine:
    """Assign leads to employees using relationship, rules and fallback round-robin."""

    def __init__(
        self,
        leads: LeadStore,
        rules: RuleStore,
        directory: EmployeeDirectory,
        relationships: RelationshipLookup,
        ledger: AssignmentLedger,
        config: Optional[EngineConfig] = None,
        evaluator: Optional[ConditionEvaluator] = None,
        resolver: Optional[AssignmentMethodResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
        monotonic: Callable[[], float] = time.monotonic
    ):
        self.leads = leads
        self.rules = rules
        self.directory = directory
        self.relationships = relationships
        self.ledger = ledger
        self.config = config or EngineConfig()
        self.evaluator = evaluator or ConditionEvaluator(self.config)
        self.resolver = resolver or AssignmentMethodResolver()
        self.clock = clock or datetime.now
        self._monotonic = monotonic

    @classmethod
    def from_database(cls, db, **kwargs) -> "LeadAssignmentEngine":
        """Build an engine whose collaborators are all one storage backend."""
        return cls(leads=db, rules=db, directory=db, relationships=db, ledger=db, **kwargs)

    # === ENTRYPOINTS ===

    def assign_lead(
        self,
        lead_id: str,
        branch_id: str,
        force_reassign: bool = False,
        timeout: Optional[float] = None
    ) -> AssignmentResult:
        """Assign one lead.

        Raises LeadNotFound / BranchNotFound for missing records and
        AssignmentTimeout when ``timeout`` seconds pass before the write.
        An empty candidate pool is reported through the result, not raised.
        """
        deadline = self._monotonic() + timeout if timeout is not None else None

        self._enter(AssignmentStage.START, lead_id)
        lead = self._load_lead(lead_id, branch_id)
        if lead.is_assigned and not force_reassign:
            logger.info(f"Lead {lead_id} already assigned to {lead.assigned_to}; nothing to do")
            return self._existing_result(lead, "Lead already assigned")

        pool, rules = self._snapshot(branch_id)
        self._check_deadline(lead_id, deadline, timeout)

        now = self.clock()
        try:
            selection = self._decide(lead, pool, rules, now)
        except NoEligibleCandidate as e:
            self._enter(AssignmentStage.NO_CANDIDATE, lead_id)
            logger.warning(f"Lead {lead_id}: {e}")
            return AssignmentResult(
                outcome=AssignmentOutcome.NO_CANDIDATE,
                lead_id=lead_id,
                message="No eligible employee found - please assign manually"
            )

        self._check_deadline(lead_id, deadline, timeout)
        return self._commit(lead, selection, now)

    def manual_assign(
        self,
        lead_id: str,
        branch_id: str,
        employee_id: str,
        assigned_by: Optional[str] = None
    ) -> AssignmentResult:
        """Assign a lead to a named employee, overriding any current owner."""
        lead = self._load_lead(lead_id, branch_id)
        employee = next(
            (e for e in self.directory.get_active_employees(branch_id) if e.id == employee_id and e.is_active),
            None
        )
        if employee is None:
            raise EmployeeNotFound(employee_id, branch_id)

        selection = Selection(employee=employee, method=MANUAL, label=MANUAL_ASSIGNMENT)
        return self._commit(lead, selection, self.clock(), manual=True, assigned_by=assigned_by)

    def preview(self, lead_id: str, branch_id: str) -> AssignmentPreview:
        """Work out who would get the lead right now, with per-rule traces."""
        lead = self._load_lead(lead_id, branch_id)
        pool, rules = self._snapshot(branch_id)
        now = self.clock()

        traces: List[RuleTrace] = []
        selection = self._relationship_selection(lead, pool)
        if selection is None:
            selection = self._match_rules(lead, rules, pool, now, traces)
        if selection is None:
            employee = self.resolver.next_round_robin(pool)
            if employee is not None:
                selection = Selection(employee, ROUND_ROBIN_FALLBACK, self.config.fallback_label)

        return AssignmentPreview(lead=lead, selection=selection, pool=pool, traces=traces)

    # === DECISION ===

    def _load_lead(self, lead_id: str, branch_id: str) -> Lead:
        if not self.directory.branch_exists(branch_id):
            raise BranchNotFound(branch_id)
        lead = self.leads.get_lead(lead_id, branch_id)
        if lead is None:
            raise LeadNotFound(lead_id, branch_id)
        return lead

    def _snapshot(self, branch_id: str) -> Tuple[CandidatePool, List[AssignmentRule]]:
        """Read everything the decision needs, once."""
        employees = self.directory.get_active_employees(branch_id)
        workloads = self.directory.get_open_lead_counts(branch_id, list(self.config.open_statuses))
        last_round_robin = self.ledger.last_round_robin_assignee(branch_id)
        pool = CandidatePool.build(
            branch_id,
            employees,
            workloads,
            assignable_roles=self.config.assignable_roles,
            last_round_robin_id=last_round_robin
        )
        rules = order_rules(self.rules.get_active_rules(branch_id))
        logger.debug(f"Branch {branch_id}: {len(pool)} candidates, {len(rules)} active rules")
        return pool, rules

    def _decide(
        self,
        lead: Lead,
        pool: CandidatePool,
        rules: List[AssignmentRule],
        now: datetime
    ) -> Selection:
        self._enter(AssignmentStage.RELATIONSHIP_CHECK, lead.id)
        selection = self._relationship_selection(lead, pool)
        if selection is not None:
            return selection

        self._enter(AssignmentStage.RULE_MATCHING, lead.id)
        selection = self._match_rules(lead, rules, pool, now)
        if selection is not None:
            return selection

        self._enter(AssignmentStage.FALLBACK_ROUND_ROBIN, lead.id)
        employee = self.resolver.next_round_robin(pool)
        if employee is None:
            raise NoEligibleCandidate(lead.branch_id)
        return Selection(employee, ROUND_ROBIN_FALLBACK, self.config.fallback_label)

    def _relationship_selection(self, lead: Lead, pool: CandidatePool) -> Optional[Selection]:
        """Existing account owner outranks every configured rule."""
        if not lead.customer_id:
            return None

        previous = self.relationships.find_previous_assignee(
            lead.customer_id, lead.branch_id, exclude_lead_id=lead.id
        )
        if previous is None:
            return None

        employee = pool.get(previous)
        if employee is None:
            logger.info(
                f"Previous salesperson {previous} for customer {lead.customer_id} "
                f"is no longer assignable; evaluating rules"
            )
            return None
        return Selection(employee, RELATIONSHIP, RELATIONSHIP)

    def _match_rules(
        self,
        lead: Lead,
        rules: List[AssignmentRule],
        pool: CandidatePool,
        now: datetime,
        traces: Optional[List[RuleTrace]] = None
    ) -> Optional[Selection]:
        """First rule whose resolved candidate is under its limit and whose conditions hold."""
        for rule in rules:
            # Role, department and territory checks need the candidate first
            self._enter(AssignmentStage.METHOD_EXECUTION, lead.id)
            candidate = self.resolver.resolve(rule, pool)

            if candidate is None:
                logger.debug(f"Rule '{rule.name}' resolved no candidate via {rule.method.value}")
                if traces is not None:
                    traces.append(RuleTrace(rule, None, False, "no candidate"))
                continue

            if rule.at_limit(candidate.current_workload):
                logger.info(
                    f"Employee {candidate.full_name} has reached workload limit "
                    f"({candidate.current_workload}/{rule.workload_limit}) for rule {rule.name}"
                )
                if traces is not None:
                    traces.append(RuleTrace(rule, candidate, False, "workload limit reached"))
                continue

            matched = self.evaluator.matches(lead, rule, candidate, now)
            if traces is not None:
                traces.append(RuleTrace(
                    rule, candidate, matched,
                    "matched" if matched else "conditions not met",
                    self.evaluator.explain(lead, rule, candidate, now)
                ))
            if matched:
                return Selection(candidate, rule.method.value, rule.name, rule)

        return None

    # === PERSISTENCE ===

    def _commit(
        self,
        lead: Lead,
        selection: Selection,
        now: datetime,
        manual: bool = False,
        assigned_by: Optional[str] = None
    ) -> AssignmentResult:
        self._enter(AssignmentStage.PERSIST, lead.id)
        employee = selection.employee

        try:
            self._write_assignment(lead, selection, now)
        except PersistenceConflict as e:
            logger.info(f"{e}; keeping the winning assignment")
            current = self.leads.get_lead(lead.id, lead.branch_id) or lead
            return self._existing_result(current, "Lead was assigned by a concurrent request")

        decision = AssignmentDecision(
            lead_id=lead.id,
            branch_id=lead.branch_id,
            employee_id=employee.id,
            method=selection.method,
            rule_id=selection.rule.id if selection.rule else None,
            rule_name=selection.rule.name if selection.rule else None,
            is_manual_override=manual,
            assigned_by=assigned_by,
            decided_at=now
        )
        audit_recorded = self._record(decision)

        self._enter(AssignmentStage.DONE, lead.id)
        logger.info(f"Assigned lead {lead.id} to {employee.full_name} via {selection.method} ({selection.label})")

        return AssignmentResult(
            outcome=AssignmentOutcome.ASSIGNED,
            lead_id=lead.id,
            employee_id=employee.id,
            employee_name=employee.full_name,
            rule_id=decision.rule_id,
            rule_name=decision.rule_name,
            method=selection.method,
            audit_recorded=audit_recorded,
            message=self._describe(selection)
        )

    def _write_assignment(self, lead: Lead, selection: Selection, now: datetime):
        """Compare-and-swap against the assignee read at START."""
        updated = self.leads.update_assignment(
            lead.id,
            lead.branch_id,
            selection.employee.id,
            selection.label,
            now,
            expected_assignee=lead.assigned_to
        )
        if not updated:
            raise PersistenceConflict(lead.id)

    def _record(self, decision: AssignmentDecision) -> bool:
        # Assignment correctness outranks audit completeness: a failed
        # append is logged and reported, the lead stays assigned.
        try:
            self.ledger.append(decision)
            return True
        except AuditWriteFailure as e:
            logger.error(f"{e}; lead remains assigned to {decision.employee_id}")
            return False

    def _existing_result(self, lead: Lead, message: str) -> AssignmentResult:
        history = self.ledger.history(lead.id)
        last = history[-1] if history else None
        if last is not None and last.employee_id != lead.assigned_to:
            last = None

        name = None
        if lead.assigned_to:
            owner = next(
                (e for e in self.directory.get_active_employees(lead.branch_id) if e.id == lead.assigned_to),
                None
            )
            name = owner.full_name if owner else None

        return AssignmentResult(
            outcome=AssignmentOutcome.ALREADY_ASSIGNED,
            lead_id=lead.id,
            employee_id=lead.assigned_to,
            employee_name=name,
            rule_id=last.rule_id if last else None,
            rule_name=last.rule_name if last else lead.assignment_rule,
            method=last.method if last else None,
            message=f"{message} to {name or lead.assigned_to}"
        )

    # === HELPERS ===

    def _check_deadline(self, lead_id: str, deadline: Optional[float], timeout: Optional[float]):
        if deadline is not None and self._monotonic() > deadline:
            raise AssignmentTimeout(lead_id, timeout)

    def _enter(self, stage: AssignmentStage, lead_id: str):
        logger.debug(f"Lead {lead_id}: {stage.value}")

    @staticmethod
    def _describe(selection: Selection) -> str:
        if selection.rule is not None:
            return f"Lead assigned using rule: {selection.rule.name}"
        if selection.method == RELATIONSHIP:
            return "Lead assigned to previous customer relationship owner"
        if selection.method == ROUND_ROBIN_FALLBACK:
            return "Lead assigned using round-robin fallback"
        return "Lead assigned manually"
