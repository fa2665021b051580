"""Assignment method strategies.

Each strategy is a plain function of (rule, pool) returning an employee or
None. The resolver only dispatches; it holds no state of its own, and the
round-robin position comes from the pool snapshot, which in turn is read
from the ledger.
"""

import logging
from typing import Callable, Dict, Optional

from ..team.employees import CandidatePool, Employee
from .rules import AssignmentMethod, AssignmentRule

logger = logging.getLogger(__name__)

Strategy = Callable[[AssignmentRule, CandidatePool], Optional[Employee]]


def next_round_robin(pool: CandidatePool) -> Optional[Employee]:
    """Candidate after the last round-robin assignee, in id order.

    Starts from the first candidate when there is no prior assignee or the
    prior assignee is no longer in the pool. Candidates at their own
    max_workload are passed over unless everyone is at capacity.
    """
    if pool.is_empty:
        return None

    candidates = pool.candidates
    start = 0
    last = pool.last_round_robin_id
    if last is not None:
        for index, candidate in enumerate(candidates):
            if candidate.id == last:
                start = (index + 1) % len(candidates)
                break

    ordered = candidates[start:] + candidates[:start]
    for candidate in ordered:
        if candidate.has_capacity:
            return candidate

    logger.debug(f"All {len(candidates)} candidates at capacity in branch {pool.branch_id}")
    return ordered[0]


def _direct(rule: AssignmentRule, pool: CandidatePool) -> Optional[Employee]:
    employee = pool.get(rule.target_employee_id)
    if employee is None:
        logger.debug(f"Rule '{rule.name}' target {rule.target_employee_id} is not an active candidate")
    return employee


def _round_robin(rule: AssignmentRule, pool: CandidatePool) -> Optional[Employee]:
    return next_round_robin(pool)


def _workload_balanced(rule: AssignmentRule, pool: CandidatePool) -> Optional[Employee]:
    available = [c for c in pool if c.has_capacity]
    if not available:
        return None
    # min() keeps the first of equal workloads, and the pool is id-sorted
    return min(available, key=lambda c: c.current_workload)


def _skill_based(rule: AssignmentRule, pool: CandidatePool) -> Optional[Employee]:
    # No skill taxonomy exists yet; behaves like a direct assignment.
    return _direct(rule, pool)


STRATEGIES: Dict[AssignmentMethod, Strategy] = {
    AssignmentMethod.DIRECT: _direct,
    AssignmentMethod.ROUND_ROBIN: _round_robin,
    AssignmentMethod.WORKLOAD_BALANCED: _workload_balanced,
    AssignmentMethod.SKILL_BASED: _skill_based,
}


class AssignmentMethodResolver:
    """Pick the concrete employee a rule points at."""

    def __init__(self, strategies: Optional[Dict[AssignmentMethod, Strategy]] = None):
        self.strategies = dict(STRATEGIES)
        if strategies:
            self.strategies.update(strategies)

    def resolve(self, rule: AssignmentRule, pool: CandidatePool) -> Optional[Employee]:
        strategy = self.strategies.get(rule.method, _direct)
        return strategy(rule, pool)

    def next_round_robin(self, pool: CandidatePool) -> Optional[Employee]:
        return next_round_robin(pool)
