"""Tests for candidate pools and assignment method strategies."""

from lead_assignment_engine.routing.methods import AssignmentMethodResolver, next_round_robin
from lead_assignment_engine.routing.rules import AssignmentMethod, AssignmentRule
from lead_assignment_engine.team.employees import CandidatePool, Employee


def employee(emp_id, workload=0, max_workload=None, role="sales_rep", is_active=True):
    e = Employee(
        id=emp_id,
        branch_id="mum",
        full_name=emp_id.upper(),
        role=role,
        max_workload=max_workload,
        is_active=is_active,
    )
    e.current_workload = workload
    return e


def rule(method, target=None):
    return AssignmentRule(
        id="r1", branch_id="mum", name="Rule", priority=1,
        method=method, target_employee_id=target,
    )


class TestCandidatePool:
    """Tests for CandidatePool."""

    def test_sorted_by_id(self):
        pool = CandidatePool("mum", [employee("c"), employee("a"), employee("b")])
        assert [c.id for c in pool] == ["a", "b", "c"]

    def test_build_filters_roles_and_inactive(self):
        employees = [
            employee("a"),
            employee("b", role="support"),
            employee("c", is_active=False),
        ]
        pool = CandidatePool.build("mum", employees, {"a": 4}, assignable_roles=["sales_rep"])
        assert [c.id for c in pool] == ["a"]
        assert pool.get("a").current_workload == 4
        assert pool.get("b") is None

    def test_build_without_role_filter(self):
        pool = CandidatePool.build("mum", [employee("a"), employee("b", role="support")], {})
        assert len(pool) == 2

    def test_empty(self):
        assert CandidatePool("mum").is_empty


class TestRoundRobin:
    """Tests for next_round_robin."""

    def test_starts_at_first_without_history(self):
        pool = CandidatePool("mum", [employee("b"), employee("a")])
        assert next_round_robin(pool).id == "a"

    def test_advances_after_last(self):
        pool = CandidatePool("mum", [employee("a"), employee("b"), employee("c")], last_round_robin_id="b")
        assert next_round_robin(pool).id == "c"

    def test_wraps_around(self):
        pool = CandidatePool("mum", [employee("a"), employee("b"), employee("c")], last_round_robin_id="c")
        assert next_round_robin(pool).id == "a"

    def test_unknown_last_starts_over(self):
        pool = CandidatePool("mum", [employee("a"), employee("b")], last_round_robin_id="gone")
        assert next_round_robin(pool).id == "a"

    def test_skips_candidates_at_capacity(self):
        pool = CandidatePool(
            "mum",
            [employee("a"), employee("b", workload=3, max_workload=3), employee("c")],
            last_round_robin_id="a",
        )
        assert next_round_robin(pool).id == "c"

    def test_everyone_at_capacity_still_assigns(self):
        pool = CandidatePool(
            "mum",
            [employee("a", 2, 2), employee("b", 5, 5)],
            last_round_robin_id="a",
        )
        assert next_round_robin(pool).id == "b"

    def test_empty_pool(self):
        assert next_round_robin(CandidatePool("mum")) is None


class TestAssignmentMethodResolver:
    """Tests for strategy dispatch."""

    def setup_method(self):
        self.resolver = AssignmentMethodResolver()

    def test_direct(self):
        pool = CandidatePool("mum", [employee("a"), employee("b")])
        assert self.resolver.resolve(rule(AssignmentMethod.DIRECT, "b"), pool).id == "b"

    def test_direct_target_not_in_pool(self):
        pool = CandidatePool("mum", [employee("a")])
        assert self.resolver.resolve(rule(AssignmentMethod.DIRECT, "zz"), pool) is None
        assert self.resolver.resolve(rule(AssignmentMethod.DIRECT), pool) is None

    def test_direct_ignores_max_workload(self):
        pool = CandidatePool("mum", [employee("a", workload=9, max_workload=5)])
        assert self.resolver.resolve(rule(AssignmentMethod.DIRECT, "a"), pool).id == "a"

    def test_skill_based_uses_target(self):
        pool = CandidatePool("mum", [employee("a"), employee("b")])
        assert self.resolver.resolve(rule(AssignmentMethod.SKILL_BASED, "b"), pool).id == "b"

    def test_round_robin_rule(self):
        pool = CandidatePool("mum", [employee("a"), employee("b")], last_round_robin_id="a")
        assert self.resolver.resolve(rule(AssignmentMethod.ROUND_ROBIN), pool).id == "b"

    def test_workload_balanced_picks_lowest(self):
        pool = CandidatePool("mum", [employee("a", 5), employee("b", 2), employee("c", 7)])
        assert self.resolver.resolve(rule(AssignmentMethod.WORKLOAD_BALANCED), pool).id == "b"

    def test_workload_balanced_tie_breaks_on_id(self):
        pool = CandidatePool("mum", [employee("c", 1), employee("b", 1), employee("a", 3)])
        assert self.resolver.resolve(rule(AssignmentMethod.WORKLOAD_BALANCED), pool).id == "b"

    def test_workload_balanced_excludes_full(self):
        pool = CandidatePool("mum", [employee("a", 1, 1), employee("b", 4)])
        assert self.resolver.resolve(rule(AssignmentMethod.WORKLOAD_BALANCED), pool).id == "b"

    def test_workload_balanced_all_full(self):
        pool = CandidatePool("mum", [employee("a", 1, 1)])
        assert self.resolver.resolve(rule(AssignmentMethod.WORKLOAD_BALANCED), pool) is None

    def test_custom_strategy(self):
        resolver = AssignmentMethodResolver({AssignmentMethod.SKILL_BASED: lambda r, p: p.get("a")})
        pool = CandidatePool("mum", [employee("a"), employee("b")])
        assert resolver.resolve(rule(AssignmentMethod.SKILL_BASED, "b"), pool).id == "a"
