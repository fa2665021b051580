"""Tests for SQLite storage."""

import pytest
from datetime import datetime, timedelta

from lead_assignment_engine.core.errors import AuditWriteFailure
from lead_assignment_engine.routing.ledger import AssignmentDecision
from lead_assignment_engine.routing.rules import AssignmentMethod, AssignmentRule, RuleConditions, RuleType
from lead_assignment_engine.storage.models import Lead, LeadSource, LeadStatus
from lead_assignment_engine.team.employees import Employee

NOW = datetime(2026, 3, 4, 10, 30)


def decision(lead_id, employee_id, method, branch="mum", **kwargs):
    return AssignmentDecision(
        lead_id=lead_id,
        branch_id=branch,
        employee_id=employee_id,
        method=method,
        decided_at=NOW,
        **kwargs
    )


class TestLeads:
    """Tests for lead storage and the conditional update."""

    def test_round_trip(self, db):
        db.add_lead(Lead(
            id="L1", branch_id="mum", source=LeadSource.WEB_FORM, title="Pump enquiry",
            value=75000, city="Mumbai", raw_data={"form": "contact"}, created_at=NOW,
        ))
        lead = db.get_lead("L1", "mum")
        assert lead.source == LeadSource.WEB_FORM
        assert lead.value == 75000
        assert lead.raw_data == {"form": "contact"}
        assert lead.created_at == NOW
        assert not lead.is_assigned

    def test_branch_scoped(self, db):
        db.add_lead(Lead(id="L1", branch_id="mum"))
        assert db.get_lead("L1", "del") is None

    def test_update_requires_expected_assignee(self, db):
        db.add_lead(Lead(id="L1", branch_id="mum"))

        assert db.update_assignment("L1", "mum", "emp-a", "r", NOW, expected_assignee=None)
        assert not db.update_assignment("L1", "mum", "emp-b", "r", NOW, expected_assignee=None)
        assert db.update_assignment("L1", "mum", "emp-b", "r", NOW, expected_assignee="emp-a")
        assert db.get_lead("L1", "mum").assigned_to == "emp-b"

    def test_open_lead_counts(self, db):
        for i, status in enumerate([LeadStatus.NEW, LeadStatus.QUALIFIED, LeadStatus.WON]):
            db.add_lead(Lead(id=f"L{i}", branch_id="mum", assigned_to="emp-a", status=status))
        db.add_lead(Lead(id="other", branch_id="del", assigned_to="emp-a"))

        counts = db.get_open_lead_counts("mum", ["new", "contacted", "qualified", "proposal"])
        assert counts == {"emp-a": 2}
        assert db.get_open_lead_counts("mum", []) == {}


class TestEmployees:
    """Tests for employee storage."""

    def test_active_filter(self, db):
        db.add_employee(Employee(id="b", branch_id="mum", full_name="B", territories=["Delhi"]))
        db.add_employee(Employee(id="a", branch_id="mum", full_name="A"))
        db.set_employee_active("b", False)

        assert [e.id for e in db.get_active_employees("mum")] == ["a"]
        everyone = db.get_employees("mum")
        assert [e.id for e in everyone] == ["a", "b"]
        assert everyone[1].territories == ["Delhi"]


class TestRelationshipLookup:
    """Tests for find_previous_assignee."""

    def test_newest_across_leads_and_orders(self, db):
        db.add_lead(Lead(id="old", branch_id="mum", customer_id="c1",
                         assigned_to="emp-a", assigned_at=NOW - timedelta(days=10)))
        db.add_order("o1", "mum", "c1", "emp-b", created_at=NOW - timedelta(days=2))

        assert db.find_previous_assignee("c1", "mum") == "emp-b"

    def test_excludes_current_lead(self, db):
        db.add_lead(Lead(id="L1", branch_id="mum", customer_id="c1",
                         assigned_to="emp-a", assigned_at=NOW))
        assert db.find_previous_assignee("c1", "mum", exclude_lead_id="L1") is None
        assert db.find_previous_assignee("c1", "mum") == "emp-a"

    def test_other_branch_ignored(self, db):
        db.add_order("o1", "del", "c1", "emp-d", created_at=NOW)
        assert db.find_previous_assignee("c1", "mum") is None


class TestRules:
    """Tests for rule storage."""

    def _rule(self, rule_id, priority, **kwargs):
        return AssignmentRule(id=rule_id, branch_id="mum", name=rule_id, priority=priority, **kwargs)

    def test_round_trip(self, db):
        db.add_rule(self._rule(
            "r1", 1,
            target_employee_id="emp-a",
            method=AssignmentMethod.WORKLOAD_BALANCED,
            rule_type=RuleType.VALUE_BASED,
            workload_limit=10,
            conditions=RuleConditions.from_dict({"value_bracket": "large", "sources": ["marketplace"]}),
        ))
        rule = db.get_active_rules("mum")[0]
        assert rule.method == AssignmentMethod.WORKLOAD_BALANCED
        assert rule.rule_type == RuleType.VALUE_BASED
        assert rule.workload_limit == 10
        assert rule.conditions.value_bracket == "large"
        assert rule.conditions.sources == ("marketplace",)

    def test_ordering_and_active_filter(self, db):
        db.add_rule(self._rule("c", 5))
        db.add_rule(self._rule("a", 1))
        db.add_rule(self._rule("b", 1))
        db.add_rule(self._rule("off", 0, is_active=False))

        assert [r.id for r in db.get_active_rules("mum")] == ["a", "b", "c"]
        assert [r.id for r in db.list_rules("mum")] == ["off", "a", "b", "c"]

    def _insert_raw(self, db, rule_id, method="direct", rule_type="general", conditions_json="{}"):
        with db._get_connection() as conn:
            conn.execute(
                "INSERT INTO assignment_rules (id, branch_id, name, priority, method, rule_type, conditions_json) "
                "VALUES (?, 'mum', ?, 1, ?, ?, ?)",
                (rule_id, rule_id, method, rule_type, conditions_json),
            )

    def test_unknown_method_skipped(self, db):
        self._insert_raw(db, "weird", method="telepathy")
        db.add_rule(self._rule("fine", 2))
        assert [r.id for r in db.get_active_rules("mum")] == ["fine"]

    def test_unknown_type_becomes_general(self, db):
        self._insert_raw(db, "typed", rule_type="mystery")
        assert db.get_active_rules("mum")[0].rule_type == RuleType.GENERAL

    def test_bad_json_kept_as_invalid(self, db):
        self._insert_raw(db, "broken", conditions_json="{not json")
        rule = db.get_active_rules("mum")[0]
        assert "conditions" in rule.conditions.invalid

    def test_deactivated_rule_not_loaded(self, db):
        db.add_rule(self._rule("r1", 1))

        assert db.set_rule_active("r1", False)
        assert db.get_active_rules("mum") == []
        assert not db.set_rule_active("missing", False)


class TestLedger:
    """Tests for the assignment ledger."""

    def test_history_oldest_first(self, db):
        db.append(decision("L1", "emp-a", "round_robin_fallback"))
        db.append(decision("L1", "emp-b", "manual", is_manual_override=True, assigned_by="boss"))

        history = db.history("L1")
        assert [d.employee_id for d in history] == ["emp-a", "emp-b"]
        assert history[1].is_manual_override
        assert history[1].assigned_by == "boss"
        assert history[0].decided_at == NOW

    def test_last_round_robin_ignores_other_methods(self, db):
        db.append(decision("L1", "emp-a", "round_robin_fallback"))
        db.append(decision("L2", "emp-b", "round_robin"))
        db.append(decision("L3", "emp-c", "direct"))
        db.append(decision("L4", "emp-d", "manual"))

        assert db.last_round_robin_assignee("mum") == "emp-b"
        assert db.last_round_robin_assignee("del") is None

    def test_duplicate_entry_raises_audit_failure(self, db):
        entry = decision("L1", "emp-a", "direct")
        db.append(entry)
        with pytest.raises(AuditWriteFailure):
            db.append(entry)

    def test_recent_and_stats(self, db):
        db.add_lead(Lead(id="L1", branch_id="mum", assigned_to="emp-a"))
        db.add_lead(Lead(id="L2", branch_id="mum"))
        db.append(decision("L1", "emp-a", "direct"))
        db.append(decision("L1", "emp-a", "manual"))

        assert [d.method for d in db.recent_decisions("mum")] == ["manual", "direct"]
        stats = db.get_stats("mum")
        assert stats["total_leads"] == 2
        assert stats["unassigned"] == 1
        assert stats["decisions_by_method"] == {"direct": 1, "manual": 1}
