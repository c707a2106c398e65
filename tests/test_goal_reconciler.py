"""Tests for GoalProgressReconciler."""

import pytest
from decimal import Decimal
from uuid import uuid4

from pennywise.models.audit import AuditEventType
from pennywise.reconciliation.goals import clamp


class TestClamp:
    def test_bounds(self):
        assert clamp(Decimal("-5"), Decimal("0"), Decimal("10")) == Decimal("0")
        assert clamp(Decimal("15"), Decimal("0"), Decimal("10")) == Decimal("10")
        assert clamp(Decimal("7"), Decimal("0"), Decimal("10")) == Decimal("7")


class TestRecomputeProgress:
    """Tests for recompute_progress."""

    async def test_progress_is_baseline_plus_active_linked(
        self, storage, goal_reconciler, make_goal, make_expense
    ):
        goal = make_goal(initial_progress=Decimal("100"), progress=Decimal("100"))
        await storage.save_goal(goal)
        await storage.save_expense(make_expense(amount=Decimal("40"), goal_id=goal.id))
        await storage.save_expense(make_expense(amount=Decimal("60"), goal_id=goal.id, active=False))
        await storage.save_expense(make_expense(amount=Decimal("80")))

        result = await goal_reconciler.recompute_progress(goal.id, "user-1")

        assert result.progress == Decimal("140")
        assert (await storage.get_goal_by_id(goal.id)).progress == Decimal("140")

    async def test_progress_clamped_to_amount(
        self, storage, goal_reconciler, make_goal, make_expense
    ):
        goal = make_goal(amount=Decimal("100"), initial_progress=Decimal("50"), progress=Decimal("50"))
        await storage.save_goal(goal)
        await storage.save_expense(make_expense(amount=Decimal("75"), goal_id=goal.id))

        result = await goal_reconciler.recompute_progress(goal.id, "user-1")

        assert result.progress == Decimal("100")

    async def test_missing_goal_returns_none(self, goal_reconciler):
        assert await goal_reconciler.recompute_progress(uuid4(), "user-1") is None

    async def test_foreign_goal_returns_none_and_is_untouched(
        self, storage, goal_reconciler, make_goal, make_expense
    ):
        goal = make_goal(owner_id="user-2")
        await storage.save_goal(goal)
        await storage.save_expense(make_expense(owner_id="user-2", amount=Decimal("10"), goal_id=goal.id))

        assert await goal_reconciler.recompute_progress(goal.id, "user-1") is None
        assert (await storage.get_goal_by_id(goal.id)).progress == Decimal("0")

    async def test_legacy_progress_seeds_baseline_once(
        self, storage, goal_reconciler, audit_storage, make_goal
    ):
        goal = make_goal(progress=Decimal("250"))
        await storage.save_goal(goal)

        result = await goal_reconciler.recompute_progress(goal.id, "user-1")

        assert result.initial_progress == Decimal("250")
        assert result.progress == Decimal("250")
        seeded = [
            e for e in audit_storage.events
            if e.event_type == AuditEventType.GOAL_BASELINE_SEEDED
        ]
        assert len(seeded) == 1

        await goal_reconciler.recompute_progress(goal.id, "user-1")
        seeded = [
            e for e in audit_storage.events
            if e.event_type == AuditEventType.GOAL_BASELINE_SEEDED
        ]
        assert len(seeded) == 1

    async def test_no_seeding_when_linked_sum_just_dropped_to_zero(
        self, storage, goal_reconciler, make_goal
    ):
        goal = make_goal(progress=Decimal("40"))
        await storage.save_goal(goal)

        result = await goal_reconciler.recompute_progress(
            goal.id, "user-1", linked_delta=Decimal("-40")
        )

        assert result.initial_progress == Decimal("0")
        assert result.progress == Decimal("0")

    async def test_seeding_uses_sum_before_new_link(
        self, storage, goal_reconciler, make_goal, make_expense
    ):
        goal = make_goal(progress=Decimal("100"))
        await storage.save_goal(goal)
        await storage.save_expense(make_expense(amount=Decimal("40"), goal_id=goal.id))

        result = await goal_reconciler.recompute_progress(
            goal.id, "user-1", linked_delta=Decimal("40")
        )

        assert result.initial_progress == Decimal("100")
        assert result.progress == Decimal("140")

    async def test_correction_is_audited_with_correlation_id(
        self, storage, goal_reconciler, audit_storage, make_goal, make_expense
    ):
        goal = make_goal()
        await storage.save_goal(goal)
        await storage.save_expense(make_expense(amount=Decimal("30"), goal_id=goal.id))
        correlation_id = uuid4()

        await goal_reconciler.recompute_progress(goal.id, "user-1", correlation_id=correlation_id)

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [AuditEventType.GOAL_PROGRESS_CORRECTED]


class TestReconcileAll:
    async def test_reports_each_goal(self, storage, goal_reconciler, make_goal, make_expense):
        drifted = make_goal(name="Drifted", progress=Decimal("10"), initial_progress=Decimal("0"))
        healthy = make_goal(name="Healthy")
        await storage.save_goal(drifted)
        await storage.save_goal(healthy)
        await storage.save_goal(make_goal(owner_id="user-2"))
        await storage.save_expense(make_expense(amount=Decimal("35"), goal_id=drifted.id))

        results = await goal_reconciler.reconcile_all("user-1")

        by_name = {r.name: r for r in results}
        assert set(by_name) == {"Drifted", "Healthy"}
        assert by_name["Drifted"].corrected is True
        assert by_name["Drifted"].old_progress == Decimal("10")
        assert by_name["Drifted"].new_progress == Decimal("35")
        assert by_name["Healthy"].corrected is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
