"""
Unit tests for the step repair engine.
"""
import pytest

from fakes import FakeAdvisor, FakeSession, insert, modify, remove, run, steps_of, stop
from mender.src.repair.engine import RepairEngine, apply_action, bind_action
from mender.src.utils.errors import AdvisorError, InvalidRepairAction
from mender.src.utils.models import (
    InsertStep,
    ModifyStep,
    NewStep,
    RemoveStep,
    RepairStatus,
    StepStatus,
)


def _new(code: str) -> NewStep:
    return NewStep(description="new", code=code)


class TestApplyAction:
    def test_insert_before_failing_step_shifts_cursor(self):
        steps = steps_of("a", "b", "c")
        applied = apply_action(steps, InsertStep(insert_after_index=0, new_step=_new("wait")), cursor=1)

        assert len(applied.steps) == 4
        assert applied.steps[2] is steps[1]
        assert applied.steps[1].code == "wait"
        assert applied.cursor == 2
        assert applied.new_index == 1

    def test_insert_after_cursor_keeps_cursor(self):
        steps = steps_of("a", "b", "c")
        applied = apply_action(steps, InsertStep(insert_after_index=2, new_step=_new("tail")), cursor=1)

        assert applied.cursor == 1
        assert applied.steps[-1].code == "tail"

    def test_insert_keeps_status_of_shifted_steps(self):
        steps = steps_of("a", "b", "c")
        steps[0].status = StepStatus.SUCCESS
        steps[1].status = StepStatus.FAILED
        applied = apply_action(steps, InsertStep(insert_after_index=-1, new_step=_new("first")), cursor=1)

        assert [s.status for s in applied.steps] == [
            StepStatus.PENDING,
            StepStatus.SUCCESS,
            StepStatus.FAILED,
            StepStatus.PENDING,
        ]

    def test_remove_keeps_cursor_on_next_step(self):
        steps = steps_of("a", "b", "c")
        applied = apply_action(steps, RemoveStep(step_index=1), cursor=1)

        assert [s.code for s in applied.steps] == ["a", "c"]
        assert applied.cursor == 1
        assert applied.steps[1] is steps[2]
        assert applied.before is steps[1]

    def test_modify_advances_cursor(self):
        steps = steps_of("a", "b", "c")
        applied = apply_action(steps, ModifyStep(step_index=1, new_step=_new("b2")), cursor=1)

        assert [s.code for s in applied.steps] == ["a", "b2", "c"]
        assert applied.cursor == 2

    def test_input_list_is_not_mutated(self):
        steps = steps_of("a", "b")
        apply_action(steps, RemoveStep(step_index=0), cursor=0)
        assert [s.code for s in steps] == ["a", "b"]

    @pytest.mark.parametrize(
        "action",
        [
            ModifyStep(step_index=3, new_step=NewStep(description="x", code="x")),
            RemoveStep(step_index=-1),
            InsertStep(insert_after_index=-2, new_step=NewStep(description="x", code="x")),
            InsertStep(insert_after_index=3, new_step=NewStep(description="x", code="x")),
        ],
    )
    def test_out_of_range_indices_are_rejected(self, action):
        with pytest.raises(InvalidRepairAction):
            apply_action(steps_of("a", "b", "c"), action, cursor=1)

    def test_bind_action_targets_cursor(self):
        bound_insert = bind_action(InsertStep(insert_after_index=7, new_step=_new("w")), cursor=2)
        bound_modify = bind_action(ModifyStep(new_step=_new("m")), cursor=2)
        bound_remove = bind_action(RemoveStep(step_index=0), cursor=2)

        assert bound_insert.insert_after_index == 1
        assert bound_modify.step_index == 2
        assert bound_remove.step_index == 2


class TestRepairEngine:
    def test_modify_repairs_failing_step(self):
        session = FakeSession(fail_codes=["bad"])
        advisor = FakeAdvisor([modify("good")])
        engine = RepairEngine(steps_of("a", "bad", "c"), session, advisor)

        outcome = run(engine.run())

        assert outcome.repair_status == RepairStatus.SUCCESS
        assert [s.code for s in outcome.steps] == ["a", "good", "c"]
        assert all(s.status == StepStatus.SUCCESS for s in outcome.steps)
        assert session.ran == ["a", "bad", "good", "c"]
        assert outcome.transcript == ["a", "good", "c"]
        assert len(advisor.repair_calls) == 1

    def test_insert_reruns_original_step(self):
        session = FakeSession(flaky={"b": 1})
        advisor = FakeAdvisor([insert("wait")])
        engine = RepairEngine(steps_of("a", "b", "c"), session, advisor)

        outcome = run(engine.run())

        assert [s.code for s in outcome.steps] == ["a", "wait", "b", "c"]
        assert session.ran == ["a", "b", "wait", "b", "c"]
        assert outcome.repair_status == RepairStatus.SUCCESS

    def test_remove_moves_on_to_following_step(self):
        session = FakeSession(fail_codes=["b"])
        advisor = FakeAdvisor([remove()])
        engine = RepairEngine(steps_of("a", "b", "c"), session, advisor)

        outcome = run(engine.run())

        assert [s.code for s in outcome.steps] == ["a", "c"]
        assert session.ran == ["a", "b", "c"]
        assert outcome.has_successful_repairs
        assert outcome.repair_status == RepairStatus.SUCCESS

    def test_exhaustion_halts_and_leaves_rest_pending(self):
        session = FakeSession(fail_codes=["bad", "bad2", "bad3", "bad4"])
        advisor = FakeAdvisor([modify("bad2"), modify("bad3"), modify("bad4"), modify("never")])
        engine = RepairEngine(steps_of("a", "bad", "c"), session, advisor)

        outcome = run(engine.run())

        assert len(advisor.repair_calls) == 3
        assert [s.status for s in outcome.steps] == [StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.PENDING]
        assert [s.code for s in outcome.steps] == ["a", "bad", "c"]
        assert "c" not in session.ran
        assert outcome.halted_at == 1
        assert outcome.repair_status == RepairStatus.FAILED
        assert outcome.last_error == "locator not found: bad4"

    def test_exhaustion_after_earlier_repair_is_partial(self):
        session = FakeSession(fail_codes=["a", "c", "x1", "x2", "x3"])
        advisor = FakeAdvisor([modify("a2"), modify("x1"), modify("x2"), modify("x3")])
        engine = RepairEngine(steps_of("a", "b", "c"), session, advisor)

        outcome = run(engine.run())

        assert outcome.repairs == 1
        assert outcome.repair_status == RepairStatus.PARTIAL
        assert outcome.steps[2].status == StepStatus.FAILED

    def test_advisor_stop_halts_immediately(self):
        session = FakeSession(fail_codes=["bad"])
        advisor = FakeAdvisor([stop("element fundamentally missing"), modify("good")])
        engine = RepairEngine(steps_of("a", "bad", "c"), session, advisor)

        outcome = run(engine.run())

        assert len(advisor.repair_calls) == 1
        assert len(advisor.suggestions) == 1
        assert outcome.stop_reason == "element fundamentally missing"
        assert outcome.repair_status == RepairStatus.FAILED
        assert outcome.steps[2].status == StepStatus.PENDING

    def test_advisor_error_counts_as_failed_attempt(self):
        session = FakeSession(fail_codes=["bad"])
        advisor = FakeAdvisor([AdvisorError("boom"), modify("good")])
        engine = RepairEngine(steps_of("a", "bad", "c"), session, advisor)

        outcome = run(engine.run())

        assert outcome.repair_status == RepairStatus.SUCCESS
        assert len(advisor.repair_calls) == 2
        assert "Advisor error: boom" in advisor.repair_calls[1]["failure_history"]

    def test_failure_history_lists_previous_attempts(self):
        session = FakeSession(fail_codes=["bad", "bad2"])
        advisor = FakeAdvisor([modify("bad2", description="retry click"), modify("good")])
        engine = RepairEngine(steps_of("a", "bad"), session, advisor)

        run(engine.run())

        first, second = advisor.repair_calls
        assert first["failure_history"] == "Original failure: locator not found: bad"
        history = second["failure_history"]
        assert "Previous repair attempts:" in history
        assert "Attempt 1:" in history
        assert "  Operation: MODIFY" in history
        assert "  Description: retry click" in history
        assert "  Code: bad2" in history
        assert "  Error: locator not found: bad2" in history

    def test_recent_repairs_are_shared_with_later_steps(self):
        session = FakeSession(fail_codes=["a", "c"])
        advisor = FakeAdvisor([modify("a2"), modify("c2")])
        engine = RepairEngine(steps_of("a", "b", "c"), session, advisor)

        run(engine.run())

        assert advisor.repair_calls[0]["recent_repairs"] == "No recent repairs to consider."
        recent = advisor.repair_calls[1]["recent_repairs"]
        assert recent.startswith("Recent successful repairs that may affect this step:")
        assert "Step 1: MODIFY" in recent
        assert recent.endswith("Consider how these changes might affect the current step and adjust accordingly.")

    def test_failed_insert_is_rolled_back(self):
        session = FakeSession(fail_codes=["bad", "wait"])
        advisor = FakeAdvisor([insert("wait"), modify("good")])
        engine = RepairEngine(steps_of("a", "bad", "c"), session, advisor)

        outcome = run(engine.run())

        assert [s.code for s in outcome.steps] == ["a", "good", "c"]
        assert outcome.repairs == 1

    def test_repeated_inserts_are_bounded_per_step(self):
        session = FakeSession(fail_codes=["b"])
        advisor = FakeAdvisor([insert("w1"), insert("w2"), insert("w3"), insert("w4")])
        engine = RepairEngine(steps_of("a", "b", "c"), session, advisor)

        outcome = run(engine.run())

        assert len(advisor.repair_calls) == 3
        assert [s.code for s in outcome.steps] == ["a", "w1", "w2", "w3", "b", "c"]
        assert outcome.repair_status == RepairStatus.PARTIAL

    def test_missing_action_counts_as_attempt(self):
        from mender.src.utils.models import RepairSuggestion

        session = FakeSession(fail_codes=["bad"])
        advisor = FakeAdvisor([RepairSuggestion(reason="unsure"), modify("good")])
        engine = RepairEngine(steps_of("bad"), session, advisor)

        outcome = run(engine.run())

        assert outcome.repair_status == RepairStatus.SUCCESS
        assert "Advisor returned no repair action" in advisor.repair_calls[1]["failure_history"]

    def test_empty_step_list_is_not_successful(self):
        outcome = run(RepairEngine([], FakeSession(), FakeAdvisor()).run())

        assert not outcome.all_steps_successful
        assert outcome.repair_status == RepairStatus.FAILED

    def test_variables_flow_between_steps(self):
        session = FakeSession()
        engine = RepairEngine(steps_of("a", "b"), session, FakeAdvisor())

        run(engine.run())

        assert engine.context.namespace["runs"] == 2

    def test_event_log_records_repairs(self):
        session = FakeSession(fail_codes=["bad"])
        engine = RepairEngine(steps_of("a", "bad"), session, FakeAdvisor([modify("good")]))

        run(engine.run())
        summary = engine.event_log.get_summary()

        assert summary["steps_failed"] == 1
        assert summary["successful_repairs"] == 1
        assert summary["repairs_by_operation"] == {"MODIFY": 1}
        assert summary["repair_status"] == "success"
