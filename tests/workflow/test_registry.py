"""Tests for workflow definitions and the registry graph checks."""

import pytest

from eventscale.core.errors import WorkflowDefinitionError, WorkflowNotFoundError
from eventscale.workflow.registry import WorkflowRegistry
from eventscale.workflow.steps import Step, StepType, Workflow


def _noop(ctx):
    return None


def _task_workflow(name, **kwargs):
    return Workflow(name=name, steps=[Step.task("noop", _noop)], **kwargs)


class TestSteps:
    def test_sub_workflow_needs_exactly_one_target(self):
        with pytest.raises(ValueError):
            Step.sub_workflow("both", "a", selector=lambda ctx: "a", choices=("a",))
        with pytest.raises(ValueError):
            Step.sub_workflow("neither")

    def test_selector_requires_choices(self):
        with pytest.raises(ValueError):
            Step.sub_workflow("pick", selector=lambda ctx: "a")

    def test_referenced_workflows(self):
        assert Step.sub_workflow("s", "child").referenced_workflows == ("child",)
        assert Step.sub_workflow("p", selector=_noop, choices=["a", "b"]).referenced_workflows == ("a", "b")
        assert Step.task("t", _noop).referenced_workflows == ()

    def test_duplicate_step_names_rejected(self):
        with pytest.raises(ValueError):
            Workflow(name="w", steps=[Step.task("x", _noop), Step.task("x", _noop)])

    def test_wait_until_factory(self):
        step = Step.wait_until("wait", "event_ends_ts")
        assert step.step_type == StepType.WAIT_UNTIL
        assert step.timestamp_field == "event_ends_ts"


class TestRegistry:
    def test_lookup(self):
        registry = WorkflowRegistry([_task_workflow("a"), _task_workflow("b")])
        assert registry.get("a").name == "a"
        assert "b" in registry
        assert registry.names() == ["a", "b"]

    def test_unknown_name(self):
        registry = WorkflowRegistry([_task_workflow("a")])
        with pytest.raises(WorkflowNotFoundError):
            registry.get("missing")

    def test_dangling_reference(self):
        parent = Workflow(name="parent", steps=[Step.sub_workflow("child", "missing")])
        with pytest.raises(WorkflowDefinitionError, match="unknown workflow 'missing'"):
            WorkflowRegistry([parent])

    def test_dangling_catch(self):
        with pytest.raises(WorkflowDefinitionError):
            WorkflowRegistry([_task_workflow("a", catch="handler")])

    def test_cycle_detected(self):
        a = Workflow(name="a", steps=[Step.sub_workflow("to-b", "b")])
        b = Workflow(name="b", steps=[Step.sub_workflow("to-a", "a")])
        with pytest.raises(WorkflowDefinitionError, match="cycle"):
            WorkflowRegistry([a, b])

    def test_duplicate_workflow_name(self):
        with pytest.raises(WorkflowDefinitionError):
            WorkflowRegistry([_task_workflow("a"), _task_workflow("a")])

    def test_graph(self):
        parent = Workflow(
            name="parent",
            steps=[Step.sub_workflow("pick", selector=_noop, choices=("x", "y"))],
            catch="handler",
        )
        registry = WorkflowRegistry([parent, _task_workflow("x"), _task_workflow("y"), _task_workflow("handler")])
        assert registry.graph()["parent"] == ["handler", "x", "y"]
