"""Workflow Registry: the static arena of named workflows.

Workflows reference each other by name (sub-workflow steps and ``catch``).
The whole graph is resolved when the registry is built, never while an
execution runs: a dangling reference or a cycle is a
:class:`WorkflowDefinitionError` at construction time.

ARCHITECTURE
────────────
::

    WorkflowRegistry([main, preroll, deploy-automation, ...])
      ├── validate: unique names, every reference exists, graph acyclic
      ├── .get(name)      → Workflow or WorkflowNotFoundError
      ├── .names()
      └── .graph()        → {name: sorted references}

Example::

    registry = WorkflowRegistry(build_lifecycle_workflows(services))
    main = registry.get("main")
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable

from eventscale.core.errors import WorkflowDefinitionError, WorkflowNotFoundError
from eventscale.core.logging import get_logger
from eventscale.workflow.steps import Workflow

logger = get_logger(__name__)


class WorkflowRegistry:
    """Immutable lookup table of validated workflows."""

    def __init__(self, workflows: Iterable[Workflow]):
        self._workflows: dict[str, Workflow] = {}
        for workflow in workflows:
            if workflow.name in self._workflows:
                raise WorkflowDefinitionError(f"Duplicate workflow name: {workflow.name}")
            self._workflows[workflow.name] = workflow
        self._validate_references()
        self._validate_no_cycles()
        logger.debug("workflow_registry_built", workflows=sorted(self._workflows))

    def get(self, name: str) -> Workflow:
        try:
            return self._workflows[name]
        except KeyError:
            raise WorkflowNotFoundError(name, list(self._workflows)) from None

    def __contains__(self, name: str) -> bool:
        return name in self._workflows

    def names(self) -> list[str]:
        return sorted(self._workflows)

    def graph(self) -> dict[str, list[str]]:
        return {name: sorted(wf.references) for name, wf in sorted(self._workflows.items())}

    def _validate_references(self) -> None:
        for workflow in self._workflows.values():
            for ref in workflow.references:
                if ref not in self._workflows:
                    raise WorkflowDefinitionError(
                        f"Workflow '{workflow.name}' references unknown workflow '{ref}'"
                    )

    def _validate_no_cycles(self) -> None:
        """Kahn's algorithm over the reference graph."""
        in_degree: dict[str, int] = {name: 0 for name in self._workflows}
        adjacency: dict[str, list[str]] = defaultdict(list)
        for workflow in self._workflows.values():
            for ref in workflow.references:
                adjacency[workflow.name].append(ref)
                in_degree[ref] += 1

        queue: deque[str] = deque(name for name, deg in in_degree.items() if deg == 0)
        visited = 0
        while queue:
            node = queue.popleft()
            visited += 1
            for neighbor in adjacency[node]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)

        if visited != len(self._workflows):
            cycle_nodes = sorted(name for name, deg in in_degree.items() if deg > 0)
            raise WorkflowDefinitionError(f"Workflow reference cycle detected among: {cycle_nodes}")
