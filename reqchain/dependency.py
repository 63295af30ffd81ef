# dependency.py

from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from reqchain.context import RunContext
from reqchain.errors import CyclicDependency, UnknownDependency
from reqchain.log import logger

if TYPE_CHECKING:
    from reqchain.config import RequestSpec


class DependencyResolver:
    """
    Builds the dependency forest of a request list and derives an execution order.

    Every request has at most one parent (its depends_on), so the structure is a
    forest; a closed parent chain is still possible and is reported as a cycle.
    """

    def __init__(self):
        # name -> request spec
        self.requests: Dict[str, 'RequestSpec'] = {}
        # parent name -> names of the requests that depend on it
        self.dependencies: Dict[str, List[str]] = {}
        # child name -> parent name
        self.depends_on: Dict[str, str] = {}

    def build_graph(self, requests: Sequence['RequestSpec'], ctx: Optional[RunContext] = None):
        """
        Indexes requests by name, records parent/children links and checks for cycles.
        Raises UnknownDependency or CyclicDependency.
        """
        if ctx is not None:
            ctx.raise_if_done()

        for req in requests:
            self.requests[req.name] = req

        for req in requests:
            if not req.depends_on:
                continue
            if req.depends_on not in self.requests:
                raise UnknownDependency(f"request '{req.name}' depends on unknown request '{req.depends_on}'")
            self.dependencies.setdefault(req.depends_on, []).append(req.name)
            self.depends_on[req.name] = req.depends_on

        logger.debug(f"Dependency graph built: {len(self.requests)} requests, {len(self.depends_on)} dependency links")
        self._detect_cycles()

    def _detect_cycles(self):
        for name in self.requests:
            if self._has_cycle(name):
                raise CyclicDependency(f"cyclic dependency detected with request '{name}'")

    def _has_cycle(self, start: str) -> bool:
        # Walk the single-parent chain; revisiting a name means the chain is closed.
        visited = set()
        current = start
        while current in self.depends_on:
            if current in visited:
                return True
            visited.add(current)
            current = self.depends_on[current]
        return current in visited

    def calculate_execution_order(self, ctx: Optional[RunContext] = None, dependencies_first: bool = False) -> List[str]:
        """
        Computes the order in which requests run.

        Each node is appended after its parent has been visited, then the whole list
        is reversed, which puts dependents ahead of the requests they depend on
        (root, A1->root, A2->A1 gives [A2, A1, root]). Pass dependencies_first=True
        to skip the reversal and get parents before children instead.
        """
        if ctx is not None:
            ctx.raise_if_done()

        result: List[str] = []
        visited = set()   # fully processed
        visiting = set()  # on the current traversal path

        def visit(name: str):
            if name in visiting:
                raise CyclicDependency(f"cyclic dependency detected with request '{name}'")
            if name in visited:
                return
            visiting.add(name)
            parent = self.depends_on.get(name)
            if parent is not None:
                visit(parent)
            visiting.discard(name)
            visited.add(name)
            result.append(name)

        for name in self.requests:
            visit(name)

        if not dependencies_first:
            result.reverse()

        logger.debug(f"Execution order: {result}")
        return result

    def get(self, name: str) -> 'RequestSpec':
        return self.requests[name]
