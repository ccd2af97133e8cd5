from __future__ import annotations

"""
Dependency graph checks over module manifests.

Every walk uses an explicit stack of (module, remaining-edges) frames instead
of recursion, so the depth limit comes from configuration and not from the
interpreter's recursion limit. Only non-optional edges take part in cycle
detection and ordering; edges to modules that are not registered are leaves.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from modreg.core.errors import CircularDependencyError, DependencyDepthError, ModuleNotRegisteredError
from modreg.core.manifest.models import ModuleManifest

Lookup = Callable[[str], Optional[ModuleManifest]]


class DependencyGraphChecker:
    def __init__(self, *, max_depth: int = 256, logger: Optional[logging.Logger] = None):
        self.max_depth = int(max_depth)
        self.logger = logger or logging.getLogger("modreg.dependencies")

    def find_cycle(self, candidate: ModuleManifest, lookup: Lookup) -> Optional[List[str]]:
        """
        Walk from `candidate` through registered modules. Returns the path in
        traversal order ending at the repeated id, or None.
        """
        root = candidate.module_id
        path: List[str] = [root]
        on_path: Set[str] = {root}
        explored: Set[str] = set()
        stack: List[Iterator[str]] = [iter(candidate.required_dependencies)]

        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                finished = path.pop()
                on_path.discard(finished)
                explored.add(finished)
                continue
            if nxt in on_path:
                return path + [nxt]
            if nxt in explored:
                continue
            node = lookup(nxt)
            if node is None:
                # not registered yet; the edge is checked when it registers
                explored.add(nxt)
                continue
            if len(path) > self.max_depth:
                raise DependencyDepthError(root, self.max_depth)
            path.append(nxt)
            on_path.add(nxt)
            stack.append(iter(node.required_dependencies))
        return None

    def check(self, candidate: ModuleManifest, lookup: Lookup) -> None:
        cycle = self.find_cycle(candidate, lookup)
        if cycle is not None:
            self.logger.info("cycle rejected for %s: %s", candidate.module_id, " -> ".join(cycle))
            raise CircularDependencyError(cycle)

    def dependency_order(self, module_id: str, lookup: Lookup) -> List[str]:
        """
        Topological order of the transitive non-optional closure of
        `module_id`: every dependency before its dependents, each module once,
        `module_id` last.
        """
        root = lookup(module_id)
        if root is None:
            raise ModuleNotRegisteredError(module_id)

        order: List[str] = []
        placed: Set[str] = set()
        path: List[str] = [module_id]
        stack: List[Tuple[str, Iterator[str]]] = [(module_id, iter(root.required_dependencies))]

        while stack:
            node_id, edges = stack[-1]
            nxt = next(edges, None)
            if nxt is None:
                stack.pop()
                path.pop()
                if node_id not in placed:
                    placed.add(node_id)
                    order.append(node_id)
                continue
            if nxt in placed:
                continue
            if nxt in path:
                raise CircularDependencyError(path + [nxt])
            node = lookup(nxt)
            if node is None:
                placed.add(nxt)
                order.append(nxt)
                continue
            if len(path) > self.max_depth:
                raise DependencyDepthError(module_id, self.max_depth)
            path.append(nxt)
            stack.append((nxt, iter(node.required_dependencies)))
        return order

    @staticmethod
    def dependents(module_id: str, modules: Iterable[ModuleManifest], *, required_only: bool = False) -> List[str]:
        """Direct reverse dependencies of `module_id`."""
        return sorted(
            m.module_id
            for m in modules
            if m.module_id != module_id and m.depends_on(module_id, required_only=required_only)
        )

    def dependency_graph(self, module_id: str, lookup: Lookup) -> List[Dict[str, Any]]:
        """
        Adjacency list of every registered module reachable from `module_id`
        over any declared edge, optional ones included.
        """
        out: List[Dict[str, Any]] = []
        seen: Set[str] = set()
        pending: List[str] = [module_id]
        while pending:
            mid = pending.pop()
            if mid in seen:
                continue
            seen.add(mid)
            node = lookup(mid)
            if node is None:
                continue
            deps = [d.module_id for d in node.dependencies]
            out.append(
                {
                    "module_id": mid,
                    "dependencies": deps,
                    "optional": [d.module_id for d in node.dependencies if d.optional],
                }
            )
            pending.extend(reversed([d for d in deps if d not in seen]))
        return out
