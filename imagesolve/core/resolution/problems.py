"""Solver problem and exclusion conflict analysis."""

import logging
from typing import List, Sequence, Set, Tuple

import solv

from ..errors import DependencyConflictError
from ..models import PackageRequirement

logger = logging.getLogger(__name__)


class ProblemsMixin:
    """Mixin converting libsolv problems into structured errors."""

    def _conflict_error(self, problems, requirements: Sequence[PackageRequirement],
                        context: str = "") -> DependencyConflictError:
        """Build a DependencyConflictError from solver problems.

        The error names the requirements whose packages appear in the
        problem rules; when none can be identified, all requirements are
        named.
        """
        descriptions = []
        involved: Set[str] = set()
        for problem in problems:
            descriptions.append(str(problem))
            for rule in problem.findallproblemrules():
                for info in rule.allinfos():
                    for s in (info.solvable, info.othersolvable):
                        if s is not None:
                            involved.add(s.name)
                    if info.dep is not None:
                        involved.add(str(info.dep).split()[0])

        named = [str(r) for r in requirements
                 if any(r.matches_name(name) for name in involved)]
        if not named:
            named = [str(r) for r in requirements]

        prefix = f"{context}: " if context else ""
        message = f"{prefix}dependency conflict: " + "; ".join(descriptions)
        logger.debug(f"Solver reported {len(descriptions)} problem(s): {descriptions}")
        return DependencyConflictError(message, requirements=named, problems=descriptions)

    def _exclusion_conflicts(self, pool: solv.Pool, installed: Sequence[solv.XSolvable],
                             excluded: Set[int], hidden: Set[int]) -> List[Tuple[str, str]]:
        """Find excluded packages that a kept package hard-requires.

        A dependency is a conflict when every provider of it that could be
        installed is excluded. Weak dependencies (Recommends, Supplements)
        never conflict.

        Returns:
            Sorted list of (excluded name, requiring package name)
        """
        conflicts = set()
        for s in installed:
            if s.id in excluded:
                continue
            for dep in s.lookup_deparray(solv.SOLVABLE_REQUIRES):
                if str(dep).startswith('rpmlib('):
                    continue
                providers = [p for p in pool.whatprovides(dep) if p.id not in hidden]
                if not providers:
                    continue
                blocked = [p for p in providers if p.id in excluded]
                if blocked and len(blocked) == len(providers):
                    for p in blocked:
                        conflicts.add((p.name, s.name))
        return sorted(conflicts)
