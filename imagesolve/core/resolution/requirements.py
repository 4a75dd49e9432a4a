"""Requirement expansion into libsolv jobs."""

import logging
from typing import Dict, List, Sequence, Set, Tuple

import solv

from ..cancel import CancelToken, check
from ..errors import DependencyConflictError, ExclusionConflictError
from ..models import PackageRequirement, PackageSpec

logger = logging.getLogger(__name__)

NAME_FLAGS = (solv.Selection.SELECTION_NAME |
              solv.Selection.SELECTION_CANON |
              solv.Selection.SELECTION_DOTARCH |
              solv.Selection.SELECTION_REL)

GLOB_FLAGS = (solv.Selection.SELECTION_NAME |
              solv.Selection.SELECTION_GLOB |
              solv.Selection.SELECTION_CANON |
              solv.Selection.SELECTION_DOTARCH |
              solv.Selection.SELECTION_REL)

PROVIDES_FLAGS = (solv.Selection.SELECTION_PROVIDES |
                  solv.Selection.SELECTION_REL)

PROVIDES_GLOB_FLAGS = PROVIDES_FLAGS | solv.Selection.SELECTION_GLOB


class RequirementsMixin:
    """Mixin turning package requirements into solver jobs.

    Requires:
        - pools created by PoolMixin
    """

    def _select(self, pool: solv.Pool,
                requirement: PackageRequirement) -> Tuple[solv.Selection, bool]:
        """Select candidates by name, then glob, then provides.

        Returns:
            Tuple of (selection, matched_by_provides)
        """
        selector = requirement.selector
        sel = pool.select(selector, NAME_FLAGS)
        if sel.isempty() and requirement.is_glob:
            sel = pool.select(selector, GLOB_FLAGS)
        if sel.isempty():
            flags = PROVIDES_GLOB_FLAGS if requirement.is_glob else PROVIDES_FLAGS
            return pool.select(selector, flags), True
        return sel, False

    def _excluded_ids(self, pool: solv.Pool, excludes: Sequence[PackageRequirement]) -> Set[int]:
        """Ids of every solvable matched by an exclude (by name or glob)."""
        ids = set()
        for exclude in excludes:
            flags = GLOB_FLAGS if exclude.is_glob else NAME_FLAGS
            for s in pool.select(exclude.selector, flags).solvables():
                ids.add(s.id)
        return ids

    def _one_of(self, pool: solv.Pool, ids) -> solv.Job:
        return pool.Job(solv.Job.SOLVER_SOLVABLE_ONE_OF | solv.Job.SOLVER_INSTALL,
                        pool.towhatprovides(sorted(ids)))

    def _requirement_jobs(self, pool: solv.Pool, requirements: Sequence[PackageRequirement],
                          hidden: Set[int], excluded: Set[int],
                          cancel: CancelToken = None) -> List[solv.Job]:
        """Expand requirements into install jobs.

        A name or glob requirement installs one package per matched name; a
        provides requirement installs one of its providers. Hidden and
        excluded solvables are never candidates.

        Raises:
            DependencyConflictError: a requirement matches nothing, or two
                requirements on the same name have no candidate in common
            ExclusionConflictError: every candidate of a requirement is excluded
        """
        jobs = []
        candidates: Dict[PackageRequirement, Set[int]] = {}

        for req in requirements:
            check(cancel)
            sel, by_provides = self._select(pool, req)
            solvables = [s for s in sel.solvables() if s.id not in hidden]
            if not solvables:
                if sel.isempty():
                    message = f"no package matches '{req}'"
                else:
                    message = f"no package matches '{req}' (filtered by module/platform)"
                raise DependencyConflictError(message, requirements=[str(req)],
                                              problems=[message])

            allowed = [s for s in solvables if s.id not in excluded]
            if not allowed:
                name = solvables[0].name
                raise ExclusionConflictError(
                    f"package '{name}' is excluded but explicitly requested by '{req}'",
                    excluded=name, required_by=str(req))

            if by_provides:
                jobs.append(self._one_of(pool, [s.id for s in allowed]))
            else:
                by_name: Dict[str, List[int]] = {}
                for s in allowed:
                    by_name.setdefault(s.name, []).append(s.id)
                for name in sorted(by_name):
                    jobs.append(self._one_of(pool, by_name[name]))

            candidates[req] = {s.id for s in allowed}
            logger.debug(f"Requirement '{req}': {len(allowed)} candidate(s)")

        self._check_disjoint(candidates)
        return jobs

    def _check_disjoint(self, candidates: Dict[PackageRequirement, Set[int]]):
        by_name: Dict[str, List[PackageRequirement]] = {}
        for req in candidates:
            if not req.is_glob:
                by_name.setdefault(req.name, []).append(req)

        for reqs in by_name.values():
            for i, first in enumerate(reqs):
                for second in reqs[i + 1:]:
                    if not candidates[first] & candidates[second]:
                        message = (f"requirements '{first}' and '{second}' "
                                   f"cannot both be satisfied")
                        raise DependencyConflictError(
                            message, requirements=[str(first), str(second)],
                            problems=[message])

    def _pin_jobs(self, pool: solv.Pool, specs: Sequence[PackageSpec],
                  hidden: Set[int]) -> List[solv.Job]:
        """Install jobs pinning exact NEVRAs (the result of an earlier set)."""
        jobs = []
        for spec in specs:
            sel = pool.select(spec.nevra, solv.Selection.SELECTION_CANON)
            ids = [s.id for s in sel.solvables() if s.id not in hidden]
            if not ids:
                message = f"package {spec.nevra} from an earlier set is not available"
                raise DependencyConflictError(message, requirements=[spec.nevra],
                                              problems=[message])
            jobs.append(pool.Job(solv.Job.SOLVER_SOLVABLE | solv.Job.SOLVER_INSTALL, ids[0]))
        return jobs

    def _lock_jobs(self, pool: solv.Pool, ids: Set[int]) -> List[solv.Job]:
        """Lock jobs keeping solvables out of the result."""
        return [pool.Job(solv.Job.SOLVER_SOLVABLE | solv.Job.SOLVER_LOCK, sid)
                for sid in sorted(ids)]
