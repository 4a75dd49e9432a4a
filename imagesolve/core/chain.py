"""Package set chain sequencing."""

import logging
from typing import Dict, Iterable, List, Mapping, Union

from .cancel import CancelToken, check
from .errors import CancelledError, ChainError, ImageSolveError
from .models import ChainResult, PackageSetChain, PackageSpec, Repository, sort_specs

logger = logging.getLogger(__name__)


class ChainMixin:
    """Mixin resolving chains of package sets.

    Sets are resolved in declared order. A set with a base is resolved on
    top of what its base left installed (the base's result plus whatever
    the base itself was resolved on), using the base's repositories
    followed by its own.

    Requires:
        - self._resolve_set(): provided by SolverContext
    """

    def resolve_chain_sets(self, chain: PackageSetChain,
                           cancel: CancelToken = None) -> ChainResult:
        """Resolve every set of a chain.

        Returns:
            ChainResult with per-set results in declared order

        Raises:
            ChainError: wrapping the first failing set's error
        """
        result = ChainResult(name=chain.name)
        repositories: Dict[str, List[Repository]] = {}
        # packages installed once a set is applied
        present: Dict[str, List[PackageSpec]] = {}

        for pkg_set in chain.sets:
            base_repos = ()
            floor = ()
            mode = None
            if pkg_set.base is not None:
                base_name = pkg_set.base.set_name
                base_repos = repositories[base_name]
                floor = present[base_name]
                mode = pkg_set.base.mode

            try:
                check(cancel)
                specs, repos, floor = self._resolve_set(pkg_set, cancel=cancel,
                                                        base_repositories=base_repos,
                                                        floor=floor, floor_mode=mode)
            except ImageSolveError as e:
                logger.debug(f"Chain '{chain.name}' failed at set '{pkg_set.name}': {e.message}")
                raise ChainError(chain.name, pkg_set.name, e) from e

            result.sets[pkg_set.name] = specs
            repositories[pkg_set.name] = repos
            present[pkg_set.name] = sort_specs(list(floor) + specs)

        bases = {s.base.set_name for s in chain.sets if s.base is not None}
        result.trees = {name: present[name] for name in chain.set_names if name not in bases}
        return result

    def resolve_chain(self, chain: PackageSetChain,
                      cancel: CancelToken = None) -> List[PackageSpec]:
        """Resolve a chain and return the merged, sorted package list."""
        return self.resolve_chain_sets(chain, cancel=cancel).packages

    def resolve_chains(self, chains: Union[Mapping[str, PackageSetChain],
                                           Iterable[PackageSetChain]],
                       best_effort: bool = False,
                       cancel: CancelToken = None) -> Dict[str, ChainResult]:
        """Resolve several chains.

        Args:
            chains: name -> chain, or chains keyed by their own names
            best_effort: Record failures in the results instead of raising
            cancel: Cancellation token

        Returns:
            Dict with exactly one ChainResult per requested chain

        Raises:
            ChainError: first failure, unless best_effort
            CancelledError: when cancelled, even in best-effort mode
        """
        if not isinstance(chains, Mapping):
            chains = {c.name: c for c in chains}

        results = {}
        for name, chain in chains.items():
            try:
                results[name] = self.resolve_chain_sets(chain, cancel=cancel)
            except ChainError as e:
                if not best_effort or isinstance(e.cause, CancelledError):
                    raise
                logger.warning(f"Chain '{name}' failed: {e.message}")
                results[name] = ChainResult(name=name, error=e)
        return results
