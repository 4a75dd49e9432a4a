"""
Cross-architecture resolution.

Each architecture is resolved by its own SolverContext in a worker thread.
Architectures share nothing but the metadata cache, whose entries are keyed
per architecture, so a failure in one never affects the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Mapping, Optional, Sequence

from .cancel import CancelToken
from .config import get_max_workers
from .errors import ArchitectureErrors, ImageSolveError
from .models import ChainResult, PackageSetChain, Repository
from .solver import BaseContext

logger = logging.getLogger(__name__)


def _resolve_arch(base: BaseContext, arch: str, chains: Mapping[str, PackageSetChain],
                  platform_id: str, releasever: str, distro_name: str,
                  repositories: Sequence[Repository], best_effort: bool,
                  cancel: CancelToken) -> Dict[str, ChainResult]:
    solver = base.derive(platform_id, releasever, arch, distro_name, repositories)
    logger.debug(f"Resolving {len(chains)} chain(s) for {arch}")
    return solver.resolve_chains(chains, best_effort=best_effort, cancel=cancel)


def resolve_architectures(base: BaseContext,
                          requests: Mapping[str, Mapping[str, PackageSetChain]],
                          platform_id: str, releasever: str, distro_name: str,
                          max_workers: Optional[int] = None, fail_fast: bool = False,
                          best_effort: bool = False, cancel: CancelToken = None,
                          repositories: Mapping[str, Sequence[Repository]] = None
                          ) -> Dict[str, Dict[str, ChainResult]]:
    """Resolve chains for several architectures in parallel.

    Args:
        base: Context whose cache all architectures share
        requests: arch -> (chain name -> chain)
        platform_id, releasever, distro_name: Target for every architecture
        max_workers: Thread count (configured default if None)
        fail_fast: Cancel remaining architectures after the first failure
        best_effort: Per-chain best effort, see SolverContext.resolve_chains
        cancel: Caller's cancellation token
        repositories: arch -> default repositories

    Returns:
        arch -> (chain name -> ChainResult), in request order

    Raises:
        ArchitectureErrors: if any architecture failed; successful results
            are attached
        CancelledError: if the caller's token was cancelled
    """
    repositories = repositories or {}
    token = cancel.child() if cancel is not None else CancelToken()
    workers = max_workers or get_max_workers()

    results: Dict[str, Dict[str, ChainResult]] = {}
    errors: Dict[str, ImageSolveError] = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="imagesolve") as executor:
        futures = {
            executor.submit(_resolve_arch, base, arch, chains, platform_id, releasever,
                            distro_name, repositories.get(arch, ()), best_effort,
                            token): arch
            for arch, chains in requests.items()
        }
        for future in as_completed(futures):
            arch = futures[future]
            try:
                results[arch] = future.result()
            except ImageSolveError as e:
                logger.error(f"Resolution for {arch} failed: {e.message}")
                errors[arch] = e
                if fail_fast:
                    token.cancel(f"resolution for {arch} failed")

    if cancel is not None:
        cancel.check()
    if errors:
        raise ArchitectureErrors(errors, {a: results[a] for a in requests if a in results})
    return {arch: results[arch] for arch in requests}
