"""
Solver contexts and the depsolve operation.

A BaseContext owns the metadata cache. SolverContext objects are derived
from it for one (platform, release, architecture, distribution) target and
resolve package sets against repository metadata with libsolv:

    base = new_context("/var/cache/imagesolve")
    solver = base.derive("platform:el9", "9", "x86_64", "centos-9",
                         repositories=repos["x86_64"])
    packages = solver.depsolve(PackageSet("os", requirements=["bash", "bind"]))

Contexts perform no I/O until a resolve call; contexts derived from the
same base may be used from different threads at the same time.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import solv

from .cache import MetadataCache
from .cancel import CancelToken, check
from .chain import ChainMixin
from .config import KNOWN_ARCHES
from .errors import ConfigurationError, ExclusionConflictError
from .fetch import join_url
from .models import PackageSet, PackageSetChain, PackageSpec, Repository, sort_specs, split_evr
from .modules import active_streams
from .resolution import LoadedPool, PoolMixin, ProblemsMixin, RequirementsMixin

logger = logging.getLogger(__name__)

PLATFORM_ID_REGEX = re.compile(r'^platform:[A-Za-z0-9._+-]+$')


class BaseContext:
    """Root of solver contexts: holds the shared metadata cache."""

    def __init__(self, cache: MetadataCache):
        self.cache = cache

    def derive(self, platform_id: str, releasever: str, arch: str, distro_name: str,
               repositories: Sequence[Repository] = ()) -> 'SolverContext':
        """Create a solver context for one target.

        Args:
            platform_id: Module platform, e.g. "platform:el9" ("" disables
                platform filtering)
            releasever: Release version substituted for $releasever
            arch: Target RPM architecture
            distro_name: Distribution name, e.g. "centos-9"
            repositories: Default repositories for sets that name none

        Raises:
            ConfigurationError: on invalid parameters
        """
        return SolverContext(self.cache, platform_id, releasever, arch, distro_name,
                             repositories)

    def __repr__(self):
        return f"BaseContext(cache={str(self.cache.path)!r})"


class SolverContext(PoolMixin, RequirementsMixin, ProblemsMixin, ChainMixin):
    """Resolver bound to one platform/release/architecture/distribution.

    The configuration is fixed at construction. Loaded pools are cached
    privately and reused by later calls resolving against the same
    repository metadata.
    """

    def __init__(self, cache: MetadataCache, platform_id: str, releasever: str, arch: str,
                 distro_name: str, repositories: Sequence[Repository] = ()):
        if not arch:
            raise ConfigurationError("architecture must not be empty")
        if arch not in KNOWN_ARCHES:
            raise ConfigurationError(f"unknown architecture '{arch}'")
        if not distro_name:
            raise ConfigurationError("distribution name must not be empty")
        if platform_id and not PLATFORM_ID_REGEX.match(platform_id):
            raise ConfigurationError(
                f"invalid module platform id '{platform_id}' (expected platform:<stream>)")

        self._cache = cache
        self._platform_id = platform_id or ""
        self._releasever = releasever or ""
        self._arch = arch
        self._distro_name = distro_name
        self._repositories = tuple(repositories or ())
        self._init_pools()

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    @property
    def platform_id(self) -> str:
        return self._platform_id

    @property
    def releasever(self) -> str:
        return self._releasever

    @property
    def arch(self) -> str:
        return self._arch

    @property
    def distro_name(self) -> str:
        return self._distro_name

    @property
    def repositories(self) -> Tuple[Repository, ...]:
        return self._repositories

    def with_repositories(self, repositories: Sequence[Repository]) -> 'SolverContext':
        """Return a context for the same target with other default repositories."""
        return SolverContext(self._cache, self._platform_id, self._releasever, self._arch,
                             self._distro_name, repositories)

    def __repr__(self):
        return (f"SolverContext(platform_id={self._platform_id!r}, "
                f"releasever={self._releasever!r}, arch={self._arch!r}, "
                f"distro_name={self._distro_name!r})")

    # =========================================================================
    # Resolve
    # =========================================================================

    def depsolve(self, package_set: Union[PackageSet, PackageSetChain],
                 cancel: CancelToken = None) -> List[PackageSpec]:
        """Resolve a package set (or a whole chain) to pinned packages.

        Returns:
            PackageSpec list sorted by (name, epoch, version, release, arch)

        Raises:
            ConfigurationError, RepositoryFetchError, DependencyConflictError,
            ExclusionConflictError, CancelledError (ChainError for chains)
        """
        if isinstance(package_set, PackageSetChain):
            return self.resolve_chain(package_set, cancel=cancel)
        specs, _, _ = self._resolve_set(package_set, cancel=cancel)
        return specs

    def _resolve_set(self, package_set: PackageSet, cancel: CancelToken = None,
                     base_repositories: Sequence[Repository] = (),
                     floor: Sequence[PackageSpec] = (),
                     floor_mode: Optional[str] = None
                     ) -> Tuple[List[PackageSpec], List[Repository], List[PackageSpec]]:
        """Resolve one set on top of an optional floor.

        Returns:
            Tuple of (sorted specs, effective repositories, floor left after
            this set's excludes)
        """
        check(cancel)
        # explicit excludes win over the inherited floor
        floor = [spec for spec in floor if not package_set.is_excluded(spec.name)]
        repos = self._effective_repositories(package_set.repositories, base_repositories)
        if not repos:
            raise ConfigurationError(
                f"package set '{package_set.name}': no enabled repositories for {self.arch}")

        loaded = self._load_metadata(repos, cancel)
        state = self._get_pool(loaded, cancel)

        with state.lock:
            solvables = self._solve(state, package_set, floor, cancel)
            specs = [self._to_spec(s) for s in solvables]

        if floor_mode == 'exclude':
            present = set(floor)
            specs = [s for s in specs if s not in present]

        specs = sort_specs(specs)
        logger.info(f"Resolved package set '{package_set.name}' for {self.arch}: "
                    f"{len(specs)} packages")
        return specs, repos, floor

    def _solve(self, state: LoadedPool, package_set: PackageSet,
               floor: Sequence[PackageSpec], cancel: CancelToken = None) -> list:
        """Run the solver phases for one set; caller holds state.lock."""
        pool = state.pool
        active = active_streams(state.modules.defaults, package_set.enabled_modules)
        hidden = state.filtered_ids(self.platform_id, active)
        excluded = self._excluded_ids(pool, package_set.excludes) - hidden
        if hidden:
            logger.debug(f"{len(hidden)} packages hidden by module filtering")

        jobs = self._requirement_jobs(pool, package_set.requirements, hidden, excluded, cancel)
        jobs += self._pin_jobs(pool, floor, hidden)
        jobs += self._lock_jobs(pool, hidden)

        check(cancel)
        installed = self._run_solver(pool, jobs, package_set)

        if any(s.id in excluded for s in installed):
            conflicts = self._exclusion_conflicts(pool, installed, excluded, hidden)
            if conflicts:
                excluded_name, required_by = conflicts[0]
                raise ExclusionConflictError(
                    f"package set '{package_set.name}': excluded package '{excluded_name}' "
                    f"is required by '{required_by}'",
                    excluded=excluded_name, required_by=required_by, conflicts=conflicts)

            check(cancel)
            logger.debug(f"Re-solving '{package_set.name}' without {len(excluded)} "
                         f"excluded packages")
            installed = self._run_solver(pool, jobs + self._lock_jobs(pool, excluded),
                                         package_set)
        return installed

    def _run_solver(self, pool: solv.Pool, jobs: list, package_set: PackageSet) -> list:
        solver = pool.Solver()
        if not package_set.install_weak_deps:
            solver.set_flag(solv.Solver.SOLVER_FLAG_IGNORE_RECOMMENDED, 1)

        problems = solver.solve(jobs)
        if problems:
            raise self._conflict_error(problems, package_set.requirements,
                                       f"package set '{package_set.name}'")

        trans = solver.transaction()
        return list(trans.newsolvables())

    def _to_spec(self, s) -> PackageSpec:
        """Convert a solvable to a PackageSpec."""
        appdata = s.repo.appdata
        repo = appdata["repository"]
        entry = appdata["entry"]
        epoch, version, release = split_evr(s.evr)

        checksum = ""
        chksum = s.lookup_checksum(solv.SOLVABLE_CHECKSUM)
        if chksum is not None:
            checksum = f"{chksum.typestr()}:{chksum.hex()}"

        location, _ = s.lookup_location()
        location = location or ""
        return PackageSpec(
            name=s.name,
            epoch=epoch,
            version=version,
            release=release,
            arch=s.arch,
            checksum=checksum,
            repo_id=repo.id,
            remote_location=join_url(entry.base_url, location) if location else "",
            location=location,
            check_gpg=repo.check_gpg,
        )


def new_context(cache: Union[str, Path, MetadataCache, None] = None) -> BaseContext:
    """Create a BaseContext on a cache directory or an existing MetadataCache."""
    if not isinstance(cache, MetadataCache):
        cache = MetadataCache(cache)
    return BaseContext(cache)


def new_solver(platform_id: str, releasever: str, arch: str, distro_name: str,
               cache: Union[str, Path, MetadataCache, None] = None,
               repositories: Sequence[Repository] = ()) -> SolverContext:
    """Shortcut for new_context(cache).derive(...)."""
    return new_context(cache).derive(platform_id, releasever, arch, distro_name,
                                     repositories)
