"""Pool creation and loading operations."""

import logging
import tempfile
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import solv

from ..cache import CacheEntry
from ..cancel import CancelToken, check
from ..compression import decompress, decompress_to
from ..errors import RepositoryFetchError
from ..models import Repository, split_evr
from ..modules import (
    ModuleMetadata, ModuleStream, is_package_included, masked_names, nevra_key,
    parse_modules_yaml,
)

logger = logging.getLogger(__name__)

# Loaded pools kept per context
MAX_CACHED_POOLS = 8


@dataclass
class LoadedPool:
    """A libsolv pool built from a fixed set of cache entries.

    The pool is not thread-safe: hold ``lock`` while using it.
    """
    pool: solv.Pool
    key: tuple
    repositories: List[Repository]
    modules: ModuleMetadata = field(default_factory=ModuleMetadata)
    # solvable id -> streams listing it as an artifact
    modular: Dict[int, List[ModuleStream]] = field(default_factory=dict)
    # name -> ids of non-modular solvables that module streams may hide
    nonmodular_by_name: Dict[str, List[int]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def filtered_ids(self, platform_id: str, active: Dict[str, str]) -> Set[int]:
        """Solvable ids hidden by module/platform filtering."""
        hidden = {sid for sid, streams in self.modular.items()
                  if not is_package_included(streams, platform_id, active)}
        for name in masked_names(self.modules.streams, platform_id, active):
            hidden.update(self.nonmodular_by_name.get(name, ()))
        return hidden


class PoolMixin:
    """Mixin providing pool creation and loading operations.

    Requires:
        - self.cache: MetadataCache instance
        - self.arch: str architecture
        - self.distro_name: str distribution name
        - self.releasever: str release version
        - self.repositories: default repositories
    """

    def _init_pools(self):
        self._pools: 'OrderedDict[tuple, LoadedPool]' = OrderedDict()
        self._pools_guard = threading.Lock()

    def _effective_repositories(self, requested: Sequence[Repository],
                                base: Sequence[Repository] = ()) -> List[Repository]:
        """Determine the repositories a package set is resolved against.

        The base list (from an earlier set of a chain) comes first; the
        set's own list, or the context default, follows. Disabled and
        non-applicable repositories are dropped.
        """
        own = list(requested) or list(self.repositories)
        result = []
        seen = set()
        for repo in list(base) + own:
            if repo.id in seen:
                continue
            seen.add(repo.id)
            if not repo.enabled:
                logger.debug(f"Skipping disabled repository {repo.id}")
                continue
            if not repo.applies_to(self.arch):
                logger.debug(f"Skipping repository {repo.id}: not for {self.arch}")
                continue
            result.append(repo.expand(self.releasever, self.arch))
        return result

    def _load_metadata(self, repos: Sequence[Repository],
                       cancel: CancelToken = None) -> List[Tuple[Repository, CacheEntry]]:
        """Make sure metadata of every repository is cached.

        Raises:
            RepositoryFetchError: for required repositories
        """
        loaded = []
        for repo in repos:
            check(cancel)
            try:
                entry = self.cache.ensure(repo, self.distro_name, self.arch, cancel=cancel)
            except RepositoryFetchError as e:
                if not repo.skip_if_unavailable:
                    raise
                logger.warning(f"Skipping unavailable repository {repo.id}: {e.message}")
                continue
            loaded.append((repo, entry))
        return loaded

    def _get_pool(self, loaded: Sequence[Tuple[Repository, CacheEntry]],
                  cancel: CancelToken = None) -> LoadedPool:
        """Return a pool for these cache entries, reusing a previous one if possible."""
        key = tuple((repo.id, repo.module_hotfixes) + entry.token for repo, entry in loaded)
        with self._pools_guard:
            state = self._pools.get(key)
            if state is not None:
                self._pools.move_to_end(key)
                logger.debug(f"Reusing pool for {[r.id for r, _ in loaded]}")
                return state

        state = self._create_pool(loaded, key, cancel)

        with self._pools_guard:
            # another thread may have built the same pool meanwhile
            existing = self._pools.get(key)
            if existing is not None:
                return existing
            self._pools[key] = state
            while len(self._pools) > MAX_CACHED_POOLS:
                self._pools.popitem(last=False)
        return state

    def _create_pool(self, loaded: Sequence[Tuple[Repository, CacheEntry]], key: tuple,
                     cancel: CancelToken = None) -> LoadedPool:
        """Create and populate a libsolv Pool from cached metadata."""
        pool = solv.Pool()
        pool.setdisttype(solv.Pool.DISTTYPE_RPM)
        pool.setarch(self.arch)
        logger.debug(f"Creating pool for arch={self.arch}, repos={[r.id for r, _ in loaded]}")

        state = LoadedPool(pool=pool, key=key, repositories=[r for r, _ in loaded])
        hotfix_repos = set()

        for repo, entry in loaded:
            check(cancel)
            srepo = pool.add_repo(repo.id)
            srepo.appdata = {"repository": repo, "entry": entry}
            # entries are read under the cache lock so a concurrent refresh
            # cannot remove files while they are parsed
            with self.cache.lock(entry.key):
                self._load_repo(srepo, entry)
                modules_path = entry.file('modules')
                if modules_path is not None:
                    try:
                        state.modules.merge(parse_modules_yaml(decompress(modules_path)))
                    except ValueError as e:
                        raise RepositoryFetchError(
                            f"repository '{repo.id}': {e}", repo.id, str(modules_path))
            if repo.module_hotfixes:
                hotfix_repos.add(repo.id)
            logger.debug(f"Loaded {srepo.nsolvables} packages from {repo.id}")

        pool.addfileprovides()
        pool.createwhatprovides()

        if state.modules.streams:
            self._index_modular(state, hotfix_repos)

        logger.debug(f"Pool ready: {sum(r.nsolvables for r in pool.repos)} solvables, "
                     f"{len(state.modules.streams)} module streams")
        return state

    def _load_repo(self, srepo: solv.Repo, entry: CacheEntry):
        """Load one cache entry into a libsolv repo."""
        if entry.metadata_format == 'mdk':
            path = entry.file('synthesis')
            loader = srepo.add_mdk
        else:
            path = entry.file('primary')
            loader = lambda f: srepo.add_rpmmd(f, None, 0)

        with tempfile.NamedTemporaryFile(suffix='.xml') as tmp:
            decompress_to(path, tmp)
            tmp.flush()
            f = solv.xfopen(tmp.name)
            try:
                ok = loader(f)
            finally:
                f.close()
        if not ok:
            raise RepositoryFetchError(
                f"repository '{entry.repo_id}': cannot parse {path.name}: "
                f"{srepo.pool.errstr}", entry.repo_id, str(path))

    def _index_modular(self, state: LoadedPool, hotfix_repos: Set[str]):
        """Record which solvables belong to module streams."""
        by_artifact = state.modules.streams_by_artifact()
        for srepo in state.pool.repos:
            for s in srepo.solvables:
                epoch, version, release = split_evr(s.evr)
                streams = by_artifact.get(nevra_key(s.name, epoch, version, release, s.arch))
                if streams:
                    state.modular[s.id] = streams
                elif srepo.name not in hotfix_repos:
                    state.nonmodular_by_name.setdefault(s.name, []).append(s.id)
