"""
On-disk repository metadata cache.

Handles:
- One entry per (distribution, architecture, repository fingerprint)
- Fetching repomd.xml and the metadata it references on first use
- Atomic updates (a refresh is staged in a scratch directory, index.json
  written last, then swapped in for the previous entry)
- Per-entry locking, in-process and across processes

The cache is never invalidated implicitly: an entry is reused for as long
as it exists, unless the cache was created with a max_age. Callers decide
when metadata is stale and call clear().
"""

import fcntl
import json
import logging
import os
import shutil
import tempfile
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from .cancel import CancelToken, check
from .config import get_cache_dir, get_cache_entry_name
from .errors import RepositoryFetchError
from .fetch import Fetcher, join_url
from .models import Repository
from .repomd import REPOMD_PATH, WANTED_TYPES, parse_metalink, parse_mirrorlist, parse_repomd

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
SYNTHESIS_PATH = "media_info/synthesis.hdlist.cz"


@dataclass
class CacheEntry:
    """A complete, usable cache entry as recorded in index.json."""
    key: str
    path: Path
    repo_id: str
    fingerprint: str
    metadata_format: str = "rpm-md"
    revision: str = ""
    fetched_at: float = 0.0
    base_url: str = ""
    files: Dict[str, str] = field(default_factory=dict)

    def file(self, data_type: str) -> Optional[Path]:
        """Path of a metadata file ('primary', 'modules', 'synthesis'), if present."""
        rel = self.files.get(data_type)
        return self.path / rel if rel else None

    @property
    def token(self) -> tuple:
        """Identifies the exact metadata content of this entry."""
        return (self.key, self.revision, self.fetched_at)

    def to_dict(self) -> Dict:
        return {
            'repo_id': self.repo_id,
            'fingerprint': self.fingerprint,
            'metadata_format': self.metadata_format,
            'revision': self.revision,
            'fetched_at': self.fetched_at,
            'base_url': self.base_url,
            'files': self.files,
        }

    @classmethod
    def from_dict(cls, key: str, path: Path, data: Dict) -> 'CacheEntry':
        return cls(
            key=key,
            path=path,
            repo_id=data['repo_id'],
            fingerprint=data['fingerprint'],
            metadata_format=data.get('metadata_format', 'rpm-md'),
            revision=data.get('revision', ''),
            fetched_at=data.get('fetched_at', 0.0),
            base_url=data.get('base_url', ''),
            files=dict(data.get('files', {})),
        )


class MetadataCache:
    """Cache handle passed to solver contexts.

    Instances are safe to share between threads. Two caches pointing at the
    same directory (e.g. in different processes) coordinate through lock
    files.
    """

    def __init__(self, path: Union[str, Path] = None, max_age: Optional[float] = None,
                 fetcher: Fetcher = None):
        """Initialize the cache.

        Args:
            path: Cache directory (configured default if None)
            max_age: Refetch entries older than this many seconds (never if None)
            fetcher: Downloader to use (a default Fetcher if None)
        """
        self.path = Path(path) if path is not None else get_cache_dir()
        self.max_age = max_age
        self.fetcher = fetcher or Fetcher()
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def key_for(self, repo: Repository, distro: str, arch: str) -> str:
        return get_cache_entry_name(distro, arch, repo.fingerprint)

    # =========================================================================
    # Locking
    # =========================================================================

    def _thread_lock(self, key: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        """Hold the entry lock for key (threads, then other processes)."""
        with self._thread_lock(key):
            self.path.mkdir(parents=True, exist_ok=True)
            with open(self.path / f"{key}.lock", 'w') as lock_fd:
                fcntl.flock(lock_fd, fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_fd, fcntl.LOCK_UN)

    # =========================================================================
    # Lookup
    # =========================================================================

    def _read_entry(self, key: str) -> Optional[CacheEntry]:
        entry_dir = self.path / key
        index_path = entry_dir / INDEX_FILE
        if not index_path.exists():
            return None
        try:
            with open(index_path) as f:
                entry = CacheEntry.from_dict(key, entry_dir, json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Ignoring unreadable cache index {index_path}: {e}")
            return None
        for rel in entry.files.values():
            if not (entry_dir / rel).exists():
                logger.warning(f"Cache entry {key} is missing {rel}, refetching")
                return None
        return entry

    def lookup(self, repo: Repository, distro: str, arch: str) -> Optional[CacheEntry]:
        """Return the valid cache entry for repo, or None."""
        entry = self._read_entry(self.key_for(repo, distro, arch))
        if entry is None:
            return None
        if self.max_age is not None and time.time() - entry.fetched_at > self.max_age:
            logger.debug(f"Cache entry {entry.key} older than {self.max_age}s")
            return None
        return entry

    def ensure(self, repo: Repository, distro: str, arch: str,
               cancel: CancelToken = None) -> CacheEntry:
        """Return a cache entry for repo, fetching metadata if needed.

        Raises:
            RepositoryFetchError: if no mirror could provide the metadata
            CancelledError: if cancelled; the previous entry (if any) is kept
        """
        key = self.key_for(repo, distro, arch)
        with self.lock(key):
            entry = self.lookup(repo, distro, arch)
            if entry is not None:
                logger.debug(f"Using cached metadata for {repo.id} ({key})")
                return entry
            return self._fetch(repo, key, cancel)

    def entries(self) -> List[CacheEntry]:
        """List all complete entries in the cache."""
        if not self.path.exists():
            return []
        result = []
        for entry_dir in sorted(self.path.iterdir()):
            if entry_dir.is_dir() and not entry_dir.name.startswith('.'):
                entry = self._read_entry(entry_dir.name)
                if entry is not None:
                    result.append(entry)
        return result

    def clear(self, distro: str = None, arch: str = None) -> int:
        """Remove cache entries, optionally only for one distro and/or arch.

        Returns:
            Number of entries removed
        """
        if not self.path.exists():
            return 0
        removed = 0
        for entry_dir in sorted(self.path.iterdir()):
            if not entry_dir.is_dir() or entry_dir.name.startswith('.'):
                continue
            name = entry_dir.name
            # entry names are <distro>-<arch>-<fingerprint>; distro may contain dashes
            prefix, _, _fingerprint = name.rpartition('-')
            entry_distro, _, entry_arch = prefix.rpartition('-')
            if distro is not None and entry_distro != distro:
                continue
            if arch is not None and entry_arch != arch:
                continue
            with self.lock(name):
                shutil.rmtree(entry_dir, ignore_errors=True)
            removed += 1
            logger.info(f"Removed cache entry {name}")
        return removed

    # =========================================================================
    # Fetching
    # =========================================================================

    def _base_urls(self, repo: Repository, cancel: CancelToken) -> List[str]:
        if repo.baseurls:
            return list(repo.baseurls)

        source = repo.metalink or repo.mirrorlist
        result = self.fetcher.read(source, cancel=cancel, ignore_ssl=repo.ignore_ssl)
        if not result.success:
            raise RepositoryFetchError(
                f"repository '{repo.id}': cannot fetch mirror list: {result.error}",
                repo.id, source)
        try:
            if repo.metalink:
                urls = parse_metalink(result.content)
            else:
                urls = parse_mirrorlist(result.content.decode('utf-8', errors='replace'))
        except ValueError as e:
            raise RepositoryFetchError(f"repository '{repo.id}': {e}", repo.id, source)
        if not urls:
            raise RepositoryFetchError(
                f"repository '{repo.id}': mirror list is empty", repo.id, source)
        return urls

    def _fetch(self, repo: Repository, key: str, cancel: CancelToken) -> CacheEntry:
        errors = []
        for base_url in self._base_urls(repo, cancel):
            check(cancel)
            if repo.metadata_format == 'mdk':
                entry = self._fetch_synthesis(repo, key, base_url, cancel, errors)
            else:
                entry = self._fetch_rpmmd(repo, key, base_url, cancel, errors)
            if entry is not None:
                return entry

        details = "; ".join(f"{url}: {message}" for url, message in errors)
        raise RepositoryFetchError(
            f"repository '{repo.id}': failed to fetch metadata: {details}",
            repo.id, errors[-1][0] if errors else "")

    @contextmanager
    def _staging(self, key: str) -> Iterator[Path]:
        """Scratch directory a refresh is written to before it replaces the entry."""
        self.path.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".tmp-{key}-", dir=self.path))
        try:
            yield staging
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _fetch_rpmmd(self, repo: Repository, key: str, base_url: str,
                     cancel: CancelToken, errors: List[tuple]) -> Optional[CacheEntry]:
        repomd_url = join_url(base_url, REPOMD_PATH)
        result = self.fetcher.read(repomd_url, cancel=cancel, ignore_ssl=repo.ignore_ssl)
        if not result.success:
            errors.append((repomd_url, result.error))
            return None
        try:
            repomd = parse_repomd(result.content)
        except ValueError as e:
            errors.append((repomd_url, e))
            return None

        with self._staging(key) as staging:
            files = {}
            for data_type in WANTED_TYPES:
                record = repomd.get(data_type)
                if record is None:
                    continue
                rel = f"repodata/{Path(record.location).name}"
                url = join_url(base_url, record.location)
                fetched = self.fetcher.fetch(url, staging / rel, record.checksum_type,
                                             record.checksum, cancel=cancel,
                                             ignore_ssl=repo.ignore_ssl)
                if not fetched.success:
                    errors.append((url, fetched.error))
                    return None
                files[data_type] = rel

            self._write_file(staging / REPOMD_PATH, result.content)
            entry = CacheEntry(key=key, path=self.path / key, repo_id=repo.id,
                               fingerprint=repo.fingerprint, metadata_format='rpm-md',
                               revision=repomd.revision, fetched_at=time.time(),
                               base_url=base_url, files=files)
            self._commit(entry, staging)
        logger.info(f"Fetched metadata for {repo.id} from {base_url} (revision {repomd.revision})")
        return entry

    def _fetch_synthesis(self, repo: Repository, key: str, base_url: str,
                         cancel: CancelToken, errors: List[tuple]) -> Optional[CacheEntry]:
        url = join_url(base_url, SYNTHESIS_PATH)
        with self._staging(key) as staging:
            fetched = self.fetcher.fetch(url, staging / SYNTHESIS_PATH, 'sha256',
                                         cancel=cancel, ignore_ssl=repo.ignore_ssl)
            if not fetched.success:
                errors.append((url, fetched.error))
                return None
            entry = CacheEntry(key=key, path=self.path / key, repo_id=repo.id,
                               fingerprint=repo.fingerprint, metadata_format='mdk',
                               revision=fetched.checksum or "", fetched_at=time.time(),
                               base_url=base_url, files={'synthesis': SYNTHESIS_PATH})
            self._commit(entry, staging)
        logger.info(f"Fetched synthesis for {repo.id} from {base_url}")
        return entry

    def _write_file(self, dest: Path, data: bytes):
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix='.tmp-', dir=dest.parent)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_name, dest)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def _commit(self, entry: CacheEntry, staging: Path):
        """Write index.json into the staging directory and swap it in as the entry.

        Caller holds the entry lock. The previous entry stays complete until
        the staging directory replaces it.
        """
        self._write_file(staging / INDEX_FILE,
                         json.dumps(entry.to_dict(), indent=2, sort_keys=True).encode())
        old = None
        if entry.path.exists():
            old = Path(tempfile.mkdtemp(prefix=f".old-{entry.key}-", dir=self.path))
            os.replace(entry.path, old)
        os.replace(staging, entry.path)
        if old is not None:
            shutil.rmtree(old, ignore_errors=True)
