"""
Repository definition loading.

Repository definitions are JSON files named after the distribution, with
one ordered list of repositories per architecture:

    {
        "x86_64": [
            {"name": "baseos", "baseurl": "https://.../BaseOS/x86_64/os/",
             "gpgkey": "...", "check_gpg": true},
            ...
        ],
        "aarch64": [...]
    }

Files are searched in each given directory, then in its repositories/
subdirectory; the first directory that has the file wins.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Union

from .errors import ConfigurationError, RepositoryLoadError
from .models import Repository

logger = logging.getLogger(__name__)


def find_repository_file(paths: Sequence[Union[str, Path]], distro_name: str) -> Path:
    """Locate <distro_name>.json in the search paths.

    Raises:
        RepositoryLoadError: if no search path contains the file
    """
    filename = f"{distro_name}.json"
    for base in paths:
        base = Path(base)
        for candidate in (base / filename, base / "repositories" / filename):
            if candidate.is_file():
                return candidate
    searched = ", ".join(str(p) for p in paths)
    raise RepositoryLoadError(
        f"no repository definitions for '{distro_name}' in: {searched}", searched)


def parse_repositories(data, source: str = "<data>") -> Dict[str, List[Repository]]:
    """Build arch -> repositories from decoded JSON.

    Raises:
        RepositoryLoadError: on structurally invalid data
    """
    if not isinstance(data, dict):
        raise RepositoryLoadError(f"{source}: expected an object keyed by architecture", source)

    result = {}
    for arch, entries in data.items():
        if not isinstance(entries, list):
            raise RepositoryLoadError(f"{source}: '{arch}' must be a list of repositories", source)
        repos = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise RepositoryLoadError(f"{source}: {arch}[{i}] is not an object", source)
            try:
                repos.append(Repository.from_dict(entry))
            except ConfigurationError as e:
                raise RepositoryLoadError(f"{source}: {arch}[{i}]: {e.message}", source)
        result[arch] = repos
    return result


def load_repositories(paths: Sequence[Union[str, Path]],
                      distro_name: str) -> Dict[str, List[Repository]]:
    """Load repository definitions for a distribution.

    Args:
        paths: Directories to search
        distro_name: Distribution name, e.g. "centos-9"

    Returns:
        Dict mapping architecture to ordered list of repositories

    Raises:
        RepositoryLoadError: naming the failing path
    """
    path = find_repository_file(paths, distro_name)
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise RepositoryLoadError(f"{path}: {e.strerror}", str(path))
    except ValueError as e:
        raise RepositoryLoadError(f"{path}: invalid JSON: {e}", str(path))

    repos = parse_repositories(data, str(path))
    logger.debug(f"Loaded repositories for {distro_name} from {path}: "
                 + ", ".join(f"{arch}={len(r)}" for arch, r in sorted(repos.items())))
    return repos
