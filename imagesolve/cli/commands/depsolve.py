"""Depsolve command: resolve the chains of a JSON request."""

import json
import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, List

from ...core.cache import MetadataCache
from ...core.errors import ArchitectureErrors, ConfigurationError, ImageSolveError
from ...core.fanout import resolve_architectures
from ...core.models import PackageSetChain, Repository
from ...core.registry import load_repositories, parse_repositories
from ...core.solver import new_context
from .. import colors

logger = logging.getLogger(__name__)


@dataclass
class Request:
    """A decoded depsolve request.

    JSON form:
        {
            "distro": "centos-9",
            "platform_id": "platform:el9",
            "releasever": "9",
            "repositories": {"x86_64": [{"name": "baseos", "baseurl": "..."}]},
            "arches": {
                "x86_64": {
                    "build": [{"name": "build", "include": ["rpm", "dnf"]}],
                    "os": [{"name": "os", "include": ["bash", "kernel"], "exclude": ["dracut-config-rescue"]}]
                }
            }
        }

    Repositories may instead come from a repository definitions directory.
    """
    distro: str
    platform_id: str = ""
    releasever: str = ""
    repositories: Dict[str, List[Repository]] = field(default_factory=dict)
    chains: Dict[str, Dict[str, PackageSetChain]] = field(default_factory=dict)


def load_request(path: str, repos_dir: str = None) -> Request:
    """Read and validate a request file.

    Raises:
        ConfigurationError: on malformed requests
        RepositoryLoadError: if repository definitions cannot be loaded
    """
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"{path}: {e.strerror}")
    except ValueError as e:
        raise ConfigurationError(f"{path}: invalid JSON: {e}")

    if not isinstance(data, dict) or not data.get('distro'):
        raise ConfigurationError(f"{path}: request must be an object with a 'distro'")

    distro = data['distro']
    if repos_dir:
        repositories = load_repositories([repos_dir], distro)
    else:
        repositories = parse_repositories(data.get('repositories', {}), path)

    chains = {}
    for arch, arch_chains in (data.get('arches') or {}).items():
        if not isinstance(arch_chains, dict):
            raise ConfigurationError(f"{path}: chains for '{arch}' must be an object")
        arch_repos = repositories.get(arch, [])
        chains[arch] = {
            name: PackageSetChain.from_dict(name, sets, arch_repos)
            for name, sets in arch_chains.items()
        }

    if not chains:
        raise ConfigurationError(f"{path}: no architectures requested")

    return Request(
        distro=distro,
        platform_id=data.get('platform_id', ''),
        releasever=str(data.get('releasever', '')),
        repositories=repositories,
        chains=chains,
    )


def cmd_depsolve(args) -> int:
    """Handle depsolve command."""
    try:
        request = load_request(args.request, repos_dir=args.repos)
        base = new_context(MetadataCache(args.cache) if args.cache else None)
    except ImageSolveError as e:
        print(colors.error(f"Error: {e.message}"), file=sys.stderr)
        return 2

    output = {}
    status = 0
    try:
        results = resolve_architectures(
            base, request.chains, request.platform_id, request.releasever, request.distro,
            max_workers=args.workers, fail_fast=args.fail_fast,
            best_effort=args.best_effort, repositories=request.repositories)
    except ArchitectureErrors as e:
        results = e.results
        for arch, err in e.errors.items():
            output[arch] = {'error': err.to_dict()}
            print(colors.error(f"{arch}: {err.message}"), file=sys.stderr)
        status = 1
    except ConfigurationError as e:
        print(colors.error(f"Error: {e.message}"), file=sys.stderr)
        return 2

    for arch, chain_results in results.items():
        output[arch] = {name: result.to_dict() for name, result in chain_results.items()}
        for name, result in chain_results.items():
            if not result.succeeded:
                print(colors.warning(f"{arch}/{name}: {result.error.message}"), file=sys.stderr)
                status = 1

    print(json.dumps(output, indent=2, sort_keys=True))
    return status
