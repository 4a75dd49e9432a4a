"""
Module/platform compatibility filtering.

Modular repositories ship a modules.yaml describing module streams and
the RPMs (artifacts) that belong to them. A modular RPM is only
installable when one of its streams is active (enabled, or the default
stream) and built for the target platform. Non-modular packages sharing a
name with an active stream's RPMs are hidden so the modular build wins.

The predicates here are pure functions of the package's stream
membership and the platform id; they do not touch libsolv or the cache.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import yaml

from .models import format_evr, split_evr

logger = logging.getLogger(__name__)


def parse_artifact(nevra: str) -> Tuple[str, int, str, str, str]:
    """Parse a modulemd artifact "name-epoch:version-release.arch".

    Returns:
        Tuple of (name, epoch, version, release, arch)

    Raises:
        ValueError: if the string is not a NEVRA
    """
    if nevra.count('.') < 1 or nevra.count('-') < 2:
        raise ValueError(f"not a valid NEVRA: '{nevra}'")
    nevr, arch = nevra.rsplit('.', 1)
    name_ev, release = nevr.rsplit('-', 1)
    name, ev = name_ev.rsplit('-', 1)
    epoch, version, _ = split_evr(ev)
    return name, epoch, version, release, arch


def nevra_key(name: str, epoch: int, version: str, release: str, arch: str) -> str:
    """Canonical NEVRA string (epoch omitted when 0), as libsolv prints solvables."""
    return f"{name}-{format_evr(epoch, version, release)}.{arch}"


@dataclass(frozen=True)
class ModuleStream:
    """One modulemd document (a specific build of name:stream)."""
    name: str
    stream: str
    version: int = 0
    context: str = ""
    arch: str = ""
    # one entry per modulemd "dependencies" item; None means no platform requirement
    platforms: Tuple[Optional[Tuple[str, ...]], ...] = ()
    artifacts: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def nsvca(self) -> str:
        return f"{self.name}:{self.stream}:{self.version}:{self.context}:{self.arch}"

    @property
    def rpm_names(self) -> Set[str]:
        names = set()
        for artifact in self.artifacts:
            try:
                name, _, _, _, arch = parse_artifact(artifact)
            except ValueError:
                continue
            if arch not in ('src', 'nosrc'):
                names.add(name)
        return names


@dataclass
class ModuleMetadata:
    """All module streams and defaults known from a set of repositories."""
    streams: List[ModuleStream] = field(default_factory=list)
    defaults: Dict[str, str] = field(default_factory=dict)

    def merge(self, other: 'ModuleMetadata'):
        self.streams.extend(other.streams)
        for name, stream in other.defaults.items():
            self.defaults.setdefault(name, stream)

    def streams_by_artifact(self) -> Dict[str, List[ModuleStream]]:
        """Map canonical NEVRA -> streams listing it as an artifact."""
        index: Dict[str, List[ModuleStream]] = {}
        for stream in self.streams:
            for artifact in stream.artifacts:
                try:
                    key = nevra_key(*parse_artifact(artifact))
                except ValueError:
                    continue
                index.setdefault(key, []).append(stream)
        return index


def parse_modules_yaml(text: str) -> ModuleMetadata:
    """Parse a modules.yaml stream (modulemd v2 and modulemd-defaults v1 documents).

    Unknown documents are ignored.

    Raises:
        ValueError: on YAML syntax errors
    """
    metadata = ModuleMetadata()
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ValueError(f"invalid modules.yaml: {e}")

    for doc in documents:
        if not isinstance(doc, dict):
            continue
        kind = doc.get('document')
        data = doc.get('data') or {}
        if kind == 'modulemd':
            platforms = []
            for dep in data.get('dependencies') or ():
                requires = (dep or {}).get('requires') or {}
                if 'platform' in requires:
                    platforms.append(tuple(str(p) for p in requires['platform'] or ()))
                else:
                    platforms.append(None)
            rpms = ((data.get('artifacts') or {}).get('rpms')) or ()
            metadata.streams.append(ModuleStream(
                name=str(data.get('name', '')),
                stream=str(data.get('stream', '')),
                version=int(data.get('version', 0) or 0),
                context=str(data.get('context', '')),
                arch=str(data.get('arch', '')),
                platforms=tuple(platforms),
                artifacts=frozenset(str(a) for a in rpms),
            ))
        elif kind == 'modulemd-defaults':
            if data.get('module') and data.get('stream') is not None:
                metadata.defaults[str(data['module'])] = str(data['stream'])

    return metadata


def platform_stream(platform_id: str) -> str:
    """Extract the stream from a module platform id ("platform:el9" -> "el9")."""
    if not platform_id:
        return ""
    return platform_id.split(':', 1)[1] if ':' in platform_id else platform_id


def platform_compatible(stream: ModuleStream, platform_id: str) -> bool:
    """Check whether a module stream may be used on the given platform.

    A stream is compatible when any of its dependency entries accepts the
    platform: entries without a platform requirement and empty lists accept
    everything, "-x" entries reject x, other entries list accepted streams.
    """
    target = platform_stream(platform_id)
    if not target or not stream.platforms:
        return True

    for accepted in stream.platforms:
        if not accepted:
            return True
        negative = {p[1:] for p in accepted if p.startswith('-')}
        positive = {p for p in accepted if not p.startswith('-')}
        if target in negative:
            continue
        if not positive or target in positive:
            return True
    return False


def active_streams(defaults: Mapping[str, str], enabled: Iterable[str] = ()) -> Dict[str, str]:
    """Compute module name -> active stream.

    Args:
        defaults: Default streams from modulemd-defaults
        enabled: Explicit "name:stream" selections, overriding defaults
    """
    active = dict(defaults)
    for spec in enabled:
        name, _, stream = spec.partition(':')
        active[name] = stream
    return active


def is_package_included(package_streams: Sequence[ModuleStream], platform_id: str,
                        active: Mapping[str, str]) -> bool:
    """Decide whether a package is visible to the resolver.

    Args:
        package_streams: Streams listing the package as an artifact (empty for
            non-modular packages)
        platform_id: Target module platform, e.g. "platform:el9"
        active: Module name -> active stream

    Returns:
        True if the package may be selected
    """
    if not package_streams:
        return True
    return any(active.get(s.name) == s.stream and platform_compatible(s, platform_id)
               for s in package_streams)


def masked_names(streams: Iterable[ModuleStream], platform_id: str,
                 active: Mapping[str, str]) -> Set[str]:
    """Names whose non-modular builds are hidden by an active module stream."""
    names = set()
    for stream in streams:
        if active.get(stream.name) == stream.stream and platform_compatible(stream, platform_id):
            names |= stream.rpm_names
    return names
