"""
Data model for package resolution.

Repositories, requirements, package sets and chains are inputs and are
immutable (frozen dataclasses); resolved PackageSpec objects are produced
by the solver and returned by value.
"""

import fnmatch
import hashlib
import json
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigurationError, ImageSolveError


METADATA_FORMATS = ('rpm-md', 'mdk')

# Relational operators understood by libsolv selections
REQUIREMENT_OPS = ('<=', '>=', '==', '!=', '=', '<', '>')

REQUIREMENT_REGEX = re.compile(r'^\s*(\S+?)\s*(?:(<=|>=|==|!=|=|<|>)\s*(\S+))?\s*$')

# URL variables substituted from the solver context
URL_VARIABLES = ('$releasever', '$basearch', '$arch')


def split_evr(evr: str) -> Tuple[int, str, str]:
    """Split an "epoch:version-release" string.

    Args:
        evr: String like "32:9.16.23-1.el9" or "1.0-1"

    Returns:
        Tuple of (epoch, version, release); epoch defaults to 0
    """
    epoch = 0
    if ':' in evr:
        epoch_str, evr = evr.split(':', 1)
        epoch = int(epoch_str) if epoch_str.isdigit() else 0
    if '-' in evr:
        version, release = evr.rsplit('-', 1)
    else:
        version, release = evr, ''
    return epoch, version, release


def format_evr(epoch: int, version: str, release: str) -> str:
    """Build an EVR string the way libsolv prints it (epoch omitted when 0)."""
    evr = f"{epoch}:{version}" if epoch else version
    if release:
        evr = f"{evr}-{release}"
    return evr


def _as_tuple(value) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class Repository:
    """An RPM repository descriptor.

    Only one of baseurls/metalink/mirrorlist is needed. An empty ``arches``
    means the repository applies to every architecture.
    """
    id: str
    baseurls: Tuple[str, ...] = ()
    metalink: str = ""
    mirrorlist: str = ""
    name: str = ""
    arches: Tuple[str, ...] = ()
    enabled: bool = True
    metadata_format: str = "rpm-md"
    check_gpg: bool = False
    check_repogpg: bool = False
    gpgkeys: Tuple[str, ...] = ()
    ignore_ssl: bool = False
    skip_if_unavailable: bool = False
    module_hotfixes: bool = False

    def __post_init__(self):
        if not self.id:
            raise ConfigurationError("repository id must not be empty")
        object.__setattr__(self, 'baseurls', _as_tuple(self.baseurls))
        object.__setattr__(self, 'arches', _as_tuple(self.arches))
        object.__setattr__(self, 'gpgkeys', _as_tuple(self.gpgkeys))
        if not (self.baseurls or self.metalink or self.mirrorlist):
            raise ConfigurationError(
                f"repository '{self.id}' needs a baseurl, metalink or mirrorlist")
        if self.metadata_format not in METADATA_FORMATS:
            raise ConfigurationError(
                f"repository '{self.id}': unknown metadata format '{self.metadata_format}'")

    def applies_to(self, arch: str) -> bool:
        return not self.arches or arch in self.arches

    def expand(self, releasever: str, arch: str) -> 'Repository':
        """Return a copy with $releasever/$basearch/$arch substituted in URLs."""
        def sub(url: str) -> str:
            return (url.replace('$releasever', releasever or '')
                       .replace('$basearch', arch)
                       .replace('$arch', arch))

        if not any(v in u for v in URL_VARIABLES
                   for u in self.baseurls + (self.metalink, self.mirrorlist)):
            return self
        return replace(
            self,
            baseurls=tuple(sub(u) for u in self.baseurls),
            metalink=sub(self.metalink),
            mirrorlist=sub(self.mirrorlist),
        )

    @property
    def fingerprint(self) -> str:
        """Identifier of the metadata source, used as cache key."""
        data = json.dumps({
            'baseurls': list(self.baseurls),
            'metalink': self.metalink,
            'mirrorlist': self.mirrorlist,
            'format': self.metadata_format,
        }, sort_keys=True)
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict) -> 'Repository':
        """Build a Repository from a repository definition entry.

        Accepts both the osbuild-style keys (baseurl, gpgkey) and the
        plural forms used by to_dict().
        """
        repo_id = data.get('id') or data.get('name') or ''
        baseurls = data.get('baseurls', data.get('baseurl', ()))
        gpgkeys = data.get('gpgkeys', data.get('gpgkey', ()))
        return cls(
            id=repo_id,
            baseurls=_as_tuple(baseurls),
            metalink=data.get('metalink', ''),
            mirrorlist=data.get('mirrorlist', ''),
            name=data.get('name', repo_id),
            arches=_as_tuple(data.get('arches')),
            enabled=data.get('enabled', True),
            metadata_format=data.get('metadata_format', 'rpm-md'),
            check_gpg=data.get('check_gpg', False),
            check_repogpg=data.get('check_repogpg', False),
            gpgkeys=_as_tuple(gpgkeys),
            ignore_ssl=data.get('ignore_ssl', False),
            skip_if_unavailable=data.get('skip_if_unavailable', False),
            module_hotfixes=data.get('module_hotfixes', False),
        )

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name or self.id,
            'baseurls': list(self.baseurls),
            'metalink': self.metalink,
            'mirrorlist': self.mirrorlist,
            'arches': list(self.arches),
            'enabled': self.enabled,
            'metadata_format': self.metadata_format,
            'check_gpg': self.check_gpg,
            'check_repogpg': self.check_repogpg,
            'gpgkeys': list(self.gpgkeys),
            'ignore_ssl': self.ignore_ssl,
            'skip_if_unavailable': self.skip_if_unavailable,
            'module_hotfixes': self.module_hotfixes,
        }


@dataclass(frozen=True)
class PackageRequirement:
    """A package name or glob with an optional version constraint."""
    name: str
    op: str = ""
    evr: str = ""
    exclude: bool = False

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("package requirement must have a name")
        if self.op and self.op not in REQUIREMENT_OPS:
            raise ConfigurationError(f"invalid operator '{self.op}' in requirement '{self.name}'")
        if bool(self.op) != bool(self.evr):
            raise ConfigurationError(
                f"requirement '{self.name}': operator and version must be given together")

    @classmethod
    def parse(cls, text: str, exclude: bool = False) -> 'PackageRequirement':
        """Parse "name", "name-glob*" or "name >= 1.0-1".

        Raises:
            ConfigurationError: if the string is empty or malformed
        """
        match = REQUIREMENT_REGEX.match(text or '')
        if not match:
            raise ConfigurationError(f"invalid package requirement: '{text}'")
        name, op, evr = match.groups()
        if op == '==':
            op = '='
        return cls(name=name, op=op or '', evr=evr or '', exclude=exclude)

    @property
    def is_glob(self) -> bool:
        return any(c in self.name for c in '*?[')

    @property
    def selector(self) -> str:
        """String form understood by libsolv selections."""
        if self.op:
            return f"{self.name} {self.op} {self.evr}"
        return self.name

    def matches_name(self, name: str) -> bool:
        """Check whether a package name matches this requirement's name or glob."""
        if self.is_glob:
            return fnmatch.fnmatchcase(name, self.name)
        return name == self.name

    def __str__(self) -> str:
        return self.selector


@dataclass(frozen=True)
class SetReference:
    """Reference from a package set to an earlier set of the same chain.

    mode:
        inherit - the earlier result is a floor, included in this result
        exclude - the earlier result is already present, removed from this result
    """
    set_name: str
    mode: str = "exclude"

    MODES = ('inherit', 'exclude')

    def __post_init__(self):
        if self.mode not in self.MODES:
            raise ConfigurationError(f"invalid base mode '{self.mode}' (expected inherit or exclude)")


def _requirements(items: Iterable, exclude: bool) -> Tuple[PackageRequirement, ...]:
    reqs = []
    for item in items or ():
        if isinstance(item, PackageRequirement):
            reqs.append(item)
        else:
            reqs.append(PackageRequirement.parse(item, exclude=exclude))
    return tuple(reqs)


@dataclass(frozen=True)
class PackageSet:
    """One unit of depsolve input.

    Requirements flagged ``exclude`` are moved to ``excludes`` on
    construction, so both lists can be given either way.
    """
    name: str
    requirements: Tuple[PackageRequirement, ...] = ()
    repositories: Tuple[Repository, ...] = ()
    excludes: Tuple[PackageRequirement, ...] = ()
    base: Optional[SetReference] = None
    install_weak_deps: bool = True
    enabled_modules: Tuple[str, ...] = ()

    def __post_init__(self):
        reqs = _requirements(self.requirements, exclude=False)
        excludes = _requirements(self.excludes, exclude=True)
        include = tuple(r for r in reqs if not r.exclude)
        excludes = excludes + tuple(r for r in reqs if r.exclude)
        object.__setattr__(self, 'requirements', include)
        object.__setattr__(self, 'excludes', excludes)
        object.__setattr__(self, 'repositories', tuple(self.repositories or ()))
        object.__setattr__(self, 'enabled_modules', _as_tuple(self.enabled_modules))
        if isinstance(self.base, str):
            object.__setattr__(self, 'base', SetReference(self.base))
        for spec in self.enabled_modules:
            if ':' not in spec:
                raise ConfigurationError(
                    f"package set '{self.name}': module '{spec}' must be given as name:stream")

    def is_excluded(self, name: str) -> bool:
        return any(r.matches_name(name) for r in self.excludes)

    @classmethod
    def from_dict(cls, data: Dict, repositories: Sequence[Repository] = ()) -> 'PackageSet':
        """Build a PackageSet from a JSON request entry.

        ``repositories`` resolves repository ids given as strings.
        """
        by_id = {r.id: r for r in repositories}
        repos = []
        for entry in data.get('repositories', ()):
            if isinstance(entry, str):
                if entry not in by_id:
                    raise ConfigurationError(
                        f"package set '{data.get('name')}': unknown repository '{entry}'")
                repos.append(by_id[entry])
            else:
                repos.append(Repository.from_dict(entry))

        base = data.get('base')
        if isinstance(base, dict):
            base = SetReference(base['set'], base.get('mode', 'exclude'))

        return cls(
            name=data['name'],
            requirements=tuple(data.get('include', data.get('requirements', ()))),
            repositories=tuple(repos),
            excludes=tuple(data.get('exclude', data.get('excludes', ()))),
            base=base,
            install_weak_deps=data.get('install_weak_deps', True),
            enabled_modules=tuple(data.get('enabled_modules', ())),
        )


@dataclass(frozen=True)
class PackageSetChain:
    """Named, ordered sequence of package sets resolved one after another."""
    name: str
    sets: Tuple[PackageSet, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'sets', tuple(self.sets))
        seen = set()
        for pkg_set in self.sets:
            if pkg_set.name in seen:
                raise ConfigurationError(
                    f"chain '{self.name}': duplicate package set name '{pkg_set.name}'")
            if pkg_set.base is not None and pkg_set.base.set_name not in seen:
                raise ConfigurationError(
                    f"chain '{self.name}': set '{pkg_set.name}' references "
                    f"'{pkg_set.base.set_name}' which is not an earlier set")
            seen.add(pkg_set.name)

    @property
    def set_names(self) -> List[str]:
        return [s.name for s in self.sets]

    @classmethod
    def from_dict(cls, name: str, data, repositories: Sequence[Repository] = ()) -> 'PackageSetChain':
        """Accepts either a list of set dicts or {"sets": [...]}."""
        sets = data.get('sets', ()) if isinstance(data, dict) else data
        return cls(name=name, sets=tuple(PackageSet.from_dict(s, repositories) for s in sets))


@dataclass(frozen=True)
class PackageSpec:
    """A resolved, fully pinned package.

    Identity (equality, hashing) is the NEVRA only.
    """
    name: str
    epoch: int
    version: str
    release: str
    arch: str
    checksum: str = field(default="", compare=False)
    repo_id: str = field(default="", compare=False)
    remote_location: str = field(default="", compare=False)
    location: str = field(default="", compare=False)
    check_gpg: bool = field(default=False, compare=False)

    @property
    def evr(self) -> str:
        return format_evr(self.epoch, self.version, self.release)

    @property
    def nevra(self) -> str:
        return f"{self.name}-{self.evr}.{self.arch}"

    @property
    def sort_key(self) -> Tuple:
        return (self.name, self.epoch, self.version, self.release, self.arch)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'epoch': self.epoch,
            'version': self.version,
            'release': self.release,
            'arch': self.arch,
            'checksum': self.checksum,
            'repo_id': self.repo_id,
            'remote_location': self.remote_location,
            'path': self.location,
            'check_gpg': self.check_gpg,
        }


def sort_specs(specs: Iterable[PackageSpec]) -> List[PackageSpec]:
    """Deduplicate by NEVRA and order deterministically."""
    unique = {}
    for spec in specs:
        unique.setdefault(spec, spec)
    return sorted(unique.values(), key=lambda s: s.sort_key)


@dataclass
class ChainResult:
    """Resolution outcome of one chain: per-set results in declared order.

    ``trees`` maps each set no later set builds on to everything installed
    once it is applied (its inherited floor plus its own result).
    """
    name: str
    sets: Dict[str, List[PackageSpec]] = field(default_factory=dict)
    error: Optional[ImageSolveError] = None
    trees: Dict[str, List[PackageSpec]] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def packages(self) -> List[PackageSpec]:
        """Everything the chain installs.

        Packages an inheriting set excluded from its floor are not included.
        """
        groups = self.trees or self.sets
        return sort_specs(spec for specs in groups.values() for spec in specs)

    def to_dict(self) -> Dict:
        d = {
            'packages': [p.to_dict() for p in self.packages],
            'sets': {name: [p.nevra for p in specs] for name, specs in self.sets.items()},
        }
        if self.error is not None:
            d['error'] = self.error.to_dict()
        return d
