"""
Error types raised by the resolver.

Every error carries enough structured context (repository id, package
names, chain and set name) to localize the fault, and can be rendered to a
plain dict for JSON output.
"""

from typing import Dict, List, Optional, Sequence, Tuple


class ImageSolveError(Exception):
    """Base class for all resolver errors."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict:
        return {'kind': self.kind, 'message': self.message}


class ConfigurationError(ImageSolveError):
    """Invalid context parameters or malformed package set definitions."""

    kind = "configuration"


class RepositoryLoadError(ImageSolveError):
    """A repository definition file could not be read or parsed."""

    kind = "repository-load"

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path

    def to_dict(self) -> Dict:
        d = super().to_dict()
        d['path'] = self.path
        return d


class RepositoryFetchError(ImageSolveError):
    """Repository metadata could not be retrieved."""

    kind = "repository-fetch"

    def __init__(self, message: str, repo_id: str, url: str = ""):
        super().__init__(message)
        self.repo_id = repo_id
        self.url = url

    def to_dict(self) -> Dict:
        d = super().to_dict()
        d['repo_id'] = self.repo_id
        if self.url:
            d['url'] = self.url
        return d


class DependencyConflictError(ImageSolveError):
    """Requirements are unsatisfiable or contradict each other."""

    kind = "dependency-conflict"

    def __init__(self, message: str, requirements: Sequence[str] = (),
                 problems: Sequence[str] = ()):
        super().__init__(message)
        self.requirements: List[str] = list(requirements)
        self.problems: List[str] = list(problems)

    def to_dict(self) -> Dict:
        d = super().to_dict()
        d['requirements'] = self.requirements
        d['problems'] = self.problems
        return d


class ExclusionConflictError(ImageSolveError):
    """An excluded package is a hard dependency of an included one."""

    kind = "exclusion-conflict"

    def __init__(self, message: str, excluded: str, required_by: str,
                 conflicts: Sequence[Tuple[str, str]] = ()):
        super().__init__(message)
        self.excluded = excluded
        self.required_by = required_by
        # every (excluded, required_by) pair found, first one duplicated above
        self.conflicts: List[Tuple[str, str]] = list(conflicts) or [(excluded, required_by)]

    def to_dict(self) -> Dict:
        d = super().to_dict()
        d['excluded'] = self.excluded
        d['required_by'] = self.required_by
        d['conflicts'] = [list(c) for c in self.conflicts]
        return d


class CancelledError(ImageSolveError):
    """The operation was aborted by the caller before it finished."""

    kind = "cancelled"

    def __init__(self, message: str = "operation cancelled", reason: str = "cancelled"):
        super().__init__(message)
        self.reason = reason

    def to_dict(self) -> Dict:
        d = super().to_dict()
        d['reason'] = self.reason
        return d


class ChainError(ImageSolveError):
    """A package set of a chain failed; the rest of the chain was skipped.

    The originating error is available unchanged as ``cause``.
    """

    kind = "chain"

    def __init__(self, chain: str, set_name: str, cause: ImageSolveError):
        super().__init__(f"chain '{chain}', set '{set_name}': {cause.message}")
        self.chain = chain
        self.set_name = set_name
        self.cause = cause

    def to_dict(self) -> Dict:
        d = self.cause.to_dict()
        d['chain'] = self.chain
        d['set'] = self.set_name
        return d


class ArchitectureErrors(ImageSolveError):
    """One or more architectures failed during a multi-architecture run.

    Attributes:
        errors: arch -> error
        results: arch -> chain results, for architectures that succeeded
    """

    kind = "architectures"

    def __init__(self, errors: Dict[str, ImageSolveError],
                 results: Optional[Dict[str, Dict]] = None):
        names = ", ".join(sorted(errors))
        super().__init__(f"resolution failed for {len(errors)} architecture(s): {names}")
        self.errors = errors
        self.results = results or {}

    def to_dict(self) -> Dict:
        d = super().to_dict()
        d['errors'] = {arch: err.to_dict() for arch, err in sorted(self.errors.items())}
        return d
