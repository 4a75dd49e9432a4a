"""Core modules for imagesolve"""

from .cache import MetadataCache
from .cancel import CancelToken
from .errors import (
    ArchitectureErrors, CancelledError, ChainError, ConfigurationError,
    DependencyConflictError, ExclusionConflictError, ImageSolveError,
    RepositoryFetchError, RepositoryLoadError,
)
from .fanout import resolve_architectures
from .models import (
    ChainResult, PackageRequirement, PackageSet, PackageSetChain, PackageSpec,
    Repository, SetReference,
)
from .registry import load_repositories
from .solver import BaseContext, SolverContext, new_context, new_solver

__all__ = [
    'MetadataCache', 'CancelToken',
    'ImageSolveError', 'ConfigurationError', 'RepositoryLoadError', 'RepositoryFetchError',
    'DependencyConflictError', 'ExclusionConflictError', 'CancelledError', 'ChainError',
    'ArchitectureErrors',
    'resolve_architectures',
    'Repository', 'PackageRequirement', 'SetReference', 'PackageSet', 'PackageSetChain',
    'PackageSpec', 'ChainResult',
    'load_repositories',
    'BaseContext', 'SolverContext', 'new_context', 'new_solver',
]
