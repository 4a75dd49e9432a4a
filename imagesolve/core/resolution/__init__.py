"""Resolution module mixins for SolverContext.

Each mixin provides a group of related resolution operations:
- PoolMixin: Pool creation and loading from cached metadata
- RequirementsMixin: Requirement expansion into solver jobs
- ProblemsMixin: Solver problems and exclusion conflicts
"""

from .pool import LoadedPool, PoolMixin
from .requirements import RequirementsMixin
from .problems import ProblemsMixin

__all__ = [
    'LoadedPool',
    'PoolMixin',
    'RequirementsMixin',
    'ProblemsMixin',
]
