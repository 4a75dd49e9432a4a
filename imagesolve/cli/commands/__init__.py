"""CLI command handlers."""

from .cache import (
    cmd_cache_info,
    cmd_cache_clean,
)
from .depsolve import (
    cmd_depsolve,
    load_request,
)
from .repos import (
    cmd_repos,
)

__all__ = [
    'cmd_cache_info',
    'cmd_cache_clean',
    'cmd_depsolve',
    'load_request',
    'cmd_repos',
]
