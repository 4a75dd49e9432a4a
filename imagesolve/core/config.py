"""
Central configuration for imagesolve.

Settings are resolved in this order:
    1. IMAGESOLVE_* environment variables
    2. .imagesolve.local in the current directory (DEV override)
    3. Built-in defaults (system cache when running as root, user cache otherwise)

Cache structure:
    <cache_dir>/<distro>-<arch>-<fingerprint>/index.json       - Entry index
    <cache_dir>/<distro>-<arch>-<fingerprint>/repodata/         - Fetched metadata
    <cache_dir>/<distro>-<arch>-<fingerprint>.lock              - Entry lock file

.imagesolve.local format (optional, one setting per line):
    cache_dir=/path/to/custom/dir
    max_workers=4
    fetch_timeout=30
    # Comments start with #
"""

import os
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

# Config file name
LOCAL_CONFIG_FILE = ".imagesolve.local"

# System-wide cache (root)
SYSTEM_CACHE_DIR = Path("/var/cache/imagesolve")

# Per-user cache
USER_CACHE_DIR = Path.home() / ".cache" / "imagesolve"

DEFAULT_FETCH_TIMEOUT = 30
DEFAULT_USER_AGENT = "imagesolve/0.3"

# Known RPM architectures accepted for solver contexts
KNOWN_ARCHES = frozenset([
    'x86_64', 'aarch64', 'ppc64le', 'ppc64', 's390x', 'i686', 'i586',
    'i386', 'armv7hl', 'riscv64', 'noarch',
])

# Cache for detected settings (avoid repeated filesystem checks)
_cached_config: Optional[dict] = None


def _read_local_config(directory: Path) -> Optional[dict]:
    """Read .imagesolve.local if it exists in directory.

    Returns:
        Dict with config values, or None if file doesn't exist
    """
    config_path = directory / LOCAL_CONFIG_FILE
    if not config_path.exists():
        return None

    config = {}
    try:
        with open(config_path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' in line:
                    key, value = line.split('=', 1)
                    config[key.strip()] = value.strip()
    except OSError:
        return None

    return config


def _positive_int(name: str, value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        number = 0
    if number < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got '{value}'")
    return number


def _default_cache_dir() -> Path:
    if hasattr(os, 'geteuid') and os.geteuid() == 0:
        return SYSTEM_CACHE_DIR
    return USER_CACHE_DIR


def _detect_config() -> dict:
    """Detect configuration based on environment.

    Returns:
        Dict with 'cache_dir', 'max_workers', 'fetch_timeout', 'is_dev'
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    local = _read_local_config(Path.cwd()) or {}

    cache_dir = os.environ.get('IMAGESOLVE_CACHE_DIR') or local.get('cache_dir')
    max_workers = os.environ.get('IMAGESOLVE_MAX_WORKERS') or local.get('max_workers')
    timeout = os.environ.get('IMAGESOLVE_FETCH_TIMEOUT') or local.get('fetch_timeout')
    if max_workers:
        max_workers = _positive_int('max_workers (IMAGESOLVE_MAX_WORKERS)', max_workers)
    if timeout:
        timeout = _positive_int('fetch_timeout (IMAGESOLVE_FETCH_TIMEOUT)', timeout)

    _cached_config = {
        'cache_dir': Path(cache_dir).expanduser() if cache_dir else _default_cache_dir(),
        'max_workers': max_workers or None,
        'fetch_timeout': timeout or DEFAULT_FETCH_TIMEOUT,
        'is_dev': bool(local),
    }
    return _cached_config


def reset_config():
    """Forget cached settings (used by tests and after changing the environment)."""
    global _cached_config
    _cached_config = None


def get_cache_dir() -> Path:
    """Get the metadata cache directory."""
    return _detect_config()['cache_dir']


def get_max_workers() -> Optional[int]:
    """Get the default worker count for multi-architecture runs (None = executor default)."""
    return _detect_config()['max_workers']


def get_fetch_timeout() -> int:
    """Get the metadata download timeout in seconds."""
    return _detect_config()['fetch_timeout']


def is_dev_mode() -> bool:
    """Check if a .imagesolve.local override is in effect."""
    return _detect_config()['is_dev']


def get_cache_entry_name(distro: str, arch: str, fingerprint: str) -> str:
    """Get the cache subdirectory name for a repository.

    Returns:
        "<distro>-<arch>-<fingerprint>"
    """
    return f"{distro}-{arch}-{fingerprint}"
