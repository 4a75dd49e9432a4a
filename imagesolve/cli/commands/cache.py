"""Cache management commands."""

import time

from ...core.cache import MetadataCache
from .. import colors


def _cache(args) -> MetadataCache:
    return MetadataCache(args.cache) if args.cache else MetadataCache()


def cmd_cache_info(args) -> int:
    """Handle cache info command."""
    cache = _cache(args)
    entries = cache.entries()

    print(f"\nCache: {cache.path}")
    print(f"Entries: {len(entries)}")
    for entry in entries:
        age = time.time() - entry.fetched_at
        print(f"  {entry.key}")
        print(f"    repository: {entry.repo_id}  revision: {entry.revision or '-'}  "
              f"age: {age / 3600:.1f}h")
    print()
    return 0


def cmd_cache_clean(args) -> int:
    """Handle cache clean command."""
    cache = _cache(args)
    removed = cache.clear(distro=args.distro, arch=args.arch)
    if removed:
        print(colors.success(f"Removed {removed} cache entries"))
    else:
        print("No matching cache entries")
    return 0
