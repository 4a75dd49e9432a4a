"""Repository definitions command."""

import json
import sys

from ...core.errors import ImageSolveError
from ...core.registry import load_repositories
from .. import colors


def cmd_repos(args) -> int:
    """Handle repos command: list the repositories defined for a distribution."""
    try:
        repositories = load_repositories([args.directory], args.distro)
    except ImageSolveError as e:
        print(colors.error(f"Error: {e.message}"), file=sys.stderr)
        return 2

    if args.arch:
        repositories = {a: r for a, r in repositories.items() if a == args.arch}

    if args.json:
        print(json.dumps({arch: [r.to_dict() for r in repos]
                          for arch, repos in repositories.items()}, indent=2, sort_keys=True))
        return 0

    for arch in sorted(repositories):
        print(colors.bold(arch))
        for repo in repositories[arch]:
            source = repo.baseurls[0] if repo.baseurls else (repo.metalink or repo.mirrorlist)
            flags = []
            if not repo.enabled:
                flags.append('disabled')
            if repo.check_gpg:
                flags.append('gpg')
            if repo.skip_if_unavailable:
                flags.append('optional')
            suffix = colors.dim(f" [{', '.join(flags)}]") if flags else ""
            print(f"  {colors.info(repo.id):<24} {source}{suffix}")
    return 0
