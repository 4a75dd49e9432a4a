"""
Main CLI entry point for imagesolve

Commands:
- imagesolve depsolve REQUEST.json   resolve package set chains for each architecture
- imagesolve repos DIR --distro NAME  show repository definitions
- imagesolve cache info|clean         inspect or clear the metadata cache

Exit status: 0 on success, 1 when resolution failed, 2 on usage errors.
"""

import argparse
import logging
import sys

from .. import __version__


def check_dependencies() -> list:
    """Check for required Python modules.

    Returns:
        List of missing module names (empty if all OK)
    """
    missing = []

    # Check libsolv (required for dependency resolution)
    try:
        import solv
    except ImportError:
        missing.append(('python3-solv', 'dependency resolution'))

    # Check PyYAML (required for modules.yaml)
    try:
        import yaml
    except ImportError:
        missing.append(('python3-pyyaml', 'module metadata'))

    return missing


def print_missing_dependencies(missing: list):
    """Print error message for missing dependencies."""
    print("ERROR: Missing required Python modules:\n", file=sys.stderr)
    for pkg, purpose in missing:
        print(f"  - {pkg} ({purpose})", file=sys.stderr)


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all commands."""

    parser = argparse.ArgumentParser(
        prog='imagesolve',
        description='Resolve RPM package sets for OS image builds',
        epilog='Use "imagesolve <command> --help" for command-specific help.'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'imagesolve {__version__}'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Debug output'
    )

    parser.add_argument(
        '--nocolor',
        action='store_true',
        help='Disable colored output'
    )

    # Parent parser for the cache location (inherited by subparsers)
    cache_parent = argparse.ArgumentParser(add_help=False)
    cache_parent.add_argument(
        '--cache',
        metavar='DIR',
        help='Metadata cache directory'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        title='commands',
        metavar='<command>'
    )

    # =========================================================================
    # depsolve
    # =========================================================================
    depsolve_parser = subparsers.add_parser(
        'depsolve',
        help='Resolve the package set chains of a request',
        parents=[cache_parent]
    )
    depsolve_parser.add_argument(
        'request',
        help='Request file (JSON)'
    )
    depsolve_parser.add_argument(
        '--repos',
        metavar='DIR',
        help='Load repository definitions from DIR instead of the request'
    )
    depsolve_parser.add_argument(
        '--best-effort',
        action='store_true',
        help='Report failing chains and keep resolving the others'
    )
    depsolve_parser.add_argument(
        '--fail-fast',
        action='store_true',
        help='Stop all architectures after the first failure'
    )
    depsolve_parser.add_argument(
        '--workers',
        type=int,
        metavar='N',
        help='Number of architectures resolved in parallel'
    )

    # =========================================================================
    # repos
    # =========================================================================
    repos_parser = subparsers.add_parser(
        'repos',
        help='Show repository definitions'
    )
    repos_parser.add_argument(
        'directory',
        help='Directory holding <distro>.json'
    )
    repos_parser.add_argument(
        '--distro',
        required=True,
        help='Distribution name'
    )
    repos_parser.add_argument(
        '--arch',
        help='Only show this architecture'
    )
    repos_parser.add_argument(
        '--json',
        action='store_true',
        help='JSON output for scripting'
    )

    # =========================================================================
    # cache
    # =========================================================================
    cache_parser = subparsers.add_parser(
        'cache',
        help='Metadata cache management'
    )
    cache_subparsers = cache_parser.add_subparsers(
        dest='cache_command',
        metavar='<subcommand>'
    )
    cache_subparsers.add_parser('info', help='Cache information', parents=[cache_parent])
    cache_clean = cache_subparsers.add_parser(
        'clean', help='Remove cache entries', parents=[cache_parent])
    cache_clean.add_argument('--arch', help='Only entries for this architecture')
    cache_clean.add_argument('--distro', help='Only entries for this distribution')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    missing = check_dependencies()
    if missing:
        print_missing_dependencies(missing)
        return 1

    parser = create_parser()
    args = parser.parse_args(argv)

    # Configure logging based on verbose/debug flags
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    from . import colors
    colors.init(nocolor=args.nocolor)

    if not args.command:
        parser.print_help()
        return 2

    from .commands import cmd_cache_clean, cmd_cache_info, cmd_depsolve, cmd_repos

    try:
        if args.command == 'depsolve':
            return cmd_depsolve(args)

        elif args.command == 'repos':
            return cmd_repos(args)

        elif args.command == 'cache':
            if args.cache_command in ('info', None):
                if args.cache_command is None:
                    args.cache = None
                return cmd_cache_info(args)
            elif args.cache_command == 'clean':
                return cmd_cache_clean(args)

        parser.print_help()
        return 2

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
