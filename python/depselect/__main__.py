"""Main CLI entry point for depselect."""

import argparse
import logging
import os
import sys
from typing import Optional

from . import __version__
from .errors import DependencyResolutionError
from .formatters import OutputFormatter
from .managers import PackageManager, detect_user_package_manager, get_package_manager_or_fallback

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        level = getattr(logging, log_level.upper(), logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def write_output(output: str, output_file: str) -> None:
    """Write output to a file, or stdout for '-'."""
    if output_file == '-':
        print(output, end='')
    else:
        with open(output_file, 'w') as f:
            f.write(output)
        logger.info(f"Output written to: {output_file}")


def handle_list(args):
    """Handle the 'list' subcommand."""
    project = os.path.abspath(args.project)
    package_manager = get_package_manager_or_fallback(project, args.package_manager)
    logger.info(f"Using {package_manager.name} for {project}")

    selection = package_manager.get_dependencies(project, args.dependencies)

    if args.output_format == 'json':
        output = OutputFormatter.format_as_json(selection)
    elif args.output_format == 'sbom':
        output = OutputFormatter.format_as_sbom(selection, ' '.join(sys.argv[1:]))
    else:
        output = OutputFormatter.format_as_list(selection)

    write_output(output, args.output)
    return 0


def handle_detect(args):
    """Handle the 'detect' subcommand."""
    print(detect_user_package_manager(os.path.abspath(args.project)).value)
    return 0


def handle_run_command(args):
    """Handle the 'run-command' subcommand."""
    project = os.path.abspath(args.project)
    package_manager = get_package_manager_or_fallback(project, args.package_manager)
    print(' '.join(package_manager.task_run(args.task)))
    return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog='depselect',
        description='Find the installed dependency directories a project must bundle'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')
    parser.add_argument('--loglevel',
                        choices=['DEBUG', 'INFO', 'WARN', 'ERROR'],
                        help='Set log level')

    subparsers = parser.add_subparsers(dest='command', help='Subcommands')
    package_manager_choices = [pm.value for pm in PackageManager]

    # List command
    list_parser = subparsers.add_parser('list', help='List dependency directories to bundle')
    list_parser.add_argument('project', nargs='?', default='.',
                             help='Project directory (default: current directory)')
    list_parser.add_argument('--package-manager', choices=package_manager_choices,
                             help='Package manager to use. Default: detected')
    list_parser.add_argument('--dependency', dest='dependencies', action='append',
                             metavar='NAME',
                             help='Only bundle this top-level package and what it needs (repeatable)')
    list_parser.add_argument('--format', dest='output_format', default='list',
                             choices=['list', 'json', 'sbom'],
                             help='Output format (list, json, sbom). Default: list')
    list_parser.add_argument('-o', '--output', default='-',
                             help='Output file (default: stdout, use - for stdout)')
    list_parser.set_defaults(func=handle_list)

    # Detect command
    detect_parser = subparsers.add_parser('detect', help='Print the detected package manager')
    detect_parser.add_argument('project', nargs='?', default='.',
                               help='Project directory (default: current directory)')
    detect_parser.set_defaults(func=handle_detect)

    # Run-command command
    run_parser = subparsers.add_parser('run-command', help='Print the command that runs a project task')
    run_parser.add_argument('task', help='Task or script name')
    run_parser.add_argument('project', nargs='?', default='.',
                            help='Project directory (default: current directory)')
    run_parser.add_argument('--package-manager', choices=package_manager_choices,
                            help='Package manager to use. Default: detected')
    run_parser.set_defaults(func=handle_run_command)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.loglevel)

    try:
        return args.func(args)
    except DependencyResolutionError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
