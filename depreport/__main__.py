"""Main CLI entry point for py-dep-report."""

import argparse
import logging
import os
import sys
from typing import Callable, List, Optional, TextIO, Tuple

from . import __version__
from .api_client import DepsDevClient
from .config import LICENSE_SOURCES, ReportConfig, load_config
from .errors import ConfigError, ImportResolutionError, ResolutionError
from .formatters import FORMATTERS, create_formatter
from .licenses import DepsDevLicenseLookup, MetadataLicenseLookup
from .log import LOG_FORMATS, setup_logging
from .report import ReportContext, run_report
from .resolver import ModuleImportResolver

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='py-dep-report',
        description=(
            'py-dep-report generates human and machine readable reports of the third-party '
            'packages a Python project imports, with their licenses.'
        ),
        epilog='example: py-dep-report ./src/myproject --format json --depth 2',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('packages', nargs='*', metavar='PACKAGE',
                        help='Root package: a dotted import name or a path to a package directory')
    parser.add_argument('-c', '--config',
                        help='Config file (default: ./py-dep-report.yml or ~/.config/py-dep-report.yml)')
    parser.add_argument('-v', '--verbose', action='store_true', default=None,
                        help='Increase log output')
    parser.add_argument('-f', '--format',
                        help=f'Output format ({", ".join(FORMATTERS)}). Default: csv')
    parser.add_argument('-l', '--log-format',
                        help=f'Log format ({", ".join(LOG_FORMATS)}). Default: text')
    parser.add_argument('-o', '--out-file',
                        help='File to write the report to (default: stdout)')
    parser.add_argument('-d', '--depth', type=int,
                        help='Depth to resolve dependencies to (0 = no limit). Default: 0')
    parser.add_argument('--resolve-internal', action='store_true', default=None,
                        help="Also follow imports of the project's own packages")
    parser.add_argument('--resolve-test', action='store_true', default=None,
                        help='Include imports that only appear in test modules')
    parser.add_argument('--license-source', choices=LICENSE_SOURCES,
                        help='Where licenses come from (metadata, deps.dev). Default: metadata')
    return parser


def open_output(out_file: str) -> Tuple[TextIO, Optional[Callable[[], None]]]:
    """Open the report sink; returns the stream and how to release it."""
    if not out_file or out_file == '-':
        return sys.stdout, None

    f = open(out_file, 'w', encoding='utf-8')
    return f, f.close


def handle_report(config: ReportConfig) -> int:
    """Resolve the configured packages and write the report."""
    resolver = ModuleImportResolver()
    try:
        packages = [resolver.root_identifier(package) for package in config.packages]
    except ImportResolutionError as e:
        logger.error(str(e))
        return 1

    formatter = create_formatter(config.format)

    try:
        writer, close = open_output(config.out_file)
    except OSError as e:
        logger.error(f"Could not open output file {config.out_file}: {e}")
        return 1

    client = DepsDevClient() if config.license_source == 'deps.dev' else None
    license_lookup = DepsDevLicenseLookup(client) if client else MetadataLicenseLookup()

    ctx = ReportContext(
        packages=packages,
        resolver=resolver,
        license_lookup=license_lookup,
        formatter=formatter,
        writer=writer,
        depth=config.depth,
        resolve_internal=config.resolve_internal,
        resolve_test=config.resolve_test,
        close=close,
    )

    try:
        run_report(ctx)
    except ResolutionError as e:
        cwd = os.getcwd()
        logger.error(f"{e} (current directory: {cwd})", extra={'current_directory': cwd})
        return 1
    finally:
        if client is not None:
            client.close()

    if config.out_file and config.out_file != '-':
        print(f"Output written to: {config.out_file}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            {
                'packages': args.packages,
                'verbose': args.verbose,
                'format': args.format,
                'log-format': args.log_format,
                'out-file': args.out_file,
                'depth': args.depth,
                'resolve-internal': args.resolve_internal,
                'resolve-test': args.resolve_test,
                'license-source': args.license_source,
            },
            config_file=args.config,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.verbose, config.log_format)
    if config.config_file:
        logger.debug(f"config file used: {config.config_file}")

    if not config.packages:
        parser.print_usage(sys.stderr)
        print("Error: expected 1 or more package names, got 0", file=sys.stderr)
        return 1

    try:
        return handle_report(config)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
