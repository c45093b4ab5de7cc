"""Argument parsing functionality for depshift."""

import argparse
from constants import Constants

def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="depshift",
        description=(
            "depshift - Plan dependency versions for a project migrated to a new scaffold"
        ),
        add_help=True,
    )

    parser.add_argument("-s", "--source",
                        dest="SOURCE",
                        help="Existing project directory containing package.json",
                        action="store", type=str,
                        required=True)
    parser.add_argument("-n", "--new-project",
                        dest="NEW_PROJECT",
                        help="Scaffolded project directory whose package.json receives the result",
                        action="store", type=str)
    parser.add_argument("--write",
                        dest="WRITE",
                        help="Merge the resolved dependencies into the new project's package.json.",
                        action="store_true")

    parser.add_argument("--strategy",
                        dest="STRATEGY",
                        help="Upgrade strategy (default: frameworkOnly)",
                        action="store", type=str,
                        choices=Constants.SUPPORTED_STRATEGIES)
    parser.add_argument("--target-version",
                        dest="TARGET_VERSION",
                        help="Explicit version for the lockstep framework packages, e.g. 18.2.5",
                        action="store", type=str)
    parser.add_argument("--core",
                        dest="CORE",
                        help="Core framework package name or scope prefix ending in '/'; repeatable",
                        action="append", type=str)
    parser.add_argument("--companion",
                        dest="COMPANION",
                        help="Companion build/CLI tool package; repeatable",
                        action="append", type=str)
    parser.add_argument("--primary",
                        dest="PRIMARY",
                        help="Primary framework package carrying the framework version",
                        action="store", type=str)
    parser.add_argument("--lockstep",
                        dest="LOCKSTEP",
                        help="Core package name or scope prefix that takes the explicit target version; repeatable",
                        action="append", type=str)

    parser.add_argument("--concurrency",
                        dest="CONCURRENCY",
                        help=f"Maximum in-flight registry queries (default: {Constants.DEFAULT_CONCURRENCY})",
                        action="store", type=int)
    parser.add_argument("--max-rounds",
                        dest="MAX_ROUNDS",
                        help=f"Peer resolution round cap (default: {Constants.DEFAULT_MAX_ROUNDS})",
                        action="store", type=int)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help="Abort peer resolution after this many seconds",
                        action="store", type=float)
    parser.add_argument("--registry",
                        dest="REGISTRY_URL",
                        help=f"npm registry base URL (default: {Constants.REGISTRY_URL_NPM})",
                        action="store", type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="YAML (or .json) configuration file",
                        action="store", type=str)

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to write the JSON report (default: stdout)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help=f"Set the logging level (default: ${Constants.LOG_LEVEL_ENV} or INFO)",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not print the report to the console.",
                        action="store_true")

    return parser.parse_args(argv)
