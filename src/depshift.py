"""depshift - dependency version planner for migrated projects

    Reads the source project's package.json, plans target versions,
    reconciles peer requirements against the npm registry and reports the
    final manifest with its decision log.

    Returns:
        int: Exit code
"""
import asyncio
import json
import logging
import os
import sys

from args import parse_args
from common.errors import ConfigurationError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from config import build_options, load_config, registry_url
from constants import Constants, ExitCodes
from registry.npm.client import NpmRegistryClient
from resolution.project_files import (
    load_source_manifest,
    project_name_for,
    write_resolved_package_json,
)
from resolution.service import resolve_manifest
from schema_validate import safe_validate_report

logger = logging.getLogger(__name__)


def setup_logging(args):
    """Configure logging from CLI arguments; the CLI flag wins over the environment."""
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()
    configure_logging()

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


async def run_resolution(source, options, base_url):
    """Resolve ``source`` against the npm registry at ``base_url``."""
    client = NpmRegistryClient(base_url=base_url, timeout=Constants.REQUEST_TIMEOUT)
    try:
        return await resolve_manifest(source, client, options)
    finally:
        await client.close()


def export_report(report, path=None, quiet=False):
    """Write the JSON report to ``path`` and/or stdout."""
    data = report.to_dict()
    safe_validate_report(data)
    payload = json.dumps(data, indent=2)
    if path:
        try:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(payload + "\n")
        except OSError as e:
            logging.error("Failed to write report %s: %s", path, e)
            sys.exit(ExitCodes.FILE_ERROR.value)
        logging.info("Report written to %s", path)
    if not quiet:
        print(payload)


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    try:
        cfg = load_config(args.CONFIG)
        options = build_options(args, cfg)
    except ConfigurationError as e:
        logging.error("Configuration error: %s", e)
        sys.exit(ExitCodes.CONFIG_ERROR.value)

    try:
        source = load_source_manifest(args.SOURCE)
    except (OSError, ValueError) as e:
        logging.error("Cannot read source manifest: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if args.WRITE and not args.NEW_PROJECT:
        logging.error("--write requires --new-project")
        sys.exit(ExitCodes.CONFIG_ERROR.value)

    try:
        report = asyncio.run(run_resolution(source, options, registry_url(args, cfg)))
    except ConfigurationError as e:
        logging.error("Configuration error: %s", e)
        sys.exit(ExitCodes.CONFIG_ERROR.value)

    export_report(report, args.OUTPUT, args.QUIET)

    if args.WRITE:
        try:
            write_resolved_package_json(args.NEW_PROJECT, report, project_name_for(args.NEW_PROJECT))
        except (OSError, ValueError) as e:
            logging.error("Cannot update new project package.json: %s", e)
            sys.exit(ExitCodes.FILE_ERROR.value)

    if report.unresolved:
        logging.warning(
            "%d package(s) left unresolved: %s",
            len(report.unresolved),
            ", ".join(str(d.package) for d in report.unresolved),
        )
        sys.exit(ExitCodes.UNRESOLVED.value)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
