"""Command line entrypoint.

``cloud-triggers manifest`` scans Python sources for trigger declarations and
writes the deployment manifest; ``cloud-triggers identifier`` prints the Cloud Run
identifier a trigger name normalizes to.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from cloud_triggers import __version__
from cloud_triggers.config import ToolSettings
from cloud_triggers.logging import configure_logging
from cloud_triggers.manifest import ManifestError, build_manifest, render_manifest
from cloud_triggers.naming import to_cloud_run_id
from cloud_triggers.scanner import scan_paths

logger = logging.getLogger(__name__)

STDOUT = "-"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloud-triggers",
        description="Build deployment manifests for Python trigger functions",
    )
    parser.add_argument("--version", action="version", version=f"cloud-triggers {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    manifest = subparsers.add_parser(
        "manifest",
        help="Scan sources for trigger declarations and write functions.yaml",
    )
    manifest.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Python files or directories to scan (directories recursively)",
    )
    manifest.add_argument(
        "--output",
        "-o",
        default=None,
        help="Output file, or '-' for stdout (defaults to CLOUD_TRIGGERS_OUTPUT)",
    )
    manifest.add_argument(
        "--format",
        dest="fmt",
        choices=["yaml", "json"],
        default=None,
        help="Output format (defaults to CLOUD_TRIGGERS_FORMAT)",
    )

    identifier = subparsers.add_parser(
        "identifier",
        help="Print the Cloud Run identifier for a trigger name",
    )
    identifier.add_argument("name", help="Trigger name, e.g. onMessagePublished_orderscreated")

    return parser


def _write_manifest(args: argparse.Namespace, settings: ToolSettings) -> int:
    missing = [str(p) for p in args.paths if not p.exists()]
    if missing:
        print(f"No such file or directory: {', '.join(missing)}", file=sys.stderr)
        return 2

    result = scan_paths(args.paths)
    manifest = build_manifest(result.params, result.triggers)
    rendered = render_manifest(manifest, args.fmt or settings.manifest_format)

    output = args.output if args.output is not None else str(settings.manifest_output)
    if output == STDOUT:
        sys.stdout.write(rendered)
        return 0

    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(rendered, encoding="utf-8")
    logger.info(
        "Manifest written",
        extra={"path": str(path), "endpoints": len(manifest["endpoints"])},
    )
    print(f"Wrote {len(manifest['endpoints'])} endpoint(s) to {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ToolSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    # The manifest may go to stdout; keep logs on stderr.
    configure_logging(settings.log_level, stream=sys.stderr)

    try:
        if args.command == "manifest":
            return _write_manifest(args, settings)

        if args.command == "identifier":
            try:
                print(to_cloud_run_id(args.name))
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return 2
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except ManifestError as e:
        logger.error("Manifest could not be built", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return 2

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
