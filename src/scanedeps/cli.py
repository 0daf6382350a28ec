"""Command-line entry point.

Usage:
    scanedeps                 # same as `scanedeps run`
    scanedeps run [--root DIR] [--staging DIR] [--jobs N] [--report FILE]
    scanedeps init [--root DIR] [--force]
    scanedeps plan BINARY [--root DIR] [--base TOKEN]
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from scanedeps.errors import BundleError, ManifestError
from scanedeps.fetch import Fetcher
from scanedeps.inspector import inspect_references
from scanedeps.layout import locate_root
from scanedeps.manifest import MANIFEST_FILENAME, default_manifest, read_manifest, write_manifest
from scanedeps.observability import StructuredLogger
from scanedeps.pipeline import BundlePipeline
from scanedeps.planner import plan_rewrites
from scanedeps.toolchain import DarwinToolchain, Toolchain


def _add_run_options(parser: argparse.ArgumentParser, *, default: object = None) -> None:
    parser.add_argument("--root", type=Path, default=default, help="Bundle root (default: current directory)")
    parser.add_argument("--staging", type=Path, default=default, help="Staging directory for fetched bottles")
    parser.add_argument("--jobs", type=int, default=default, help="Parallel fetch workers")
    parser.add_argument("--report", type=Path, default=default, help="Write a JSON run report to this path")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scanedeps",
        description="Bundle SANE and its libraries as relocatable universal dylibs.",
    )
    _add_run_options(parser)
    sub = parser.add_subparsers(dest="command")

    # Subcommand copies must not overwrite values given before the subcommand.
    run_p = sub.add_parser("run", help="Fetch, merge, patch and sign every dependency")
    _add_run_options(run_p, default=argparse.SUPPRESS)

    init_p = sub.add_parser("init", help="Write the default manifest into the bundle root")
    init_p.add_argument(
        "--root",
        type=Path,
        default=argparse.SUPPRESS,
        help="Bundle root (default: current directory)",
    )
    init_p.add_argument("--force", action="store_true", help="Overwrite an existing manifest")

    plan_p = sub.add_parser("plan", help="Print the rewrite plan for a binary without changing it")
    plan_p.add_argument("binary", type=Path)
    plan_p.add_argument(
        "--root",
        type=Path,
        default=argparse.SUPPRESS,
        help="Bundle root (default: current directory)",
    )
    plan_p.add_argument("--base", help="Rewrite base for sibling references")
    return parser


def cmd_run(
    args: argparse.Namespace,
    *,
    toolchain: Toolchain | None = None,
    fetcher: Fetcher | None = None,
) -> int:
    root = locate_root(args.root)
    manifest = read_manifest(root / MANIFEST_FILENAME)
    if args.jobs is not None:
        manifest = dataclasses.replace(
            manifest,
            config=dataclasses.replace(manifest.config, fetch_workers=args.jobs),
        )
    pipeline = BundlePipeline.from_manifest(
        root,
        manifest,
        toolchain=toolchain or DarwinToolchain(timeout=manifest.config.tool_timeout),
        fetcher=fetcher,
        staging_root=args.staging,
        logger=StructuredLogger(stream=sys.stdout),
    )
    result = pipeline.run()
    if args.report is not None:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        args.report.write_text(
            json.dumps(result.to_dict(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
    print(f"Bundled {len(result.binaries)} binaries into {root}")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    root = (args.root or Path.cwd()).resolve()
    path = root / MANIFEST_FILENAME
    if path.exists() and not args.force:
        raise ManifestError(
            "Manifest already exists.",
            hint="Pass --force to overwrite it with the defaults.",
            context={"path": str(path)},
        )
    write_manifest(default_manifest(), path)
    print(f"Wrote {path}")
    return 0


def cmd_plan(args: argparse.Namespace, *, toolchain: Toolchain | None = None) -> int:
    root = locate_root(args.root)
    manifest = read_manifest(root / MANIFEST_FILENAME)
    config = manifest.config
    toolchain = toolchain or DarwinToolchain(timeout=config.tool_timeout)
    references = inspect_references(toolchain, args.binary)
    decisions = plan_rewrites(
        args.binary,
        references,
        manifest.registry,
        rewrite_base=args.base or config.root_rewrite_base,
        foreign_prefixes=config.foreign_prefixes,
        self_token=config.self_token,
    )
    for decision in decisions:
        if decision.actionable:
            print(f"{decision.classification:<18} {decision.reference} -> {decision.replacement}")
        else:
            print(f"{decision.classification:<18} {decision.reference}")
    return 0


def main(
    argv: Sequence[str] | None = None,
    *,
    toolchain: Toolchain | None = None,
    fetcher: Fetcher | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "init":
            return cmd_init(args)
        if args.command == "plan":
            return cmd_plan(args, toolchain=toolchain)
        return cmd_run(args, toolchain=toolchain, fetcher=fetcher)
    except BundleError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
