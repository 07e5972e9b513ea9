"""CLI entrypoint: run a workflow defined in an importable module."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import import_module, metadata
from pathlib import Path

from .bus import configured_max_depth
from .config import ensure_config_dir, load_config
from .logging_utils import configure_logging
from .workflow import Workflow


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="picoflow",
        description="picoflow - run an in-process task workflow",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a config.toml (defaults to ~/.config/picoflow/config.toml)",
    )
    parser.add_argument(
        "target",
        nargs="?",
        help="Workflow to run, as module:attribute",
    )
    return parser


def load_workflow(target: str) -> Workflow:
    """Import ``module:attribute`` and return the workflow it names."""
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected module:attribute, got {target!r}")
    workflow = getattr(import_module(module_name), attribute)
    if not isinstance(workflow, Workflow):
        raise TypeError(f"{target!r} is {type(workflow).__name__}, not a Workflow")
    return workflow


def main(argv: Sequence[str] | None = None) -> None:
    """Load configuration, configure logging and run the target workflow."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("picoflow")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"picoflow {version}")
        return

    if not args.target:
        parser.error("a workflow target is required")

    if args.config is None:
        ensure_config_dir()
    config = load_config(args.config)
    configure_logging(config["logging"])

    try:
        workflow = load_workflow(args.target)
    except (ImportError, AttributeError, TypeError, ValueError) as exc:
        parser.error(str(exc))

    workflow.bus.max_depth = configured_max_depth(config, default=workflow.bus.max_depth)
    asyncio.run(workflow.run())


if __name__ == "__main__":
    main()
