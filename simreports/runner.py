"""Command-line entry point that configures and runs a simulation session."""

from __future__ import annotations

import argparse
import json
import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from .report import ReportOptions, Reports
from .web_api import WebApi

logger = logging.getLogger(__name__)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

DEFAULT_WEB_PORT = 33334

_LEVELS = {
    "off": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}


@dataclass
class BaseArgs:
    """The command-line options every simulation accepts."""

    random_seed: int = 0
    config: Path | None = None
    output_dir: Path | None = None
    file_prefix: str | None = None
    force_overwrite: bool = False
    log_level: str | None = None
    web: int | None = None


@dataclass
class Session:
    """Everything a setup function configures before the simulation runs."""

    args: BaseArgs
    reports: Reports
    rng: random.Random
    global_properties: dict[str, Any] = field(default_factory=dict)
    people: list[Any] = field(default_factory=list)
    web_api: WebApi | None = None
    web_url: str | None = None
    time: float = 0.0


def _level(name: str) -> str | None:
    key = name.strip().lower()
    return key.upper() if key in _LEVELS else None


def parse_log_levels(text: str) -> list[tuple[str, str]]:
    """Parse ``module=level`` pairs separated by commas.

    Returns ``(module, LEVEL)`` pairs; raises ``ValueError`` on a malformed pair.
    """
    result = []
    for pair in text.split(","):
        parts = pair.split("=")
        if len(parts) < 2:
            raise ValueError(f"Invalid value in pair: {pair}")
        key, value = parts[0], parts[1]
        level = _level(value)
        if level is None:
            raise ValueError(f"Invalid log level: {value}")
        result.append((key, level))
    return result


def configure_logging(log_level: str | None) -> dict[str, str]:
    """Apply a log level, or per-module levels, and return what was set.

    The result maps logger names (``""`` for the root logger) to level names.
    """
    if log_level is None:
        logger.info("Logging disabled.")
        return {}
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(levelname)s %(name)s - %(message)s")
    level = _level(log_level)
    if level is not None:
        logging.getLogger().setLevel(_LEVELS[level.lower()])
        logger.info("Logging enabled at level %s", level)
        return {"": level}
    try:
        pairs = parse_log_levels(log_level)
    except ValueError:
        raise ValueError(f"Invalid log level format: {log_level}") from None
    applied = {}
    for key, value in pairs:
        logging.getLogger(key).setLevel(_LEVELS[value.lower()])
        applied[key] = value
        print(f"Logging enabled for {key} at level {value}")
    return applied


def create_parser() -> argparse.ArgumentParser:
    """Build the parser holding the base simulation options."""
    parser = argparse.ArgumentParser(prog="simreports")
    parser.add_argument("-r", "--random-seed", type=int, default=0, help="Random seed")
    parser.add_argument(
        "-c", "--config", type=Path, default=None,
        help="Optional path for a global properties config file",
    )
    parser.add_argument(
        "-o", "--output", dest="output_dir", type=Path, default=None,
        help="Optional path for report output",
    )
    parser.add_argument(
        "--prefix", dest="file_prefix", default=None, help="Optional prefix for report files"
    )
    parser.add_argument(
        "-f", "--force-overwrite", action="store_true", help="Overwrite existing report files?"
    )
    parser.add_argument("-l", "--log-level", default=None, help="Enable logging")
    parser.add_argument(
        "-w", "--web", type=int, nargs="?", const=DEFAULT_WEB_PORT, default=None,
        help=f"Enable the Web API on a port (default {DEFAULT_WEB_PORT})",
    )
    return parser


_BASE_FIELDS = (
    "random_seed", "config", "output_dir", "file_prefix",
    "force_overwrite", "log_level", "web",
)


def _split_namespace(namespace: argparse.Namespace) -> tuple[BaseArgs, argparse.Namespace]:
    values = vars(namespace)
    base = BaseArgs(**{name: values[name] for name in _BASE_FIELDS})
    custom = argparse.Namespace(
        **{name: value for name, value in values.items() if name not in _BASE_FIELDS}
    )
    return base, custom


def parse_base_args(argv: list[str] | None = None) -> BaseArgs:
    """Parse the base options from ``argv`` (the process arguments by default)."""
    base, _ = _split_namespace(create_parser().parse_args(argv))
    return base


def _load_global_properties(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"global properties file {path} must hold a JSON object")
    return data


def _install_handlers(api: WebApi, session: Session) -> None:
    api.add_handler("time", lambda state, _args: {"time": state.time})
    api.add_handler("population", lambda state, _args: {"population": len(state.people)})


def _run(
    args: BaseArgs,
    custom_args: Any,
    setup_fn: Callable[[Session, BaseArgs, Any], Any],
) -> Session:
    global_properties: dict[str, Any] = {}
    if args.config is not None:
        print(f"Loading global properties from: {args.config}")
        global_properties = _load_global_properties(Path(args.config))

    options = ReportOptions()
    if args.output_dir is not None:
        options.output_dir = Path(args.output_dir)
    if args.file_prefix is not None:
        options.file_prefix = args.file_prefix
    if args.force_overwrite:
        options.overwrite = True

    configure_logging(args.log_level)

    session = Session(
        args=args,
        reports=Reports(options),
        rng=random.Random(args.random_seed),
        global_properties=global_properties,
    )
    try:
        if args.web is not None:
            api = WebApi()
            session.web_api = api
            session.web_url = api.start(args.web)
            print(f"Web API active on {session.web_url}")
            _install_handlers(api, session)

        setup_fn(session, args, custom_args)

        if session.web_api is not None:
            while (next_time := session.web_api.serve_requests(session)) is not None:
                session.time = next_time
    finally:
        session.reports.close()
        if session.web_api is not None:
            session.web_api.stop()
    return session


def run_with_args(
    setup_fn: Callable[[Session, BaseArgs, Any], Any],
    argv: list[str] | None = None,
    add_arguments: Callable[[argparse.ArgumentParser], Any] | None = None,
) -> Session:
    """Parse the command line, build a session, call ``setup_fn`` and run.

    ``add_arguments`` may add custom options to the parser; their values are
    passed to ``setup_fn`` as a namespace, or ``None`` when there are none.
    """
    parser = create_parser()
    if add_arguments is not None:
        add_arguments(parser)
    base, custom = _split_namespace(parser.parse_args(argv))
    return _run(base, custom if add_arguments is not None else None, setup_fn)


def main(argv: list[str] | None = None) -> int:
    """Run a session with the base options and no setup of its own."""
    run_with_args(lambda session, args, custom: None, argv)
    return 0