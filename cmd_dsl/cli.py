from __future__ import annotations

import argparse
import configparser
import logging
import os
import pathlib
import sys
from typing import Any, Dict, List, Optional, Tuple

from . import parser as dsl_parser
from .builder import Builder
from .model import Plan
from .ok import IOFailure, StatusFailure, check


def _str_to_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_binding(text: str) -> Tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got '{text}'")
    return name.strip(), value


def _load_config(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    config = configparser.ConfigParser()
    # keep value names case-sensitive
    config.optionxform = str  # type: ignore[assignment]
    config.read(path)
    data: Dict[str, Any] = {}
    if "settings" in config:
        data.update(config["settings"])
    values: Dict[str, Any] = {}
    if "values" in config:
        values.update(config["values"])
    if "lists" in config:
        for name, raw in config["lists"].items():
            values[name] = _split_list(raw)
    if values:
        data["values"] = values
    return data


def _resolve_settings(args: argparse.Namespace, cfg: Dict[str, Any]) -> Dict[str, Any]:
    # config -> CLI -> env (env has highest priority)
    settings: Dict[str, Any] = {
        "log_file": cfg.get("log_file"),
        "dry_run": cfg.get("dry_run"),
        "verbose": cfg.get("verbose"),
    }

    if args.log_file:
        settings["log_file"] = args.log_file
    if args.dry_run is not None:
        settings["dry_run"] = args.dry_run
    if args.verbose is not None:
        settings["verbose"] = args.verbose

    # environment overrides everything
    settings["log_file"] = os.getenv("CMD_DSL_LOG_FILE", settings.get("log_file"))
    env_dry_run = os.getenv("CMD_DSL_DRY_RUN")
    if env_dry_run is not None:
        settings["dry_run"] = _str_to_bool(env_dry_run, False)
    env_verbose = os.getenv("CMD_DSL_VERBOSE")
    if env_verbose is not None:
        settings["verbose"] = _str_to_bool(env_verbose, False)

    settings["dry_run"] = _str_to_bool(str(settings.get("dry_run")) if settings.get("dry_run") is not None else None, False)
    settings["verbose"] = _str_to_bool(str(settings.get("verbose")) if settings.get("verbose") is not None else None, False)
    return settings


def _resolve_values(args: argparse.Namespace, cfg: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = dict(cfg.get("values", {}))
    for name, value in args.set or []:
        values[name] = value
    for name, value in args.list or []:
        values[name] = _split_list(value)
    for name in args.none or []:
        values[name] = None
    return values


def _configure_logging(settings: Dict[str, Any]) -> None:
    log_handlers: List[logging.Handler] = []
    if settings.get("log_file"):
        log_path = pathlib.Path(settings["log_file"])
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    console_handler = logging.StreamHandler()
    # console shows warnings only unless verbose, so command output stays readable
    console_handler.setLevel(logging.DEBUG if settings["verbose"] else logging.WARNING)
    log_handlers.append(console_handler)
    logging.basicConfig(
        level=logging.DEBUG if settings["verbose"] else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=log_handlers,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build and run commands written in the cmd-dsl syntax")
    parser.add_argument("line", nargs="?", help='Command line, e.g. \'echo Hello ("-p" packages ?)\'')
    parser.add_argument("--script", help="Path to a file with one command per line")
    parser.add_argument("--config", help="Optional config file (ini)")
    parser.add_argument("--set", action="append", type=_parse_binding, metavar="NAME=VALUE", help="Bind a string value")
    parser.add_argument("--list", action="append", type=_parse_binding, metavar="NAME=A,B", help="Bind a list value")
    parser.add_argument("--none", action="append", metavar="NAME", help="Bind a name to an absent value")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Print commands instead of running them")
    parser.add_argument("--no-dry-run", dest="dry_run", action="store_false", help="Run commands (default)")
    parser.add_argument("--verbose", dest="verbose", action="store_true", help="Log debug output to the console")
    parser.add_argument("--log-file", dest="log_file", help="Write logs to file")
    parser.set_defaults(dry_run=None, verbose=None)
    return parser


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.line and not args.script:
        parser.error("either a command line or --script is required")

    config_data = _load_config(args.config)
    settings = _resolve_settings(args, config_data)
    values = _resolve_values(args, config_data)
    _configure_logging(settings)

    try:
        if args.script:
            plans: List[Plan] = dsl_parser.parse_script(args.script)
        else:
            plans = [dsl_parser.parse(args.line)]
    except dsl_parser.ParseError as exc:
        print(f"cmd-dsl: {exc}", file=sys.stderr)
        return 2

    builder = Builder(values)
    for plan in plans:
        try:
            command = builder.build(plan)
        except (KeyError, TypeError) as exc:
            print(f"cmd-dsl: {exc}", file=sys.stderr)
            return 2

        if settings["dry_run"]:
            print(command)
            continue

        try:
            result = check(command)
        except StatusFailure as exc:
            print(f"{command.program}: {exc}", file=sys.stderr)
            return exc.status if exc.status and exc.status > 0 else 1
        except IOFailure as exc:
            print(f"{command.program}: {exc}", file=sys.stderr)
            return 1
        text = result.stdout_lossy()
        if text:
            print(text)
        logging.info("%s succeeded", command)

    return 0


if __name__ == "__main__":
    sys.exit(run_cli())
