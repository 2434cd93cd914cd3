from __future__ import annotations

import argparse
import asyncio
import functools
import json
import sys
from typing import Sequence

from .browser import DriverFactory, launch_playwright_driver
from .config import RuntimeSettings, config_sha256, load_config, resolve_runtime_settings
from .config_schema import AppConfig
from .errors import BrowserError, ConfigError, ReconciliationFailure
from .pipeline import scrape_profile
from .run_log import RunLogger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ig_profile")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser(
        "serve",
        help="Run the HTTP API that scrapes profiles on request.",
    )
    serve.add_argument(
        "--config",
        required=True,
        help="Path to YAML config file.",
    )
    serve.add_argument(
        "--host",
        default=None,
        help="Bind address (defaults to server.host).",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listening port (defaults to the port env var, then server.port).",
    )
    serve.set_defaults(_handler=_cmd_serve)

    scrape = subparsers.add_parser(
        "scrape",
        help="Scrape one profile and print the JSON record.",
    )
    scrape.add_argument("username", help="Profile username.")
    scrape.add_argument(
        "--config",
        required=True,
        help="Path to YAML config file.",
    )
    scrape.add_argument(
        "--posts",
        type=int,
        default=None,
        help="Number of recent posts to sample.",
    )
    scrape.add_argument(
        "--offline",
        action="store_true",
        help="Run without network calls using a canned offline page.",
    )
    scrape.set_defaults(_handler=_cmd_scrape)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _open_logger(cfg: AppConfig) -> RunLogger:
    if cfg.logging.path:
        return RunLogger.open(cfg.logging.path, overwrite=False, debug=cfg.logging.debug)
    return RunLogger.to_stream(sys.stderr, debug=cfg.logging.debug)


def _driver_factory(cfg: AppConfig, settings: RuntimeSettings, *, offline: bool) -> DriverFactory:
    if offline:
        from .offline import OfflineBrowserDriver

        async def _open_offline() -> OfflineBrowserDriver:
            return OfflineBrowserDriver()

        return _open_offline

    return functools.partial(launch_playwright_driver, cfg.browser, settings)


def _cmd_serve(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    settings = resolve_runtime_settings(cfg)

    host = args.host or cfg.server.host
    port = args.port or settings.port

    with _open_logger(cfg) as log:
        log.info(
            "server_starting",
            host=host,
            port=port,
            executable_path=settings.executable_path,
            config_sha256=config_sha256(cfg),
        )

        from .server import create_app

        app = create_app(
            cfg,
            open_driver=_driver_factory(cfg, settings, offline=False),
            logger=log,
        )

        import uvicorn

        uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def _cmd_scrape(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    settings = resolve_runtime_settings(cfg)
    offline = bool(getattr(args, "offline", False))

    with _open_logger(cfg) as log:
        log.info(
            "scrape_command_started",
            username=args.username,
            offline=offline,
            config_sha256=config_sha256(cfg),
        )
        try:
            record = asyncio.run(
                scrape_profile(
                    args.username,
                    config=cfg,
                    open_driver=_driver_factory(cfg, settings, offline=offline),
                    logger=log,
                    sample_size=args.posts,
                )
            )
        except Exception as e:
            log.exception("scrape_command_failed", exc=e)
            raise

    print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (ReconciliationFailure, BrowserError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
