from __future__ import annotations

import argparse
import json
import sys

from configpersist.shared.config import read_config_file
from configpersist.shared.models import ServiceConfig
from configpersist.shared.runtime import get_runtime_config, setup_logging
from configpersist.store.db import UrlConnector, init_db
from configpersist.store.errors import DuplicateConfigError, NoConfigError, SchemaMissingError
from configpersist.store.persister import SqlPersister


def _open(args: argparse.Namespace) -> SqlPersister:
    return SqlPersister(UrlConnector(args.db_url), polling_interval=args.interval)


def _print_config(c: ServiceConfig) -> None:
    print(json.dumps(c.model_dump(), ensure_ascii=False, sort_keys=True))


def cmd_init_db(args: argparse.Namespace) -> int:
    engine = UrlConnector(args.db_url).connect()
    try:
        init_db(engine)
    finally:
        engine.dispose()
    print(f"Created config table in {args.db_url}")
    return 0


def cmd_publish(args: argparse.Namespace) -> int:
    config = read_config_file(args.file, version=args.version)
    with _open(args) as p:
        try:
            p.persist_and_notify(args.label, config)
        except DuplicateConfigError as e:
            print(f"Refusing to publish: {e}", file=sys.stderr)
            return 3
    print(f"Published config version {config.version}")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    with _open(args) as p:
        try:
            c = p.read_persisted_config() if args.version is None else p.read_config(args.version)
        except NoConfigError as e:
            print(str(e), file=sys.stderr)
            return 1
    _print_config(c)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    with _open(args) as p:
        configs = p.read_historical_configs()
    for c in configs:
        _print_config(c)
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    seen = 0
    with _open(args) as p:
        print(f"Watching for new config versions (latest: {p.latest_version})")
        try:
            for _ in p.change_watcher():
                _print_config(p.read_persisted_config())
                seen += 1
                if args.count and seen >= args.count:
                    break
        except KeyboardInterrupt:
            pass
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from configpersist.api.app import create_app

    cfg = get_runtime_config()
    setup_logging(service_name="configpersist")

    if cfg.create_schema:
        engine = UrlConnector(args.db_url).connect()
        try:
            init_db(engine)
        finally:
            engine.dispose()

    with _open(args) as p:
        uvicorn.run(
            create_app(p),
            host=args.host or cfg.api_host,
            port=args.port or cfg.api_port,
            log_config=None,
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    cfg = get_runtime_config()

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--db-url",
        default=cfg.db_url,
        help="SQLAlchemy database URL (default: $CONFIGPERSIST_DB_URL)",
    )
    common.add_argument(
        "--interval",
        type=float,
        default=cfg.polling_interval_seconds,
        help="Polling interval in seconds (default: $CONFIGPERSIST_POLL_SECONDS)",
    )

    p = argparse.ArgumentParser(prog="configpersist", description="Versioned config store CLI")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init-db", parents=[common], help="Create the config table if it does not exist")
    p_init.set_defaults(func=cmd_init_db)

    p_pub = sub.add_parser("publish", parents=[common], help="Publish a YAML/JSON config document")
    p_pub.add_argument("file", help="Path to the config document")
    p_pub.add_argument("--label", default="cli", help="Free-form label recorded in logs")
    p_pub.add_argument("--version", type=int, default=None, help="Override the version in the document")
    p_pub.set_defaults(func=cmd_publish)

    p_show = sub.add_parser("show", parents=[common], help="Print the latest (or a given) config version")
    p_show.add_argument("--version", type=int, default=None)
    p_show.set_defaults(func=cmd_show)

    p_hist = sub.add_parser("history", parents=[common], help="Print every config version, oldest first")
    p_hist.set_defaults(func=cmd_history)

    p_watch = sub.add_parser("watch", parents=[common], help="Print each new config version as it arrives")
    p_watch.add_argument("--count", type=int, default=0, help="Exit after this many changes (0 = forever)")
    p_watch.set_defaults(func=cmd_watch)

    p_serve = sub.add_parser("serve", parents=[common], help="Serve the config store over HTTP")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    p_serve.set_defaults(func=cmd_serve)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    try:
        return int(ns.func(ns))
    except SchemaMissingError as e:
        print(f"{e}. Run `configpersist init-db` first.", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
