from __future__ import annotations

import argparse
import json
import logging
import time
from typing import Any, Dict

from hyquery.events import LEVELS
from hyquery.models import FetchOutcome, LogEvent, QueryConfig
from hyquery.monitor import QueryMonitor


def _load_config(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a JSON object")
    return data


def _build_config(args: argparse.Namespace) -> QueryConfig:
    raw = _load_config(args.config) if args.config else {}
    overrides = {
        "host": args.host,
        "port": args.port,
        "path": args.path,
        "use_https": args.https,
        "timeout_seconds": args.timeout,
        "polling_interval": args.interval,
    }
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return QueryConfig.from_dict(raw)


def _print_outcome(outcome: FetchOutcome, show_raw: bool) -> None:
    parsed = outcome.parsed
    server = parsed.server if parsed else None
    universe = parsed.universe if parsed else None
    players = parsed.players.count if parsed and parsed.players else None
    plugins = parsed.plugins.count if parsed and parsed.plugins else None
    print(
        f"reason={outcome.reason} ok={outcome.ok} status={outcome.status_code} "
        f"latency_ms={outcome.latency_ms} error={outcome.error_kind} "
        f"server={server.name if server else None} "
        f"online={universe.current_players if universe else None}/{server.max_players if server else None} "
        f"players={players} plugins={plugins}"
    )
    if show_raw and outcome.raw_text is not None:
        print(outcome.raw_text)


def _print_event(event: LogEvent) -> None:
    print(json.dumps(event.to_dict(), ensure_ascii=False, default=str))


def run(args: argparse.Namespace) -> int:
    config = _build_config(args)
    monitor = QueryMonitor(config=config)
    if args.json_logs:
        monitor.events.subscribe(_print_event)

    try:
        if args.poll:
            monitor.add_listener(lambda outcome: _print_outcome(outcome, args.raw))
            monitor.start_polling()
            deadline = time.monotonic() + args.duration if args.duration > 0 else None
            try:
                while deadline is None or time.monotonic() < deadline:
                    time.sleep(0.2)
            except KeyboardInterrupt:
                pass
            monitor.stop_polling()
            return 0

        outcome = monitor.fetch_now()
        _print_outcome(outcome, args.raw)
        return 0 if outcome.ok else 1
    finally:
        monitor.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Query a LAN server status endpoint")
    parser.add_argument("--poll", action="store_true", help="Poll repeatedly until --duration elapses or Ctrl-C")
    parser.add_argument("--duration", type=float, default=0, help="Polling duration in seconds (0 = until Ctrl-C)")

    parser.add_argument("--config", default=None, help="Path to a JSON config file")
    parser.add_argument("--host", default=None, help="Endpoint host (DNS or IP)")
    parser.add_argument("--port", type=int, default=None, help="Endpoint port")
    parser.add_argument("--path", default=None, help="Endpoint path")
    parser.add_argument("--https", dest="https", action="store_true", default=None, help="Use HTTPS")
    parser.add_argument("--http", dest="https", action="store_false", help="Use plain HTTP")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    parser.add_argument("--interval", type=float, default=None, help="Polling interval in seconds")

    parser.add_argument("--raw", action="store_true", help="Print the normalized response body")
    parser.add_argument("--json-logs", action="store_true", help="Print diagnostic events as JSON lines")
    parser.add_argument("--log-level", default="warn", choices=sorted(LEVELS), help="stdlib logging level")

    args = parser.parse_args()
    logging.basicConfig(level=LEVELS[args.log_level], format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    raise SystemExit(run(args))


if __name__ == "__main__":
    main()
