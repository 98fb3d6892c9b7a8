"""Island Monitor diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from island_monitor.config import IslandSettings
from island_monitor.events import EventDecodeError, decode_payload, encode_event
from island_monitor.transport import is_listening, send_payload


def socket_path_for(args: argparse.Namespace) -> Path:
    if getattr(args, "socket", None):
        return Path(args.socket)
    return IslandSettings().socket_path


def _parse_fields(pairs: list[str] | None) -> dict[str, object]:
    fields: dict[str, object] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"Invalid --field {pair!r}; expected key=value")
        try:
            fields[key] = json.loads(raw)
        except json.JSONDecodeError:
            fields[key] = raw
    return fields


def cmd_ping(args: argparse.Namespace) -> None:
    path = socket_path_for(args)
    live = is_listening(path)
    print(json.dumps({"socket_path": str(path), "listening": live}))
    if not live:
        raise SystemExit(1)


def cmd_send(args: argparse.Namespace) -> None:
    payload: dict[str, object] = {"kind": args.kind}
    if args.session_id:
        payload["session_id"] = args.session_id
    if args.pid is not None:
        payload["pid"] = args.pid
    if args.cwd:
        payload["cwd"] = args.cwd
    payload.update(_parse_fields(args.field))

    try:
        event = decode_payload(payload)
    except EventDecodeError as exc:
        print(f"Invalid event: {exc}")
        raise SystemExit(1)

    path = socket_path_for(args)
    if not send_payload(path, encode_event(event)):
        print(f"Monitor unavailable at {path}")
        raise SystemExit(1)
    print(json.dumps({"sent": event.kind, "socket_path": str(path)}))


def cmd_replay(args: argparse.Namespace) -> None:
    path = socket_path_for(args)
    sent = 0
    invalid: list[dict[str, object]] = []
    for number, line in enumerate(Path(args.file).read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            event = decode_payload(json.loads(line))
        except (json.JSONDecodeError, EventDecodeError) as exc:
            invalid.append({"line": number, "error": str(exc)})
            continue
        if not send_payload(path, encode_event(event)):
            print(f"Monitor unavailable at {path}")
            raise SystemExit(1)
        sent += 1
    print(json.dumps({"sent": sent, "invalid": invalid}, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Island Monitor diagnostics")
    parser.add_argument("--socket", help="Socket path (default from settings)")
    sub = parser.add_subparsers(dest="cmd")

    p_ping = sub.add_parser("ping", help="Check whether a monitor is listening")
    p_ping.set_defaults(func=cmd_ping)

    p_send = sub.add_parser("send", help="Send one synthetic event")
    p_send.add_argument("kind", help="Event kind, e.g. SessionStart or ToolStart")
    p_send.add_argument("--session-id")
    p_send.add_argument("--pid", type=int, default=None)
    p_send.add_argument("--cwd")
    p_send.add_argument(
        "--field",
        action="append",
        help="Extra payload field as key=value (value parsed as JSON when possible)",
    )
    p_send.set_defaults(func=cmd_send)

    p_replay = sub.add_parser("replay", help="Send every event of a JSONL file in order")
    p_replay.add_argument("file")
    p_replay.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
