"""Command-line front end for the conversation store."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .adapters import from_anthropic_message, from_openai_message
from .config import load_config
from .errors import BackendFailure, BranchCreationError, NotFound, SerializationError
from .manager import MessageManager
from .message import Message, MessageType

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_USAGE = 2
EXIT_BACKEND = 3


def _setup_logging(cfg: Dict[str, Any], verbose: bool) -> None:
    level_name = str(cfg.get("logging", {}).get("level", "INFO")).upper()
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _parse_metadata(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SerializationError(f"--metadata is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SerializationError("--metadata must be a JSON object")
    return data


# -----------------------------
# Commands
# -----------------------------
def cmd_init(manager: MessageManager, args: argparse.Namespace) -> int:
    print(f"Initialized conversation store at {manager.store.root} ({manager.store.hash_algorithm})")
    return EXIT_OK


def cmd_add(manager: MessageManager, args: argparse.Namespace) -> int:
    msg = manager.create_message(args.session, MessageType(args.type), args.content, _parse_metadata(args.metadata))
    _print_json(msg.to_dict())
    return EXIT_OK


def cmd_show(manager: MessageManager, args: argparse.Namespace) -> int:
    msg = manager.get_message(args.session, args.message_id)
    digest = manager.store.message_hash(args.session, args.message_id)
    _print_json({
        "hash": digest,
        "message": msg.to_dict(),
        "annotation": manager.store.get_metadata(digest),
    })
    return EXIT_OK


def cmd_log(manager: MessageManager, args: argparse.Namespace) -> int:
    for msg in manager.list_messages(args.session):
        first_line = (msg.content.splitlines() or [""])[0]
        print(f"{msg.id}  {msg.timestamp}  {msg.type.value:<10}  {first_line[:72]}")
    return EXIT_OK


def cmd_branch(manager: MessageManager, args: argparse.Namespace) -> int:
    digest = manager.create_branch(args.session, args.message_id, args.new_session)
    print(f"session-{args.new_session} -> {digest}")
    return EXIT_OK


def cmd_import(manager: MessageManager, args: argparse.Namespace) -> int:
    try:
        raw = json.loads(Path(args.file).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise SerializationError(f"{args.file} is not valid JSON: {e}") from e
    except OSError as e:
        raise BackendFailure(f"Failed to read {args.file}: {e}") from e

    items: List[Any] = raw if isinstance(raw, list) else [raw]
    convert = from_anthropic_message if args.format == "anthropic" else from_openai_message
    created: List[Message] = []
    for item in items:
        if not isinstance(item, dict):
            raise SerializationError(f"Expected message objects in {args.file}")
        created.append(manager.create_from_draft(args.session, convert(item)))

    for msg in created:
        print(msg.id)
    logger.info("imported %d %s message(s) into %s", len(created), args.format, args.session)
    return EXIT_OK


# -----------------------------
# Parser
# -----------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chat-context", description="Content-addressed conversation store.")
    parser.add_argument("--config", type=str, default=None, help="Path to a YAML config file")
    parser.add_argument("--store", type=str, default=None, help="Store directory (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Initialize the store")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("add", help="Create a message in a session")
    p.add_argument("session")
    p.add_argument("--type", choices=[t.value for t in MessageType], default=MessageType.USER_INPUT.value)
    p.add_argument("--content", required=True)
    p.add_argument("--metadata", default=None, help="JSON object")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("show", help="Print a message with its annotation")
    p.add_argument("session")
    p.add_argument("message_id")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("log", help="List the messages of a session")
    p.add_argument("session")
    p.set_defaults(func=cmd_log)

    p = sub.add_parser("branch", help="Fork a session at a message")
    p.add_argument("session")
    p.add_argument("message_id")
    p.add_argument("new_session")
    p.set_defaults(func=cmd_branch)

    p = sub.add_parser("import", help="Import provider-format messages from a JSON file")
    p.add_argument("session")
    p.add_argument("file")
    p.add_argument("--format", choices=["anthropic", "openai"], required=True)
    p.set_defaults(func=cmd_import)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
    except RuntimeError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    if args.store:
        cfg.setdefault("store", {})["path"] = args.store
    _setup_logging(cfg, args.verbose)

    try:
        manager = MessageManager.from_config(cfg)
        return args.func(manager, args)
    except (NotFound, BranchCreationError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except (SerializationError, ValidationError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except BackendFailure as e:
        logger.error("store failure: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BACKEND


if __name__ == "__main__":
    sys.exit(main())
