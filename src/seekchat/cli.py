from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

from seekchat.config import ClientConfig, ConfigError, ServerConfig, resolve_model_alias
from seekchat.errors import ChatError
from seekchat.store import PromptStore, SessionStore


def main() -> int:
    load_dotenv()
    return _main(sys.argv[1:])


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        payload = {
            "ts": ts,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(verbose: bool = False, quiet: bool = False, log_format: str = "text") -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_format == "json":
        handlers[0].setFormatter(JsonFormatter())
        logging.basicConfig(level=level, handlers=handlers)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--log-format", default="text", choices=["text", "json"])


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="seekchat", description="seekchat - streaming LLM chat")
    subparsers = parser.add_subparsers(dest="command", required=False)

    serve = subparsers.add_parser("serve", help="Run the persistence server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--data-dir", default=None)
    _add_logging_args(serve)

    chat = subparsers.add_parser("chat", help="Start the interactive chat REPL")
    chat.add_argument("--model", default=None, help="Model or alias (chat, r1, reasoner, ...)")
    chat.add_argument("--server", default=None, help="Persistence server URL")
    chat.add_argument(
        "--local",
        action="store_true",
        help="Use the data directory directly instead of the server",
    )
    chat.add_argument("--data-dir", default=None)
    chat.add_argument("--session", default=None, help="Session id to open")
    chat.add_argument("--message", "-m", help="Send one prompt and exit")
    _add_logging_args(chat)

    sessions = subparsers.add_parser("sessions", help="Inspect stored sessions")
    sessions.add_argument("--data-dir", default=None)
    sessions_sub = sessions.add_subparsers(dest="sessions_cmd", required=False)
    sessions_list = sessions_sub.add_parser("list", help="List sessions, newest first")
    sessions_list.add_argument("--limit", type=int, default=20)
    sessions_show = sessions_sub.add_parser("show", help="Print a session transcript")
    sessions_show.add_argument("session_id")
    sessions_delete = sessions_sub.add_parser("delete", help="Delete a session and its files")
    sessions_delete.add_argument("session_id")

    prompt = subparsers.add_parser("prompt", help="Show or change the system prompt")
    prompt.add_argument("--data-dir", default=None)
    prompt_sub = prompt.add_subparsers(dest="prompt_cmd", required=False)
    prompt_sub.add_parser("show", help="Print the system prompt")
    prompt_set = prompt_sub.add_parser("set", help="Replace the system prompt")
    prompt_set.add_argument("text")
    prompt_sub.add_parser("clear", help="Clear the system prompt")

    return parser


def _main(argv: list[str]) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv or ["chat"])

    cmd = args.command
    if cmd == "serve":
        return _cmd_serve(args)
    if cmd == "chat":
        return _cmd_chat(args)
    if cmd == "sessions":
        return _cmd_sessions(args)
    if cmd == "prompt":
        return _cmd_prompt(args)

    parser.print_help(sys.stderr)
    return 2


def _server_config(args) -> ServerConfig:
    config = ServerConfig.from_env()
    if getattr(args, "data_dir", None):
        config.data_dir = args.data_dir
    if getattr(args, "host", None):
        config.host = args.host
    if getattr(args, "port", None):
        config.port = args.port
    config.validate()
    return config


def _cmd_serve(args) -> int:
    import uvicorn

    from seekchat.server import create_app

    setup_logging(args.verbose, args.quiet, args.log_format)
    try:
        config = _server_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    return 0


def _cmd_chat(args) -> int:
    from seekchat.client.api import StoreClient
    from seekchat.client.context import TurnState
    from seekchat.client.local import LocalBackend
    from seekchat.repl import ChatREPL
    from seekchat.runtime import ChatRuntime

    # Log output would interleave with streamed text unless asked for.
    setup_logging(args.verbose, quiet=not args.verbose, log_format=args.log_format)
    logger = logging.getLogger(__name__)

    try:
        config = ClientConfig()
        if args.model:
            config.model = resolve_model_alias(args.model)
        if args.server:
            config.server_url = args.server
        config.validate()
        server_config = _server_config(args) if args.local else None
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    async def run() -> int:
        if server_config is not None:
            backend = LocalBackend(server_config.data_dir)
        else:
            backend = StoreClient(config.server_url, timeout=config.request_timeout_s)
        try:
            runtime = ChatRuntime(backend, config)
            if args.session:
                await runtime.switch(args.session)
            if args.message:
                result = await runtime.send(args.message)
                return 0 if result is None or result.state == TurnState.COMPLETED else 1
            await ChatREPL(runtime).run()
            return 0
        finally:
            await backend.aclose()

    try:
        return asyncio.run(run())
    except ChatError as e:
        logger.error(f"Chat failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted")
        return 130


def _cmd_sessions(args) -> int:
    try:
        store = SessionStore(_server_config(args).data_dir)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sub = args.sessions_cmd or "list"
    try:
        if sub == "list":
            records = sorted(store.list_all(), key=lambda r: r.sort_key(), reverse=True)
            limit = int(getattr(args, "limit", 20) or 20)
            if not records:
                print("No saved sessions")
                return 0
            for record in records[:limit]:
                print(f"{record.id}\t{record.name}\t{len(record.messages)} messages")
            return 0

        if sub == "show":
            record = store.get(args.session_id)
            if record is None:
                print(f"Error: Session {args.session_id} not found", file=sys.stderr)
                return 1
            print(f"{record.id} - {record.name}")
            for message in record.messages:
                print(f"[{message.role.value}] {message.content}")
            return 0

        if sub == "delete":
            store.delete(args.session_id)
            print(f"Deleted session {args.session_id}")
            return 0
    except ChatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Unknown sessions subcommand: {sub}", file=sys.stderr)
    return 2


def _cmd_prompt(args) -> int:
    try:
        store = PromptStore(_server_config(args).data_dir)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sub = args.prompt_cmd or "show"
    try:
        if sub == "show":
            print(store.load())
            return 0
        if sub == "set":
            store.save(args.text)
            print("System prompt saved")
            return 0
        if sub == "clear":
            store.clear()
            print("System prompt cleared")
            return 0
    except ChatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Unknown prompt subcommand: {sub}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
