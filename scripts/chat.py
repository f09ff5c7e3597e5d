#!/usr/bin/env python3
"""
CampusHelp terminal chat.

Streams answers from the hosted model, routes each question to a
helpdesk category, and offers staff contact when routing or the model
comes up empty.

Usage:
    PYTHONPATH=src python scripts/chat.py
    PYTHONPATH=src python scripts/chat.py --intent housing --no-web
    PYTHONPATH=src python scripts/chat.py --dump-config

Commands inside the chat:
    /intent <id|auto>     pin a category (fees, scholarships, timetable, housing) or go back to auto
    /attach <path> ...    attach PDFs or images
    /files                list attachments
    /remove <name>        drop an attachment
    /contact <channel>    email | whatsapp | ticket
    /reset                clear the conversation
    /quit                 exit
Press Ctrl-C while an answer is streaming to stop it.
"""

import argparse
import shlex
import sys
import threading

from dotenv import load_dotenv

load_dotenv()

from loguru import logger

from agents import AUTO, ConversationBusyError, build_agent
from infrastructure import config
from infrastructure.log import setup_logging
from infrastructure.observability import flush

HELP = __doc__.split("Commands inside the chat:", 1)[1]


def _print_notice(notice) -> None:
    prefix = "✓" if notice.ok else "✗"
    print(f"{prefix} {notice.message}")


def _print_handoff(agent) -> None:
    channels = [name for name, on in agent.handoff.channels.items() if on] if agent.handoff else []
    if not channels:
        return
    print(
        "Need a human? Contact staff with your last message and a short transcript: "
        + ", ".join(f"/contact {c}" for c in channels)
    )


def _stream_turn(agent, text: str, intent: str) -> None:
    """Run one turn in a worker thread so Ctrl-C can stop the stream."""
    outcome = {}

    def _worker():
        try:
            outcome["result"] = agent.chat(
                text,
                manual_override=intent,
                on_token=lambda piece: print(piece, end="", flush=True),
            )
        except ConversationBusyError as exc:
            outcome["busy"] = exc

    worker = threading.Thread(target=_worker, daemon=True)
    print("Assistant: ", end="", flush=True)
    worker.start()
    while worker.is_alive():
        try:
            worker.join(timeout=0.1)
        except KeyboardInterrupt:
            agent.stop()
    print()

    if "busy" in outcome:
        print(f"✗ {outcome['busy']}")
        return

    result = outcome.get("result")
    if result is None:
        return
    if result.cancelled:
        print("(stopped)")
    if result.error:
        print(f"Error: {result.error}")
    if result.show_handoff:
        _print_handoff(agent)


def _handle_command(agent, line: str, state: dict) -> bool:
    """Execute a slash command. Returns False to quit."""
    try:
        parts = shlex.split(line[1:])
    except ValueError as exc:
        print(f"✗ {exc}")
        return True
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]

    if cmd in ("quit", "exit", "q"):
        return False

    if cmd == "help":
        print(HELP)
    elif cmd == "intent":
        try:
            wanted = agent.router.parse_selection(args[0] if args else None)
        except ValueError as exc:
            print(f"✗ {exc}")
        else:
            state["intent"] = wanted
            print(f"Category: {agent.router.label(wanted)} ({'Auto' if wanted == AUTO else 'Manual'})")
    elif cmd == "attach":
        if not args:
            print("✗ Usage: /attach <path> [...]")
        else:
            _print_notice(agent.tray.add_files(args))
    elif cmd == "files":
        if not len(agent.tray):
            print("(no attachments)")
        for item in agent.tray:
            print(f"  {item.name}  {item.mime_type}  {item.size} bytes")
    elif cmd == "remove":
        item = agent.tray.find(args[0]) if args else None
        if item is None:
            print("✗ No such attachment.")
        else:
            agent.tray.remove(item.uri)
            print(f"Removed {item.name}")
    elif cmd == "contact":
        _print_notice(agent.contact(args[0].lower() if args else "ticket"))
    elif cmd == "reset":
        agent.reset()
        state["intent"] = AUTO
        print(agent.last_message_text())
    else:
        print(f"✗ Unknown command /{cmd}. Type /help.")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="CampusHelp student-helpdesk chat")
    parser.add_argument(
        "--intent",
        default=AUTO,
        help="Pin a category (fees, scholarships, timetable, housing) instead of auto-detection",
    )
    parser.add_argument("--no-web", action="store_true", help="Disable web search grounding")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level (default from param.yaml)")
    parser.add_argument("--dump-config", action="store_true", help="Print non-secret configuration and exit")
    args = parser.parse_args()

    setup_logging(args.log_level, compact=True, log_file=config.LOG_FILE)

    cfg = config.load_config()
    if args.dump_config:
        config.dump(cfg)
        return 0

    try:
        config.validate(cfg)
    except (ValueError, OSError) as exc:
        logger.error("{}", exc)
        return 1

    agent = build_agent(cfg, enable_web=False if args.no_web else None)
    try:
        intent = agent.router.parse_selection(args.intent)
    except ValueError as exc:
        logger.error("{}", exc)
        return 1
    state = {"intent": intent}

    for message in agent.messages:
        label = message.role.capitalize()
        print(f"{label}: {message.text}")

    try:
        while True:
            try:
                line = input("\nYou: ").strip()
            except EOFError:
                break
            except KeyboardInterrupt:
                print()
                break
            if not line:
                continue
            if line.startswith("/"):
                if not _handle_command(agent, line, state):
                    break
                continue
            _stream_turn(agent, line, state["intent"])
    finally:
        flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
