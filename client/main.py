"""
Console driver for the live engine.

Responsibilities:
- Load configuration (.env, then environment) and configure logging
- Create the LiveEngine on default audio devices
- Map stdin lines onto engine operations
- Print state changes

Commands:
    /start  /pause  /resume  /stop  /reset  /quit
    /attach <path>    /detach <index>
    anything else     sent as text
"""

from __future__ import annotations

import asyncio
import sys

from dotenv import find_dotenv, load_dotenv

from config import AppConfig
from errors import UnsupportedAttachmentError
from observability import logger
from orchestrator.state_dataclass import EngineState
from session.live_engine import LiveEngine


COMMANDS = frozenset({
    "start", "pause", "resume", "stop", "reset", "quit", "attach", "detach",
})


def parse_command(line: str) -> tuple[str, str]:
    """
    Split a console line into (command, argument).

    Plain text (or an unknown slash command) is ("send", text).
    """
    stripped = line.strip()
    if stripped.startswith("/"):
        name, _, arg = stripped[1:].partition(" ")
        if name in COMMANDS:
            return name, arg.strip()
    return "send", stripped


def _print_state(state: EngineState) -> None:
    line = f"[{state.connection_status.value}/{state.turn_state.value}] {state.status}"
    if state.error:
        line += f" | error: {state.error}"
    if state.transcript:
        line += f" | {state.transcript}"
    if state.links:
        line += " | links: " + " ".join(state.links)
    print(line, file=sys.stderr)


async def _handle(engine: LiveEngine, command: str, arg: str) -> bool:
    """Run one command. Returns False when the console should exit."""
    if command == "quit":
        return False

    if command == "start":
        await engine.start()
    elif command == "pause":
        await engine.pause()
    elif command == "resume":
        await engine.resume()
    elif command == "stop":
        await engine.stop()
    elif command == "reset":
        await engine.reset()
    elif command == "attach":
        try:
            await engine.add_attachment(arg)
        except (UnsupportedAttachmentError, ValueError) as e:
            print(f"attach failed: {e}", file=sys.stderr)
    elif command == "detach":
        try:
            await engine.remove_attachment(int(arg))
        except (IndexError, ValueError):
            print(f"no attachment at index {arg!r}", file=sys.stderr)
    else:
        await engine.send(arg)

    return True


def load_config() -> AppConfig:
    """
    Read a .env file from the working directory (or a parent), then the
    environment. Variables already set in the environment win.
    """
    load_dotenv(find_dotenv(usecwd=True))
    return AppConfig.load_from_env()


async def amain() -> None:
    config = load_config()
    logger.configure(json_logs=config.enable_json_logs, level=config.log_level)

    engine = await LiveEngine.create(config)
    engine.subscribe(_print_state)
    _print_state(engine.state)

    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            command, arg = parse_command(line)
            if not await _handle(engine, command, arg):
                break
    finally:
        await engine.close()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(amain())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
