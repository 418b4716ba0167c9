"""
Bot commands and command parsing.

The set of commands is closed: every keyword the bot answers to is a member
of Command, and the help text and Telegram command menu are generated from
the same table.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

HELP_HEADER = "The following commands are supported:"


class Command(str, Enum):
    """Supported bot commands."""
    SUMMARIZE = "summarize"
    CAVEMAN = "caveman"
    EXPLAIN = "explain"
    HELP = "help"
    SUMMARIZE_RECENT = "summarizerecent"

    @property
    def description(self) -> str:
        return COMMAND_DESCRIPTIONS[self]


COMMAND_DESCRIPTIONS: Dict[Command, str] = {
    Command.SUMMARIZE: "summarize the replied message",
    Command.CAVEMAN: "explain the replied message in caveman language",
    Command.EXPLAIN: "explain the replied message",
    Command.HELP: "help command",
    Command.SUMMARIZE_RECENT: "summarize the last 100 messages",
}

# Commands that send the replied-to message for completion
TEXT_COMMANDS = frozenset([
    Command.SUMMARIZE,
    Command.CAVEMAN,
    Command.EXPLAIN,
])


def parse_command(text: Optional[str]) -> Optional[Command]:
    """
    Parse message text into a Command.

    Accepts "/keyword", "/keyword@BotName" and trailing arguments, matching
    the keyword case-insensitively. Returns None for anything else.
    """
    if not text:
        return None

    stripped = text.strip()
    if not stripped.startswith("/"):
        return None

    token = stripped.split()[0][1:]
    keyword = token.split("@", 1)[0].lower()

    try:
        return Command(keyword)
    except ValueError:
        return None


def help_text() -> str:
    """Static list of commands and their descriptions."""
    lines = [HELP_HEADER, ""]
    lines.extend(f"/{command.value} - {command.description}" for command in Command)
    return "\n".join(lines)


def bot_commands() -> List[Tuple[str, str]]:
    """(command, description) pairs for registering the Telegram command menu."""
    return [(command.value, command.description) for command in Command]
