"""Command router for parsing slash commands sent to the bot."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CommandType(Enum):
    """Available slash command types."""

    START = "start"
    SHOW = "show"
    CHANGE = "change"
    STOP = "stop"
    HELP = "help"


@dataclass
class ParsedCommand:
    """Parsed slash command.

    ``command_type`` is None for a slash command the bot doesn't know.
    """

    command_type: Optional[CommandType]
    name: str

    @property
    def is_known(self) -> bool:
        return self.command_type is not None


class CommandRouter:
    """Parse slash commands from chat messages."""

    COMMAND_PREFIX = "/"

    def __init__(self, bot_username: Optional[str] = None):
        """Initialize the command router.

        Args:
            bot_username: The bot's username. When set, commands addressed to a
                different bot (``/start@OtherBot``) are not treated as ours.
        """
        self.bot_username = bot_username
        # Match: /command, optional @botname, then anything after whitespace
        self.command_pattern = re.compile(
            rf"^{re.escape(self.COMMAND_PREFIX)}(\w+)(?:@(\w+))?(?:\s+.*)?$",
            re.DOTALL,
        )

    def parse_command(self, text: Optional[str]) -> Optional[ParsedCommand]:
        """
        Extract a slash command from message text.

        Args:
            text: The full text of the chat message.

        Returns:
            ParsedCommand if the text is a slash command, else None.

        Examples:
            >>> router = CommandRouter()
            >>> cmd = router.parse_command("/start")
            >>> cmd.command_type == CommandType.START
            True
            >>> router.parse_command("/frobnicate").is_known
            False
        """
        if not text:
            return None

        stripped = text.strip()
        if not stripped.startswith(self.COMMAND_PREFIX):
            return None

        match = self.command_pattern.match(stripped)
        if not match:
            # A bare "/" or "/ something" is still an attempt at a command
            return ParsedCommand(
                command_type=None,
                name=stripped.split()[0],
            )

        command_name = match.group(1).lower()
        addressee = match.group(2)

        command_type: Optional[CommandType]
        try:
            command_type = CommandType(command_name)
        except ValueError:
            command_type = None

        if (
            command_type is not None
            and addressee
            and self.bot_username
            and addressee.lower() != self.bot_username.lower()
        ):
            command_type = None

        return ParsedCommand(
            command_type=command_type,
            name=command_name,
        )
