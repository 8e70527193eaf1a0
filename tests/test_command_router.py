"""Tests for CommandRouter."""

import pytest

from alertbot.command_router import CommandRouter, CommandType


class TestCommandRouter:
    """Test command router functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.router = CommandRouter(bot_username="AlertBot")

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("/start", CommandType.START),
            ("/show", CommandType.SHOW),
            ("/change", CommandType.CHANGE),
            ("/stop", CommandType.STOP),
            ("/help", CommandType.HELP),
        ],
    )
    def test_parse_known_commands(self, text, expected):
        """Test parsing each supported command."""
        cmd = self.router.parse_command(text)

        assert cmd is not None
        assert cmd.command_type == expected
        assert cmd.is_known

    def test_parse_command_with_arguments(self):
        """Test arguments after the command don't change the command."""
        cmd = self.router.parse_command("/start   vitalik.eth")

        assert cmd.command_type == CommandType.START
        assert cmd.name == "start"

    def test_parse_command_case_insensitive(self):
        """Test that command parsing is case insensitive."""
        cmd = self.router.parse_command("/HELP")

        assert cmd.command_type == CommandType.HELP

    def test_parse_command_addressed_to_bot(self):
        """Test Telegram's /command@BotName form."""
        cmd = self.router.parse_command("/show@AlertBot")

        assert cmd.command_type == CommandType.SHOW

    def test_parse_command_addressed_to_other_bot(self):
        """Test commands meant for another bot in a group are not ours."""
        cmd = self.router.parse_command("/show@SomeOtherBot")

        assert cmd is not None
        assert not cmd.is_known

    def test_parse_unknown_command(self):
        """Test unknown slash commands are reported as unknown."""
        cmd = self.router.parse_command("/frobnicate now")

        assert cmd is not None
        assert cmd.command_type is None
        assert cmd.name == "frobnicate"

    def test_command_prefix_must_be_whole_word(self):
        """Test /startx is not mistaken for /start."""
        cmd = self.router.parse_command("/startx")

        assert not cmd.is_known

    def test_bare_slash_is_unknown_command(self):
        cmd = self.router.parse_command("/")

        assert cmd is not None
        assert not cmd.is_known

    def test_parse_non_command_text(self):
        """Test parsing non-command text returns None."""
        assert self.router.parse_command("vitalik.eth") is None

    def test_leading_whitespace(self):
        cmd = self.router.parse_command("  /stop")

        assert cmd.command_type == CommandType.STOP

    def test_parse_empty_text(self):
        """Test parsing empty text returns None."""
        assert self.router.parse_command("") is None

    def test_parse_none_text(self):
        """Test parsing None text returns None."""
        assert self.router.parse_command(None) is None
