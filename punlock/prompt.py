"""Interactive operator input — masked credentials and the account email."""

from __future__ import annotations

import getpass
import logging
from collections.abc import Callable

from punlock.models import is_valid_email

logger = logging.getLogger(__name__)


class Prompter:
    """Reads operator input from the terminal.

    The reader callables are injectable so tests can script the answers.
    EOFError and OSError propagate: a closed or broken terminal never
    produces an answer.
    """

    def __init__(
        self,
        secret_reader: Callable[[str], str] = getpass.getpass,
        line_reader: Callable[[str], str] = input,
    ):
        self._read_secret = secret_reader
        self._read_line = line_reader

    def secret(self, prompt: str) -> str:
        """Read a masked value.

        Raises:
            EOFError: standard input is closed.
            OSError: the terminal cannot be read.
        """
        return self._read_secret(prompt)

    def required_secret(self, prompt: str) -> str:
        """Read a masked value, asking again until it is non-blank."""
        while True:
            value = self.secret(prompt).strip()
            if value:
                return value

    def email(self) -> str:
        """Ask for the account email until a valid one is entered."""
        while True:
            value = self._read_line("Please enter your email: ").strip()
            if is_valid_email(value):
                return value
            logger.error("Invalid email: %r", value)
