"""Interactive confirmation for irreversible actions."""
import logging
from enum import Enum
from typing import Callable, Optional

import typer

logger = logging.getLogger(__name__)


class TokenMode(str, Enum):
    EXACT = 'exact'    # only the literal "yes" confirms
    YES_NO = 'yes_no'  # "y" or "Y" confirms


def _typer_prompt(message: str) -> str:
    return typer.prompt(message, default='', show_default=False)


class ConfirmationGate:
    """Asks the operator before anything destructive happens.

    Any answer other than the expected affirmative token is a refusal. With
    ``assume_yes`` the prompt is skipped and treated as confirmed, which is
    how non-interactive runs and tests drive the gate.
    """

    def __init__(self, assume_yes: bool = False, prompt: Optional[Callable[[str], str]] = None):
        self.assume_yes = assume_yes
        self._prompt = prompt or _typer_prompt

    def confirm(self, message: str, mode: TokenMode = TokenMode.EXACT) -> bool:
        if self.assume_yes:
            logger.info(f"{message} -> yes (--yes)")
            return True
        suffix = "(type 'yes' to confirm)" if mode == TokenMode.EXACT else "(y/n)"
        try:
            reply = self._prompt(f"{message} {suffix}")
        except (EOFError, typer.Abort):
            reply = ''
        return is_affirmative(reply, mode)


def is_affirmative(reply: Optional[str], mode: TokenMode) -> bool:
    if reply is None:
        return False
    if mode == TokenMode.EXACT:
        return reply == 'yes'
    return reply in ('y', 'Y')
