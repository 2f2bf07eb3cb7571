import pytest

from cksctl.modules.node import ConfirmationGate, TokenMode
from cksctl.modules.node.gate import is_affirmative


@pytest.mark.parametrize("reply,expected", [
    ("yes", True),
    ("y", False),
    ("YES", False),
    ("Yes", False),
    (" yes", False),
    ("", False),
    ("no", False),
])
def test_exact_mode_only_accepts_yes(reply, expected):
    assert is_affirmative(reply, TokenMode.EXACT) is expected


@pytest.mark.parametrize("reply,expected", [
    ("y", True),
    ("Y", True),
    ("yes", False),
    ("n", False),
    ("", False),
])
def test_yes_no_mode_accepts_single_letter(reply, expected):
    assert is_affirmative(reply, TokenMode.YES_NO) is expected


def test_prompt_message_names_the_expected_token():
    seen = []
    gate = ConfirmationGate(prompt=lambda message: seen.append(message) or 'yes')
    assert gate.confirm("Are you sure?")
    assert seen == ["Are you sure? (type 'yes' to confirm)"]


def test_assume_yes_never_prompts():
    def prompt(message):
        raise AssertionError("prompt should not be shown")

    gate = ConfirmationGate(assume_yes=True, prompt=prompt)
    assert gate.confirm("Are you sure?")
    assert gate.confirm("Reboot now?", TokenMode.YES_NO)


def test_closed_stdin_is_a_refusal():
    def prompt(message):
        raise EOFError()

    assert not ConfirmationGate(prompt=prompt).confirm("Are you sure?")
