"""Tests for the PIN confirmation gate."""

import json
import os
import platform

import pytest

from vault import config
from vault.biometric import PinGate


class ScriptedPrompt:
    """Answers PIN prompts from a list of (text, accepted) replies."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.messages = []

    def __call__(self, title, message):
        self.messages.append(message)
        return self.replies.pop(0)


def test_first_confirmation_sets_up_the_pin(tmp_path):
    prompt = ScriptedPrompt(("1234", True))
    gate = PinGate(auth_dir=str(tmp_path), prompt=prompt)

    assert not gate.has_pin
    assert gate.request_confirmation("Delete?")
    assert gate.has_pin
    assert config.PIN_PROMPT_SETUP in prompt.messages[0]
    assert "Delete?" in prompt.messages[0]

    with open(os.path.join(str(tmp_path), config.BIOMETRIC_AUTH_FILE)) as f:
        assert "auth_hash" in json.load(f)


@pytest.mark.skipif(platform.system() == "Windows", reason="POSIX permission bits")
def test_pin_file_is_private(tmp_path):
    PinGate(auth_dir=str(tmp_path), prompt=ScriptedPrompt(("1234", True))).request_confirmation("x")
    mode = os.stat(os.path.join(str(tmp_path), config.BIOMETRIC_AUTH_FILE)).st_mode
    assert mode & 0o777 == 0o600


def test_stored_pin_is_checked(tmp_path):
    PinGate(auth_dir=str(tmp_path), prompt=ScriptedPrompt(("1234", True))).request_confirmation("setup")

    prompt = ScriptedPrompt(("1234", True), ("9999", True))
    gate = PinGate(auth_dir=str(tmp_path), prompt=prompt)

    assert gate.has_pin
    assert gate.request_confirmation("Reveal?")
    assert config.PIN_PROMPT_ENTER in prompt.messages[0]
    assert not gate.request_confirmation("Reveal?")


def test_cancelled_or_empty_prompt_refuses(tmp_path):
    gate = PinGate(auth_dir=str(tmp_path), prompt=ScriptedPrompt(("1234", False), ("", True)))
    assert not gate.request_confirmation("Delete?")
    assert not gate.request_confirmation("Delete?")
    assert not gate.has_pin


def test_corrupt_auth_file_means_no_pin(tmp_path):
    with open(os.path.join(str(tmp_path), config.BIOMETRIC_AUTH_FILE), "w") as f:
        f.write("{not json")
    gate = PinGate(auth_dir=str(tmp_path), prompt=ScriptedPrompt())
    assert not gate.has_pin
    assert not gate.verify_pin("1234")
