import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from vault.biometric import BiometricGate
from vault.repository import AccountRepository, PlatformRepository
from vault.store import Store


class FakeGate(BiometricGate):
    """Gate with a fixed answer that remembers every reason it was asked for."""

    def __init__(self, allow=True):
        self.allow = allow
        self.reasons = []

    def request_confirmation(self, reason):
        self.reasons.append(reason)
        return self.allow


class FakeClipboard:
    def __init__(self):
        self._text = ""

    def setText(self, text):
        self._text = text

    def text(self):
        return self._text

    def clear(self):
        self._text = ""


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("VAULT_DATABASE_PATH", raising=False)
    return home


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "vault.db")


@pytest.fixture()
def store(db_path):
    s = Store.open(db_path)
    yield s
    s.close()


@pytest.fixture()
def platform_repo(store):
    return PlatformRepository(store)


@pytest.fixture()
def account_repo(store):
    return AccountRepository(store)


@pytest.fixture()
def gate():
    return FakeGate(allow=True)


@pytest.fixture()
def fake_clipboard():
    return FakeClipboard()
