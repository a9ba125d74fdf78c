"""Tests for the clipboard service."""

from vault import config
from vault.clipboard import ClipboardService, clamp_clear_timeout


def test_copy_returns_status(qtbot, fake_clipboard):
    service = ClipboardService(clipboard=fake_clipboard)
    assert service.copy("octocat", "Login name") == "Login name copied to clipboard"
    assert fake_clipboard.text() == "octocat"
    assert not service.clipboard_timer.isActive()


def test_sensitive_copy_schedules_clear(qtbot, fake_clipboard):
    service = ClipboardService(clipboard=fake_clipboard)
    service.copy("hunter2", "Password", sensitive=True)

    assert service.clipboard_timer.isActive()
    assert service.clipboard_timer.interval() == config.CLIPBOARD_CLEAR_TIMEOUT_DEFAULT

    with qtbot.waitSignal(service.cleared, timeout=1000):
        service.clear_clipboard()
    assert fake_clipboard.text() == ""


def test_clear_leaves_newer_content_alone(qtbot, fake_clipboard):
    service = ClipboardService(clipboard=fake_clipboard)
    service.copy("hunter2", "Password", sensitive=True)
    fake_clipboard.setText("something the user copied later")

    service.clear_clipboard()
    assert fake_clipboard.text() == "something the user copied later"


def test_default_label(qtbot, fake_clipboard):
    service = ClipboardService(clipboard=fake_clipboard)
    assert service.copy("x", "") == "Content copied to clipboard"


def test_timeout_is_clamped():
    assert clamp_clear_timeout(1) == config.CLIPBOARD_CLEAR_TIMEOUT_MIN_SECONDS
    assert clamp_clear_timeout(10000) == config.CLIPBOARD_CLEAR_TIMEOUT_MAX_SECONDS
    assert clamp_clear_timeout(45) == 45
