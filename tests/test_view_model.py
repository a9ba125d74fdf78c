"""Tests for the view-state coordinator, driven through the Qt event loop."""

import pytest

from vault import config
from vault.clipboard import ClipboardService
from vault.errors import StorageError
from vault.models import Account, Platform, PlatformType
from vault.view_model import VaultViewModel, group_accounts
from vault.workers import TaskRunner


@pytest.fixture()
def runner(qtbot):
    r = TaskRunner()
    yield r
    r.shutdown()


@pytest.fixture()
def vm(qtbot, platform_repo, account_repo, runner, gate, fake_clipboard):
    model = VaultViewModel(platform_repo, account_repo, runner, gate=gate,
                           clipboard=ClipboardService(clipboard=fake_clipboard))
    model.start()
    qtbot.waitUntil(lambda: not model.is_loading)
    yield model
    model.shutdown()


def _settle(qtbot, vm):
    qtbot.waitUntil(lambda: not vm.is_loading)


def _save(qtbot, vm, name, password="pw", platform_type=PlatformType.OTHER, **fields):
    handle = vm.save_account_with_platform(name, platform_type, fields.pop("remark", None),
                                           fields.pop("login_name", None), password, **fields)
    assert handle is not None
    qtbot.waitUntil(lambda: handle.done)
    _settle(qtbot, vm)
    return handle


class TestSave:

    def test_new_platform_is_created_at_the_top(self, qtbot, vm):
        _save(qtbot, vm, "GitHub", login_name="octocat")
        _save(qtbot, vm, "Steam")

        qtbot.waitUntil(lambda: [p.name for p in vm.platforms] == ["Steam", "GitHub"])
        qtbot.waitUntil(lambda: len(vm.accounts) == 2)
        assert vm.status_message == config.MSG_SAVED

    def test_existing_platform_is_reused(self, qtbot, vm, platform_repo, account_repo):
        _save(qtbot, vm, "GitHub", login_name="work")
        _save(qtbot, vm, "  GitHub ", login_name="personal")

        platforms = platform_repo.list_platforms()
        assert [p.name for p in platforms] == ["GitHub"]
        assert account_repo.count_accounts(platforms[0].id) == 2

    def test_blank_optional_fields_are_stored_as_none(self, qtbot, vm, account_repo):
        _save(qtbot, vm, "GitHub", login_name="  ", email="")
        stored = account_repo.list_accounts()[0]
        assert stored.login_name is None
        assert stored.email is None

    @pytest.mark.parametrize("name, password, message", [
        ("", "", config.MSG_MISSING_NAME_AND_PASSWORD),
        ("   ", "pw", config.MSG_MISSING_NAME),
        ("GitHub", "", config.MSG_MISSING_PASSWORD),
    ])
    def test_validation(self, vm, platform_repo, name, password, message):
        assert vm.save_account_with_platform(name, None, None, None, password) is None
        assert vm.error_message == message
        assert not vm.is_loading
        assert platform_repo.list_platforms() == []

    def test_edit_keeps_ids(self, qtbot, vm, account_repo):
        _save(qtbot, vm, "GitHub", login_name="octocat")
        account = account_repo.list_accounts()[0]
        account.remark = "2FA enabled"

        handle = vm.save_account(account)
        qtbot.waitUntil(lambda: handle.done)
        assert account_repo.get_account(account.id).remark == "2FA enabled"

    def test_storage_failure_is_reported_and_loading_released(self, qtbot, vm, account_repo, monkeypatch):
        def broken(account):
            raise StorageError("disk I/O error")

        monkeypatch.setattr(account_repo, "save_account", broken)
        handle = vm.save_account_with_platform("GitHub", None, None, None, "pw")
        qtbot.waitUntil(lambda: handle.done)

        assert vm.error_message == "Save failed: disk I/O error"
        assert not vm.is_loading


class TestDelete:

    def test_deleting_last_account_removes_platform(self, qtbot, vm, platform_repo, account_repo, gate):
        _save(qtbot, vm, "GitHub")
        account = account_repo.list_accounts()[0]

        handle = vm.delete_account(account)
        qtbot.waitUntil(lambda: handle.done)

        assert gate.reasons == [config.CONFIRM_REASON_DELETE]
        assert platform_repo.list_platforms() == []
        qtbot.waitUntil(lambda: vm.platforms == [] and vm.accounts == [])
        assert vm.status_message == config.MSG_DELETED

    def test_platform_with_remaining_accounts_is_kept(self, qtbot, vm, platform_repo, account_repo):
        _save(qtbot, vm, "GitHub", login_name="a")
        _save(qtbot, vm, "GitHub", login_name="b")
        account = account_repo.list_accounts()[0]

        handle = vm.delete_account(account)
        qtbot.waitUntil(lambda: handle.done)

        assert [p.name for p in platform_repo.list_platforms()] == ["GitHub"]
        assert len(account_repo.list_accounts()) == 1

    def test_refused_gate_deletes_nothing(self, qtbot, vm, account_repo, gate):
        _save(qtbot, vm, "GitHub")
        gate.allow = False

        assert vm.delete_account(account_repo.list_accounts()[0]) is None
        assert vm.delete_all_accounts() is None
        assert len(account_repo.list_accounts()) == 1
        assert vm.status_message == config.MSG_NOT_CONFIRMED
        assert not vm.is_loading

    def test_delete_many_cleans_up_orphaned_platforms(self, qtbot, vm, platform_repo, account_repo):
        _save(qtbot, vm, "GitHub", login_name="a")
        _save(qtbot, vm, "GitHub", login_name="b")
        _save(qtbot, vm, "Steam")
        steam_account = account_repo.list_accounts_by_platform_name("Steam")[0]
        github_account = account_repo.list_accounts_by_platform_name("GitHub")[0]

        handle = vm.delete_accounts([steam_account, github_account])
        qtbot.waitUntil(lambda: handle.done)

        assert [p.name for p in platform_repo.list_platforms()] == ["GitHub"]

    def test_delete_all(self, qtbot, vm, platform_repo, account_repo, gate):
        _save(qtbot, vm, "GitHub")
        _save(qtbot, vm, "Steam")

        handle = vm.delete_all_accounts()
        qtbot.waitUntil(lambda: handle.done)

        assert gate.reasons == [config.CONFIRM_REASON_DELETE_ALL]
        assert account_repo.list_accounts() == []
        assert platform_repo.list_platforms() == []

    def test_delete_failure_is_reported(self, qtbot, vm):
        handle = vm.delete_account(Account(platform_id=1, password="pw", id=404))
        qtbot.waitUntil(lambda: handle.done)
        assert vm.error_message.startswith("Delete failed:")
        assert not vm.is_loading


class TestSearch:

    @pytest.fixture()
    def seeded(self, qtbot, vm):
        _save(qtbot, vm, "GitHub", login_name="octocat")
        _save(qtbot, vm, "Steam", remark="family")
        _save(qtbot, vm, "Bank", platform_type=PlatformType.FINANCE, email="me@bank.example")
        return vm

    def test_empty_keyword_never_reaches_the_repository(self, qtbot, seeded, account_repo, monkeypatch):
        calls = []
        monkeypatch.setattr(account_repo, "search_accounts", lambda kw: calls.append(kw) or [])

        assert seeded.search("   ") is None
        assert calls == []
        assert seeded.search_results == []
        assert not seeded.is_loading

    def test_search_results(self, qtbot, seeded):
        handle = seeded.search(" OCTO ")
        qtbot.waitUntil(lambda: handle.done)
        assert [a.login_name for a in seeded.search_results] == ["octocat"]
        assert list(seeded.grouped_search_results) == ["GitHub"]
        assert seeded.search_keyword == "OCTO"
        assert not seeded.is_loading

    def test_new_search_cancels_the_previous_one(self, qtbot, seeded):
        first = seeded.search("octo")
        second = seeded.search("family")
        assert first.cancelled

        qtbot.waitUntil(lambda: second.done)
        assert [a.remark for a in seeded.search_results] == ["family"]
        assert not seeded.is_loading

    def test_cancel_search_resets_loading_and_results(self, qtbot, seeded):
        handle = seeded.search("octo")
        qtbot.waitUntil(lambda: handle.done)

        seeded.search("steam")
        assert seeded.is_loading
        seeded.cancel_search()

        assert not seeded.is_loading
        assert seeded.search_results == []

    def test_leave_list_view_clears_keyword(self, qtbot, seeded):
        seeded.search("octo")
        seeded.leave_list_view()
        assert seeded.search_keyword == ""
        assert not seeded.is_loading
        assert seeded.can_reorder

    def test_search_by_platform(self, qtbot, seeded):
        handle = seeded.search_by_platform_type(PlatformType.FINANCE)
        qtbot.waitUntil(lambda: handle.done)
        assert [a.email for a in seeded.search_results] == ["me@bank.example"]

        handle = seeded.search_by_platform_name("Steam")
        qtbot.waitUntil(lambda: handle.done)
        assert [a.remark for a in seeded.search_results] == ["family"]

    def test_active_search_is_refreshed_after_changes(self, qtbot, seeded):
        handle = seeded.search("octo")
        qtbot.waitUntil(lambda: handle.done)

        _save(qtbot, seeded, "GitLab", login_name="octopus")
        qtbot.waitUntil(lambda: len(seeded.search_results) == 2)
        assert [a.login_name for a in seeded.search_results] == ["octopus", "octocat"]

    def test_search_failure_is_reported(self, qtbot, seeded, account_repo, monkeypatch):
        def broken(keyword):
            raise StorageError("database is locked")

        monkeypatch.setattr(account_repo, "search_accounts", broken)
        handle = seeded.search("octo")
        qtbot.waitUntil(lambda: handle.done)
        assert seeded.error_message == "Search failed: database is locked"
        assert not seeded.is_loading


class TestPlatforms:

    def test_update_platform_type(self, qtbot, vm, platform_repo):
        _save(qtbot, vm, "GitHub", platform_type=PlatformType.OTHER)
        platform = platform_repo.list_platforms()[0]

        handle = vm.update_platform_type(platform, PlatformType.WORK)
        qtbot.waitUntil(lambda: handle.done)

        assert platform_repo.get_platform(platform.id) == platform.with_type(PlatformType.WORK)
        qtbot.waitUntil(lambda: vm.platform_types == [PlatformType.WORK])
        assert vm.status_message == config.MSG_TYPE_UPDATED

    def test_type_filter(self, qtbot, vm):
        _save(qtbot, vm, "GitHub", platform_type=PlatformType.WORK)
        _save(qtbot, vm, "Bank", platform_type=PlatformType.FINANCE)
        qtbot.waitUntil(lambda: len(vm.platforms) == 2)

        vm.set_type_filter(PlatformType.FINANCE)
        assert [p.name for p in vm.visible_platforms()] == ["Bank"]
        assert not vm.can_reorder
        assert not vm.begin_drag(vm.platforms[0].id)

        vm.set_type_filter(None)
        assert [p.name for p in vm.visible_platforms()] == ["Bank", "GitHub"]

    def test_grouping_follows_platform_order(self, qtbot, vm):
        _save(qtbot, vm, "GitHub", login_name="a")
        _save(qtbot, vm, "Steam", login_name="b")
        _save(qtbot, vm, "GitHub", login_name="c")

        qtbot.waitUntil(lambda: sum(len(v) for v in vm.grouped_accounts.values()) == 3)
        assert list(vm.grouped_accounts) == ["Steam", "GitHub"]
        assert [a.login_name for a in vm.grouped_accounts["GitHub"]] == ["c", "a"]

    def test_drag_reorders_and_persists(self, qtbot, vm, platform_repo):
        for name in ("C", "B", "A"):
            _save(qtbot, vm, name)
        qtbot.waitUntil(lambda: [p.name for p in vm.platforms] == ["A", "B", "C"])
        ids = [p.id for p in vm.platforms]
        for platform_id in ids:
            vm.report_item_height(platform_id, 100)

        with qtbot.waitSignal(vm.drag_order_changed, timeout=1000):
            assert vm.begin_drag(ids[0])
            vm.drag_by(70)
        assert [p.name for p in vm.visible_platforms()] == ["B", "A", "C"]

        vm.end_drag()
        qtbot.waitUntil(lambda: [p.name for p in platform_repo.list_platforms()] == ["B", "A", "C"])
        qtbot.waitUntil(lambda: [p.name for p in vm.platforms] == ["B", "A", "C"])
        _settle(qtbot, vm)
        assert vm.status_message == config.MSG_ORDER_UPDATED

    @pytest.mark.parametrize("start_search", [
        lambda vm: vm.search("c"),
        lambda vm: vm.search_by_platform_name("C"),
        lambda vm: vm.search_by_platform_type(PlatformType.WORK),
    ], ids=["keyword", "platform_name", "platform_type"])
    def test_drag_refused_while_searching(self, qtbot, vm, platform_repo, start_search):
        _save(qtbot, vm, "C", platform_type=PlatformType.WORK, login_name="c")
        _save(qtbot, vm, "B", login_name="b")
        _save(qtbot, vm, "A", login_name="a")
        qtbot.waitUntil(lambda: [p.name for p in vm.platforms] == ["A", "B", "C"])
        before = [(p.name, p.sort_index) for p in platform_repo.list_platforms()]

        handle = start_search(vm)
        qtbot.waitUntil(lambda: handle.done)
        _settle(qtbot, vm)

        assert not vm.can_reorder
        target = next(p for p in vm.platforms if p.name == "C")
        assert not vm.begin_drag(target.id)
        vm.drag_by(-500)
        assert vm.end_drag() is None
        _settle(qtbot, vm)

        assert [(p.name, p.sort_index) for p in platform_repo.list_platforms()] == before
        assert vm.status_message != config.MSG_ORDER_UPDATED

        vm.leave_list_view()
        assert vm.can_reorder

    def test_refused_drag_after_completed_one_persists_nothing(self, qtbot, vm, platform_repo, monkeypatch):
        _save(qtbot, vm, "B", platform_type=PlatformType.WORK)
        _save(qtbot, vm, "A")
        qtbot.waitUntil(lambda: [p.name for p in vm.platforms] == ["A", "B"])
        ids = [p.id for p in vm.platforms]

        assert vm.begin_drag(ids[0])
        vm.end_drag()
        _settle(qtbot, vm)
        vm.clear_messages()

        writes = []
        monkeypatch.setattr(platform_repo, "update_sort_indices", writes.append)
        vm.set_type_filter(PlatformType.WORK)
        assert not vm.begin_drag(ids[1])
        assert vm.end_drag() is None
        assert vm.cancel_drag() is None
        _settle(qtbot, vm)

        assert writes == []
        assert vm.status_message is None

    def test_reorder_failure_keeps_in_memory_order(self, qtbot, vm, platform_repo, monkeypatch):
        _save(qtbot, vm, "B")
        _save(qtbot, vm, "A")
        qtbot.waitUntil(lambda: len(vm.platforms) == 2)
        ids = [p.id for p in vm.platforms]

        def broken(ids_in_order):
            raise StorageError("disk full")

        monkeypatch.setattr(platform_repo, "update_sort_indices", broken)
        vm.begin_drag(ids[0])
        vm.drag_by(200)
        vm.end_drag()
        _settle(qtbot, vm)

        assert vm.error_message == "Updating order failed: disk full"
        assert vm.reorder.ordered_ids == [ids[1], ids[0]]


class TestMisc:

    def test_reveal_is_gated(self, vm, gate):
        account = Account(platform_id=1, password="pw", id=1)
        assert vm.reveal_account(account)
        gate.allow = False
        assert not vm.reveal_account(account)
        assert gate.reasons == [config.CONFIRM_REASON_REVEAL] * 2

    def test_copy_to_clipboard(self, vm, fake_clipboard):
        vm.copy_to_clipboard("hunter2", "Password", sensitive=True)
        assert fake_clipboard.text() == "hunter2"
        assert vm.status_message == "Password copied to clipboard"
        assert vm.clipboard.clipboard_timer.isActive()

    def test_loading_signal_round_trip(self, qtbot, vm):
        states = []
        vm.loading_changed.connect(states.append)
        _save(qtbot, vm, "GitHub")
        assert states == [True, False]

    def test_clear_messages(self, vm):
        vm.save_account_with_platform("", None, None, None, "")
        vm.clear_messages()
        assert vm.error_message is None
        assert vm.status_message is None


def test_group_accounts_puts_unknown_platforms_last():
    platforms = [Platform(name="Steam", id=2), Platform(name="GitHub", id=1)]
    accounts = [
        Account(platform_id=9, password="x", id=4),
        Account(platform_id=1, password="x", id=3),
        Account(platform_id=2, password="x", id=2),
    ]
    grouped = group_accounts(accounts, platforms)
    assert list(grouped) == ["Steam", "GitHub", config.UNKNOWN_PLATFORM_NAME]
    assert [a.id for a in grouped[config.UNKNOWN_PLATFORM_NAME]] == [4]


def test_default_gate_is_pin_based(platform_repo, account_repo, qtbot):
    from vault.biometric import PinGate

    model = VaultViewModel(platform_repo, account_repo, TaskRunner())
    assert isinstance(model.gate, PinGate)
