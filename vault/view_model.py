"""
View-state coordinator between the UI layer and the repositories.

Lives on the Qt main thread. Reads and writes run on the TaskRunner; store
change notifications arrive from worker threads and are re-emitted through
queued signals, so every piece of state below is only touched on the main
thread.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from PyQt5.QtCore import QObject, pyqtSignal, pyqtSlot

from . import config
from .biometric import BiometricGate, PinGate
from .clipboard import ClipboardService
from .models import Account, Platform, PlatformType
from .reorder import ReorderEngine
from .repository import AccountRepository, PlatformRepository, Subscription
from .utils import log_action
from .workers import TaskHandle, TaskRunner

logger = logging.getLogger(__name__)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def group_accounts(accounts: Iterable[Account], platforms: List[Platform]) -> Dict[str, List[Account]]:
    """
    Group accounts by platform name, in platform display order. Accounts
    whose platform is not in `platforms` end up under the unknown group.
    """
    by_platform: Dict[int, List[Account]] = {}
    for account in accounts:
        by_platform.setdefault(account.platform_id, []).append(account)

    grouped: Dict[str, List[Account]] = {}
    for platform in platforms:
        members = by_platform.pop(platform.id, None)
        if members:
            grouped[platform.name] = members
    for members in by_platform.values():
        grouped.setdefault(config.UNKNOWN_PLATFORM_NAME, []).extend(members)
    return grouped


class VaultViewModel(QObject):
    """Observable state for the account list, search and platform ordering."""

    accounts_changed = pyqtSignal(object)
    platforms_changed = pyqtSignal(object)
    platform_types_changed = pyqtSignal(object)
    grouped_accounts_changed = pyqtSignal(object)
    search_results_changed = pyqtSignal(object)
    grouped_search_results_changed = pyqtSignal(object)
    drag_order_changed = pyqtSignal(object)
    loading_changed = pyqtSignal(bool)
    error_message_changed = pyqtSignal(object)
    status_message_changed = pyqtSignal(object)

    # Store pushes, emitted on the writing thread
    _platforms_pushed = pyqtSignal(object)
    _platform_types_pushed = pyqtSignal(object)
    _accounts_pushed = pyqtSignal(object)

    def __init__(self,
                 platform_repo: PlatformRepository,
                 account_repo: AccountRepository,
                 runner: TaskRunner,
                 gate: Optional[BiometricGate] = None,
                 clipboard: Optional[ClipboardService] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.platform_repo = platform_repo
        self.account_repo = account_repo
        self.runner = runner
        self.gate = gate or PinGate()
        self.clipboard = clipboard
        self.reorder = ReorderEngine(persist=self.reorder_platforms)

        self.accounts: List[Account] = []
        self.platforms: List[Platform] = []
        self.platform_types: List[PlatformType] = []
        self.grouped_accounts: Dict[str, List[Account]] = {}
        self.search_results: List[Account] = []
        self.grouped_search_results: Dict[str, List[Account]] = {}
        self.search_keyword = ""
        self.type_filter: Optional[PlatformType] = None
        self.is_loading = False
        self.error_message: Optional[str] = None
        self.status_message: Optional[str] = None

        self._busy = 0
        self._search_handle: Optional[TaskHandle] = None
        self._search_query: Optional[Callable[[], List[Account]]] = None
        self._subscriptions: List[Subscription] = []
        self._pushed = set()

        self._platforms_pushed.connect(self._on_platforms_pushed)
        self._platform_types_pushed.connect(self._on_platform_types_pushed)
        self._accounts_pushed.connect(self._on_accounts_pushed)

    # Lifecycle

    def start(self) -> None:
        """Subscribe to store changes and load the current data."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self.platform_repo.observe_platforms(self._platforms_pushed.emit),
            self.platform_repo.observe_platform_types(self._platform_types_pushed.emit),
            self.account_repo.observe_accounts(self._accounts_pushed.emit),
        ]

        def load():
            return (
                self.platform_repo.list_platforms(),
                self.platform_repo.list_platform_types(),
                self.account_repo.list_accounts(),
            )

        self._run(load, self._on_initial_load, config.ERR_LOAD, name="initial_load")

    def shutdown(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        self.cancel_search()

    @property
    def can_reorder(self) -> bool:
        return self.type_filter is None and not self.search_keyword and self._search_query is None

    # Mutations

    def save_account_with_platform(self, platform_name: str, platform_type: Optional[PlatformType],
                                   remark: Optional[str], login_name: Optional[str], password: str,
                                   pay_password: Optional[str] = None, phone: Optional[str] = None,
                                   email: Optional[str] = None, id_number: Optional[str] = None
                                   ) -> Optional[TaskHandle]:
        """
        Save a new account, creating its platform at the top of the list if no
        platform with that name exists yet.
        Returns:
            Handle of the background save, or None if the input was rejected
        """
        name = (platform_name or "").strip()
        if not self._validate(name, password):
            return None

        def save():
            with self.platform_repo.store.write_batch():
                existing = self.platform_repo.find_by_name(name)
                platform = next((p for p in existing if p.type == platform_type), None)
                if platform is None and existing:
                    platform = existing[0]
                if platform is None:
                    platform = self.platform_repo.insert_platform_at_top(Platform(name=name, type=platform_type))
                return self.account_repo.save_account(Account(
                    platform_id=platform.id,
                    remark=_blank_to_none(remark),
                    login_name=_blank_to_none(login_name),
                    password=password,
                    pay_password=_blank_to_none(pay_password),
                    phone=_blank_to_none(phone),
                    email=_blank_to_none(email),
                    id_number=_blank_to_none(id_number),
                ))

        return self._run(save, self._on_saved, config.ERR_SAVE, name="save_account_with_platform")

    def save_account(self, account: Account) -> Optional[TaskHandle]:
        """Update an existing account (or insert one under a known platform)."""
        if not self._validate(None, account.password):
            return None
        return self._run(lambda: self.account_repo.save_account(account), self._on_saved,
                         config.ERR_SAVE, name="save_account")

    def delete_account(self, account: Account) -> Optional[TaskHandle]:
        """
        Delete one account after the gate confirms, then its platform once no
        account refers to it anymore.
        """
        if not self._confirm(config.CONFIRM_REASON_DELETE):
            return None

        def delete():
            with self.platform_repo.store.write_batch():
                self.account_repo.delete_account(account)
                if self.account_repo.count_accounts(account.platform_id) == 0:
                    self.platform_repo.delete_platform(account.platform_id)
                    logger.info(f"Deleted platform {account.platform_id} with its last account")

        details = f"account={account.id} platform={account.platform_id}"
        return self._run(delete, lambda _: self._on_deleted("DELETE_ACCOUNT", details),
                         config.ERR_DELETE, name="delete_account")

    def delete_accounts(self, accounts: List[Account]) -> Optional[TaskHandle]:
        accounts = list(accounts)
        if not accounts:
            return None
        if not self._confirm(config.CONFIRM_REASON_DELETE):
            return None

        def delete():
            with self.platform_repo.store.write_batch():
                self.account_repo.delete_accounts(accounts)
                self._delete_orphaned_platforms({a.platform_id for a in accounts})

        details = f"accounts={[a.id for a in accounts]}"
        return self._run(delete, lambda _: self._on_deleted("DELETE_ACCOUNTS", details),
                         config.ERR_DELETE, name="delete_accounts")

    def delete_all_accounts(self) -> Optional[TaskHandle]:
        if not self._confirm(config.CONFIRM_REASON_DELETE_ALL):
            return None

        def delete():
            with self.platform_repo.store.write_batch():
                self.account_repo.delete_all_accounts()
                self._delete_orphaned_platforms(p.id for p in self.platform_repo.list_platforms())

        return self._run(delete, lambda _: self._on_deleted("DELETE_ALL_ACCOUNTS", "all accounts"),
                         config.ERR_DELETE, name="delete_all_accounts")

    def _delete_orphaned_platforms(self, platform_ids: Iterable[int]) -> None:
        for platform_id in platform_ids:
            if self.account_repo.count_accounts(platform_id) == 0:
                self.platform_repo.delete_platform(platform_id)

    def reveal_account(self, account: Account) -> bool:
        """Ask the gate before showing an account's secrets."""
        if not self.gate.request_confirmation(config.CONFIRM_REASON_REVEAL):
            return False
        log_action("REVEAL_ACCOUNT", f"account={account.id}")
        return True

    def update_platform_type(self, platform: Platform, new_type: Optional[PlatformType]) -> TaskHandle:
        updated = platform.with_type(new_type)
        return self._run(lambda: self.platform_repo.save_platform(updated),
                         lambda _: self._set_status(config.MSG_TYPE_UPDATED),
                         config.ERR_UPDATE_TYPE, name="update_platform_type")

    def reorder_platforms(self, ids_in_order: List[int]) -> TaskHandle:
        ids = list(ids_in_order)
        return self._run(lambda: self.platform_repo.update_sort_indices(ids),
                         lambda _: self._on_reordered(ids),
                         config.ERR_REORDER, name="reorder_platforms")

    # Search

    def search(self, keyword: str) -> Optional[TaskHandle]:
        """
        Search accounts. An empty keyword shows everything again without
        touching the store.
        """
        keyword = (keyword or "").strip()
        self.search_keyword = keyword
        if not keyword:
            self._drop_search()
            return None
        return self._start_search(lambda: self.account_repo.search_accounts(keyword), f"search '{keyword}'")

    def search_by_platform_name(self, platform_name: str) -> TaskHandle:
        return self._start_search(lambda: self.account_repo.list_accounts_by_platform_name(platform_name),
                                  f"platform '{platform_name}'")

    def search_by_platform_type(self, platform_type: PlatformType) -> TaskHandle:
        return self._start_search(lambda: self.account_repo.list_accounts_by_platform_type(platform_type),
                                  f"type '{platform_type.display_name}'")

    def clear_search_results(self) -> None:
        self._set_search_results([])

    def cancel_search(self) -> None:
        """Stop the running search and empty its results."""
        self._drop_search()

    def leave_list_view(self) -> None:
        self.search_keyword = ""
        self._drop_search()

    def _start_search(self, query: Callable[[], List[Account]], label: str) -> TaskHandle:
        if self._search_handle is not None:
            self._search_handle.cancel()
        self._search_query = query
        handle = None

        def done():
            if self._search_handle is handle:
                self._search_handle = None
                self._update_loading()

        handle = self.runner.submit(
            query,
            on_success=self._set_search_results,
            on_error=lambda e: self._fail(config.ERR_SEARCH, e),
            on_done=done,
            name=label,
        )
        self._search_handle = handle
        self._update_loading()
        return handle

    def _drop_search(self) -> None:
        if self._search_handle is not None:
            self._search_handle.cancel()
        self._search_handle = None
        self._search_query = None
        self._set_search_results([])
        self._update_loading()

    def _set_search_results(self, results: List[Account]) -> None:
        self.search_results = list(results)
        self.grouped_search_results = group_accounts(self.search_results, self.platforms)
        self.search_results_changed.emit(self.search_results)
        self.grouped_search_results_changed.emit(self.grouped_search_results)

    def _rerun_search(self) -> None:
        if self._search_query is not None:
            self._start_search(self._search_query, "search refresh")

    # Filtering and ordering

    def set_type_filter(self, platform_type: Optional[PlatformType]) -> None:
        self.type_filter = platform_type
        self.platforms_changed.emit(self.platforms)

    def visible_platforms(self) -> List[Platform]:
        """Platforms to render: type filter, then search hits, then drag order."""
        platforms = self.platforms
        if self.type_filter is not None:
            platforms = [p for p in platforms if p.type == self.type_filter]
        if self._search_query is not None:
            hit_ids = {a.platform_id for a in self.search_results}
            platforms = [p for p in platforms if p.id in hit_ids]
        return self.reorder.arrange(platforms)

    def begin_drag(self, platform_id: int) -> bool:
        rendered = [p.id for p in self.visible_platforms()]
        return self.reorder.begin_drag(platform_id, rendered, self.can_reorder)

    def drag_by(self, dy: float) -> None:
        before = list(self.reorder.ordered_ids)
        self.reorder.drag_by(dy)
        if self.reorder.ordered_ids != before:
            self.drag_order_changed.emit(list(self.reorder.ordered_ids))

    def end_drag(self) -> Optional[List[int]]:
        return self.reorder.end_drag()

    def cancel_drag(self) -> Optional[List[int]]:
        return self.reorder.cancel_drag()

    def report_item_height(self, platform_id: int, height: float) -> None:
        self.reorder.report_height(platform_id, height)

    # Clipboard

    def copy_to_clipboard(self, text: str, label: str = config.CLIPBOARD_DEFAULT_LABEL,
                          sensitive: bool = False) -> None:
        if self.clipboard is None:
            self.clipboard = ClipboardService()
        self._set_status(self.clipboard.copy(text, label, sensitive))

    # Messages

    def clear_messages(self) -> None:
        self._set_error(None)
        self._set_status(None)

    def _set_error(self, message: Optional[str]) -> None:
        self.error_message = message
        self.error_message_changed.emit(message)

    def _set_status(self, message: Optional[str]) -> None:
        self.status_message = message
        self.status_message_changed.emit(message)

    def _fail(self, template: str, exc: Exception) -> None:
        logger.error(template.format(f"{type(exc).__name__}: {exc}"))
        self._set_error(template.format(exc))

    def _validate(self, platform_name: Optional[str], password: Optional[str]) -> bool:
        has_password = bool(password and password.strip())
        if platform_name is not None and not platform_name and not has_password:
            self._set_error(config.MSG_MISSING_NAME_AND_PASSWORD)
        elif platform_name is not None and not platform_name:
            self._set_error(config.MSG_MISSING_NAME)
        elif not has_password:
            self._set_error(config.MSG_MISSING_PASSWORD)
        else:
            return True
        return False

    def _confirm(self, reason: str) -> bool:
        if self.gate.request_confirmation(reason):
            return True
        logger.info(f"Gate refused: {reason}")
        self._set_status(config.MSG_NOT_CONFIRMED)
        return False

    # Background work

    def _run(self, fn: Callable[[], Any], on_success: Callable[[Any], None], error_template: str,
             name: str = "") -> TaskHandle:
        self._busy += 1
        self._update_loading()
        return self.runner.submit(
            fn,
            on_success=on_success,
            on_error=lambda e: self._fail(error_template, e),
            on_done=self._release_busy,
            name=name,
        )

    def _release_busy(self) -> None:
        self._busy = max(0, self._busy - 1)
        self._update_loading()

    def _update_loading(self) -> None:
        loading = self._busy > 0 or self._search_handle is not None
        if loading != self.is_loading:
            self.is_loading = loading
            self.loading_changed.emit(loading)

    def _on_saved(self, _account: Account) -> None:
        self._set_error(None)
        self._set_status(config.MSG_SAVED)

    def _on_deleted(self, action: str, details: str) -> None:
        log_action(action, details)
        self._set_status(config.MSG_DELETED)

    def _on_reordered(self, ids: List[int]) -> None:
        log_action("REORDER_PLATFORMS", f"order={ids}")
        self._set_status(config.MSG_ORDER_UPDATED)

    # Store pushes

    def _on_initial_load(self, result) -> None:
        platforms, platform_types, accounts = result
        if "platforms" not in self._pushed:
            self._on_platforms_pushed(platforms)
        if "platform_types" not in self._pushed:
            self._on_platform_types_pushed(platform_types)
        if "accounts" not in self._pushed:
            self._on_accounts_pushed(accounts)

    @pyqtSlot(object)
    def _on_platforms_pushed(self, platforms):
        self._pushed.add("platforms")
        self.platforms = list(platforms)
        self.reorder.sync(p.id for p in self.platforms)
        self.platforms_changed.emit(self.platforms)
        self._regroup()

    @pyqtSlot(object)
    def _on_platform_types_pushed(self, platform_types):
        self._pushed.add("platform_types")
        self.platform_types = list(platform_types)
        self.platform_types_changed.emit(self.platform_types)

    @pyqtSlot(object)
    def _on_accounts_pushed(self, accounts):
        self._pushed.add("accounts")
        self.accounts = list(accounts)
        self.accounts_changed.emit(self.accounts)
        self._regroup()
        self._rerun_search()

    def _regroup(self) -> None:
        self.grouped_accounts = group_accounts(self.accounts, self.platforms)
        self.grouped_accounts_changed.emit(self.grouped_accounts)
        if self.search_results:
            self.grouped_search_results = group_accounts(self.search_results, self.platforms)
            self.grouped_search_results_changed.emit(self.grouped_search_results)
