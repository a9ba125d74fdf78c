"""
Read/write operations over the platform and account tables.

Every method blocks on the database; callers on the UI thread run them
through vault.workers.TaskRunner.
"""

import logging
from typing import Callable, Iterable, List

from sqlalchemy import delete, func, or_, select, update

from .errors import NotFoundError, ValidationError
from .models import Account, Platform, PlatformType
from .schema import ACCOUNT_FIELDS, AccountRow, PlatformRow
from .store import ACCOUNT_TABLE, PLATFORM_TABLE, Store

logger = logging.getLogger(__name__)


class Subscription:
    """Handle returned by the observe_* methods."""

    def __init__(self, store: Store, token: int):
        self._store = store
        self._token = token

    @property
    def active(self) -> bool:
        return self._token is not None

    def cancel(self) -> None:
        if self._token is not None:
            self._store.unsubscribe(self._token)
            self._token = None


class BaseRepository:
    """Shared store handle and change observation."""

    def __init__(self, store: Store):
        self._store = store

    @property
    def store(self) -> Store:
        return self._store

    def _observe(self, tables: Iterable[str], query: Callable[[], list],
                 callback: Callable[[list], None]) -> Subscription:
        """
        Re-run `query` whenever one of `tables` changes and push the result to
        `callback`. Runs on the thread that committed the change.
        """
        watched = frozenset(tables)

        def _on_change(changed):
            if changed & watched:
                callback(query())

        return Subscription(self._store, self._store.subscribe(_on_change))


class PlatformRepository(BaseRepository):
    """Platform data access."""

    def list_platforms(self) -> List[Platform]:
        """All platforms by sort index, ties by id."""
        with self._store.session() as s:
            rows = s.scalars(select(PlatformRow).order_by(PlatformRow.sort_index, PlatformRow.id))
            return [row.to_platform() for row in rows]

    def find_by_name(self, name: str) -> List[Platform]:
        with self._store.session() as s:
            rows = s.scalars(
                select(PlatformRow)
                .where(PlatformRow.name == name)
                .order_by(PlatformRow.sort_index, PlatformRow.id)
            )
            return [row.to_platform() for row in rows]

    def list_by_type(self, platform_type: PlatformType) -> List[Platform]:
        with self._store.session() as s:
            rows = s.scalars(
                select(PlatformRow)
                .where(PlatformRow.type == platform_type)
                .order_by(PlatformRow.sort_index, PlatformRow.id)
            )
            return [row.to_platform() for row in rows]

    def get_platform(self, platform_id: int) -> Platform:
        with self._store.session() as s:
            row = s.get(PlatformRow, platform_id)
            if row is None:
                raise NotFoundError(f"Platform {platform_id} does not exist")
            return row.to_platform()

    def list_platform_types(self) -> List[PlatformType]:
        """Distinct types in use, ordered by display name."""
        with self._store.session() as s:
            values = s.scalars(select(PlatformRow.type).where(PlatformRow.type.is_not(None)).distinct())
            types = {t for t in values if t is not None}
        return sorted(types, key=lambda t: t.display_name)

    def save_platform(self, platform: Platform) -> Platform:
        """
        Insert when the platform has no id yet, otherwise update it in place.
        Returns:
            The stored platform, carrying its generated id
        """
        with self._store.transaction(PLATFORM_TABLE) as s:
            if platform.is_new:
                row = PlatformRow(name=platform.name, type=platform.type, sort_index=platform.sort_index)
                s.add(row)
                s.flush()
                return row.to_platform()

            result = s.execute(
                update(PlatformRow)
                .where(PlatformRow.id == platform.id)
                .values(name=platform.name, type=platform.type, sort_index=platform.sort_index)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Platform {platform.id} does not exist")
            return platform

    def insert_platform_at_top(self, platform: Platform) -> Platform:
        """
        Shift every existing platform down by one and insert `platform` at
        sort index 0, in one transaction.
        """
        with self._store.transaction(PLATFORM_TABLE) as s:
            s.execute(update(PlatformRow).values(sort_index=PlatformRow.sort_index + 1))
            row = PlatformRow(name=platform.name, type=platform.type, sort_index=0)
            s.add(row)
            s.flush()
            logger.debug(f"Inserted platform {row.id} ({row.name}) at the top")
            return row.to_platform()

    def bump_all_sort_indices(self) -> None:
        with self._store.transaction(PLATFORM_TABLE) as s:
            s.execute(update(PlatformRow).values(sort_index=PlatformRow.sort_index + 1))

    def delete_platform(self, platform_id: int) -> None:
        """Delete a platform; the store cascades the delete to its accounts."""
        with self._store.transaction(PLATFORM_TABLE, ACCOUNT_TABLE) as s:
            result = s.execute(delete(PlatformRow).where(PlatformRow.id == platform_id))
            if result.rowcount == 0:
                raise NotFoundError(f"Platform {platform_id} does not exist")

    def update_sort_indices(self, ids_in_order: List[int]) -> None:
        """
        Write sort_index = position for every id. Each row is its own
        idempotent update; the whole batch runs under the write lock so two
        batches never interleave.
        """
        with self._store.write_batch():
            for index, platform_id in enumerate(ids_in_order):
                with self._store.transaction(PLATFORM_TABLE) as s:
                    result = s.execute(
                        update(PlatformRow).where(PlatformRow.id == platform_id).values(sort_index=index)
                    )
                    if result.rowcount == 0:
                        logger.warning(f"Skipping sort index for missing platform {platform_id}")
        logger.debug(f"Persisted platform order {list(ids_in_order)}")

    def observe_platforms(self, callback: Callable[[List[Platform]], None]) -> Subscription:
        return self._observe((PLATFORM_TABLE,), self.list_platforms, callback)

    def observe_platform_types(self, callback: Callable[[List[PlatformType]], None]) -> Subscription:
        return self._observe((PLATFORM_TABLE,), self.list_platform_types, callback)


class AccountRepository(BaseRepository):
    """Account data access."""

    def list_accounts(self) -> List[Account]:
        """All accounts, newest first."""
        with self._store.session() as s:
            rows = s.scalars(select(AccountRow).order_by(AccountRow.id.desc()))
            return [row.to_account() for row in rows]

    def list_accounts_by_platform(self, platform_id: int) -> List[Account]:
        with self._store.session() as s:
            rows = s.scalars(
                select(AccountRow)
                .where(AccountRow.platform_id == platform_id)
                .order_by(AccountRow.id.desc())
            )
            return [row.to_account() for row in rows]

    def list_accounts_by_platform_name(self, platform_name: str) -> List[Account]:
        with self._store.session() as s:
            rows = s.scalars(
                select(AccountRow)
                .join(PlatformRow, PlatformRow.id == AccountRow.platform_id)
                .where(PlatformRow.name == platform_name)
                .order_by(AccountRow.id.desc())
            )
            return [row.to_account() for row in rows]

    def list_accounts_by_platform_type(self, platform_type: PlatformType) -> List[Account]:
        with self._store.session() as s:
            rows = s.scalars(
                select(AccountRow)
                .join(PlatformRow, PlatformRow.id == AccountRow.platform_id)
                .where(PlatformRow.type == platform_type)
                .order_by(AccountRow.id.desc())
            )
            return [row.to_account() for row in rows]

    def get_account(self, account_id: int) -> Account:
        with self._store.session() as s:
            row = s.get(AccountRow, account_id)
            if row is None:
                raise NotFoundError(f"Account {account_id} does not exist")
            return row.to_account()

    def count_accounts(self, platform_id: int) -> int:
        with self._store.session() as s:
            return s.scalar(
                select(func.count()).select_from(AccountRow).where(AccountRow.platform_id == platform_id)
            ) or 0

    def search_accounts(self, keyword: str) -> List[Account]:
        """
        Case-insensitive substring search over platform name, login name,
        remark, phone and email. Newest first.
        """
        if not keyword or not keyword.strip():
            raise ValidationError("Search keyword must not be empty")

        with self._store.session() as s:
            rows = s.scalars(
                select(AccountRow)
                .join(PlatformRow, PlatformRow.id == AccountRow.platform_id)
                .where(
                    or_(
                        PlatformRow.name.icontains(keyword, autoescape=True),
                        AccountRow.login_name.icontains(keyword, autoescape=True),
                        AccountRow.remark.icontains(keyword, autoescape=True),
                        AccountRow.phone.icontains(keyword, autoescape=True),
                        AccountRow.email.icontains(keyword, autoescape=True),
                    )
                )
                .order_by(AccountRow.id.desc())
            )
            return [row.to_account() for row in rows]

    def save_account(self, account: Account) -> Account:
        """
        Insert when the account has no id yet, otherwise update it by id.
        Returns:
            The stored account, carrying its generated id
        """
        values = {field: getattr(account, field) for field in ACCOUNT_FIELDS}
        with self._store.transaction(ACCOUNT_TABLE) as s:
            if account.is_new:
                row = AccountRow(**values)
                s.add(row)
                s.flush()
                return row.to_account()

            result = s.execute(update(AccountRow).where(AccountRow.id == account.id).values(**values))
            if result.rowcount == 0:
                raise NotFoundError(f"Account {account.id} does not exist")
            return account

    def delete_account(self, account: Account) -> None:
        """Delete one account. Orphaned platforms are left to the caller."""
        with self._store.transaction(ACCOUNT_TABLE) as s:
            result = s.execute(delete(AccountRow).where(AccountRow.id == account.id))
            if result.rowcount == 0:
                raise NotFoundError(f"Account {account.id} does not exist")

    def delete_accounts(self, accounts: List[Account]) -> int:
        ids = [a.id for a in accounts]
        if not ids:
            return 0
        with self._store.transaction(ACCOUNT_TABLE) as s:
            result = s.execute(delete(AccountRow).where(AccountRow.id.in_(ids)))
            return result.rowcount

    def delete_all_accounts(self) -> int:
        with self._store.transaction(ACCOUNT_TABLE) as s:
            result = s.execute(delete(AccountRow))
            return result.rowcount

    def observe_accounts(self, callback: Callable[[List[Account]], None]) -> Subscription:
        # Platform deletes cascade into the account table
        return self._observe((ACCOUNT_TABLE, PLATFORM_TABLE), self.list_accounts, callback)
