"""Realize Reporter — Local Preference Storage.

A flat key/value store over the ``stored_values`` table, and the two
preference stores built on it: the primary conversion rule per account and
the recently used accounts.
"""

import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session

from realize.core.logging import get_logger
from realize.models.account_models import Account
from realize.models.rule_models import ConversionRule
from realize.models.storage_models import StoredValue

logger = get_logger("storage.preferences")

PRIMARY_RULE_STORAGE_PREFIX = "primaryConversionRule_realize_"
RECENT_ACCOUNTS_KEY = "recent_accounts"
RECENT_ACCOUNTS_LIMIT = 5


class KeyValueStore:
    """Namespaced string keys → JSON values persisted with SQLModel."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            row = session.get(StoredValue, key)
            return row.value_json if row else None

    def get_json(self, key: str) -> Any:
        """Decoded value, or None when missing or unreadable."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding unreadable value for {key}: {e}")
            return None

    def set(self, key: str, value_json: str) -> None:
        with Session(self.engine) as session:
            row = session.get(StoredValue, key)
            if row is None:
                row = StoredValue(key=key, value_json=value_json)
            else:
                row.value_json = value_json
                row.updated_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    def remove(self, key: str) -> None:
        with Session(self.engine) as session:
            row = session.get(StoredValue, key)
            if row is not None:
                session.delete(row)
                session.commit()


class PrimaryRuleStore:
    """The conversion rule (with CPA goal) pinned as default per account."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def key_for(account_slug: str) -> str:
        return f"{PRIMARY_RULE_STORAGE_PREFIX}{account_slug}"

    def save(self, account_slug: str, rule: ConversionRule) -> None:
        self.store.set(self.key_for(account_slug), rule.model_dump_json(by_alias=True))
        logger.info(
            f"Saved primary rule {rule.id} (CPA goal: {rule.cpa_goal})",
            extra={"account_id": account_slug},
        )

    def load(self, account_slug: str) -> Optional[ConversionRule]:
        raw = self.store.get(self.key_for(account_slug))
        if raw is None:
            return None
        try:
            return ConversionRule.model_validate_json(raw)
        except ValidationError as e:
            logger.error(
                f"Stored primary rule is unreadable: {e}",
                extra={"account_id": account_slug},
            )
            return None

    def clear(self, account_slug: str) -> None:
        self.store.remove(self.key_for(account_slug))
        logger.info("Cleared primary rule", extra={"account_id": account_slug})


class RecentAccounts:
    """Most-recently-used accounts, newest first."""

    def __init__(self, store: KeyValueStore, limit: int = RECENT_ACCOUNTS_LIMIT):
        self.store = store
        self.limit = limit

    def list(self) -> List[Account]:
        stored = self.store.get_json(RECENT_ACCOUNTS_KEY)
        if not isinstance(stored, list):
            return []
        accounts: List[Account] = []
        for item in stored:
            try:
                accounts.append(Account.model_validate(item))
            except ValidationError:
                continue
        return accounts

    def add(self, account: Account) -> List[Account]:
        recents = [a for a in self.list() if a.id != account.id]
        updated = [account, *recents][: self.limit]
        self.store.set_json(
            RECENT_ACCOUNTS_KEY, [a.model_dump(mode="json") for a in updated]
        )
        return updated
