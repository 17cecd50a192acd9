"""Learned rule store.

User-curated classifications keyed by ``FieldIdentity.rule_key``. Column
rules generalise by name across every source sharing that field name, while
text segment rules stay bound to their document; the latest
human judgement wins and no history is kept (the confirmation requests hold
the audit trail).
"""

from __future__ import annotations

import logging

from waivern_pii_discovery.database import DatabaseTransaction, SQLiteDatabase
from waivern_pii_discovery.taxonomy import NO_PII_TYPE
from waivern_pii_discovery.types import LearnedRule

logger = logging.getLogger(__name__)


class LearnedRuleStore:
    """Read and write learned rules on top of the relational store."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._database = database

    async def lookup(self, rule_key: str) -> LearnedRule | None:
        """Return the rule for a rule key, or None when no rule exists."""
        async with self._database.transaction() as tx:
            return tx.get_rule(rule_key.lower())

    async def upsert(self, field_name: str, is_pii: bool, pii_type: str) -> LearnedRule:
        """Create or replace the rule for a rule key in its own transaction."""
        async with self._database.transaction() as tx:
            return self.upsert_in(tx, field_name, is_pii, pii_type)

    async def list_rules(self) -> list[LearnedRule]:
        """Return every learned rule."""
        async with self._database.transaction() as tx:
            return tx.list_rules()

    @staticmethod
    def upsert_in(
        tx: DatabaseTransaction, field_name: str, is_pii: bool, pii_type: str
    ) -> LearnedRule:
        """Create or replace a rule inside an already open transaction.

        A non-PII rule always records type ``none``.
        """
        rule = LearnedRule(
            field_name=field_name.lower(),
            is_pii=is_pii,
            pii_type=pii_type if is_pii else NO_PII_TYPE,
        )
        tx.upsert_rule(rule)
        logger.info(
            f"Learned rule updated: '{rule.field_name}' -> "
            f"{'PII ' + rule.pii_type if rule.is_pii else 'not PII'}"
        )
        return rule
