"""Realize Reporter — Conversion Rule Selection.

Tracks which conversion rule a report is attributed to for one account:

  NO_RULE ──selected──▶ RULE_SELECTED ──replaced──▶ RULE_SELECTED
     ▲                        │
     └────────cleared─────────┘

Only selectable rules (active, relevant category, counted in totals) may be
chosen. A rule owned by a different advertiser switches the reporting context
to that sub-account instead of being adopted. Every adopted rule is pinned as
the account's primary rule, and the CPA-goal input follows the active rule.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from realize.core.logging import get_logger
from realize.models.account_models import Account
from realize.models.rule_models import ConversionRule, selectable_rules
from realize.storage.preferences import PrimaryRuleStore

logger = get_logger("analyzer.rule_selection")

INVALID_RULE_GUIDANCE = (
    "Selected rule is not valid for this account. "
    "Please select a valid conversion rule or choose a sub-account."
)


class SelectionState(str, Enum):
    NO_RULE = "no_rule"
    RULE_SELECTED = "rule_selected"


class Transition(str, Enum):
    LOADED = "loaded"
    SELECTED = "selected"
    REPLACED = "replaced"
    CLEARED = "cleared"
    SWITCHED_ACCOUNT = "switched_account"
    REJECTED = "rejected"


class SelectionOutcome(BaseModel):
    """Snapshot of the selection after a transition."""

    transition: Transition
    state: SelectionState
    active_rule: Optional[ConversionRule] = None
    cpa_input_enabled: bool = False
    cpa_goal_input: str = ""
    guidance: Optional[str] = None
    switch_to_account: Optional[Account] = None


def no_rule_guidance(account: Account, sub_accounts: List[Account]) -> str:
    """Explain where rules can be found when the account has none selected."""
    if account.is_network:
        if sub_accounts:
            return (
                "No conversion rules found for this network. "
                "Please drill down to a sub-account to check for available rules."
            )
        return "No conversion rules or sub-accounts found for this network."
    if account.network_account_id:
        return (
            "No conversion rules found for this account. "
            "Please check the parent network for available rules."
        )
    return "No conversion rules found for this account."


def _format_goal(cpa_goal: Optional[float]) -> str:
    if cpa_goal is None:
        return ""
    return str(int(cpa_goal)) if float(cpa_goal).is_integer() else str(cpa_goal)


class RuleSelection:
    """Per-account conversion rule selection."""

    def __init__(
        self,
        account: Account,
        rule_store: PrimaryRuleStore,
        rules: Optional[List[ConversionRule]] = None,
        sub_accounts: Optional[List[Account]] = None,
    ):
        self.account = account
        self.rule_store = rule_store
        self.rules = selectable_rules(rules or [])
        self.sub_accounts = sub_accounts or []
        self.active_rule: Optional[ConversionRule] = None
        self.guidance: Optional[str] = None

    @property
    def state(self) -> SelectionState:
        return SelectionState.RULE_SELECTED if self.active_rule else SelectionState.NO_RULE

    @property
    def slug(self) -> str:
        return self.account.account_id

    def _find(self, rule_id: str) -> Optional[ConversionRule]:
        return next((r for r in self.rules if r.id == str(rule_id)), None)

    def _outcome(
        self, transition: Transition, switch_to: Optional[Account] = None
    ) -> SelectionOutcome:
        rule = self.active_rule
        return SelectionOutcome(
            transition=transition,
            state=self.state,
            active_rule=rule,
            cpa_input_enabled=rule is not None,
            cpa_goal_input=_format_goal(rule.cpa_goal) if rule else "",
            guidance=self.guidance,
            switch_to_account=switch_to,
        )

    # ── Transitions ──

    def load(self) -> SelectionOutcome:
        """Adopt the stored primary rule if it is still selectable here."""
        stored = self.rule_store.load(self.slug)
        current = self._find(stored.id) if stored else None
        if stored and current:
            # Server fields come from the fresh list; the CPA goal is local
            self.active_rule = current.with_cpa_goal(stored.cpa_goal)
            self.guidance = None
        else:
            if stored:
                logger.info(
                    f"Stored primary rule {stored.id} is no longer selectable",
                    extra={"account_id": self.slug},
                )
            self.active_rule = None
            self.guidance = no_rule_guidance(self.account, self.sub_accounts)
        return self._outcome(Transition.LOADED)

    def select(self, rule_id: str) -> SelectionOutcome:
        """Make ``rule_id`` the active rule, or explain why it cannot be."""
        rule = self._find(rule_id)
        if rule is None:
            self.active_rule = None
            self.guidance = INVALID_RULE_GUIDANCE
            logger.warning(
                f"Rejected rule {rule_id}: not selectable", extra={"account_id": self.slug}
            )
            return self._outcome(Transition.REJECTED)

        if not rule.belongs_to(self.slug):
            sub_account = next(
                (a for a in self.sub_accounts if a.account_id == str(rule.advertiser_id)),
                None,
            )
            if sub_account is not None:
                self.active_rule = None
                self.guidance = (
                    f"Switched to subaccount: {sub_account.name} "
                    f"({sub_account.account_id}) for reporting."
                )
                logger.info(
                    f"Rule {rule.id} belongs to {sub_account.account_id}; switching account",
                    extra={"account_id": self.slug},
                )
                return self._outcome(Transition.SWITCHED_ACCOUNT, switch_to=sub_account)

            stored = self.rule_store.load(self.slug)
            self.active_rule = rule.with_cpa_goal(
                stored.cpa_goal if stored and stored.id == rule.id else rule.cpa_goal
            )
            self.guidance = (
                f"Rule is for advertiser_id {rule.advertiser_id}, not the current account. "
                "Switched to subaccount reporting."
            )
            return self._outcome(Transition.SELECTED)

        transition = Transition.REPLACED if self.active_rule else Transition.SELECTED
        stored = self.rule_store.load(self.slug)
        if stored and stored.id == rule.id:
            rule = rule.with_cpa_goal(stored.cpa_goal)
        self.active_rule = rule
        self.guidance = None
        self.rule_store.save(self.slug, rule)
        logger.info(
            f'Using "{rule.display_name}" as primary rule', extra={"account_id": self.slug}
        )
        return self._outcome(transition)

    def clear(self) -> SelectionOutcome:
        self.rule_store.clear(self.slug)
        self.active_rule = None
        self.guidance = None
        return self._outcome(Transition.CLEARED)
