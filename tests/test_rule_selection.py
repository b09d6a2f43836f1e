import pytest

from realize.analyzer.rule_selection import (
    INVALID_RULE_GUIDANCE,
    RuleSelection,
    SelectionState,
    Transition,
    no_rule_guidance,
)
from realize.models.account_models import Account
from realize.models.rule_models import ConversionRule

ACME = Account(id=1, account_id="acme", name="Acme")
NETWORK = Account(id=2, account_id="acme-net", name="Acme Network", type="NETWORK")
ACME_UK = Account(id=3, account_id="acme-uk", name="Acme UK", network_account_id="acme-net")


def _rule(rule_id, advertiser_id="acme", **overrides):
    fields = dict(
        id=str(rule_id),
        display_name=f"Rule {rule_id}",
        category="MAKE_PURCHASE",
        status="ACTIVE",
        include_in_total_conversions=True,
        advertiser_id=advertiser_id,
    )
    fields.update(overrides)
    return ConversionRule(**fields)


def test_load_adopts_stored_rule_with_goal(rule_store):
    rule_store.save("acme", _rule(1).with_cpa_goal(45))
    selection = RuleSelection(ACME, rule_store, [_rule(1), _rule(2)])

    outcome = selection.load()

    assert outcome.state is SelectionState.RULE_SELECTED
    assert outcome.active_rule.id == "1"
    assert outcome.cpa_input_enabled is True
    assert outcome.cpa_goal_input == "45"
    assert outcome.guidance is None


def test_load_ignores_stored_rule_that_is_no_longer_selectable(rule_store):
    rule_store.save("acme", _rule(1))
    selection = RuleSelection(ACME, rule_store, [_rule(1, status="PAUSED")])

    outcome = selection.load()

    assert outcome.state is SelectionState.NO_RULE
    assert outcome.cpa_input_enabled is False
    assert outcome.guidance == "No conversion rules found for this account."


@pytest.mark.parametrize(
    "account, sub_accounts, fragment",
    [
        (NETWORK, [ACME_UK], "drill down to a sub-account"),
        (NETWORK, [], "No conversion rules or sub-accounts found for this network."),
        (ACME_UK, [], "check the parent network"),
        (ACME, [], "No conversion rules found for this account."),
    ],
)
def test_no_rule_guidance(account, sub_accounts, fragment):
    assert fragment in no_rule_guidance(account, sub_accounts)


def test_select_saves_primary_rule(rule_store):
    selection = RuleSelection(ACME, rule_store, [_rule(1), _rule(2)])
    selection.load()

    outcome = selection.select("2")

    assert outcome.transition is Transition.SELECTED
    assert outcome.active_rule.id == "2"
    assert outcome.cpa_input_enabled is True
    assert rule_store.load("acme").id == "2"


def test_select_over_existing_rule_is_a_replacement(rule_store):
    selection = RuleSelection(ACME, rule_store, [_rule(1), _rule(2)])
    selection.select("1")

    outcome = selection.select("2")

    assert outcome.transition is Transition.REPLACED
    assert outcome.state is SelectionState.RULE_SELECTED


def test_select_non_selectable_rule_is_rejected(rule_store):
    selection = RuleSelection(ACME, rule_store, [_rule(1), _rule(2, category="PAGE_VIEW")])
    selection.select("1")

    outcome = selection.select("2")

    assert outcome.transition is Transition.REJECTED
    assert outcome.state is SelectionState.NO_RULE
    assert outcome.guidance == INVALID_RULE_GUIDANCE
    assert outcome.cpa_goal_input == ""


def test_rule_of_sub_account_switches_context(rule_store):
    selection = RuleSelection(
        NETWORK, rule_store, [_rule(7, advertiser_id="acme-uk")], sub_accounts=[ACME_UK]
    )

    outcome = selection.select("7")

    assert outcome.transition is Transition.SWITCHED_ACCOUNT
    assert outcome.switch_to_account.account_id == "acme-uk"
    assert outcome.state is SelectionState.NO_RULE
    assert "Acme UK" in outcome.guidance
    assert rule_store.load("acme-net") is None


def test_rule_of_unknown_advertiser_is_accepted_with_guidance(rule_store):
    selection = RuleSelection(NETWORK, rule_store, [_rule(7, advertiser_id="elsewhere")])

    outcome = selection.select("7")

    assert outcome.transition is Transition.SELECTED
    assert outcome.active_rule.id == "7"
    assert "advertiser_id elsewhere" in outcome.guidance
    assert outcome.switch_to_account is None


def test_clear_removes_stored_rule(rule_store):
    selection = RuleSelection(ACME, rule_store, [_rule(1)])
    selection.select("1")

    outcome = selection.clear()

    assert outcome.transition is Transition.CLEARED
    assert outcome.cpa_input_enabled is False
    assert rule_store.load("acme") is None


def test_reselecting_keeps_stored_goal(rule_store):
    rule_store.save("acme", _rule(1).with_cpa_goal(30))
    selection = RuleSelection(ACME, rule_store, [_rule(1)])

    outcome = selection.select("1")

    assert outcome.cpa_goal_input == "30"
    assert rule_store.load("acme").cpa_goal == 30
