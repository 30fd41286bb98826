"""
Tests for the capability authorization layer.
"""

import pytest

from estimate_core.authorization import (
    POLICIES,
    ExecutionContext,
    can_execute,
    require_capability,
)
from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import Claimed, ContractorRole, Identity, Unclaimed
from estimate_core.errors import ForbiddenError, UnauthenticatedError


def make_context(role, company_id="co1", contractor_id="c-1", **targets):
    identity = Identity(
        contractor_id=contractor_id,
        company=Claimed(company_id) if company_id else Unclaimed(),
        role=ContractorRole(role),
        email=f"{contractor_id}@example.com",
    )
    return ExecutionContext.for_identity(identity, **targets)


OWNER = make_context("owner_admin")
OFFICE = make_context("office")
TECH = make_context("tech")
ANONYMOUS = ExecutionContext.anonymous()


class TestPolicyTable:
    """Every named action has a rule and nothing else is allowed."""

    def test_every_action_has_a_rule(self):
        assert set(POLICIES) == {action.value for action in Action}

    def test_unknown_action_denied(self):
        assert can_execute("estimate:delete_everything", OWNER) is False
        assert can_execute("", OWNER) is False

    def test_none_context_denied(self):
        for action in Action:
            assert can_execute(action, None) is False

    def test_accepts_plain_strings(self):
        assert can_execute("team:list", OWNER) is True
        assert can_execute("team:list", OFFICE) is False


class TestRoleMatrix:
    """Role rules for each action."""

    @pytest.mark.parametrize(
        "action,allowed",
        [
            (Action.CONTRACTOR_VIEW_PROFILE, {"owner_admin", "office", "tech"}),
            (Action.CONTRACTOR_VIEW_ESTIMATES, {"owner_admin", "office", "tech"}),
            (Action.CONTRACTOR_EDIT_ESTIMATES, {"owner_admin", "office"}),
            (Action.COMPANY_VIEW_PROFILE, {"owner_admin", "office"}),
            (Action.COMPANY_UPDATE_PROFILE, {"owner_admin", "office"}),
            (Action.TEAM_LIST, {"owner_admin"}),
            (Action.ESTIMATE_HANDOFF, {"owner_admin", "office"}),
            (Action.ESTIMATE_VIEW_HANDOFF, {"owner_admin", "office", "tech"}),
            (Action.HANDOFF_LIST_OWN, {"tech"}),
            (Action.PRICING_VIEW, {"owner_admin", "office"}),
            (Action.PRICING_EDIT, {"owner_admin", "office"}),
        ],
    )
    def test_roles(self, action, allowed):
        for role in ContractorRole:
            assert can_execute(action, make_context(role)) is (role.value in allowed)
        assert can_execute(action, ANONYMOUS) is False

    @pytest.mark.parametrize(
        "action", [Action.HOMEOWNER_VIEW_ESTIMATE, Action.HOMEOWNER_CREATE_ESTIMATE]
    )
    def test_homeowner_action_only_for_anonymous(self, action):
        assert can_execute(action, ANONYMOUS) is True
        for role in ContractorRole:
            assert can_execute(action, make_context(role)) is False

    def test_unclaimed_contractor_only_views_profile(self):
        unclaimed = make_context("owner_admin", company_id=None)
        assert can_execute(Action.CONTRACTOR_VIEW_PROFILE, unclaimed) is True
        assert can_execute(Action.CONTRACTOR_VIEW_ESTIMATES, unclaimed) is False
        assert can_execute(Action.TEAM_LIST, unclaimed) is False


class TestTargets:
    """Tenant and self-target checks."""

    def test_cross_tenant_target_denied(self):
        context = OWNER.targeting(company_id="co2")
        assert can_execute(Action.CONTRACTOR_VIEW_ESTIMATES, context) is False
        assert can_execute(Action.PRICING_EDIT, context) is False

    def test_own_tenant_target_allowed(self):
        context = OFFICE.targeting(company_id="co1")
        assert can_execute(Action.ESTIMATE_HANDOFF, context) is True

    def test_update_status_requires_self_target(self):
        assert can_execute(Action.HANDOFF_UPDATE_STATUS, TECH) is False
        assert can_execute(
            Action.HANDOFF_UPDATE_STATUS, TECH.targeting(company_id="co1", contractor_id="c-1")
        ) is True
        assert can_execute(
            Action.HANDOFF_UPDATE_STATUS, TECH.targeting(company_id="co1", contractor_id="c-2")
        ) is False

    def test_update_status_denied_for_managers_even_when_targeted(self):
        context = OFFICE.targeting(company_id="co1", contractor_id="c-1")
        assert can_execute(Action.HANDOFF_UPDATE_STATUS, context) is False


class TestPurity:
    """can_execute is deterministic and leaves its inputs untouched."""

    def test_repeated_calls_agree(self):
        context = TECH.targeting(company_id="co1", contractor_id="c-1")
        results = {
            action: can_execute(action, context) for action in Action
        }
        for _ in range(3):
            assert {action: can_execute(action, context) for action in Action} == results

    def test_context_not_mutated(self):
        context = OFFICE.targeting(company_id="co1")
        before = (context.identity, context.target_company_id, context.target_contractor_id)
        for action in Action:
            can_execute(action, context)
        assert (context.identity, context.target_company_id, context.target_contractor_id) == before


class TestRequireCapability:
    def test_anonymous_contractor_action_is_unauthenticated(self):
        with pytest.raises(UnauthenticatedError):
            require_capability(Action.CONTRACTOR_VIEW_ESTIMATES, ANONYMOUS)

    def test_missing_context_is_unauthenticated(self):
        with pytest.raises(UnauthenticatedError):
            require_capability(Action.TEAM_LIST, None)

    def test_wrong_role_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            require_capability(Action.TEAM_LIST, OFFICE)

    def test_contractor_on_homeowner_action_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            require_capability(Action.HOMEOWNER_VIEW_ESTIMATE, OWNER)

    def test_allowed_returns_none(self):
        assert require_capability(Action.TEAM_LIST, OWNER) is None
