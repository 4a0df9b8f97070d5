"""Unit tests for the role-based action policy."""

from types import MappingProxyType

import pytest

from store_kernel.domain.action_policy import DEFAULT_ACTION_ROLES, ActionPolicy
from store_kernel.domain.values import ActorRole, WorkflowAction


class TestDefaultTable:
    def test_every_action_is_restricted(self):
        assert set(DEFAULT_ACTION_ROLES) == {a.value for a in WorkflowAction}

    @pytest.mark.parametrize(
        "action, role",
        [
            ("approve", "localStoreManager"),
            ("reject", "wsgStoreManager"),
            ("forwardToWSG", "localStoreManager"),
            ("forwardToCOD", "wsgStoreManager"),
            ("allocate", "wsgStoreManager"),
            ("complete", "requester"),
            ("cancel", "requester"),
        ],
    )
    def test_allowed(self, action, role):
        assert ActionPolicy().check(action, role) == (True, "")

    @pytest.mark.parametrize(
        "action, role",
        [
            ("approve", "wsgStoreManager"),
            ("approve", "requester"),
            ("allocate", "localStoreManager"),
            ("forwardToWSG", "wsgStoreManager"),
            ("cancel", "wsgStoreManager"),
            ("reject", "requester"),
        ],
    )
    def test_denied_with_reason(self, action, role):
        allowed, reason = ActionPolicy().check(action, role)
        assert allowed is False
        assert role in reason
        assert action in reason


class TestEnforcement:
    def test_missing_role_denied_when_enforced(self):
        allowed, reason = ActionPolicy().check("approve", None)
        assert allowed is False
        assert "role is required" in reason

    def test_blank_role_counts_as_missing(self):
        assert ActionPolicy().check("approve", "  ")[0] is False

    def test_missing_role_allowed_when_not_enforced(self):
        assert ActionPolicy(enforce_roles=False).check("approve", None) == (True, "")

    def test_declared_role_still_checked_when_not_enforced(self):
        allowed, _ = ActionPolicy(enforce_roles=False).check("approve", "requester")
        assert allowed is False

    def test_action_missing_from_table_is_unrestricted(self):
        policy = ActionPolicy(action_roles=MappingProxyType({
            "approve": frozenset({ActorRole.LOCAL_STORE_MANAGER.value}),
        }))
        assert policy.check("cancel", None) == (True, "")
        assert policy.check("cancel", "anyone") == (True, "")


class TestPermitted:
    def test_keeps_order_and_filters(self):
        actions = ["approve", "reject", "forwardToWSG", "forwardToCOD", "cancel"]
        assert ActionPolicy().permitted(actions, "wsgStoreManager") == ("reject", "forwardToCOD")

    def test_requester(self):
        actions = ["approve", "reject", "cancel"]
        assert ActionPolicy().permitted(actions, "requester") == ("cancel",)
