"""Tests for capability parsing and role → capability checks."""

import pytest

from flowguard.config import DEFAULT_ROLE_CAPABILITIES
from flowguard.errors import AccessDenied, ErrorKind
from flowguard.policy import Capability, RoleCapabilityMap


@pytest.fixture
def roles():
    return RoleCapabilityMap(DEFAULT_ROLE_CAPABILITIES)


class TestCapabilityParse:
    def test_namespace_and_action(self):
        assert Capability.parse("db:write") == Capability(("db", "write"))

    def test_namespace_wildcard(self):
        assert Capability.parse("logic:*") == Capability(("logic",), wildcard=True)

    def test_global_wildcard(self):
        assert Capability.parse("*") == Capability((), wildcard=True)

    def test_multi_segment_wildcard(self):
        assert Capability.parse("files:read:*") == Capability(("files", "read"), wildcard=True)

    def test_str_round_trips_common_forms(self):
        for value in ("db:write", "logic:*", "*", "files:read:*"):
            assert str(Capability.parse(value)) == value


class TestCoverage:
    def test_exact_match(self):
        assert Capability.parse("db:read").covers(Capability.parse("db:read"))

    def test_different_action(self):
        assert not Capability.parse("db:read").covers(Capability.parse("db:write"))

    def test_namespace_wildcard_covers_actions(self):
        assert Capability.parse("logic:*").covers(Capability.parse("logic:if"))

    def test_namespace_wildcard_does_not_leak_by_prefix(self):
        """logic:* must not cover logicx:if."""
        assert not Capability.parse("logic:*").covers(Capability.parse("logicx:if"))

    def test_specific_does_not_cover_wildcard_requirement(self):
        assert not Capability.parse("logic:if").covers(Capability.parse("logic:*"))

    def test_global_wildcard_covers_everything(self):
        star = Capability.parse("*")
        for required in ("db:delete", "browser:js_eval", "anything"):
            assert star.covers(Capability.parse(required))

    def test_multi_segment_prefix_covers_deeper_capabilities(self):
        grant = Capability.parse("files:read:*")
        assert grant.covers(Capability.parse("files:read:tmp"))
        assert grant.covers(Capability.parse("files:read:tmp:logs"))
        assert not grant.covers(Capability.parse("files:read"))
        assert not grant.covers(Capability.parse("files:write"))
        assert not grant.covers(Capability.parse("files:readx:y"))

    def test_namespace_wildcard_covers_nested_wildcard(self):
        assert Capability.parse("files:*").covers(Capability.parse("files:read:*"))
        assert not Capability.parse("files:read:*").covers(Capability.parse("files:*"))


class TestRoleCapabilityMap:
    def test_empty_requirement_is_vacuously_true(self, roles):
        assert roles.has_capability("staff", [])
        assert roles.has_capability("nobody", [])
        assert roles.has_capability(None, None)

    def test_unmapped_role_has_nothing(self, roles):
        assert not roles.has_capability("nobody", ["browser:basic"])
        assert roles.granted("nobody") == ()

    def test_staff(self, roles):
        assert roles.has_capability("staff", ["browser:basic", "logic:condition"])
        assert not roles.has_capability("staff", ["db:delete"])
        assert not roles.has_capability("staff", ["browser:advanced"])

    def test_every_requirement_must_be_covered(self, roles):
        assert not roles.has_capability("manager", ["browser:basic", "db:write"])
        assert roles.missing("manager", ["browser:basic", "db:write", "db:read"]) == [
            "db:write",
            "db:read",
        ]

    def test_admin_namespace_wildcards(self, roles):
        assert roles.has_capability("admin", ["data:anything", "files:write"])
        assert not roles.has_capability("admin", ["db:delete"])

    def test_super_admin(self, roles):
        assert roles.has_capability("super_admin", ["db:delete", "browser:js_eval"])

    def test_set_role_overrides(self, roles):
        roles.set_role("staff", ["db:*"])
        assert roles.has_capability("staff", ["db:delete"])
        assert not roles.has_capability("staff", ["browser:basic"])

    def test_multi_segment_grant(self):
        roles = RoleCapabilityMap({"ops": ["files:read:*"]})
        assert roles.has_capability("ops", ["files:read:tmp"])
        assert not roles.has_capability("ops", ["files:write"])
        assert not roles.has_capability("ops", ["files:readx:y"])


class TestRequireCapabilities:
    def test_staff_cannot_delete_rows(self, policy):
        """Staff invoking a db:delete node is denied, naming the capability."""
        with pytest.raises(AccessDenied) as exc_info:
            policy.require_capabilities("staff", ["db:delete"])

        assert exc_info.value.kind == ErrorKind.ACCESS_DENIED
        assert exc_info.value.capability == "db:delete"
        assert "db:delete" in str(exc_info.value)
        assert "staff" in str(exc_info.value)

    def test_names_first_missing_capability(self, policy):
        with pytest.raises(AccessDenied) as exc_info:
            policy.require_capabilities("staff", ["browser:basic", "files:read", "db:write"])
        assert exc_info.value.capability == "files:read"

    def test_passes_when_covered(self, policy):
        policy.require_capabilities("admin", ["db:read", "network:external"])
        policy.require_capabilities(None, [])
