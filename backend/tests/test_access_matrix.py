"""Tests for role-based module access."""

from types import SimpleNamespace

import pytest

from app.models.user import UserRole
from app.services.access_matrix import MODULES, generate_access_matrix, has_module


class TestGenerateAccessMatrix:

    @pytest.mark.parametrize("role", [r.value for r in UserRole])
    def test_every_module_present(self, role):
        matrix = generate_access_matrix(role)
        assert set(matrix) == set(MODULES)
        assert matrix["dashboard"] is True
        assert matrix["profile"] is True

    def test_admin_has_everything(self):
        assert all(generate_access_matrix(UserRole.ADMIN.value).values())

    def test_power_user(self):
        matrix = generate_access_matrix(UserRole.POWER_USER.value)
        assert matrix["aiGenerator"] is True
        assert matrix["users"] is True
        assert matrix["organizations"] is False
        assert matrix["auditTrail"] is False

    def test_approver(self):
        matrix = generate_access_matrix(UserRole.APPROVER.value)
        assert matrix["approvals"] is True
        assert matrix["aiGenerator"] is False

    def test_dsa(self):
        matrix = generate_access_matrix(UserRole.DSA.value)
        assert matrix["bulkProcessing"] is True
        assert matrix["scorecardConfig"] is False

    def test_unknown_role_only_base(self):
        matrix = generate_access_matrix("Guest")
        assert [m for m, allowed in matrix.items() if allowed] == ["dashboard", "profile"]


class TestHasModule:

    def test_admin_always_allowed(self):
        user = SimpleNamespace(role=UserRole.ADMIN.value, access_matrix={"aiGenerator": False})
        assert has_module(user, "aiGenerator") is True

    def test_stored_matrix_wins(self):
        user = SimpleNamespace(role=UserRole.DSA.value, access_matrix={"aiGenerator": True})
        assert has_module(user, "aiGenerator") is True
        assert has_module(user, "bulkProcessing") is False

    def test_falls_back_to_role_default(self):
        user = SimpleNamespace(role=UserRole.POWER_USER.value, access_matrix=None)
        assert has_module(user, "aiGenerator") is True
        assert has_module(user, "systemSettings") is False


class TestDsaScope:

    def test_dsa_only_bulk_and_testing(self):
        matrix = generate_access_matrix(UserRole.DSA.value)
        granted = {m for m, allowed in matrix.items() if allowed}
        assert granted == {"dashboard", "profile", "bulkProcessing", "testingEngine"}
