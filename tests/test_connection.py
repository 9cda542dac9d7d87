"""
Tests for the connection role state machine.
"""

import pytest

from connection import Role, RoleBinding, RoleTransitionError


class TestRoleBinding:
    """Tests for RoleBinding transitions."""

    def test_starts_unassigned(self):
        binding = RoleBinding()

        assert binding.role is Role.UNASSIGNED
        assert binding.code is None
        assert not binding.is_assigned

    def test_unassigned_to_host(self):
        binding = RoleBinding().as_host("AB23CD")

        assert binding.role is Role.HOST
        assert binding.code == "AB23CD"
        assert binding.is_assigned

    def test_unassigned_to_viewer(self):
        binding = RoleBinding().as_viewer("AB23CD")

        assert binding.role is Role.VIEWER
        assert binding.code == "AB23CD"

    @pytest.mark.parametrize("start", ["as_host", "as_viewer"])
    @pytest.mark.parametrize("then", ["as_host", "as_viewer"])
    def test_assigned_roles_are_terminal(self, start, then):
        """Once Host or Viewer, a binding never changes role or room."""
        binding = getattr(RoleBinding(), start)("AB23CD")

        with pytest.raises(RoleTransitionError):
            getattr(binding, then)("XY45ZW")

    def test_transitions_do_not_mutate(self):
        original = RoleBinding()
        original.as_host("AB23CD")

        assert original.role is Role.UNASSIGNED


class TestConnection:
    """Tests for the Connection base class."""

    def test_new_connection_is_unassigned(self, make_connection):
        connection = make_connection()

        assert connection.role is Role.UNASSIGNED
        assert connection.room_code is None
        assert connection.connection_id

    def test_connections_get_distinct_ids(self, make_connection):
        assert make_connection().connection_id != make_connection().connection_id

    def test_assign_host_binds_code(self, make_connection):
        connection = make_connection()
        connection.assign_host("AB23CD")

        assert connection.role is Role.HOST
        assert connection.room_code == "AB23CD"

    def test_reassign_raises(self, make_connection):
        connection = make_connection()
        connection.assign_viewer("AB23CD")

        with pytest.raises(RoleTransitionError):
            connection.assign_host("XY45ZW")
        assert connection.role is Role.VIEWER
