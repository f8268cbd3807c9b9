"""Tests for the user directory."""

import pytest

from copcore.errors import NotFound
from copcore.identity.directory import UserDirectory
from copcore.models.classification import ClassificationLevel
from copcore.models.user import UserRecord, UserRole


def _user(user_id: str = "ana", role: UserRole = UserRole.ANALYST_SIGINT) -> UserRecord:
    return UserRecord(user_id=user_id, role=role, clearance=ClassificationLevel.SECRET)


class TestUserDirectory:
    def test_register_and_lookup(self) -> None:
        directory = UserDirectory()
        directory.register(_user())
        assert directory.lookup_user("ana").role == UserRole.ANALYST_SIGINT
        assert directory.count == 1

    def test_ids_are_canonicalised(self) -> None:
        directory = UserDirectory()
        stored = directory.register(_user("  ana "))
        assert stored.user_id == "ana"
        assert directory.lookup_user(" ana").user_id == "ana"

    def test_blank_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="blank"):
            UserDirectory().register(_user("   "))

    def test_unknown_user_not_found(self) -> None:
        with pytest.raises(NotFound):
            UserDirectory().lookup_user("ghost")

    def test_deactivate_keeps_record(self) -> None:
        directory = UserDirectory()
        directory.register(_user())
        directory.deactivate("ana")
        assert directory.lookup_user("ana").active is False

    def test_all_users_sorted(self) -> None:
        directory = UserDirectory()
        directory.register(_user("zed"))
        directory.register(_user("amy", UserRole.HQ))
        assert [u.user_id for u in directory.all_users()] == ["amy", "zed"]
