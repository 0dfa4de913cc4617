"""Tests for profile records and the profile store."""

import json

import pytest

from skillet.profiles import (
    AutoInvokeRule,
    InvalidProfileIdError,
    Profile,
    ProfileExistsError,
    ProfileInput,
    ProfileNotFoundError,
    ProfileUpdate,
    ProfileValidationError,
    ProtectedProfileError,
    Scope,
    WrongScopeError,
    validate_profile_id,
)


class TestProfileId:
    @pytest.mark.parametrize("profile_id", ["main", "web-frontend", "a1-b2-c3"])
    def test_accepts_kebab_case(self, profile_id):
        validate_profile_id(profile_id)

    @pytest.mark.parametrize("profile_id", ["Main", "web_frontend", "-lead", "trail-", "a--b", ""])
    def test_rejects_others(self, profile_id):
        with pytest.raises(InvalidProfileIdError):
            validate_profile_id(profile_id)


class TestProfileSerialization:
    def test_uses_camel_case_keys(self):
        p = Profile(
            id="p1",
            name="P1",
            skills=["s1"],
            auto_invoke_rules=[AutoInvokeRule("s1", "on review")],
            generate_secondary_instructions=True,
        )
        d = p.to_dict()
        assert d["autoInvokeRules"] == [{"skillId": "s1", "trigger": "on review", "description": ""}]
        assert d["generateSecondaryInstructions"] is True
        assert d["scope"] == "project"
        assert Profile.from_dict(d) == p


class TestCreate:
    def test_create_and_get(self, profile_store):
        created = profile_store.create(ProfileInput(id="p1", name="P1", skills=["s1"]))
        assert created.created_at == created.updated_at
        assert profile_store.get("p1") == created
        assert [p.id for p in profile_store.list()] == ["p1"]

    def test_duplicate_id(self, profile_store):
        profile_store.create(ProfileInput(id="p1", name="P1"))
        with pytest.raises(ProfileExistsError):
            profile_store.create(ProfileInput(id="p1", name="Again"))

    def test_invalid_id_writes_nothing(self, profile_store):
        with pytest.raises(InvalidProfileIdError):
            profile_store.create(ProfileInput(id="Not Valid", name="x"))
        assert not profile_store.path.exists()

    def test_second_user_profile_rejected(self, profile_store):
        profile_store.create(ProfileInput(id="main", name="Main", scope=Scope.USER))
        with pytest.raises(ProfileValidationError, match="only one user profile"):
            profile_store.create(ProfileInput(id="other", name="Other", scope=Scope.USER))
        assert [p.id for p in profile_store.list()] == ["main"]

    def test_duplicate_skill_rejected(self, profile_store):
        with pytest.raises(ProfileValidationError, match="more than once"):
            profile_store.create(ProfileInput(id="p1", name="P1", skills=["s1", "s1"]))

    def test_rule_for_missing_skill_rejected(self, profile_store):
        with pytest.raises(ProfileValidationError, match="does not include"):
            profile_store.create(
                ProfileInput(
                    id="p1",
                    name="P1",
                    skills=["s1"],
                    auto_invoke_rules=[AutoInvokeRule("s2", "when styling")],
                )
            )

    def test_empty_trigger_rejected(self, profile_store):
        with pytest.raises(ProfileValidationError, match="empty trigger"):
            profile_store.create(
                ProfileInput(id="p1", name="P1", skills=["s1"], auto_invoke_rules=[AutoInvokeRule("s1", "  ")])
            )

    def test_store_file_layout(self, profile_store):
        profile_store.create(ProfileInput(id="main", name="Main", scope=Scope.USER))
        data = json.loads(profile_store.path.read_text())
        assert data["version"] == 1
        assert data["defaultUser"] == "main"
        assert data["profiles"][0]["id"] == "main"


class TestUpdate:
    def test_bumps_updated_at_on_change(self, profile_store):
        created = profile_store.create(ProfileInput(id="p1", name="P1"))
        updated = profile_store.update("p1", ProfileUpdate(name="Renamed"))
        assert updated.name == "Renamed"
        assert updated.updated_at > created.updated_at
        assert updated.created_at == created.created_at

    def test_no_change_keeps_timestamp(self, profile_store):
        created = profile_store.create(ProfileInput(id="p1", name="P1", skills=["s1"]))
        same = profile_store.update("p1", ProfileUpdate(name="P1", skills=["s1"]))
        assert same.updated_at == created.updated_at
        assert profile_store.get("p1").updated_at == created.updated_at

    def test_missing_profile(self, profile_store):
        with pytest.raises(ProfileNotFoundError):
            profile_store.update("ghost", ProfileUpdate(name="x"))

    def test_invalid_update_leaves_store_untouched(self, profile_store):
        profile_store.create(ProfileInput(id="p1", name="P1", skills=["s1"]))
        before = profile_store.path.read_bytes()
        with pytest.raises(ProfileValidationError):
            profile_store.update("p1", ProfileUpdate(auto_invoke_rules=[AutoInvokeRule("s9", "x")]))
        assert profile_store.path.read_bytes() == before

    def test_promoting_second_user_rejected(self, profile_store):
        profile_store.create(ProfileInput(id="main", name="Main", scope=Scope.USER))
        profile_store.create(ProfileInput(id="p1", name="P1"))
        with pytest.raises(ProfileValidationError):
            profile_store.update("p1", ProfileUpdate(scope=Scope.USER))


class TestDelete:
    def test_delete_project_profile(self, profile_store):
        profile_store.create(ProfileInput(id="p1", name="P1"))
        profile_store.delete("p1")
        assert profile_store.list() == []

    def test_user_profile_is_protected(self, profile_store):
        profile_store.create(ProfileInput(id="main", name="Main", scope=Scope.USER))
        with pytest.raises(ProtectedProfileError):
            profile_store.delete("main")
        assert profile_store.get("main").scope == Scope.USER

    def test_missing(self, profile_store):
        with pytest.raises(ProfileNotFoundError):
            profile_store.delete("ghost")


class TestDefaultUser:
    def test_default_user(self, profile_store):
        assert profile_store.get_default_user() is None
        profile_store.create(ProfileInput(id="main", name="Main", scope=Scope.USER))
        assert profile_store.get_default_user().id == "main"

    def test_set_default_requires_user_scope(self, profile_store):
        profile_store.create(ProfileInput(id="p1", name="P1"))
        with pytest.raises(WrongScopeError):
            profile_store.set_default_user("p1")

    def test_set_default_missing(self, profile_store):
        with pytest.raises(ProfileNotFoundError):
            profile_store.set_default_user("ghost")


class TestReplaceAll:
    def test_rejects_two_user_profiles(self, profile_store):
        records = {
            "a": Profile(id="a", name="A", scope=Scope.USER).to_dict(),
            "b": Profile(id="b", name="B", scope=Scope.USER).to_dict(),
        }
        with pytest.raises(ProfileValidationError):
            profile_store.replace_all(records)
        assert not profile_store.path.exists()

    def test_snapshot_round_trip(self, profile_store):
        profile_store.create(ProfileInput(id="main", name="Main", scope=Scope.USER))
        profile_store.create(ProfileInput(id="p1", name="P1"))
        snap = profile_store.snapshot()
        profile_store.replace_all(snap)
        assert profile_store.snapshot() == snap
        assert profile_store.get_default_user().id == "main"
