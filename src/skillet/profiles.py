"""Profile records and the file-backed store that owns them."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from skillet import SkilletError
from skillet.adapters.local import atomic_write_text

logger = logging.getLogger(__name__)

PROFILE_ID_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
STORE_VERSION = 1
DEFAULT_USER_PROFILE_ID = "main"


class ProfileError(SkilletError):
    """Base error for profile operations."""


class ProfileNotFoundError(ProfileError):
    def __init__(self, profile_id: str):
        super().__init__(f"Profile '{profile_id}' not found")
        self.profile_id = profile_id


class ProfileExistsError(ProfileError):
    def __init__(self, profile_id: str):
        super().__init__(f"Profile '{profile_id}' already exists")
        self.profile_id = profile_id


class InvalidProfileIdError(ProfileError):
    def __init__(self, profile_id: str):
        super().__init__(
            f"Invalid profile id '{profile_id}': use lowercase kebab-case (e.g. 'web-frontend')"
        )
        self.profile_id = profile_id


class ProfileValidationError(ProfileError):
    """A profile record breaks one of the store's rules."""


class ProtectedProfileError(ProfileError):
    def __init__(self, profile_id: str):
        super().__init__(f"Profile '{profile_id}' is the user profile and cannot be deleted")
        self.profile_id = profile_id


class WrongScopeError(ProfileError):
    def __init__(self, profile_id: str, scope: Scope):
        super().__init__(f"Profile '{profile_id}' has {scope.value} scope, expected user scope")
        self.profile_id = profile_id
        self.scope = scope


class Scope(str, Enum):
    USER = "user"
    PROJECT = "project"


@dataclass(frozen=True)
class AutoInvokeRule:
    """Tells a consuming tool when to load a skill."""

    skill_id: str
    trigger: str
    description: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"skillId": self.skill_id, "trigger": self.trigger, "description": self.description}

    @classmethod
    def from_dict(cls, d: dict) -> AutoInvokeRule:
        return cls(
            skill_id=d["skillId"],
            trigger=d["trigger"],
            description=d.get("description", ""),
        )


@dataclass
class Profile:
    """A named bundle of skills, rules and instructions."""

    id: str
    name: str
    scope: Scope = Scope.PROJECT
    description: str = ""
    skills: list[str] = field(default_factory=list)
    auto_invoke_rules: list[AutoInvokeRule] = field(default_factory=list)
    instructions: str | None = None
    generate_secondary_instructions: bool = False
    generate_master_reference: bool = False
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "scope": self.scope.value,
            "skills": list(self.skills),
            "autoInvokeRules": [r.to_dict() for r in self.auto_invoke_rules],
            "instructions": self.instructions,
            "generateSecondaryInstructions": self.generate_secondary_instructions,
            "generateMasterReference": self.generate_master_reference,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Profile:
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            description=d.get("description", ""),
            scope=Scope(d.get("scope", Scope.PROJECT.value)),
            skills=list(d.get("skills", [])),
            auto_invoke_rules=[AutoInvokeRule.from_dict(r) for r in d.get("autoInvokeRules", [])],
            instructions=d.get("instructions"),
            generate_secondary_instructions=d.get("generateSecondaryInstructions", False),
            generate_master_reference=d.get("generateMasterReference", False),
            created_at=d.get("createdAt", ""),
            updated_at=d.get("updatedAt", ""),
        )


@dataclass
class ProfileInput:
    """Fields accepted when creating a profile."""

    id: str
    name: str
    scope: Scope = Scope.PROJECT
    description: str = ""
    skills: list[str] = field(default_factory=list)
    auto_invoke_rules: list[AutoInvokeRule] = field(default_factory=list)
    instructions: str | None = None
    generate_secondary_instructions: bool = False
    generate_master_reference: bool = False


@dataclass
class ProfileUpdate:
    """Partial update. Fields left as None are not touched."""

    name: str | None = None
    description: str | None = None
    scope: Scope | None = None
    skills: list[str] | None = None
    auto_invoke_rules: list[AutoInvokeRule] | None = None
    instructions: str | None = None
    generate_secondary_instructions: bool | None = None
    generate_master_reference: bool | None = None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def validate_profile_id(profile_id: str) -> None:
    if not PROFILE_ID_RE.match(profile_id):
        raise InvalidProfileIdError(profile_id)


def validate_profile(profile: Profile) -> None:
    """Check the rules a single record must satisfy on its own."""
    seen: set[str] = set()
    for skill_id in profile.skills:
        if skill_id in seen:
            raise ProfileValidationError(
                f"Profile '{profile.id}' lists skill '{skill_id}' more than once"
            )
        seen.add(skill_id)

    for rule in profile.auto_invoke_rules:
        if rule.skill_id not in seen:
            raise ProfileValidationError(
                f"Auto-invoke rule for '{rule.skill_id}' references a skill "
                f"that profile '{profile.id}' does not include"
            )
        if not rule.trigger.strip():
            raise ProfileValidationError(f"Auto-invoke rule for '{rule.skill_id}' has an empty trigger")


class ProfileStore:
    """Persistent collection of profiles in a single JSON document.

    Every mutation reads the whole document, applies the change and writes
    it back with an atomic replace, so callers never observe a half-written
    store.
    """

    def __init__(self, path: Path, clock: Callable[[], str] | None = None):
        self.path = path
        self._clock = clock or _utc_now_iso

    # -- persistence -----------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"version": STORE_VERSION, "defaultUser": None, "profiles": []}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        data.setdefault("profiles", [])
        data.setdefault("defaultUser", None)
        return data

    def _save(self, data: dict[str, Any]) -> None:
        data["version"] = STORE_VERSION
        atomic_write_text(self.path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")

    def _profiles(self, data: dict[str, Any]) -> list[Profile]:
        return [Profile.from_dict(p) for p in data["profiles"]]

    @staticmethod
    def _check_single_user(profiles: list[Profile], candidate: Profile) -> None:
        if candidate.scope != Scope.USER:
            return
        for other in profiles:
            if other.id != candidate.id and other.scope == Scope.USER:
                raise ProfileValidationError(
                    f"Profile '{other.id}' already has user scope; only one user profile is allowed"
                )

    # -- queries ---------------------------------------------------------

    def list(self) -> list[Profile]:
        return self._profiles(self._load())

    def get(self, profile_id: str) -> Profile:
        for profile in self.list():
            if profile.id == profile_id:
                return profile
        raise ProfileNotFoundError(profile_id)

    def find(self, profile_id: str) -> Profile | None:
        try:
            return self.get(profile_id)
        except ProfileNotFoundError:
            return None

    def get_default_user(self) -> Profile | None:
        data = self._load()
        profiles = self._profiles(data)
        default_id = data.get("defaultUser")
        for p in profiles:
            if p.id == default_id and p.scope == Scope.USER:
                return p
        for p in profiles:
            if p.scope == Scope.USER:
                return p
        return None

    # -- mutations -------------------------------------------------------

    def create(self, profile_input: ProfileInput) -> Profile:
        validate_profile_id(profile_input.id)
        data = self._load()
        profiles = self._profiles(data)

        if any(p.id == profile_input.id for p in profiles):
            raise ProfileExistsError(profile_input.id)

        now = self._clock()
        profile = Profile(
            id=profile_input.id,
            name=profile_input.name,
            scope=profile_input.scope,
            description=profile_input.description,
            skills=list(profile_input.skills),
            auto_invoke_rules=list(profile_input.auto_invoke_rules),
            instructions=profile_input.instructions,
            generate_secondary_instructions=profile_input.generate_secondary_instructions,
            generate_master_reference=profile_input.generate_master_reference,
            created_at=now,
            updated_at=now,
        )
        validate_profile(profile)
        self._check_single_user(profiles, profile)

        data["profiles"].append(profile.to_dict())
        if profile.scope == Scope.USER:
            data["defaultUser"] = profile.id
        self._save(data)
        logger.info("Created profile %s (%s scope)", profile.id, profile.scope.value)
        return profile

    def update(self, profile_id: str, changes: ProfileUpdate) -> Profile:
        data = self._load()
        profiles = self._profiles(data)

        index = next((i for i, p in enumerate(profiles) if p.id == profile_id), None)
        if index is None:
            raise ProfileNotFoundError(profile_id)

        current = profiles[index]
        fields = {k: v for k, v in vars(changes).items() if v is not None}
        if "skills" in fields:
            fields["skills"] = list(fields["skills"])
        if "auto_invoke_rules" in fields:
            fields["auto_invoke_rules"] = list(fields["auto_invoke_rules"])
        updated = replace(current, **fields)

        if updated == current:
            return current

        validate_profile(updated)
        self._check_single_user(profiles, updated)
        updated.updated_at = self._clock()

        data["profiles"][index] = updated.to_dict()
        if updated.scope == Scope.USER:
            data["defaultUser"] = updated.id
        elif data.get("defaultUser") == updated.id:
            data["defaultUser"] = None
        self._save(data)
        logger.info("Updated profile %s", profile_id)
        return updated

    def delete(self, profile_id: str) -> None:
        data = self._load()
        profile = next((p for p in self._profiles(data) if p.id == profile_id), None)
        if profile is None:
            raise ProfileNotFoundError(profile_id)
        if profile.scope == Scope.USER:
            raise ProtectedProfileError(profile_id)

        data["profiles"] = [p for p in data["profiles"] if p["id"] != profile_id]
        self._save(data)
        logger.info("Deleted profile %s", profile_id)

    def set_default_user(self, profile_id: str) -> None:
        data = self._load()
        profile = next((p for p in self._profiles(data) if p.id == profile_id), None)
        if profile is None:
            raise ProfileNotFoundError(profile_id)
        if profile.scope != Scope.USER:
            raise WrongScopeError(profile_id, profile.scope)
        if data.get("defaultUser") == profile_id:
            return
        data["defaultUser"] = profile_id
        self._save(data)

    # -- bulk access for packaging ---------------------------------------

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Return every profile keyed by id, in serialized form."""
        return {p["id"]: p for p in self._load()["profiles"]}

    @staticmethod
    def validate_records(records: dict[str, dict[str, Any]]) -> list[Profile]:
        """Parse and check a full set of serialized profiles."""
        profiles = [Profile.from_dict(r) for r in records.values()]
        for profile in profiles:
            validate_profile_id(profile.id)
            validate_profile(profile)
        users = [p.id for p in profiles if p.scope == Scope.USER]
        if len(users) > 1:
            raise ProfileValidationError(
                f"More than one user-scope profile after merge: {', '.join(sorted(users))}"
            )
        return profiles

    def replace_all(self, records: dict[str, dict[str, Any]]) -> None:
        """Replace the whole collection with already-merged records.

        The records are validated as a set before anything is written.
        """
        profiles = self.validate_records(records)
        users = [p.id for p in profiles if p.scope == Scope.USER]

        data = self._load()
        data["profiles"] = [p.to_dict() for p in profiles]
        data["defaultUser"] = users[0] if users else None
        self._save(data)
