"""Skill registry: resolves skill ids to their metadata and content.

Skills live on disk as ``skills/<id>/SKILL.md`` with a YAML frontmatter
block holding ``name`` and ``description``. Enabled/custom state is kept
next to them in ``.skills-config.json``.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from skillet import SkilletError
from skillet.adapters.local import atomic_write_text

logger = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"
SKILLS_CONFIG_FILE = ".skills-config.json"
SKILL_ID_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")

CATEGORIES = {
    "corporate": ["team-standards", "team-architecture", "team-security"],
    "frontend": ["react-patterns", "typescript-best-practices", "tailwind-4", "zod-4", "zustand-5"],
    "testing": ["testing-strategies", "playwright"],
    "ai-sdk": ["ai-sdk-core", "ai-sdk-react", "nextjs-integration"],
    "utilities": ["skill-creator"],
}
CATEGORY_ORDER = ["corporate", "frontend", "testing", "ai-sdk", "utilities", "custom"]


class SkillError(SkilletError):
    """Base error for skill lookups and edits."""


class SkillNotFoundError(SkillError):
    def __init__(self, skill_id: str):
        super().__init__(f"Skill '{skill_id}' not found")
        self.skill_id = skill_id


class SkillExistsError(SkillError):
    def __init__(self, skill_id: str):
        super().__init__(f"Skill '{skill_id}' already exists")
        self.skill_id = skill_id


class SkillFormatError(SkillError):
    """A SKILL.md file could not be parsed."""


@dataclass(frozen=True)
class SkillMeta:
    id: str
    name: str
    description: str
    content: str
    category: str = "custom"
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "enabled": self.enabled,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, d: dict) -> SkillMeta:
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            description=d.get("description", ""),
            content=d.get("content", ""),
            category=d.get("category", "custom"),
            enabled=d.get("enabled", True),
        )


class SkillRegistry(ABC):
    """Read side of a skill source, as consumed by the install engine."""

    @abstractmethod
    def resolve(self, skill_id: str) -> SkillMeta:
        """Return the skill, or raise SkillNotFoundError."""

    @abstractmethod
    def list(self) -> list[SkillMeta]:
        """Return every known skill."""

    def save(self, skill: SkillMeta) -> None:
        raise SkillError(f"{type(self).__name__} is read-only")


def category_for(skill_id: str) -> str:
    for category, ids in CATEGORIES.items():
        if skill_id in ids:
            return category
    return "custom"


def parse_skill_file(text: str) -> tuple[dict[str, Any], str]:
    """Split a SKILL.md into its frontmatter mapping and markdown body."""
    text = text.strip()
    if not text.startswith("---"):
        raise SkillFormatError("Skill file must start with YAML frontmatter")

    parts = text.split("---", 2)
    if len(parts) < 3:
        raise SkillFormatError("Invalid frontmatter format")

    try:
        front = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError as e:
        raise SkillFormatError(f"Invalid YAML frontmatter: {e}") from e
    if not isinstance(front, dict) or "name" not in front:
        raise SkillFormatError("Frontmatter must define at least 'name'")

    return front, parts[2].strip()


def render_skill_file(name: str, description: str, content: str) -> str:
    front = yaml.safe_dump(
        {"name": name, "description": description},
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"---\n{front}---\n\n{content.strip()}\n"


class DirectorySkillRegistry(SkillRegistry):
    """Skills stored as one directory per skill under a root folder."""

    def __init__(self, root: Path):
        self.root = root

    @property
    def config_path(self) -> Path:
        return self.root / SKILLS_CONFIG_FILE

    def _load_config(self) -> dict[str, list[str]]:
        if not self.config_path.exists():
            return {"disabled": [], "custom": []}
        data = json.loads(self.config_path.read_text(encoding="utf-8"))
        return {"disabled": data.get("disabled", []), "custom": data.get("custom", [])}

    def _save_config(self, config: dict[str, list[str]]) -> None:
        atomic_write_text(self.config_path, json.dumps(config, indent=2) + "\n")

    def _load(self, skill_dir: Path, config: dict[str, list[str]]) -> SkillMeta:
        skill_file = skill_dir / SKILL_FILE
        if not skill_file.exists():
            raise SkillFormatError(f"{SKILL_FILE} not found in {skill_dir}")

        front, body = parse_skill_file(skill_file.read_text(encoding="utf-8"))
        skill_id = skill_dir.name
        is_custom = skill_id in config["custom"]
        return SkillMeta(
            id=skill_id,
            name=str(front["name"]),
            description=str(front.get("description", "")),
            content=body,
            category="custom" if is_custom else category_for(skill_id),
            enabled=skill_id not in config["disabled"],
        )

    def resolve(self, skill_id: str) -> SkillMeta:
        skill_dir = self.root / skill_id
        if not skill_dir.is_dir():
            raise SkillNotFoundError(skill_id)
        return self._load(skill_dir, self._load_config())

    def list(self) -> list[SkillMeta]:
        if not self.root.exists():
            return []

        config = self._load_config()
        skills = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir():
                continue
            try:
                skills.append(self._load(entry, config))
            except SkillFormatError as e:
                logger.warning("Skipping skill %s: %s", entry.name, e)

        skills.sort(key=lambda s: (CATEGORY_ORDER.index(s.category), s.name))
        return skills

    def save(self, skill: SkillMeta) -> None:
        """Create or overwrite a skill, including its enabled state."""
        skill_file = self.root / skill.id / SKILL_FILE
        atomic_write_text(skill_file, render_skill_file(skill.name, skill.description, skill.content))

        config = self._load_config()
        if skill.category == "custom" and category_for(skill.id) == "custom":
            if skill.id not in config["custom"]:
                config["custom"].append(skill.id)
        if skill.enabled:
            config["disabled"] = [s for s in config["disabled"] if s != skill.id]
        elif skill.id not in config["disabled"]:
            config["disabled"].append(skill.id)
        self._save_config(config)

    def create(self, skill_id: str, name: str, description: str = "", content: str = "") -> SkillMeta:
        """Add a new custom skill."""
        if not SKILL_ID_RE.match(skill_id):
            raise SkillError(f"Invalid skill id '{skill_id}': use lowercase letters, digits and hyphens")
        if (self.root / skill_id).exists():
            raise SkillExistsError(skill_id)

        atomic_write_text(self.root / skill_id / SKILL_FILE, render_skill_file(name, description, content))
        config = self._load_config()
        if skill_id not in config["custom"]:
            config["custom"].append(skill_id)
        self._save_config(config)
        logger.info("Created skill %s", skill_id)
        return self.resolve(skill_id)

    def update(
        self,
        skill_id: str,
        name: str | None = None,
        description: str | None = None,
        content: str | None = None,
        enabled: bool | None = None,
    ) -> SkillMeta:
        """Rewrite the fields given; None leaves a field as it is."""
        skill = self.resolve(skill_id)
        skill_file = self.root / skill_id / SKILL_FILE
        atomic_write_text(
            skill_file,
            render_skill_file(
                skill.name if name is None else name,
                skill.description if description is None else description,
                skill.content if content is None else content,
            ),
        )
        if enabled is not None:
            self.toggle(skill_id, enabled)
        return self.resolve(skill_id)

    def delete(self, skill_id: str) -> None:
        """Remove a custom skill. Built-in skills can only be disabled."""
        config = self._load_config()
        if skill_id not in config["custom"]:
            if (self.root / skill_id).is_dir():
                raise SkillError(f"Cannot delete built-in skill '{skill_id}'; disable it instead")
            raise SkillNotFoundError(skill_id)
        if not (self.root / skill_id).is_dir():
            raise SkillNotFoundError(skill_id)

        shutil.rmtree(self.root / skill_id)
        config["custom"] = [s for s in config["custom"] if s != skill_id]
        config["disabled"] = [s for s in config["disabled"] if s != skill_id]
        self._save_config(config)
        logger.info("Deleted skill %s", skill_id)

    def toggle(self, skill_id: str, enabled: bool) -> None:
        if not (self.root / skill_id).is_dir():
            raise SkillNotFoundError(skill_id)
        config = self._load_config()
        if enabled:
            config["disabled"] = [s for s in config["disabled"] if s != skill_id]
        elif skill_id not in config["disabled"]:
            config["disabled"].append(skill_id)
        self._save_config(config)
