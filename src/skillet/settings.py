"""Assistant settings and output styles bundled with every deploy."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from skillet import SkilletError
from skillet.adapters.local import atomic_write_text
from skillet.skills import SkillFormatError, parse_skill_file

logger = logging.getLogger(__name__)


class OutputStyleNotFoundError(SkilletError):
    def __init__(self, style_id: str):
        super().__init__(f"Output style '{style_id}' not found")
        self.style_id = style_id


class SettingsStore:
    """A flat JSON settings document (``settings.json``)."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text(encoding="utf-8"))

    def save(self, settings: dict[str, Any]) -> None:
        atomic_write_text(self.path, json.dumps(settings, indent=2, ensure_ascii=False) + "\n")

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        settings = self.load()
        settings[key] = value
        self.save(settings)


@dataclass(frozen=True)
class OutputStyle:
    id: str
    name: str
    description: str
    content: str
    keep_coding_instructions: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "keepCodingInstructions": self.keep_coding_instructions,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, d: dict) -> OutputStyle:
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            description=d.get("description", ""),
            content=d.get("content", ""),
            keep_coding_instructions=d.get("keepCodingInstructions", True),
        )


class OutputStyleStore:
    """Output styles stored as ``<id>.md`` files with YAML frontmatter."""

    def __init__(self, root: Path, settings: SettingsStore | None = None):
        self.root = root
        self.settings = settings

    def list(self) -> list[OutputStyle]:
        if not self.root.exists():
            return []
        styles = []
        for path in sorted(self.root.glob("*.md")):
            try:
                styles.append(self._load(path))
            except SkillFormatError as e:
                logger.warning("Skipping output style %s: %s", path.name, e)
        return styles

    def _load(self, path: Path) -> OutputStyle:
        front, body = parse_skill_file(path.read_text(encoding="utf-8"))
        return OutputStyle(
            id=path.stem,
            name=str(front["name"]),
            description=str(front.get("description", "")),
            content=body,
            keep_coding_instructions=bool(front.get("keep-coding-instructions", True)),
        )

    def get(self, style_id: str) -> OutputStyle:
        path = self.root / f"{style_id}.md"
        if not path.exists():
            raise OutputStyleNotFoundError(style_id)
        return self._load(path)

    def save(self, style: OutputStyle) -> None:
        front = yaml.safe_dump(
            {
                "name": style.name,
                "description": style.description,
                "keep-coding-instructions": style.keep_coding_instructions,
            },
            sort_keys=False,
            allow_unicode=True,
        )
        atomic_write_text(self.root / f"{style.id}.md", f"---\n{front}---\n\n{style.content.strip()}\n")

    def delete(self, style_id: str) -> None:
        path = self.root / f"{style_id}.md"
        if not path.exists():
            raise OutputStyleNotFoundError(style_id)
        path.unlink()

    def get_active(self) -> OutputStyle | None:
        if self.settings is None:
            return None
        active = self.settings.get("outputStyle")
        if not active:
            return None
        try:
            return self.get(active)
        except OutputStyleNotFoundError:
            logger.warning("Active output style '%s' is missing", active)
            return None

    def set_active(self, style_id: str) -> None:
        self.get(style_id)
        if self.settings is None:
            raise SkilletError("No settings store to record the active output style")
        self.settings.set("outputStyle", style_id)
