"""Tests for the on-disk skill registry."""

import json

import pytest
from conftest import make_skill

from skillet.skills import (
    DirectorySkillRegistry,
    SkillError,
    SkillExistsError,
    SkillFormatError,
    SkillMeta,
    SkillNotFoundError,
    category_for,
    parse_skill_file,
)


class TestParseSkillFile:
    def test_frontmatter_and_body(self):
        front, body = parse_skill_file("---\nname: Playwright\ndescription: E2E tests\n---\n\n# Usage\n")
        assert front == {"name": "Playwright", "description": "E2E tests"}
        assert body == "# Usage"

    def test_missing_frontmatter(self):
        with pytest.raises(SkillFormatError):
            parse_skill_file("# Just markdown")

    def test_missing_name(self):
        with pytest.raises(SkillFormatError, match="name"):
            parse_skill_file("---\ndescription: x\n---\nbody")

    def test_bad_yaml(self):
        with pytest.raises(SkillFormatError, match="YAML"):
            parse_skill_file("---\nname: [unclosed\n---\nbody")


class TestCategories:
    def test_known_and_custom(self):
        assert category_for("playwright") == "testing"
        assert category_for("team-standards") == "corporate"
        assert category_for("my-thing") == "custom"


class TestDirectorySkillRegistry:
    def test_save_and_resolve(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        skill = make_skill("s1")
        registry.save(skill)
        assert (tmp_path / "s1" / "SKILL.md").exists()
        assert registry.resolve("s1") == skill

    def test_resolve_missing(self, tmp_path):
        with pytest.raises(SkillNotFoundError):
            DirectorySkillRegistry(tmp_path).resolve("ghost")

    def test_list_sorted_by_category_then_name(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        registry.save(SkillMeta("zz-custom", "A custom", "", "x"))
        registry.save(SkillMeta("playwright", "Playwright", "", "x", category="testing"))
        registry.save(SkillMeta("team-standards", "Standards", "", "x", category="corporate"))
        assert [s.id for s in registry.list()] == ["team-standards", "playwright", "zz-custom"]

    def test_list_skips_broken_skills(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        registry.save(make_skill("good"))
        (tmp_path / "broken").mkdir()
        (tmp_path / "broken" / "SKILL.md").write_text("no frontmatter")
        assert [s.id for s in registry.list()] == ["good"]

    def test_toggle(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        registry.save(make_skill("s1"))
        registry.toggle("s1", False)
        assert registry.resolve("s1").enabled is False
        assert json.loads((tmp_path / ".skills-config.json").read_text())["disabled"] == ["s1"]
        registry.toggle("s1", True)
        assert registry.resolve("s1").enabled is True

    def test_toggle_missing(self, tmp_path):
        with pytest.raises(SkillNotFoundError):
            DirectorySkillRegistry(tmp_path).toggle("ghost", True)


class TestSkillEditing:
    def test_create(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        skill = registry.create("my-skill", "My Skill", "Does things", "# Steps\n\n1. Do it.")
        assert skill.category == "custom"
        assert skill.content == "# Steps\n\n1. Do it."
        assert json.loads(registry.config_path.read_text())["custom"] == ["my-skill"]

    def test_create_existing(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        registry.create("my-skill", "My Skill")
        with pytest.raises(SkillExistsError):
            registry.create("my-skill", "Again")

    def test_create_bad_id(self, tmp_path):
        with pytest.raises(SkillError, match="Invalid skill id"):
            DirectorySkillRegistry(tmp_path).create("../escape", "Nope")

    def test_update_only_given_fields(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        registry.create("my-skill", "My Skill", "Does things", "Body")
        updated = registry.update("my-skill", description="Does more", enabled=False)
        assert updated.name == "My Skill"
        assert updated.description == "Does more"
        assert updated.content == "Body"
        assert updated.enabled is False

    def test_update_missing(self, tmp_path):
        with pytest.raises(SkillNotFoundError):
            DirectorySkillRegistry(tmp_path).update("ghost", name="x")

    def test_delete_custom(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        registry.create("my-skill", "My Skill")
        registry.toggle("my-skill", False)
        registry.delete("my-skill")
        assert not (tmp_path / "my-skill").exists()
        assert json.loads(registry.config_path.read_text()) == {"disabled": [], "custom": []}

    def test_built_in_cannot_be_deleted(self, tmp_path):
        registry = DirectorySkillRegistry(tmp_path)
        registry.save(SkillMeta("playwright", "Playwright", "", "x", category="testing"))
        with pytest.raises(SkillError, match="disable it"):
            registry.delete("playwright")
        assert (tmp_path / "playwright").is_dir()

    def test_delete_missing(self, tmp_path):
        with pytest.raises(SkillNotFoundError):
            DirectorySkillRegistry(tmp_path).delete("ghost")
