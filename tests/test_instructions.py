"""Tests for instruction document generation."""

import logging

from conftest import make_skill

from skillet.instructions import FileRole, generate_instructions, render_skill_document
from skillet.profiles import AutoInvokeRule, Profile


def _profile(**kwargs):
    defaults = dict(
        id="web",
        name="Web Team",
        description="Frontend work.",
        skills=["s1", "s2"],
        auto_invoke_rules=[
            AutoInvokeRule("s2", "styling components"),
            AutoInvokeRule("s1", "writing tests", "unit | e2e"),
        ],
        instructions="Prefer small PRs.",
    )
    defaults.update(kwargs)
    return Profile(**defaults)


def _skills(*ids):
    return {i: make_skill(i) for i in ids}


class TestGenerateInstructions:
    def test_primary_only_by_default(self):
        docs = generate_instructions(_profile(), _skills("s1", "s2"), "skills")
        assert list(docs) == [FileRole.PRIMARY]

    def test_deterministic(self):
        a = generate_instructions(_profile(), _skills("s1", "s2"), "skills")
        b = generate_instructions(_profile(), _skills("s2", "s1"), "skills")
        assert a == b

    def test_rule_order_is_stable(self):
        rules = list(reversed(_profile().auto_invoke_rules))
        a = generate_instructions(_profile(), _skills("s1", "s2"), "skills")
        b = generate_instructions(_profile(auto_invoke_rules=rules), _skills("s1", "s2"), "skills")
        assert a == b

    def test_sections(self):
        text = generate_instructions(_profile(), _skills("s1", "s2"), ".claude/skills")[FileRole.PRIMARY]
        assert text.startswith("# Web Team\n")
        assert "Generated by skillet from profile `web`" in text
        assert "| Trigger | Skill | Path |" in text
        assert "| writing tests | `s1` (unit \\| e2e) | `.claude/skills/s1/SKILL.md` |" in text
        assert "## Instructions\n\nPrefer small PRs." in text
        assert "- **S1** (`s1`): Guidance for s1" in text
        assert text.index("writing tests") < text.index("styling components")
        assert text.endswith("\n") and not text.endswith("\n\n")

    def test_rule_for_unresolved_skill_is_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            text = generate_instructions(_profile(), _skills("s1"), "skills")[FileRole.PRIMARY]
        assert "styling components" not in text
        assert "writing tests" in text
        assert "Dropping auto-invoke rule" in caplog.text

    def test_no_rules_no_table(self):
        text = generate_instructions(_profile(auto_invoke_rules=[]), _skills("s1", "s2"), "skills")[FileRole.PRIMARY]
        assert "Auto-invoke" not in text

    def test_secondary_drops_path_column(self):
        docs = generate_instructions(
            _profile(generate_secondary_instructions=True), _skills("s1", "s2"), "skills"
        )
        secondary = docs[FileRole.SECONDARY]
        assert "| Trigger | Skill |\n" in secondary
        assert "SKILL.md` |" not in secondary
        assert "`skills/<skill-id>/SKILL.md`" in secondary

    def test_master_matches_primary(self):
        docs = generate_instructions(_profile(generate_master_reference=True), _skills("s1", "s2"), "skills")
        assert docs[FileRole.MASTER] == docs[FileRole.PRIMARY]


class TestRenderSkillDocument:
    def test_frontmatter_and_body(self):
        text = render_skill_document(make_skill("s1"))
        assert text.startswith("---\nname: S1\ndescription: Guidance for s1\n---\n\n# s1")
        assert text.endswith("carefully.\n")
