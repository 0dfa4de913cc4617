"""Render the instruction documents for a profile.

Everything here is pure: the same profile and skills always produce the
same bytes, which is what lets the install engine compare hashes to spot
hand edits.
"""

from __future__ import annotations

import logging
from enum import Enum

from skillet.profiles import AutoInvokeRule, Profile
from skillet.skills import SkillMeta, render_skill_file

logger = logging.getLogger(__name__)

GENERATED_NOTICE = (
    "<!-- Generated by skillet from profile `{profile_id}`. "
    "Hand edits are detected and preserved on update unless forced. -->"
)


class FileRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    MASTER = "master"


def _escape_cell(text: str) -> str:
    return " ".join(text.split()).replace("|", "\\|")


def _usable_rules(profile: Profile, skills: dict[str, SkillMeta]) -> list[AutoInvokeRule]:
    rules = []
    for rule in sorted(profile.auto_invoke_rules, key=lambda r: (r.skill_id, r.trigger)):
        if rule.skill_id not in skills:
            logger.warning(
                "Dropping auto-invoke rule '%s' in profile %s: skill %s is not resolved",
                rule.trigger,
                profile.id,
                rule.skill_id,
            )
            continue
        rules.append(rule)
    return rules


def _skill_label(rule: AutoInvokeRule) -> str:
    label = f"`{rule.skill_id}`"
    if rule.description:
        label += f" ({_escape_cell(rule.description)})"
    return label


def _rule_table(rules: list[AutoInvokeRule], skills_dir: str | None) -> list[str]:
    if skills_dir is not None:
        lines = ["| Trigger | Skill | Path |", "|---------|-------|------|"]
        for rule in rules:
            path = f"{skills_dir}/{rule.skill_id}/SKILL.md"
            lines.append(f"| {_escape_cell(rule.trigger)} | {_skill_label(rule)} | `{path}` |")
    else:
        lines = ["| Trigger | Skill |", "|---------|-------|"]
        for rule in rules:
            lines.append(f"| {_escape_cell(rule.trigger)} | {_skill_label(rule)} |")
    return lines


def _render(
    profile: Profile,
    skills: dict[str, SkillMeta],
    skills_dir: str | None,
    skills_note: str | None,
) -> str:
    included = [skills[s] for s in profile.skills if s in skills]
    rules = _usable_rules(profile, skills)

    lines = [f"# {profile.name}", "", GENERATED_NOTICE.format(profile_id=profile.id), ""]
    if profile.description:
        lines += [profile.description.strip(), ""]

    if rules:
        lines += ["## Auto-invoke Skills", ""]
        lines += ["Load the matching skill before starting work when a trigger applies.", ""]
        lines += _rule_table(rules, skills_dir)
        lines.append("")

    if profile.instructions and profile.instructions.strip():
        lines += ["## Instructions", "", profile.instructions.strip(), ""]

    if included:
        lines += ["## Included Skills", ""]
        if skills_note:
            lines += [skills_note, ""]
        for skill in included:
            entry = f"- **{skill.name}** (`{skill.id}`)"
            description = " ".join(skill.description.split())
            lines.append(f"{entry}: {description}" if description else entry)
        lines.append("")

    return "\n".join(lines).rstrip("\n") + "\n"


def generate_instructions(
    profile: Profile,
    skills: dict[str, SkillMeta],
    skills_dir: str,
) -> dict[FileRole, str]:
    """Build every instruction document the profile asks for.

    ``skills_dir`` is the skills location relative to the primary document,
    used for the Path column of the auto-invoke table.
    """
    primary = _render(profile, skills, skills_dir, None)
    documents = {FileRole.PRIMARY: primary}

    if profile.generate_secondary_instructions:
        note = f"Each skill's guidance is in `{skills_dir}/<skill-id>/SKILL.md` from the repository root."
        documents[FileRole.SECONDARY] = _render(profile, skills, None, note)

    if profile.generate_master_reference:
        documents[FileRole.MASTER] = primary

    return documents


def render_skill_document(skill: SkillMeta) -> str:
    return render_skill_file(skill.name, skill.description, skill.content)
