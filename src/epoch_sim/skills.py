# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
skills.py — Skill progression: XP curve, level-up, duration/output multipliers.

XP is cumulative; a skill's level is the highest level whose threshold the
accumulated XP has reached.  Skills persist across runs and are only ever
reset by an explicit hard reset.
"""

import math

from .models import SkillState, SKILL_NAMES

XP_BASE     = 100
XP_EXPONENT = 1.5

MIN_DURATION_MULT    = 0.1
DURATION_STEP        = 0.009   # duration shrinks by 0.9% per level
OUTPUT_STEP          = 0.05    # output grows by 5% per level


def xp_for_level(level: int) -> int:
    """Cumulative XP needed to reach *level*.  Levels 0 and 1 are free."""
    if level <= 1:
        return 0
    return math.floor(XP_BASE * (level - 1) ** XP_EXPONENT)


def xp_to_next_level(skill: SkillState) -> float:
    return xp_for_level(skill.level + 1) - skill.xp


def add_xp(skill: SkillState, amount: float) -> SkillState:
    """Return a new SkillState with *amount* XP added (may cross several levels)."""
    xp    = skill.xp + amount
    level = skill.level
    while xp >= xp_for_level(level + 1):
        level += 1
    return SkillState(level=level, xp=xp)


def duration_multiplier(level: int) -> float:
    # 1.0 at level 0, ~0.1 at level 100
    return max(MIN_DURATION_MULT, 1.0 - level * DURATION_STEP)


def output_multiplier(level: int) -> float:
    return 1.0 + level * OUTPUT_STEP


def initial_skills() -> dict:
    return {name: SkillState() for name in SKILL_NAMES}


def copy_skills(skills: dict) -> dict:
    """Shallow copy is enough: SkillState is frozen."""
    return {name: skills.get(name, SkillState()) for name in SKILL_NAMES}


def is_action_unlocked(skills: dict, skill_name: str, unlock_level: int) -> bool:
    return skills[skill_name].level >= unlock_level
