# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""hints.py — One-line "what next?" nudge for the player."""

from .actions import ACTION_DEFS, MILESTONE_ACTIONS, STARTING_ACTIONS
from .models import GameState, STATUS_IDLE


def get_skill_hint(state: GameState) -> str:
    run      = state.run
    unlocked = state.unlocked_actions
    idle     = run.status == STATUS_IDLE and run.year == 0

    if idle and not run.queue:
        if list(unlocked) == list(STARTING_ACTIONS):
            return 'Add Farm to the queue and start to begin your civilization.'
        return 'Add actions to the queue and start to begin.'
    if idle:
        return 'Start to begin your run.'

    if not all(a in unlocked for a in MILESTONE_ACTIONS):
        return 'Fill your food storage to capacity to unlock new skills.'

    # Closest locked action by skill-level gap
    gaps = []
    for action in ACTION_DEFS.values():
        if action.unlock_level <= 0 or action.id in unlocked:
            continue
        gap = action.unlock_level - state.skills[action.gating_skill].level
        if gap > 0:
            gaps.append((gap, action.gating_skill))
    if gaps:
        gap, skill = min(gaps, key=lambda g: g[0])
        if gap == 1:
            return f"You're close to unlocking something new with {skill.capitalize()}. Keep going!"
        return f'Raising your {skill.capitalize()} skill might unlock new options.'

    return "You've unlocked all available actions. Keep growing your civilization!"
