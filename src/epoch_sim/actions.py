# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
actions.py — Action catalog: every queueable action and its effects.

ACTION_DEFS is built once at import and keyed by action id.  Each ActionDef
carries two effect functions:

    per_tick(resources, output_mult, winter)  -> None
    on_complete(resources, output_mult)       -> (message, severity) | None

Both mutate the Resources they are handed; the engine only ever hands them
its own private copy.

Catalog
───────
  Resource : farm, gather_wood, winter_hunt, cure_food
  Military : train_militia, scout
  Building : build_hut, build_granary, build_barracks, build_wall, build_smokehouse
  Research : research_tools, research_irrigation, research_storage,
             research_tactics, research_fortification
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

from .economy import (
    BUILDING, MILITARY, RESEARCH, RESOURCE,
    barracks_xp_multiplier, smokehouse_spoilage_multiplier, wall_multiplier,
)
from .models import REPEAT_FOREVER, Resources, SEVERITY_INFO, SEVERITY_WARNING
from .resolver import iter_segments

CURE_BATCH = 100          # food moved into preserved stores per cure_food
STORAGE_RESEARCH_BONUS = 100
GRANARY_BASE_BONUS     = 150
HUT_CAPACITY           = 3


def _no_tick(resources: Resources, mult: float, winter: bool) -> None:
    pass


def _no_completion(resources: Resources, mult: float) -> None:
    return None


@dataclass(frozen=True)
class ActionDef:
    id:                str
    name:              str
    description:       str
    skill:             str
    category:          str
    base_duration:     int
    unlock_level:      int = 0
    wood_cost:         int = 0
    unlock_skill:      Optional[str] = None   # defaults to *skill*
    required_tech:     Optional[str] = None
    required_walls:    int = 0
    required_barracks: int = 0
    completion_only:   Optional[str] = None   # 'building' | 'research' duration scaling
    per_tick:          Callable = _no_tick
    on_complete:       Callable = _no_completion

    @property
    def is_research(self) -> bool:
        """One-shot research: skipped once its id is in researched_techs."""
        return self.id.startswith('research_')

    @property
    def gating_skill(self) -> str:
        return self.unlock_skill or self.skill


# ══════════════════════════════════════════════════════════════════════════
# Per-tick effects
# ══════════════════════════════════════════════════════════════════════════

def _farm_tick(res: Resources, mult: float, winter: bool) -> None:
    if not winter:
        res.food += 2 * mult


def _wood_tick(res: Resources, mult: float, winter: bool) -> None:
    res.wood += 0.4 * mult


def _militia_tick(res: Resources, mult: float, winter: bool) -> None:
    res.military_strength += 0.2 * mult


def _scout_tick(res: Resources, mult: float, winter: bool) -> None:
    res.military_strength += 0.05 * mult


def _hunt_tick(res: Resources, mult: float, winter: bool) -> None:
    res.food += 0.2 * mult


# ══════════════════════════════════════════════════════════════════════════
# Completion effects
# ══════════════════════════════════════════════════════════════════════════

def _hut_done(res: Resources, mult: float):
    res.max_population += HUT_CAPACITY
    return f'Hut built. Population capacity now {res.max_population}.', SEVERITY_INFO


def _granary_done(res: Resources, mult: float):
    bonus = math.floor(GRANARY_BASE_BONUS * mult / math.sqrt(1 + res.granaries_built))
    res.food_storage += bonus
    res.granaries_built += 1
    return (f'Granary built (+{bonus} storage). '
            f'Food storage now {math.floor(res.food_storage)}.'), SEVERITY_INFO


def _smokehouse_done(res: Resources, mult: float):
    res.smokehouses_built += 1
    return (f'Smokehouse built ({res.smokehouses_built} total). Spoilage '
            f'×{smokehouse_spoilage_multiplier(res.smokehouses_built):.2f}.'), SEVERITY_INFO


def _barracks_done(res: Resources, mult: float):
    res.barracks_built += 1
    return (f'Barracks built ({res.barracks_built} total). Military XP '
            f'×{barracks_xp_multiplier(res.barracks_built):.2f} when training.'), SEVERITY_INFO


def _wall_done(res: Resources, mult: float):
    res.walls_built += 1
    return (f'Wall built ({res.walls_built} total). '
            f'Defense ×{wall_multiplier(res.walls_built):.2f}.'), SEVERITY_INFO


def _research(tech_id: str, message: str, extra: Callable = None) -> Callable:
    """Completion effect for a one-shot tech: record it, apply *extra*, log."""
    def _done(res: Resources, mult: float):
        if tech_id not in res.researched_techs:
            res.researched_techs = res.researched_techs + [tech_id]
        if extra is not None:
            extra(res)
        return message.format(res=res, storage=math.floor(res.food_storage)), SEVERITY_INFO
    return _done


def _storage_bonus(res: Resources) -> None:
    res.food_storage += STORAGE_RESEARCH_BONUS


def _cure_done(res: Resources, mult: float):
    amount = min(CURE_BATCH, res.food)
    if amount <= 0:
        return 'No food available to cure.', SEVERITY_WARNING
    res.food -= amount
    res.preserved_food += amount
    return (f'Cured {math.floor(amount)} food into preserved stores. '
            f'Preserved: {math.floor(res.preserved_food)}.'), SEVERITY_INFO


# ══════════════════════════════════════════════════════════════════════════
# Registry
# ══════════════════════════════════════════════════════════════════════════

_CATALOG: list[ActionDef] = [

    # ── Resource ─────────────────────────────────────────────────────────
    ActionDef('farm', 'Farm', 'Work the land. Produces food each year (not in winter).',
              skill='farming', category=RESOURCE, base_duration=10,
              per_tick=_farm_tick),
    ActionDef('gather_wood', 'Gather Wood', 'Collect wood for buildings.',
              skill='building', category=RESOURCE, base_duration=10,
              per_tick=_wood_tick),
    ActionDef('winter_hunt', 'Winter Hunt', 'Hunt game. A little food in every season.',
              skill='military', category=RESOURCE, base_duration=10, unlock_level=2,
              per_tick=_hunt_tick),
    ActionDef('cure_food', 'Cure Food', 'Smoke and salt up to 100 food into preserved stores.',
              skill='farming', category=RESOURCE, base_duration=20, unlock_level=5,
              completion_only=BUILDING, on_complete=_cure_done),

    # ── Military ─────────────────────────────────────────────────────────
    ActionDef('train_militia', 'Train Militia', 'Raise military strength. Needed to repel raiders.',
              skill='military', category=MILITARY, base_duration=10,
              per_tick=_militia_tick),
    ActionDef('scout', 'Scout', 'Explore the surroundings. A trickle of military strength.',
              skill='military', category=MILITARY, base_duration=20, unlock_level=3,
              per_tick=_scout_tick),

    # ── Building ─────────────────────────────────────────────────────────
    ActionDef('build_hut', 'Build Hut', 'Shelter. Population capacity +3.',
              skill='building', category=BUILDING, base_duration=40,
              unlock_level=2, wood_cost=10, on_complete=_hut_done),
    ActionDef('build_granary', 'Build Granary', 'More food storage, so less spoilage.',
              skill='building', category=BUILDING, base_duration=60,
              unlock_level=4, wood_cost=25, on_complete=_granary_done),
    ActionDef('build_barracks', 'Build Barracks', 'Military XP ×1.15 per barracks when training.',
              skill='building', category=BUILDING, base_duration=80,
              unlock_level=3, unlock_skill='military', wood_cost=30,
              on_complete=_barracks_done),
    ActionDef('build_wall', 'Build Wall', 'Multiplies total defense, with diminishing returns.',
              skill='building', category=BUILDING, base_duration=100,
              unlock_level=5, unlock_skill='military', required_barracks=1, wood_cost=40,
              on_complete=_wall_done),
    ActionDef('build_smokehouse', 'Build Smokehouse', 'Each smokehouse cuts spoilage by 10%.',
              skill='building', category=BUILDING, base_duration=60,
              unlock_level=6, required_tech='research_storage', wood_cost=20,
              on_complete=_smokehouse_done),

    # ── Research ─────────────────────────────────────────────────────────
    ActionDef('research_tools', 'Research Tools', 'Improved tools. Wood gathering ×1.25.',
              skill='research', category=RESEARCH, base_duration=60,
              on_complete=_research('research_tools',
                                    'Improved Tools researched. Wood gathering +25%.')),
    ActionDef('research_irrigation', 'Research Irrigation', 'Farming output ×1.15.',
              skill='research', category=RESEARCH, base_duration=100, unlock_level=2,
              on_complete=_research('research_irrigation',
                                    'Irrigation researched. Farming output +15%.')),
    ActionDef('research_storage', 'Research Food Preservation', 'Food storage +100.',
              skill='research', category=RESEARCH, base_duration=120, unlock_level=3,
              on_complete=_research('research_storage',
                                    'Food Preservation researched. Food storage +100 '
                                    '(now {storage}).', _storage_bonus)),
    ActionDef('research_tactics', 'Research Tactics', 'Military strength ×1.15.',
              skill='research', category=RESEARCH, base_duration=150, unlock_level=4,
              required_barracks=1,
              on_complete=_research('research_tactics',
                                    'Tactics researched. Military strength +15%.')),
    ActionDef('research_fortification', 'Research Fortification', 'Total defense ×1.20.',
              skill='research', category=RESEARCH, base_duration=150, unlock_level=5,
              required_walls=1,
              on_complete=_research('research_fortification',
                                    'Fortification researched. Total defense ×1.20.')),
]

ACTION_DEFS: dict[str, ActionDef] = {a.id: a for a in _CATALOG}

# Unlocked from the start of every game
STARTING_ACTIONS = ('farm',)
# Unlocked by the first full granary (and from the second run onwards)
MILESTONE_ACTIONS = ('gather_wood', 'train_militia', 'research_tools')


def get_action_def(action_id: str) -> Optional[ActionDef]:
    return ACTION_DEFS.get(action_id)


def requirements_met(action: ActionDef, resources: Resources) -> bool:
    """Tech / building prerequisites beyond the skill level."""
    if action.required_tech and action.required_tech not in resources.researched_techs:
        return False
    if resources.walls_built < action.required_walls:
        return False
    return resources.barracks_built >= action.required_barracks


# ── Queue validation ─────────────────────────────────────────────────────

def valid_repeat(repeat) -> bool:
    """A positive count or REPEAT_FOREVER; bools are rejected."""
    if isinstance(repeat, bool) or not isinstance(repeat, int):
        return False
    return repeat >= 1 or repeat == REPEAT_FOREVER


def queue_is_well_formed(queue: list) -> bool:
    """Unique uids, known actions, contiguous groups with one group_repeat each."""
    uids = [e.uid for e in queue]
    if len(set(uids)) != len(uids):
        return False
    seen_groups = set()
    for seg in iter_segments(queue):
        if seg.group_id is None:
            continue
        if seg.group_id in seen_groups:
            return False
        seen_groups.add(seg.group_id)
        if len({e.group_repeat for e in queue[seg.start_idx:seg.end_idx]}) != 1:
            return False
    return all(e.action_id in ACTION_DEFS for e in queue)
