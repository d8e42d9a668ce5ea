# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
economy.py — Production, spoilage, duration and defense formulas.

Pure functions of Resources and skill levels; shared by the live tick, the
preview and the action catalog's effect table.

Public helpers:
    effective_duration(base, level, population, category, completion_only)
    population_output_multiplier(population, category)
    tech_multiplier(researched_techs, action_id)
    total_defense(resources)             -> float
    defense_multiplier(resources)        -> float
    spoilage(food, storage, divisor)     -> float
    scaled_wood_cost(base, existing)     -> int
    building_count(resources, action_id) -> int
"""

import math

from .models import Resources
from .skills import duration_multiplier

# ── Tuning constants ──────────────────────────────────────────────────────
INITIAL_MAX_POP            = 2
INITIAL_FOOD_STORAGE       = 200
SPOILAGE_DIVISOR           = 400    # ordinary food
PRESERVED_SPOILAGE_DIVISOR = 800    # preserved food spoils at half the rate
SMOKEHOUSE_SPOILAGE_FACTOR = 0.90   # per smokehouse, multiplicative
BARRACKS_XP_FACTOR         = 1.15   # per barracks, multiplicative
TACTICS_MULT               = 1.15
FORTIFICATION_MULT         = 1.20
WALL_STEP                  = 0.15   # first wall +15%, then diminishing
COST_SCALE_PER_BUILDING    = 0.5    # +50% wood per existing building of a type
RESEARCH_POP_EXPONENT      = 0.8

# Categories
RESOURCE = 'resource'
MILITARY = 'military'
BUILDING = 'building'
RESEARCH = 'research'

_TECH_OUTPUT_BONUS: dict[str, tuple[str, float]] = {
    # tech id            → (boosted action, multiplier)
    'research_tools':      ('gather_wood', 1.25),
    'research_irrigation': ('farm',        1.15),
}


# ══════════════════════════════════════════════════════════════════════════
# Duration and output
# ══════════════════════════════════════════════════════════════════════════

def _sublinear_workers(population: int) -> float:
    """First two people count fully; everyone past that with diminishing returns."""
    return min(population, 2) + max(0, population - 2) ** RESEARCH_POP_EXPONENT


def effective_duration(base_duration: float, skill_level: int, population: int = 1,
                       category: str = RESOURCE, completion_only: str = None) -> int:
    """Years an action takes at this skill level and population.

    Building work divides linearly by population.  Research divides by the
    sub-linear worker count, normalised so two people match the base
    duration.  Completion-only resource actions scale the same way as the
    category named by *completion_only*.  Per-tick resource and military
    work ignores population (it scales output instead).
    """
    d   = base_duration * duration_multiplier(skill_level)
    pop = max(1, population)
    if category == BUILDING:
        return max(1, math.ceil(d / pop))
    if category == RESEARCH or completion_only == RESEARCH:
        return max(1, math.ceil(d * 2 / _sublinear_workers(pop)))
    if completion_only == BUILDING:
        return max(1, math.ceil(d * 2 / pop))
    return max(1, round(d))


def population_output_multiplier(population: int, category: str) -> float:
    """Linear in population for resource/military work; 2 people → 1x."""
    if category in (RESOURCE, MILITARY):
        return population / 2
    return 1.0


def tech_multiplier(researched_techs: list, action_id: str) -> float:
    mult = 1.0
    for tech in researched_techs:
        boosted = _TECH_OUTPUT_BONUS.get(tech)
        if boosted and boosted[0] == action_id:
            mult *= boosted[1]
    return mult


# ══════════════════════════════════════════════════════════════════════════
# Defense
# ══════════════════════════════════════════════════════════════════════════

def military_strength_multiplier(researched_techs: list) -> float:
    return TACTICS_MULT if 'research_tactics' in researched_techs else 1.0


def wall_multiplier(walls_built: int) -> float:
    """Each extra wall adds less: +0.15 / sqrt(1 + i)."""
    mult = 1.0
    for i in range(walls_built):
        mult += WALL_STEP / math.sqrt(1 + i)
    return mult


def fortification_multiplier(researched_techs: list) -> float:
    return FORTIFICATION_MULT if 'research_fortification' in researched_techs else 1.0


def defense_multiplier(resources: Resources) -> float:
    return (military_strength_multiplier(resources.researched_techs)
            * wall_multiplier(resources.walls_built)
            * fortification_multiplier(resources.researched_techs))


def total_defense(resources: Resources) -> float:
    return resources.military_strength * defense_multiplier(resources)


# ══════════════════════════════════════════════════════════════════════════
# Food decay
# ══════════════════════════════════════════════════════════════════════════

def spoilage(food: float, food_storage: float, divisor: float = SPOILAGE_DIVISOR) -> float:
    """Quadratic decay: food² / (divisor × storage).

    At base storage (200): ~0.5/yr at 200 food, ~2/yr at 400.  Never more
    than the stock itself.
    """
    if food <= 0 or food_storage <= 0:
        return 0.0
    return min(food, (food * food) / (divisor * food_storage))


def smokehouse_spoilage_multiplier(smokehouses_built: int) -> float:
    return SMOKEHOUSE_SPOILAGE_FACTOR ** smokehouses_built


def barracks_xp_multiplier(barracks_built: int) -> float:
    return BARRACKS_XP_FACTOR ** barracks_built


# ══════════════════════════════════════════════════════════════════════════
# Building costs
# ══════════════════════════════════════════════════════════════════════════

def building_count(resources: Resources, action_id: str) -> int:
    """Buildings of this type already standing (huts are inferred from capacity)."""
    if action_id == 'build_hut':
        return max(0, round((resources.max_population - INITIAL_MAX_POP) / 3))
    return {
        'build_granary':    resources.granaries_built,
        'build_smokehouse': resources.smokehouses_built,
        'build_barracks':   resources.barracks_built,
        'build_wall':       resources.walls_built,
    }.get(action_id, 0)


def scaled_wood_cost(base_cost: int, existing_count: int) -> int:
    return math.ceil(base_cost * (1 + existing_count * COST_SCALE_PER_BUILDING))
