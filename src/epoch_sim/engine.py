# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
engine.py — Deterministic one-year state transition for a run.

Call order each live timer callback:
    state = tick(state)

Year pipeline (advance_year)
────────────────────────────
  1. year += 1, season flags
  2. consumption (food first, then preserved) → starvation
  3. spoilage (quadratic, smokehouses soften it)
  4. population growth (+1 max, never in winter, capped)
  5. active queue action: cost check / per-tick effect / XP / completion
  6. scripted events: raiders, the Great Cold starting and ending
  7. terminal checks: depopulation collapse, victory

advance_year() is shared verbatim by the live tick() and by the preview
(preview.py).  Everything outward-facing (log lines, popups, achievements,
pause policy) goes through an EffectsSink: RunSink records it on the live
state, DiscardSink drops it.  Nothing here prints, sleeps or touches disk.
"""

import abc
import copy
import math
from typing import Optional

from .actions import get_action_def
from .economy import (
    PRESERVED_SPOILAGE_DIVISOR, INITIAL_FOOD_STORAGE, INITIAL_MAX_POP,
    barracks_xp_multiplier, building_count, defense_multiplier,
    effective_duration, population_output_multiplier, scaled_wood_cost,
    smokehouse_spoilage_multiplier, spoilage, tech_multiplier, total_defense,
)
from .models import (
    EventPopup, GameState, LogEntry, QueueEntry, Resources, RunState,
    SEVERITY_DANGER, SEVERITY_INFO, SEVERITY_SUCCESS, SEVERITY_WARNING,
    STATUS_COLLAPSED, STATUS_IDLE, STATUS_PAUSED, STATUS_RUNNING, STATUS_VICTORY,
)
from .resolver import resolve_logical_index
from .skills import add_xp, output_multiplier

# ══════════════════════════════════════════════════════════════════════════
# Simulation constants (not configurable per run)
# ══════════════════════════════════════════════════════════════════════════

FOOD_PER_POP          = 1
WINTER_FOOD_PER_POP   = 2       # consumption doubles during the Great Cold
POP_GROWTH_THRESHOLD  = 20      # surplus food needed before a birth
MAX_YEAR              = 10000
XP_PER_TICK           = 1

RAIDER_YEAR              = 1500
RAIDER_STRENGTH_REQUIRED = 250  # compared against total defense
RAIDER_FOOD_REWARD       = 50
RAIDER_WOOD_REWARD       = 20
RAIDER_MILITARY_XP       = 50

WINTER_START = 4000             # inclusive
WINTER_END   = 4500             # inclusive

SPOILAGE_LOG_EVERY = 500        # years between spoilage log lines

START_FOOD       = 2
START_POPULATION = 2

QUEUE_COMPLETE_MSG = 'Queue complete. Add more actions or toggle repeat.'
STARVED_REASON     = 'Your civilization starved. All population perished.'
VICTORY_MSG        = 'Civilization survived the full epoch! Victory!'

DISASTERS: list[dict] = [
    {'id': 'raider', 'name': 'Raider Era', 'year': RAIDER_YEAR},
    {'id': 'winter', 'name': 'Great Cold', 'year': WINTER_START},
]

# id → name, description, starting bonus (food, wood), log line when earned
ACHIEVEMENTS: dict[str, dict] = {
    'reach_raid': {
        'name': 'The Raider Era', 'description': 'Reach year 1,500',
        'bonus': (10, 0),
        'message': 'Achievement: The Raider Era — future runs start with +10 food.',
    },
    'survive_raid': {
        'name': 'Raiders Repelled', 'description': 'Survive the raider attack',
        'bonus': (10, 0),
        'message': 'Achievement: Raiders Repelled — future runs start with +10 food.',
    },
    'reach_winter': {
        'name': 'The Great Cold', 'description': 'Reach year 4,000',
        'bonus': (0, 10),
        'message': 'Achievement: The Great Cold — future runs start with +10 wood.',
    },
}

# First-run tips: (year, event_id, title, message).  Shown, never pausing.
TUTORIALS: list[tuple] = [
    (100, 'tutorial_intro', 'A New Beginning',
     'Your civilization starts small: a few people and a patch of farmland. '
     'For now, farming is all you know. As your food stores fill, new skills '
     'will emerge. When this generation falls, some knowledge carries forward.'),
    (500, 'tutorial_skills', 'Skills',
     'Watch how your people are progressing. Skills persist between generations.'),
    (1000, 'tutorial_hints', 'Hints',
     'Not sure what to do next? Ask for a hint on what to explore.'),
]


# ══════════════════════════════════════════════════════════════════════════
# Fresh-run construction
# ══════════════════════════════════════════════════════════════════════════

def achievement_bonuses(achievements) -> tuple:
    food = sum(ACHIEVEMENTS[a]['bonus'][0] for a in achievements if a in ACHIEVEMENTS)
    wood = sum(ACHIEVEMENTS[a]['bonus'][1] for a in achievements if a in ACHIEVEMENTS)
    return food, wood


def create_initial_resources(achievements=()) -> Resources:
    """Canonical fresh-run baseline, plus any earned starting bonuses."""
    food, wood = achievement_bonuses(achievements)
    return Resources(
        food=START_FOOD + food,
        population=START_POPULATION,
        max_population=INITIAL_MAX_POP,
        wood=wood,
        food_storage=INITIAL_FOOD_STORAGE,
    )


def create_initial_run(queue: list = None, achievements=(), *,
                       auto_restart: bool = True,
                       repeat_last_action: bool = True) -> RunState:
    return RunState(
        max_year=MAX_YEAR,
        resources=create_initial_resources(achievements),
        queue=list(queue or []),
        status=STATUS_IDLE,
        auto_restart=auto_restart,
        repeat_last_action=repeat_last_action,
    )


def is_winter(year: int) -> bool:
    return WINTER_START <= year <= WINTER_END


def current_entry(run: RunState) -> Optional[QueueEntry]:
    """Active queue entry, the last entry again when exhausted and repeating, else None."""
    if not run.queue:
        return None
    resolved = resolve_logical_index(run.queue, run.current_queue_index)
    if resolved is not None:
        return run.queue[resolved.array_index]
    if run.repeat_last_action:
        return run.queue[-1]
    return None


# ══════════════════════════════════════════════════════════════════════════
# Effects sinks
# ══════════════════════════════════════════════════════════════════════════

class EffectsSink(abc.ABC):
    """Receives everything a year produces besides the run's own numbers."""

    @abc.abstractmethod
    def log(self, year: int, message: str, severity: str = SEVERITY_INFO) -> None:
        """Record one narrated line."""

    @abc.abstractmethod
    def popup(self, event: EventPopup) -> None:
        """Queue a dismissible notice for the controller."""

    @abc.abstractmethod
    def achievement(self, achievement_id: str) -> bool:
        """Record an achievement; True only the first time it is earned."""

    @abc.abstractmethod
    def has_seen(self, event_id: str) -> bool:
        """Whether the player has acknowledged this event type before."""

    @abc.abstractmethod
    def should_pause(self, event_id: str) -> bool:
        """Whether this event type halts the run until dismissed."""


class RunSink(EffectsSink):
    """Live sink: writes into the (already copied) GameState it wraps."""

    def __init__(self, state: GameState) -> None:
        self._state = state

    def log(self, year: int, message: str, severity: str = SEVERITY_INFO) -> None:
        self._state.run.log.append(LogEntry(year, message, severity))

    def popup(self, event: EventPopup) -> None:
        self._state.run.pending_events.append(event)

    def achievement(self, achievement_id: str) -> bool:
        if achievement_id in self._state.achievements:
            return False
        self._state.achievements.append(achievement_id)
        return True

    def has_seen(self, event_id: str) -> bool:
        return event_id in self._state.seen_event_types

    def should_pause(self, event_id: str) -> bool:
        return event_id not in self._state.auto_dismiss_event_types


class DiscardSink(EffectsSink):
    """Speculative sink: nothing leaves the simulation, nothing pauses it."""

    def log(self, year: int, message: str, severity: str = SEVERITY_INFO) -> None:
        pass

    def popup(self, event: EventPopup) -> None:
        pass

    def achievement(self, achievement_id: str) -> bool:
        return False

    def has_seen(self, event_id: str) -> bool:
        return True

    def should_pause(self, event_id: str) -> bool:
        return False


# ══════════════════════════════════════════════════════════════════════════
# Year pipeline
# ══════════════════════════════════════════════════════════════════════════

def _consume_food(res: Resources, winter: bool) -> float:
    """Eat ordinary food first, then preserved.  Returns the unmet need."""
    need = res.population * (WINTER_FOOD_PER_POP if winter else FOOD_PER_POP)
    from_food = min(res.food, need)
    res.food -= from_food
    need -= from_food
    if need > 0:
        from_preserved = min(res.preserved_food, need)
        res.preserved_food -= from_preserved
        need -= from_preserved
    return need


def _apply_spoilage(run: RunState, sink: EffectsSink) -> None:
    res  = run.resources
    mult = smokehouse_spoilage_multiplier(res.smokehouses_built)
    lost      = spoilage(res.food, res.food_storage) * mult
    preserved = spoilage(res.preserved_food, res.food_storage, PRESERVED_SPOILAGE_DIVISOR) * mult
    total = lost + preserved
    if total <= 0.001:
        return
    res.food           = max(0.0, res.food - lost)
    res.preserved_food = max(0.0, res.preserved_food - preserved)
    run.total_food_spoiled += total
    if run.year % SPOILAGE_LOG_EVERY == 0:
        sink.log(run.year,
                 f'Food spoilage: {total:.1f}/yr lost. '
                 f'Total spoiled: {math.floor(run.total_food_spoiled)}.',
                 SEVERITY_WARNING)


def _skip_action(run: RunState) -> None:
    run.current_action_progress = 0
    run.current_queue_index += 1


def _process_action(run: RunState, skills: dict, sink: EffectsSink,
                    winter: bool, unmet: float, pop_at_start: int) -> dict:
    """Advance the active queue action by one year.  Returns the new skills."""
    entry = current_entry(run)
    if entry is None:
        if run.queue and not run.repeat_last_action:
            run.status = STATUS_PAUSED
            sink.log(run.year, QUEUE_COMPLETE_MSG, SEVERITY_INFO)
        return skills

    action = get_action_def(entry.action_id)
    res    = run.resources
    if action is None:
        _skip_action(run)
        return skills
    starting = run.current_action_progress == 0
    if starting and action.is_research and action.id in res.researched_techs:
        _skip_action(run)
        return skills

    level    = skills[action.skill].level
    duration = effective_duration(action.base_duration, level, res.population,
                                  action.category, action.completion_only)
    mult     = (output_multiplier(level)
                * tech_multiplier(res.researched_techs, action.id)
                * population_output_multiplier(res.population, action.category))

    cost = 0
    if action.wood_cost:
        cost = scaled_wood_cost(action.wood_cost, building_count(res, action.id))
    if starting and cost > res.wood:
        sink.log(run.year,
                 f'Cannot {action.name}: need {cost} wood '
                 f'(have {math.floor(res.wood)}).',
                 SEVERITY_WARNING)
        _skip_action(run)
        return skills
    if starting and cost:
        res.wood -= cost

    action.per_tick(res, mult, winter)

    xp = XP_PER_TICK
    if action.id in ('train_militia', 'scout'):
        xp *= barracks_xp_multiplier(res.barracks_built)
    skills = {**skills, action.skill: add_xp(skills[action.skill], xp)}

    if unmet <= 0:
        run.last_action_population = pop_at_start
    run.current_action_progress += 1

    if run.current_action_progress >= duration:
        outcome = action.on_complete(res, mult)
        if outcome:
            sink.log(run.year, *outcome)
        _skip_action(run)
    return skills


def _log_run_summary(run: RunState, sink: EffectsSink) -> None:
    """One line mirroring the run-history card: pop, defense, tech, leftovers."""
    res   = run.resources
    parts = [f'Pop {res.population}/{res.max_population}',
             f'Defense {math.floor(total_defense(res))}']
    if res.researched_techs:
        parts.append(f'Tech {len(res.researched_techs)}')
    waste = []
    if math.floor(res.food) > 0:
        waste.append(f'{math.floor(res.food)} food')
    if math.floor(res.wood) > 0:
        waste.append(f'{math.floor(res.wood)} wood')
    if math.floor(run.total_food_spoiled) > 0:
        waste.append(f'{math.floor(run.total_food_spoiled)} spoiled')
    if waste:
        parts.append('Remaining: ' + ', '.join(waste))
    sink.log(run.year, ' · '.join(parts), SEVERITY_INFO)


def _raise_event(run: RunState, sink: EffectsSink, event_id: str, title: str,
                 message: str, severity: str) -> None:
    sink.popup(EventPopup(event_id, title, message, severity, run.year,
                          first_time=not sink.has_seen(event_id)))
    if sink.should_pause(event_id):
        run.status = STATUS_PAUSED
        run.paused_by_event = True


def _earn(run: RunState, sink: EffectsSink, achievement_id: str) -> None:
    if sink.achievement(achievement_id):
        sink.log(run.year, ACHIEVEMENTS[achievement_id]['message'], SEVERITY_SUCCESS)


def _raider_attack(run: RunState, skills: dict, sink: EffectsSink) -> dict:
    res = run.resources
    _earn(run, sink, 'reach_raid')
    defense = total_defense(res)
    if defense < RAIDER_STRENGTH_REQUIRED:
        detail = (f'Total defense {math.floor(defense)} '
                  f'({math.floor(res.military_strength)} base × '
                  f'{defense_multiplier(res):.2f})')
        if sink.has_seen('raider_survived'):
            tail = f'< {RAIDER_STRENGTH_REQUIRED} required.'
        else:
            tail = 'was not enough.'
        run.status = STATUS_COLLAPSED
        run.collapse_reason = f'Raiders attacked at year {RAIDER_YEAR}. {detail} {tail}'
        sink.log(run.year, run.collapse_reason, SEVERITY_DANGER)
        _log_run_summary(run, sink)
        return skills

    res.food += RAIDER_FOOD_REWARD
    res.wood += RAIDER_WOOD_REWARD
    skills = {**skills, 'military': add_xp(skills['military'], RAIDER_MILITARY_XP)}
    msg = (f'Raiders repelled! Defense held ({math.floor(defense)}/'
           f'{RAIDER_STRENGTH_REQUIRED}). Gained {RAIDER_FOOD_REWARD} food, '
           f'{RAIDER_WOOD_REWARD} wood, and military XP.')
    sink.log(run.year, msg, SEVERITY_SUCCESS)
    _earn(run, sink, 'survive_raid')
    _raise_event(run, sink, 'raider_survived', 'Raiders Repelled!', msg, SEVERITY_SUCCESS)
    return skills


def _winter_begins(run: RunState, sink: EffectsSink) -> None:
    res = run.resources
    _earn(run, sink, 'reach_winter')
    note = ''
    if res.preserved_food > 0:
        note = f' Preserved: {math.floor(res.preserved_food)}.'
    msg = (f'The Great Cold begins. Farming disabled, food consumption doubled. '
           f'Food: {math.floor(res.food)} '
           f'(spoilage: {spoilage(res.food, res.food_storage):.1f}/yr).{note}')
    sink.log(run.year, msg, SEVERITY_WARNING)
    _raise_event(run, sink, 'winter_start', 'The Great Cold', msg, SEVERITY_WARNING)


def _winter_ends(run: RunState, sink: EffectsSink) -> None:
    res = run.resources
    if res.population > 0 and (res.food > 0 or res.preserved_food > 0):
        msg = 'The Great Cold ends. Your civilization survived!'
        sink.log(run.year, msg, SEVERITY_SUCCESS)
        _raise_event(run, sink, 'winter_end', 'Spring Returns', msg, SEVERITY_SUCCESS)


def advance_year(run: RunState, skills: dict, sink: EffectsSink, *,
                 winter_enabled: bool = True) -> dict:
    """Advance *run* by exactly one year, in place.  Returns the new skills mapping.

    *run* must be a private copy; *skills* is never mutated.  With
    winter_enabled=False the Great Cold window has no seasonal effect
    (events still fire on their years).
    """
    res          = run.resources
    pop_at_start = res.population
    run.year    += 1
    winter       = winter_enabled and is_winter(run.year)

    # ── Consumption and starvation ────────────────────────────────────────
    unmet = _consume_food(res, winter)
    if unmet > 0:
        deaths = min(res.population, math.ceil(unmet / 2))
        res.population = max(0, res.population - deaths)
        if deaths > 0:
            sink.log(run.year, f'{deaths} people starved.', SEVERITY_DANGER)

    # ── Spoilage and growth ───────────────────────────────────────────────
    _apply_spoilage(run, sink)
    if (not winter
            and res.population < res.max_population
            and res.food > res.population * FOOD_PER_POP + POP_GROWTH_THRESHOLD):
        res.population += 1

    # ── Active action ─────────────────────────────────────────────────────
    skills = _process_action(run, skills, sink, winter, unmet, pop_at_start)

    # ── Scripted events ───────────────────────────────────────────────────
    if run.year == RAIDER_YEAR:
        skills = _raider_attack(run, skills, sink)
    if run.year == WINTER_START:
        _winter_begins(run, sink)
    if run.year == WINTER_END:
        _winter_ends(run, sink)

    # ── Terminal checks ───────────────────────────────────────────────────
    if res.population <= 0:
        run.status = STATUS_COLLAPSED
        run.collapse_reason = STARVED_REASON
        sink.log(run.year, STARVED_REASON, SEVERITY_DANGER)
        _log_run_summary(run, sink)
    if run.year >= run.max_year and run.status == STATUS_RUNNING:
        run.status = STATUS_VICTORY
        sink.log(run.year, VICTORY_MSG, SEVERITY_SUCCESS)
        _log_run_summary(run, sink)
    return skills


# ══════════════════════════════════════════════════════════════════════════
# Live tick
# ══════════════════════════════════════════════════════════════════════════

def tick(state: GameState) -> GameState:
    """Return the GameState one year later.  No-op unless the run is running."""
    if state.run.status != STATUS_RUNNING:
        return state

    new  = copy.deepcopy(state)
    run  = new.run
    new.skills = advance_year(run, new.skills, RunSink(new))

    if new.total_runs == 0:
        for year, event_id, title, message in TUTORIALS:
            if run.year == year:
                run.pending_events.append(
                    EventPopup(event_id, title, message, SEVERITY_SUCCESS, year))

    for disaster in DISASTERS:
        if run.year >= disaster['year'] and disaster['id'] not in new.encountered_disasters:
            new.encountered_disasters.append(disaster['id'])

    if is_winter(run.year) and run.resources.population > 0:
        new.total_winter_years_survived += 1
    return new
