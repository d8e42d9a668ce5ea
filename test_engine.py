"""
test_engine.py — pytest suite for epoch_sim.engine
==================================================
Covers: the no-op guard, purity and determinism of tick(), consumption and
starvation, spoilage, growth, action processing (skip, completion, one-shot
research), scripted events (raiders, the Great Cold), victory, and sinks.
"""

import copy

import pytest

from epoch_sim.engine import (
    DiscardSink, QUEUE_COMPLETE_MSG, RunSink, STARVED_REASON, VICTORY_MSG,
    advance_year, tick,
)
from epoch_sim.models import (
    QueueEntry, REPEAT_FOREVER, STATUS_COLLAPSED, STATUS_IDLE, STATUS_PAUSED,
    STATUS_RUNNING, STATUS_VICTORY,
)
from epoch_sim.session import new_game_state


# ─────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────

def _entry(action_id, repeat=REPEAT_FOREVER, n=1):
    return QueueEntry(f'q_{n}', action_id, repeat)


def _running(queue=(), year=0, **resources):
    state = new_game_state()
    state.run.queue  = list(queue)
    state.run.year   = year
    state.run.status = STATUS_RUNNING
    for name, value in resources.items():
        setattr(state.run.resources, name, value)
    return state


def _messages(state):
    return [e.message for e in state.run.log]


# ─────────────────────────────────────────────────────
# Guard, purity, determinism
# ─────────────────────────────────────────────────────

class TestTickGuard:
    def test_idle_run_is_untouched(self):
        state = new_game_state()
        assert state.run.status == STATUS_IDLE
        assert tick(state) is state

    def test_paused_run_is_untouched(self):
        state = _running([_entry('farm')])
        state.run.status = STATUS_PAUSED
        assert tick(state) is state

    def test_input_not_mutated(self):
        state  = _running([_entry('farm')], food=50)
        before = copy.deepcopy(state)
        tick(state)
        assert state == before

    def test_deterministic(self):
        state = _running([_entry('farm')], food=50)
        assert tick(state) == tick(state)

    def test_year_advances_by_one(self):
        assert tick(_running([_entry('farm')], year=41)).run.year == 42

    @pytest.mark.parametrize('status', [STATUS_COLLAPSED, STATUS_VICTORY])
    def test_finished_run_is_untouched(self, status):
        state = _running([_entry('farm')], food=50, year=1500)
        state.run.status = status
        before = copy.deepcopy(state)
        after  = tick(tick(state))
        assert after is state
        assert after.run.year == 1500
        assert after.run.status == status
        assert after.run.resources == before.run.resources
        assert after == before


# ─────────────────────────────────────────────────────
# Consumption and starvation
# ─────────────────────────────────────────────────────

class TestConsumption:
    def test_starvation_then_collapse(self):
        state = tick(_running(food=0))
        assert state.run.resources.population == 1
        assert '1 people starved.' in _messages(state)
        assert state.run.status == STATUS_RUNNING

        state = tick(state)
        assert state.run.resources.population == 0
        assert state.run.status == STATUS_COLLAPSED
        assert state.run.collapse_reason == STARVED_REASON

    def test_preserved_food_eaten_after_food(self):
        state = tick(_running(food=1, preserved_food=5))
        res = state.run.resources
        assert res.food == 0
        assert res.preserved_food == pytest.approx(4)
        assert res.population == 2

    def test_deaths_are_half_the_shortfall_rounded_up(self):
        state = tick(_running(food=0, population=3, max_population=3))
        assert state.run.resources.population == 1

    def test_population_never_negative(self):
        state = tick(_running(food=0, population=1, year=4100))
        assert state.run.resources.population == 0


# ─────────────────────────────────────────────────────
# Spoilage and growth
# ─────────────────────────────────────────────────────

class TestSpoilageAndGrowth:
    def test_spoilage_applied_after_eating(self):
        state = tick(_running(food=400, food_storage=200))
        lost  = 398 ** 2 / (400 * 200)
        assert state.run.resources.food == pytest.approx(398 - lost)
        assert state.run.total_food_spoiled == pytest.approx(lost)

    def test_growth_with_surplus_and_room(self):
        state = tick(_running(food=100, max_population=5))
        assert state.run.resources.population == 3

    def test_no_growth_at_capacity(self):
        state = tick(_running(food=100))
        assert state.run.resources.population == 2

    def test_no_growth_in_winter(self):
        state = tick(_running(food=500, food_storage=2000, max_population=5, year=4100))
        assert state.run.resources.population == 2

    def test_population_stays_within_bounds(self):
        state = _running([_entry('farm')], food=30)
        for _ in range(300):
            state = tick(state)
            res = state.run.resources
            assert 0 <= res.population <= res.max_population


# ─────────────────────────────────────────────────────
# Action processing
# ─────────────────────────────────────────────────────

class TestActions:
    def test_farm_produces_food_and_xp(self):
        state = tick(_running([_entry('farm')], food=10))
        # 10 - 2 eaten + 2 × 1.05 (level 1, two workers)
        assert state.run.resources.food == pytest.approx(10.1)
        assert state.skills['farming'].xp == 1
        assert state.run.current_action_progress == 1
        assert state.run.last_action_population == 2

    def test_farm_idle_in_winter(self):
        state = tick(_running([_entry('farm')], food=100, food_storage=2000, year=4099))
        assert state.run.resources.food == pytest.approx(96 - 96 ** 2 / (400 * 2000))

    def test_skip_when_wood_short(self):
        state = _running([_entry('build_hut', 1)], food=10)
        state.run.repeat_last_action = False
        state = tick(state)
        assert state.run.current_queue_index == 1
        assert state.run.current_action_progress == 0
        assert state.run.resources.wood == 0
        assert 'Cannot Build Hut: need 10 wood (have 0).' in _messages(state)

        state = tick(state)
        assert state.run.status == STATUS_PAUSED
        assert _messages(state)[-1] == QUEUE_COMPLETE_MSG

    def test_empty_queue_just_passes_time(self):
        state = _running(food=100)
        state.run.repeat_last_action = False
        state = tick(state)
        assert state.run.status == STATUS_RUNNING
        assert state.run.current_queue_index == 0

    def test_researched_tech_skipped(self):
        state = tick(_running([_entry('research_tools', 1), _entry('farm', n=2)],
                              food=10, researched_techs=['research_tools']))
        assert state.run.current_queue_index == 1
        assert state.run.current_action_progress == 0
        assert state.skills['research'].xp == 0

    def test_hut_completes_after_duration(self):
        state = _running([_entry('build_hut', 1)], food=100, wood=10)
        for _ in range(19):
            state = tick(state)
        assert state.run.resources.max_population == 2
        assert state.run.current_action_progress == 19
        assert state.run.resources.wood == 0

        state = tick(state)
        assert state.run.resources.max_population == 5
        assert state.run.current_queue_index == 1
        assert state.run.current_action_progress == 0
        assert 'Hut built. Population capacity now 5.' in _messages(state)

    def test_repeat_last_action_keeps_running_exhausted_queue(self):
        state = _running([_entry('farm', 1)], food=10)
        for _ in range(15):
            state = tick(state)
        assert state.run.status == STATUS_RUNNING
        assert state.run.current_queue_index == 1
        assert state.skills['farming'].xp == 15


# ─────────────────────────────────────────────────────
# Scripted events
# ─────────────────────────────────────────────────────

class TestRaiders:
    def test_weak_defense_collapses(self):
        state = tick(_running([_entry('farm')], food=50, year=1499))
        assert state.run.status == STATUS_COLLAPSED
        assert state.run.collapse_reason.startswith('Raiders attacked at year 1500.')
        assert 'Total defense 0' in state.run.collapse_reason
        assert 'reach_raid' in state.achievements
        assert 'raider' in state.encountered_disasters

    def test_strong_defense_repels(self):
        state = tick(_running([_entry('train_militia')], food=500, food_storage=2000,
                              military_strength=260, year=1499))
        res = state.run.resources
        assert res.wood == 20
        assert res.food == pytest.approx(498 - 498 ** 2 / (400 * 2000) + 50)
        # one year of training plus the battle bonus
        assert state.skills['military'].xp == 51
        assert state.achievements == ['reach_raid', 'survive_raid']
        assert state.run.status == STATUS_PAUSED
        assert state.run.paused_by_event
        popup = state.run.pending_events[0]
        assert popup.event_id == 'raider_survived'
        assert popup.first_time

    def test_auto_dismissed_event_does_not_pause(self):
        state = _running([_entry('train_militia')], food=500, food_storage=2000,
                         military_strength=260, year=1499)
        state.auto_dismiss_event_types = ['raider_survived']
        state = tick(state)
        assert state.run.status == STATUS_RUNNING
        assert not state.run.paused_by_event

    def test_militia_from_year_zero_repels_once(self):
        state = _running([_entry('train_militia')], food=100_000, food_storage=1_000_000)
        for _ in range(1499):
            state = tick(state)
        assert state.run.status == STATUS_RUNNING
        assert state.skills['military'].xp == 1499

        quiet = copy.deepcopy(state)
        quiet.run.year = 1400
        quiet = tick(quiet)
        raided = tick(state)

        assert raided.run.year == 1500
        assert raided.run.resources.food == pytest.approx(quiet.run.resources.food + 50)
        assert raided.run.resources.wood == 20
        assert quiet.run.resources.wood == 0
        assert raided.skills['military'].xp == 1499 + 1 + 50
        assert raided.achievements.count('survive_raid') == 1

        raided.run.status = STATUS_RUNNING
        raided.run.paused_by_event = False
        raided.run.pending_events = []
        later = tick(raided)
        assert later.run.resources.wood == 20
        assert later.skills['military'].xp == 1551
        assert later.achievements.count('survive_raid') == 1
        assert [e.event_id for e in later.run.pending_events] == []


class TestGreatCold:
    def test_winter_begins(self):
        state = tick(_running([_entry('farm')], food=500, food_storage=2000, year=3999))
        assert state.run.status == STATUS_PAUSED
        assert state.run.pending_events[0].event_id == 'winter_start'
        assert 'reach_winter' in state.achievements
        assert any('The Great Cold begins' in m for m in _messages(state))
        assert state.total_winter_years_survived == 1

    def test_winter_ends(self):
        state = tick(_running([_entry('farm')], food=500, food_storage=2000, year=4499))
        assert state.run.pending_events[0].event_id == 'winter_end'
        assert 'The Great Cold ends. Your civilization survived!' in _messages(state)

    def test_winter_doubles_consumption(self):
        state = tick(_running(food=10, year=4100))
        assert state.run.resources.food == pytest.approx(6)

    def test_winter_can_be_disabled(self):
        run = _running([_entry('farm')], food=100, food_storage=2000, year=4099).run
        advance_year(run, new_game_state().skills, DiscardSink(), winter_enabled=False)
        assert run.resources.food > 100


class TestVictoryAndTutorials:
    def test_victory_at_max_year(self):
        state = tick(_running([_entry('farm')], food=100, year=9999))
        assert state.run.status == STATUS_VICTORY
        assert VICTORY_MSG in _messages(state)

    def test_first_run_tutorial_does_not_pause(self):
        state = tick(_running([_entry('farm')], food=50, year=99))
        assert state.run.pending_events[0].event_id == 'tutorial_intro'
        assert state.run.status == STATUS_RUNNING

    def test_no_tutorials_after_first_run(self):
        state = _running([_entry('farm')], food=50, year=99)
        state.total_runs = 1
        assert tick(state).run.pending_events == []


# ─────────────────────────────────────────────────────
# Sinks
# ─────────────────────────────────────────────────────

class TestSinks:
    def test_discard_sink_never_pauses(self):
        sink = DiscardSink()
        assert sink.has_seen('anything')
        assert not sink.should_pause('raider_survived')
        assert not sink.achievement('reach_raid')

    def test_run_sink_records_achievement_once(self):
        state = new_game_state()
        sink  = RunSink(state)
        assert sink.achievement('reach_raid')
        assert not sink.achievement('reach_raid')
        assert state.achievements == ['reach_raid']

    def test_run_sink_pause_policy(self):
        state = new_game_state()
        state.auto_dismiss_event_types = ['winter_end']
        sink = RunSink(state)
        assert sink.should_pause('winter_start')
        assert not sink.should_pause('winter_end')
