"""
test_preview.py — pytest suite for epoch_sim.preview
====================================================
Covers: empty and exhausted queues, collapse reporting, skill isolation,
idempotence, and agreement with the live tick.
"""

import copy

from epoch_sim.engine import tick
from epoch_sim.models import QueueEntry, REPEAT_FOREVER, STATUS_RUNNING
from epoch_sim.preview import simulate_queue_preview
from epoch_sim.session import new_game_state
from epoch_sim.skills import initial_skills


# ─────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────

FARM_FOREVER = [QueueEntry('q_1', 'farm', REPEAT_FOREVER)]


# ─────────────────────────────────────────────────────
# Simple outcomes
# ─────────────────────────────────────────────────────

class TestPreviewOutcomes:
    def test_empty_queue(self):
        preview = simulate_queue_preview([], initial_skills())
        assert preview.years_used == 0
        assert not preview.collapsed
        assert preview.resources.population == 2

    def test_exhausted_queue_stops_without_consuming_a_year(self):
        preview = simulate_queue_preview([QueueEntry('q_1', 'farm', 1)],
                                         initial_skills(), repeat_last_action=False)
        assert preview.years_used == 10
        assert not preview.collapsed
        assert preview.collapse_action_id is None

    def test_undefended_queue_falls_to_raiders(self):
        preview = simulate_queue_preview(FARM_FOREVER, initial_skills())
        assert preview.collapsed
        assert preview.years_used == 1500
        assert preview.collapse_action_id == 'farm'

    def test_short_horizon(self):
        preview = simulate_queue_preview(FARM_FOREVER, initial_skills(), max_year=50)
        assert preview.years_used == 50
        assert not preview.collapsed

    def test_achievement_bonus_in_baseline(self):
        preview = simulate_queue_preview([], initial_skills(), achievements=['reach_winter'])
        assert preview.resources.wood == 10


# ─────────────────────────────────────────────────────
# Isolation
# ─────────────────────────────────────────────────────

class TestPreviewIsolation:
    def test_caller_skills_untouched(self):
        skills = initial_skills()
        before = copy.deepcopy(skills)
        simulate_queue_preview(FARM_FOREVER, skills, max_year=300)
        assert skills == before

    def test_idempotent(self):
        skills = initial_skills()
        first  = simulate_queue_preview(FARM_FOREVER, skills, max_year=400)
        second = simulate_queue_preview(FARM_FOREVER, skills, max_year=400)
        assert first == second

    def test_matches_live_run(self):
        skills  = initial_skills()
        preview = simulate_queue_preview(FARM_FOREVER, skills, True)

        state = new_game_state()
        state.run.queue  = list(FARM_FOREVER)
        state.run.status = STATUS_RUNNING
        while state.run.status == STATUS_RUNNING:
            state = tick(state)

        assert preview.years_used == state.run.year
        assert preview.resources == state.run.resources
        assert preview.collapsed
