"""
test_metrics_dashboard.py — pytest suite for epoch_sim.metrics and epoch_sim.dashboard_bridge
=============================================================================================
Covers: per-year CSV rows, incremental event rows, the run summary, and the
atomic dashboard snapshot (shape, queue rows, rolling history, preview block).
"""

import csv
import json

import pytest

from epoch_sim import dashboard_bridge
from epoch_sim.engine import tick
from epoch_sim.metrics import RunMetricsLogger
from epoch_sim.models import QueueEntry, REPEAT_FOREVER, STATUS_RUNNING
from epoch_sim.preview import simulate_queue_preview
from epoch_sim.session import new_game_state


# ─────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────

def _running_farm(food=50):
    state = new_game_state()
    state.run.queue  = [QueueEntry('q_1', 'farm', 2), QueueEntry('q_2', 'gather_wood', REPEAT_FOREVER)]
    state.run.status = STATUS_RUNNING
    state.run.resources.food = food
    return state


def _rows(path):
    with open(path, newline='', encoding='utf-8') as f:
        return list(csv.DictReader(f))


@pytest.fixture(autouse=True)
def _fresh_history():
    dashboard_bridge.reset_history()
    yield
    dashboard_bridge.reset_history()


# ─────────────────────────────────────────────────────
# RunMetricsLogger
# ─────────────────────────────────────────────────────

class TestRunMetricsLogger:
    def test_one_row_per_year(self, tmp_path):
        logger = RunMetricsLogger(str(tmp_path), label='t')
        state  = _running_farm()
        for _ in range(5):
            state = tick(state)
            logger.record_year(state)
        logger.close()

        rows = _rows(tmp_path / 'years_t.csv')
        assert [int(r['year']) for r in rows] == [1, 2, 3, 4, 5]
        assert rows[0]['status'] == 'running'
        assert rows[0]['farming_level'] == '1'

    def test_log_lines_written_once(self, tmp_path):
        logger = RunMetricsLogger(str(tmp_path), label='t')
        state  = _running_farm(food=0)
        state.run.resources.population = 1
        state = tick(state)              # starves and collapses
        logger.record_year(state)
        logger.record_year(state)
        logger.close()

        events = _rows(tmp_path / 'events_t.csv')
        messages = [e['message'] for e in events]
        assert messages.count('1 people starved.') == 1
        assert events[0]['severity'] == 'danger'

    def test_finalize_summary(self, tmp_path):
        logger = RunMetricsLogger(str(tmp_path), label='t')
        state  = _running_farm()
        for _ in range(3):
            state = tick(state)
            logger.record_year(state)
        summary = logger.finalize()
        logger.close()

        assert summary['runs'] == 1
        assert summary['years_recorded'] == 3
        assert summary['final_year'] == 3
        assert summary['peak_population'] == 2
        assert len(_rows(tmp_path / 'run_summaries.csv')) == 1

    def test_summaries_append_across_sessions(self, tmp_path):
        for label in ('a', 'b'):
            logger = RunMetricsLogger(str(tmp_path), label=label)
            logger.finalize()
            logger.close()
        assert [r['label'] for r in _rows(tmp_path / 'run_summaries.csv')] == ['a', 'b']


# ─────────────────────────────────────────────────────
# Dashboard snapshot
# ─────────────────────────────────────────────────────

class TestDashboardSnapshot:
    def test_snapshot_shape(self, tmp_path):
        path  = tmp_path / 'dash.json'
        state = tick(_running_farm())
        dashboard_bridge.write_dashboard_snapshot(state, path)

        snap = json.loads(path.read_text(encoding='utf-8'))
        assert snap['year'] == 1
        assert snap['status'] == 'running'
        assert snap['run'] == 1
        assert set(snap['skills']) == {'farming', 'building', 'research', 'military'}
        assert snap['resources']['population'] == 2
        assert 'preview' not in snap
        assert not path.with_suffix('.tmp').exists()

    def test_queue_rows_mark_active_entry(self, tmp_path):
        path  = tmp_path / 'dash.json'
        state = _running_farm()
        for _ in range(12):
            state = tick(state)
        dashboard_bridge.write_dashboard_snapshot(state, path)

        rows = json.loads(path.read_text(encoding='utf-8'))['queue']
        assert [r['active'] for r in rows] == [True, False]
        assert rows[0]['completions'] == 1
        assert 0 < rows[0]['progress'] < 1

    def test_history_accumulates(self, tmp_path):
        path  = tmp_path / 'dash.json'
        state = _running_farm()
        for _ in range(3):
            state = tick(state)
            dashboard_bridge.write_dashboard_snapshot(state, path)
        history = json.loads(path.read_text(encoding='utf-8'))['history']
        assert [h['year'] for h in history] == [1, 2, 3]

    def test_preview_block(self, tmp_path):
        path    = tmp_path / 'dash.json'
        state   = _running_farm()
        preview = simulate_queue_preview(state.run.queue, state.skills, max_year=20)
        dashboard_bridge.write_dashboard_snapshot(state, path, preview=preview)
        snap = json.loads(path.read_text(encoding='utf-8'))
        assert snap['preview']['years_used'] == 20
        assert snap['preview']['collapsed'] is False
