# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
dashboard_bridge.py — Periodic JSON snapshot writer for the Streamlit live dashboard.

Call write_dashboard_snapshot() from sim.py every DASHBOARD_WRITE_EVERY ticks.
Uses an atomic rename-swap so the dashboard process never reads a half-written file.

No Streamlit dependency — this runs inside the main simulation process.
"""

import collections
import json
import math
import os
import pathlib

from . import config
from .actions import get_action_def
from .economy import effective_duration, total_defense
from .models import GameState
from .resolver import count_completions, resolve_logical_index

_HISTORY_MAX = 400   # rolling resource samples kept for the charts

# ── Rolling resource history (module-level, survives across calls) ────────
_history: collections.deque = collections.deque(maxlen=_HISTORY_MAX)


def reset_history() -> None:
    _history.clear()


# ──────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────

def _queue_rows(state: GameState) -> list:
    """One row per queue slot: action, repeats, completions, active flag, progress."""
    run      = state.run
    queue    = run.queue
    done     = count_completions(queue, run.current_queue_index, run.repeat_last_action)
    resolved = resolve_logical_index(queue, run.current_queue_index)
    if resolved is not None:
        active = resolved.array_index
    elif run.repeat_last_action and queue:
        active = len(queue) - 1
    else:
        active = None

    rows = []
    for i, (entry, n) in enumerate(zip(queue, done)):
        action   = get_action_def(entry.action_id)
        progress = 0.0
        if i == active and action is not None:
            duration = effective_duration(
                action.base_duration, state.skills[action.skill].level,
                run.resources.population, action.category, action.completion_only)
            progress = round(run.current_action_progress / duration, 3)
        rows.append({
            'uid':          entry.uid,
            'action':       action.name if action else entry.action_id,
            'repeat':       entry.repeat,
            'group_id':     entry.group_id,
            'group_repeat': entry.group_repeat,
            'completions':  n,
            'active':       i == active,
            'progress':     progress,
        })
    return rows


# ──────────────────────────────────────────────────────────────────────────
# Main API
# ──────────────────────────────────────────────────────────────────────────

def write_dashboard_snapshot(state: GameState, path=None, preview=None) -> None:
    """Serialise *state* and write it to *path* atomically.

    The write goes to a .tmp file first; os.replace() then performs an atomic rename
    so the dashboard reader never sees a partial JSON file.
    """
    path = pathlib.Path(path or config.DASHBOARD_DATA_PATH)
    run  = state.run
    res  = run.resources

    _history.append({
        'run':        state.total_runs + 1,
        'year':       run.year,
        'food':       round(res.food, 2),
        'preserved':  round(res.preserved_food, 2),
        'wood':       round(res.wood, 2),
        'population': res.population,
        'defense':    round(total_defense(res), 2),
    })

    snap = {
        'run':        state.total_runs + 1,
        'year':       run.year,
        'max_year':   run.max_year,
        'status':     run.status,
        'collapse_reason': run.collapse_reason,
        'resources': {
            'food':           math.floor(res.food),
            'preserved_food': math.floor(res.preserved_food),
            'population':     res.population,
            'max_population': res.max_population,
            'wood':           math.floor(res.wood),
            'military':       math.floor(res.military_strength),
            'defense':        math.floor(total_defense(res)),
            'food_storage':   math.floor(res.food_storage),
            'buildings': {
                'granaries':   res.granaries_built,
                'smokehouses': res.smokehouses_built,
                'barracks':    res.barracks_built,
                'walls':       res.walls_built,
            },
            'techs':          list(res.researched_techs),
        },
        'skills':     {k: {'level': s.level, 'xp': round(s.xp, 1)}
                       for k, s in state.skills.items()},
        'queue':      _queue_rows(state),
        'history':    list(_history),
        'disasters':  list(state.encountered_disasters),
        'achievements': list(state.achievements),
        'event_tail': [f'Year {e.year:05d}: {e.message}' for e in run.log[-40:]],
        'runs': [{'run': h.run_number, 'outcome': h.outcome, 'year': h.year}
                 for h in state.run_history[-20:]],
    }
    if preview is not None:
        snap['preview'] = {
            'years_used':  preview.years_used,
            'collapsed':   preview.collapsed,
            'collapse_action_id': preview.collapse_action_id,
            'food':        math.floor(preview.resources.food),
            'population':  preview.resources.population,
        }

    # ── Atomic write ──────────────────────────────────────────────────────
    tmp = path.with_suffix('.tmp')
    tmp.write_text(json.dumps(snap, separators=(',', ':')), encoding='utf-8')
    os.replace(tmp, path)
