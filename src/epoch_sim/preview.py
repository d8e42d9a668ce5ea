# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
preview.py — Silent whole-run projection of a candidate queue.

simulate_queue_preview() starts from the canonical fresh-run baseline (never
the live run's resources) and loops engine.advance_year() with a
DiscardSink: same rules as the live tick, no log, no popups, no pauses.
Skills are copied first, so repeated calls are idempotent.
"""

from .engine import (
    DiscardSink, MAX_YEAR, advance_year, create_initial_resources, current_entry,
)
from .models import QueuePreview, RunState, STATUS_COLLAPSED, STATUS_RUNNING
from .skills import copy_skills


def simulate_queue_preview(queue: list, skills: dict, repeat_last_action: bool = True, *,
                           achievements=(), include_winter: bool = True,
                           max_year: int = MAX_YEAR) -> QueuePreview:
    """Project a run of *queue* from year 0.

    Stops at victory, at any collapse (starvation or a lost raid), or when
    the queue runs out with *repeat_last_action* off; the exhausted year is
    not counted.  collapse_action_id names the action active in the year the
    run collapsed.
    """
    if not queue:
        return QueuePreview(create_initial_resources(achievements), 0, False)

    run = RunState(
        max_year=max_year,
        resources=create_initial_resources(achievements),
        queue=list(queue),
        status=STATUS_RUNNING,
        repeat_last_action=repeat_last_action,
    )
    sim_skills = copy_skills(skills)
    sink       = DiscardSink()
    collapse_action_id = None

    while run.status == STATUS_RUNNING and run.year < run.max_year:
        entry = current_entry(run)
        if entry is None:
            break
        sim_skills = advance_year(run, sim_skills, sink, winter_enabled=include_winter)
        if run.status == STATUS_COLLAPSED:
            collapse_action_id = entry.action_id

    return QueuePreview(
        resources=run.resources,
        years_used=run.year,
        collapsed=run.status == STATUS_COLLAPSED,
        collapse_action_id=collapse_action_id,
    )
