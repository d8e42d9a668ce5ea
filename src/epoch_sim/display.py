# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
display.py — Text rendering for the epoch runner.
Called by sim.py; every function prints and returns nothing.
"""

import math

from .actions import get_action_def
from .economy import total_defense
from .engine import ACHIEVEMENTS, DISASTERS
from .hints import get_skill_hint
from .models import GameState, LogEntry, QueuePreview, EventPopup

W = 72

_SEVERITY_MARK = {
    'info':    ' ',
    'success': '✓',
    'warning': '⚠',
    'danger':  '✗',
}


def format_log_line(entry: LogEntry) -> str:
    return f"Year {entry.year:05d}: {_SEVERITY_MARK.get(entry.severity, ' ')} {entry.message}"


def print_log_lines(entries: list) -> None:
    for entry in entries:
        print(format_log_line(entry))


def print_popup(event: EventPopup) -> None:
    bar = '═' * W
    print(f'\n{bar}')
    print(f'  EVENT · {event.title}  (year {event.year})')
    print(f'  {event.message}')
    print(f'{bar}\n')


def status_line(state: GameState) -> str:
    run = state.run
    res = run.resources
    return (f'  [run {state.total_runs + 1} · {run.year:5d}/{run.max_year}]  '
            f'Pop:{res.population}/{res.max_population}  '
            f'Food:{math.floor(res.food)}+{math.floor(res.preserved_food)}p/'
            f'{math.floor(res.food_storage)}  Wood:{math.floor(res.wood)}  '
            f'Def:{math.floor(total_defense(res))}  {run.status}')


def print_queue(state: GameState) -> None:
    print('Queue:')
    if not state.run.queue:
        print('  (empty)')
    last_group = None
    for entry in state.run.queue:
        action = get_action_def(entry.action_id)
        name   = action.name if action else entry.action_id
        rep    = '∞' if entry.repeat < 0 else f'×{entry.repeat}'
        if entry.group_id and entry.group_id != last_group:
            grep = '∞' if (entry.group_repeat or 1) < 0 else f'×{entry.group_repeat or 1}'
            print(f'  ┌ group {entry.group_id} {grep}')
        prefix = '  │ ' if entry.group_id else '  '
        print(f'{prefix}{name} {rep}')
        last_group = entry.group_id


def print_preview(preview: QueuePreview) -> None:
    res = preview.resources
    outcome = 'collapses' if preview.collapsed else 'ends'
    print(f'Preview: queue {outcome} after {preview.years_used} years')
    if preview.collapse_action_id:
        print(f'  active action at collapse: {preview.collapse_action_id}')
    print(f'  pop {res.population}/{res.max_population}  food {math.floor(res.food)}  '
          f'wood {math.floor(res.wood)}  defense {math.floor(total_defense(res))}  '
          f'techs {len(res.researched_techs)}')


def final_report(state: GameState) -> None:
    sep = '═' * W
    run = state.run
    res = run.resources
    print(f'\n{sep}')
    print(f'EPOCH SUMMARY — run {state.total_runs + 1}, year {run.year}, {run.status}')
    print(sep)
    if run.collapse_reason:
        print(f'Reason     : {run.collapse_reason}')
    print(f'Population : {res.population}/{res.max_population}')
    print(f'Food       : {math.floor(res.food)} (+{math.floor(res.preserved_food)} preserved, '
          f'{math.floor(run.total_food_spoiled)} spoiled)')
    print(f'Wood       : {math.floor(res.wood)}')
    print(f'Defense    : {math.floor(total_defense(res))}')
    print(f'Techs      : {", ".join(res.researched_techs) or "none"}')
    print('Skills     : ' + '  '.join(f'{k} {s.level}' for k, s in state.skills.items()))

    if state.achievements:
        print('Achievements: ' + ', '.join(ACHIEVEMENTS[a]['name'] for a in state.achievements
                                           if a in ACHIEVEMENTS))
    seen = [d['name'] for d in DISASTERS if d['id'] in state.encountered_disasters]
    if seen:
        print('Disasters  : ' + ', '.join(seen))

    if state.run_history:
        print(f'\nLast {min(5, len(state.run_history))} runs:')
        for h in state.run_history[-5:]:
            gains = ', '.join(f'{k}+{v}' for k, v in h.skill_gains.items() if v)
            print(f'  #{h.run_number:<3d} {h.outcome:<9s} year {h.year:5d}  {gains}')

    print(f'\nHint: {get_skill_hint(state)}')
