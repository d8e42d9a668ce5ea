# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
store.py — JSON persistence for a whole GameState.

SaveStore is the explicit store object handed to the Session; the engine
never touches it.  Writes use the same rename-swap as the dashboard bridge
so a crash mid-write never leaves a half-written save behind.

Document layout
───────────────
  {"version": SAVE_VERSION, "saved_at": <unix time>, "state": {...}}

state_from_dict() validates structure and raises SaveFormatError for
anything it cannot turn back into a well-formed GameState.
"""

import dataclasses
import json
import os
import pathlib
import time

from .actions import queue_is_well_formed, valid_repeat
from .models import (
    EventPopup, GameState, LogEntry, QueueEntry, Resources, RunHistoryEntry,
    RunHistoryQueueEntry, RunState, SKILL_NAMES, SkillState,
)

SAVE_VERSION = 1

_STATUSES = {'idle', 'running', 'paused', 'collapsed', 'victory'}


class SaveFormatError(ValueError):
    """A saved document is malformed or from an incompatible version."""


# ══════════════════════════════════════════════════════════════════════════
# Encoding
# ══════════════════════════════════════════════════════════════════════════

def state_to_dict(state: GameState) -> dict:
    return dataclasses.asdict(state)


def _build(cls, data: dict, **nested):
    """Instantiate dataclass *cls* from *data*, ignoring unknown keys."""
    if not isinstance(data, dict):
        raise SaveFormatError(f'{cls.__name__}: expected an object, got {type(data).__name__}')
    names  = {f.name for f in dataclasses.fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in names}
    kwargs.update(nested)
    return cls(**kwargs)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _skills(data) -> dict:
    if not isinstance(data, dict):
        raise SaveFormatError('skills: expected an object')
    out = {}
    for name in SKILL_NAMES:
        raw = data.get(name, {'level': 1, 'xp': 0})
        skill = _build(SkillState, raw)
        if not isinstance(skill.level, int) or skill.level < 0:
            raise SaveFormatError(f'skills.{name}.level must be a non-negative integer')
        if not _is_number(skill.xp) or skill.xp < 0:
            raise SaveFormatError(f'skills.{name}.xp must be a non-negative number')
        out[name] = skill
    return out


def _resources(data) -> Resources:
    res = _build(Resources, data)
    res.researched_techs = list(res.researched_techs)
    for name in ('food', 'preserved_food', 'wood', 'military_strength', 'food_storage'):
        if not isinstance(getattr(res, name), (int, float)):
            raise SaveFormatError(f'resources.{name} must be a number')
    if not isinstance(res.population, int) or not isinstance(res.max_population, int):
        raise SaveFormatError('resources.population / max_population must be integers')
    if res.population < 0 or res.population > res.max_population:
        raise SaveFormatError('resources.population out of range')
    return res


def _queue(data) -> list:
    if not isinstance(data, list):
        raise SaveFormatError('run.queue: expected a list')
    queue = [_build(QueueEntry, e) for e in data]
    for entry in queue:
        if not valid_repeat(entry.repeat):
            raise SaveFormatError(f'queue entry {entry.uid!r}: invalid repeat {entry.repeat!r}')
        if entry.group_id is not None and entry.group_repeat is not None \
                and not valid_repeat(entry.group_repeat):
            raise SaveFormatError(f'queue entry {entry.uid!r}: invalid group_repeat '
                                  f'{entry.group_repeat!r}')
    if not queue_is_well_formed(queue):
        raise SaveFormatError('run.queue is not well formed')
    return queue


def _run(data) -> RunState:
    if not isinstance(data, dict):
        raise SaveFormatError('run: expected an object')
    run = _build(
        RunState, data,
        resources=_resources(data.get('resources', {})),
        queue=_queue(data.get('queue', [])),
        log=[_build(LogEntry, e) for e in data.get('log', [])],
        pending_events=[_build(EventPopup, e) for e in data.get('pending_events', [])],
    )
    if run.status not in _STATUSES:
        raise SaveFormatError(f'run.status {run.status!r} is not a known status')
    for name in ('year', 'max_year', 'current_queue_index', 'current_action_progress'):
        value = getattr(run, name)
        if not _is_int(value) or value < 0:
            raise SaveFormatError(f'run.{name} must be a non-negative integer')
    if run.last_action_population is not None and not _is_int(run.last_action_population):
        raise SaveFormatError('run.last_action_population must be an integer or null')
    if not _is_number(run.total_food_spoiled):
        raise SaveFormatError('run.total_food_spoiled must be a number')
    return run


def _history(data) -> RunHistoryEntry:
    if not isinstance(data, dict):
        raise SaveFormatError('run_history: expected objects')
    return _build(
        RunHistoryEntry, data,
        queue=[_build(RunHistoryQueueEntry, e) for e in data.get('queue', [])],
        resources=_resources(data.get('resources', {})),
    )


def state_from_dict(data: dict) -> GameState:
    """Rebuild a GameState; raises SaveFormatError on any structural problem."""
    if not isinstance(data, dict):
        raise SaveFormatError('state: expected an object')
    try:
        skills = _skills(data.get('skills', {}))
        return _build(
            GameState, data,
            skills=skills,
            run=_run(data.get('run', {})),
            skills_at_run_start=_skills(data.get('skills_at_run_start') or {}),
            run_history=[_history(h) for h in data.get('run_history', [])],
        )
    except (TypeError, AttributeError) as exc:
        raise SaveFormatError(str(exc)) from exc


def dumps(state: GameState) -> str:
    return json.dumps({'version': SAVE_VERSION, 'saved_at': int(time.time()),
                       'state': state_to_dict(state)},
                      separators=(',', ':'))


def loads(text: str) -> GameState:
    """Parse an exported save document (the inverse of dumps())."""
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SaveFormatError(f'not valid JSON: {exc}') from exc
    if not isinstance(doc, dict) or 'state' not in doc:
        raise SaveFormatError('missing "state" section')
    if doc.get('version') != SAVE_VERSION:
        raise SaveFormatError(f'incompatible save version {doc.get("version")!r} '
                              f'(expected {SAVE_VERSION})')
    return state_from_dict(doc['state'])


# ══════════════════════════════════════════════════════════════════════════
# File store
# ══════════════════════════════════════════════════════════════════════════

class SaveStore:
    """One save file on disk."""

    def __init__(self, path) -> None:
        self.path = pathlib.Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, state: GameState) -> None:
        """Atomic write: .tmp first, then os.replace()."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp.write_text(dumps(state), encoding='utf-8')
        os.replace(tmp, self.path)

    def load(self) -> GameState:
        """Raises FileNotFoundError when absent, SaveFormatError when unreadable."""
        return loads(self.path.read_text(encoding='utf-8'))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
