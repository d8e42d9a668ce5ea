# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
session.py — Game session controller: command reducers and the tick timer.

Architecture
────────────
  SessionCommand  — sealed command hierarchy; the only way the outside world
                    changes a GameState.  apply_command() dispatches each one
                    to a pure reducer.
  Session         — owns the current GameState, the timer loop, auto-restart,
                    periodic saves (through an injected store) and a memoised
                    queue preview.

Every reducer is total: an ill-formed or impossible command (unknown uid,
"move the first entry up", resuming a finished run) returns the state it was
given, unchanged.  A reducer never mutates its input; it works on a deep copy.

Usage summary
─────────────
  session = Session(new_game_state(), store=SaveStore('epoch_save.json'))
  session.dispatch(LoadQueue([QueueEntry('q_1', 'farm', REPEAT_FOREVER)]))
  session.dispatch(StartRun())
  session.run(max_ticks=5000, interval=0.1)
"""

from __future__ import annotations

import abc
import copy
import re
import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from . import config
from .actions import (
    ACTION_DEFS, MILESTONE_ACTIONS, STARTING_ACTIONS, get_action_def, queue_is_well_formed,
    requirements_met, valid_repeat,
)
from .economy import effective_duration
from .engine import create_initial_run, current_entry, tick
from .models import (
    GameState, QueueEntry, RunHistoryEntry, RunHistoryQueueEntry,
    STATUS_COLLAPSED, STATUS_IDLE, STATUS_PAUSED, STATUS_RUNNING, TERMINAL_STATUSES,
)
from .preview import simulate_queue_preview
from .resolver import count_completions, get_group_range, iter_segments
from .skills import copy_skills, initial_skills, is_action_unlocked

OUTCOME_ABANDONED = 'abandoned'


def new_game_state() -> GameState:
    """A brand-new game: level-1 skills, only Farm unlocked, an idle empty run."""
    return GameState(
        skills=initial_skills(),
        run=create_initial_run(),
        unlocked_actions=list(STARTING_ACTIONS),
        skills_at_run_start=initial_skills(),
    )


# ══════════════════════════════════════════════════════════════════════════
# SessionCommand hierarchy
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class SessionCommand(abc.ABC):
    """Sealed base class.  Every concrete command must inherit from this."""

    @abc.abstractmethod
    def describe(self) -> str:
        """Human-readable description for log messages."""


@dataclass
class StartRun(SessionCommand):
    def describe(self) -> str:
        return 'StartRun()'


@dataclass
class PauseRun(SessionCommand):
    def describe(self) -> str:
        return 'PauseRun()'


@dataclass
class ResumeRun(SessionCommand):
    def describe(self) -> str:
        return 'ResumeRun()'


@dataclass
class ResetRun(SessionCommand):
    """Start over with a fresh run, carrying queue and flags forward."""

    def describe(self) -> str:
        return 'ResetRun()'


@dataclass
class AbandonRun(SessionCommand):
    """Force-collapse the current run."""

    def describe(self) -> str:
        return 'AbandonRun()'


@dataclass
class Tick(SessionCommand):
    def describe(self) -> str:
        return 'Tick()'


@dataclass
class DismissEvent(SessionCommand):
    """Acknowledge the oldest pending popup (or the oldest with *event_id*).

    never_pause=True also adds the event type to the auto-dismiss set so it
    will not halt future runs.
    """
    event_id:    Optional[str] = None
    never_pause: bool = False

    def describe(self) -> str:
        return f'DismissEvent(event_id={self.event_id!r}, never_pause={self.never_pause})'


@dataclass
class ToggleAutoRestart(SessionCommand):
    def describe(self) -> str:
        return 'ToggleAutoRestart()'


@dataclass
class ToggleRepeatLastAction(SessionCommand):
    def describe(self) -> str:
        return 'ToggleRepeatLastAction()'


@dataclass
class SetAutoDismiss(SessionCommand):
    event_id: str
    enabled:  bool = True

    def describe(self) -> str:
        return f'SetAutoDismiss(event_id={self.event_id!r}, enabled={self.enabled})'


@dataclass
class QueueAdd(SessionCommand):
    action_id: str
    repeat:    int = 1

    def describe(self) -> str:
        return f'QueueAdd(action_id={self.action_id!r}, repeat={self.repeat})'


@dataclass
class QueueRemove(SessionCommand):
    uid: str

    def describe(self) -> str:
        return f'QueueRemove(uid={self.uid!r})'


@dataclass
class QueueMove(SessionCommand):
    """Move one step 'up' or 'down'.

    Ungrouped entries hop over whole neighbouring blocks; group members only
    move inside their group; whole_group=True moves the member's whole group.
    """
    uid:         str
    direction:   str
    whole_group: bool = False

    def describe(self) -> str:
        return (f'QueueMove(uid={self.uid!r}, direction={self.direction!r}, '
                f'whole_group={self.whole_group})')


@dataclass
class QueueSetRepeat(SessionCommand):
    uid:    str
    repeat: int

    def describe(self) -> str:
        return f'QueueSetRepeat(uid={self.uid!r}, repeat={self.repeat})'


@dataclass
class QueueSetGroupRepeat(SessionCommand):
    group_id:     str
    group_repeat: int

    def describe(self) -> str:
        return f'QueueSetGroupRepeat(group_id={self.group_id!r}, group_repeat={self.group_repeat})'


@dataclass
class QueueDuplicate(SessionCommand):
    """Insert a copy right after the entry (inside the same group, if any)."""
    uid: str

    def describe(self) -> str:
        return f'QueueDuplicate(uid={self.uid!r})'


@dataclass
class QueueMerge(SessionCommand):
    """Join the block holding *uid* with the block after it into one group."""
    uid: str

    def describe(self) -> str:
        return f'QueueMerge(uid={self.uid!r})'


@dataclass
class QueueSplit(SessionCommand):
    """Cut a group in two, the second part starting at *uid*."""
    uid: str

    def describe(self) -> str:
        return f'QueueSplit(uid={self.uid!r})'


@dataclass
class QueueUngroup(SessionCommand):
    group_id: str

    def describe(self) -> str:
        return f'QueueUngroup(group_id={self.group_id!r})'


@dataclass
class QueueClear(SessionCommand):
    def describe(self) -> str:
        return 'QueueClear()'


@dataclass
class LoadQueue(SessionCommand):
    """Replace the whole queue.  Unknown action ids are dropped; uids are reissued."""
    entries: List[QueueEntry] = field(default_factory=list)

    def describe(self) -> str:
        return f'LoadQueue({len(self.entries)} entries)'


@dataclass
class ImportSave(SessionCommand):
    """Adopt a full, already validated saved GameState."""
    state: GameState

    def describe(self) -> str:
        return f'ImportSave(total_runs={self.state.total_runs})'


@dataclass
class HardReset(SessionCommand):
    """Wipe everything, skills included."""

    def describe(self) -> str:
        return 'HardReset()'


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

_ID_RE = re.compile(r'^[a-z]_(\d+)$')


def _next_id(values, prefix: str) -> str:
    """Deterministic fresh id: one past the highest '<prefix>_<n>' in use."""
    highest = 0
    for v in values:
        m = _ID_RE.match(v or '')
        if m and v.startswith(prefix + '_'):
            highest = max(highest, int(m.group(1)))
    return f'{prefix}_{highest + 1}'


def _next_uid(queue: list) -> str:
    return _next_id((e.uid for e in queue), 'q')


def _next_group_id(queue: list) -> str:
    return _next_id((e.group_id for e in queue), 'g')


def _index_of(queue: list, uid: str) -> int:
    for i, e in enumerate(queue):
        if e.uid == uid:
            return i
    return -1


def _with_queue(state: GameState, queue: list) -> GameState:
    new = copy.deepcopy(state)
    new.run.queue = queue
    return new


def compute_unlocks(state: GameState) -> list:
    """Unlocked actions after applying skill gates and the storage milestone."""
    unlocked = list(state.unlocked_actions)
    res      = state.run.resources
    if res.food_storage > 0 and res.food >= res.food_storage:
        for action_id in MILESTONE_ACTIONS:
            if action_id not in unlocked:
                unlocked.append(action_id)
    for action in ACTION_DEFS.values():
        if action.id in unlocked or action.unlock_level <= 0:
            continue
        if (is_action_unlocked(state.skills, action.gating_skill, action.unlock_level)
                and requirements_met(action, res)):
            unlocked.append(action.id)
    return unlocked


def build_history_entry(state: GameState, outcome: str) -> RunHistoryEntry:
    """Snapshot of the current run for the run-history list."""
    run   = state.run
    queue = run.queue
    done  = count_completions(queue, run.current_queue_index, run.repeat_last_action)
    entry = current_entry(run)
    years_left = 0
    if entry is not None:
        action = get_action_def(entry.action_id)
        if action is not None:
            duration = effective_duration(
                action.base_duration, state.skills[action.skill].level,
                run.resources.population, action.category, action.completion_only)
            years_left = max(0, duration - run.current_action_progress)
    start = state.skills_at_run_start or initial_skills()
    return RunHistoryEntry(
        run_number=state.total_runs + 1,
        outcome=outcome,
        year=run.year,
        collapse_reason=run.collapse_reason,
        queue=[RunHistoryQueueEntry(e.action_id, e.repeat, n, e.group_id, e.group_repeat)
               for e, n in zip(queue, done)],
        resources=copy.deepcopy(run.resources),
        total_food_spoiled=run.total_food_spoiled,
        skill_gains={name: s.level - start[name].level for name, s in state.skills.items()},
        last_action_id=entry.action_id if entry else None,
        last_action_years_done=run.current_action_progress,
        last_action_years_left=years_left,
    )


def _record_history(state: GameState, outcome: str) -> None:
    state.run_history.append(build_history_entry(state, outcome))
    del state.run_history[:-config.RUN_HISTORY_LIMIT]


# ══════════════════════════════════════════════════════════════════════════
# Reducers: run lifecycle
# ══════════════════════════════════════════════════════════════════════════

def _tick(state: GameState, cmd: Tick) -> GameState:
    if state.run.status != STATUS_RUNNING:
        return state
    new = tick(state)
    new.unlocked_actions = compute_unlocks(new)
    if new.run.status in TERMINAL_STATUSES:
        _record_history(new, new.run.status)
    return new


def _start(state: GameState, cmd: StartRun) -> GameState:
    if state.run.status != STATUS_IDLE:
        return state
    new = copy.deepcopy(state)
    new.run.status = STATUS_RUNNING
    new.skills_at_run_start = copy_skills(new.skills)
    return new


def _pause(state: GameState, cmd: PauseRun) -> GameState:
    if state.run.status != STATUS_RUNNING:
        return state
    new = copy.deepcopy(state)
    new.run.status = STATUS_PAUSED
    return new


def _resume(state: GameState, cmd: ResumeRun) -> GameState:
    if state.run.status != STATUS_PAUSED:
        return state
    new = copy.deepcopy(state)
    new.run.status = STATUS_RUNNING
    new.run.paused_by_event = False
    return new


def _reset(state: GameState, cmd: ResetRun) -> GameState:
    new = copy.deepcopy(state)
    old = new.run
    if old.status not in TERMINAL_STATUSES and old.year > 0:
        _record_history(new, OUTCOME_ABANDONED)
    if new.total_runs == 0:
        for action_id in MILESTONE_ACTIONS:
            if action_id not in new.unlocked_actions:
                new.unlocked_actions.append(action_id)
    new.total_runs += 1
    new.last_run_year = old.year
    new.run = create_initial_run(
        [replace(e) for e in old.queue], new.achievements,
        auto_restart=old.auto_restart,
        repeat_last_action=old.repeat_last_action,
    )
    new.unlocked_actions = compute_unlocks(new)
    return new


def _abandon(state: GameState, cmd: AbandonRun) -> GameState:
    if state.run.status not in (STATUS_RUNNING, STATUS_PAUSED):
        return state
    new = copy.deepcopy(state)
    new.run.status = STATUS_COLLAPSED
    new.run.collapse_reason = f'Run abandoned at year {new.run.year}.'
    _record_history(new, OUTCOME_ABANDONED)
    return new


def _dismiss(state: GameState, cmd: DismissEvent) -> GameState:
    pending = state.run.pending_events
    idx = next((i for i, e in enumerate(pending)
                if cmd.event_id is None or e.event_id == cmd.event_id), -1)
    if idx < 0:
        return state
    new = copy.deepcopy(state)
    run = new.run
    dismissed = run.pending_events.pop(idx)
    if dismissed.event_id not in new.seen_event_types:
        new.seen_event_types.append(dismissed.event_id)
    if cmd.never_pause and dismissed.event_id not in new.auto_dismiss_event_types:
        new.auto_dismiss_event_types.append(dismissed.event_id)
    if run.paused_by_event and not run.pending_events:
        run.paused_by_event = False
        if run.status == STATUS_PAUSED:
            run.status = STATUS_RUNNING
    return new


def _toggle_auto_restart(state: GameState, cmd: ToggleAutoRestart) -> GameState:
    new = copy.deepcopy(state)
    new.run.auto_restart = not new.run.auto_restart
    return new


def _toggle_repeat(state: GameState, cmd: ToggleRepeatLastAction) -> GameState:
    new = copy.deepcopy(state)
    new.run.repeat_last_action = not new.run.repeat_last_action
    return new


def _set_auto_dismiss(state: GameState, cmd: SetAutoDismiss) -> GameState:
    new = copy.deepcopy(state)
    present = cmd.event_id in new.auto_dismiss_event_types
    if cmd.enabled and not present:
        new.auto_dismiss_event_types.append(cmd.event_id)
    elif not cmd.enabled and present:
        new.auto_dismiss_event_types.remove(cmd.event_id)
    return new


def _import(state: GameState, cmd: ImportSave) -> GameState:
    new = copy.deepcopy(cmd.state)
    if new.run.status == STATUS_RUNNING:
        new.run.status = STATUS_PAUSED    # timer restarts on explicit resume
    return new


def _hard_reset(state: GameState, cmd: HardReset) -> GameState:
    return new_game_state()


# ══════════════════════════════════════════════════════════════════════════
# Reducers: queue editing
# ══════════════════════════════════════════════════════════════════════════

def _queue_add(state: GameState, cmd: QueueAdd) -> GameState:
    if cmd.action_id not in ACTION_DEFS or cmd.action_id not in state.unlocked_actions:
        return state
    if not valid_repeat(cmd.repeat):
        return state
    queue = list(state.run.queue)
    queue.append(QueueEntry(_next_uid(queue), cmd.action_id, cmd.repeat))
    return _with_queue(state, queue)


def _queue_remove(state: GameState, cmd: QueueRemove) -> GameState:
    if _index_of(state.run.queue, cmd.uid) < 0:
        return state
    return _with_queue(state, [e for e in state.run.queue if e.uid != cmd.uid])


def _swap_blocks(queue: list, blocks: list, a: int, b: int) -> list:
    """Rebuild *queue* with blocks a and b (adjacent, a < b) exchanged."""
    order = list(range(len(blocks)))
    order[a], order[b] = order[b], order[a]
    out = []
    for k in order:
        start, end = blocks[k]
        out.extend(queue[start:end])
    return out


def _queue_move(state: GameState, cmd: QueueMove) -> GameState:
    queue = state.run.queue
    idx   = _index_of(queue, cmd.uid)
    if idx < 0 or cmd.direction not in ('up', 'down'):
        return state
    step = -1 if cmd.direction == 'up' else 1
    rng  = get_group_range(queue, idx)

    if rng is not None and not cmd.whole_group:
        target = idx + step
        if target < rng.start_idx or target >= rng.end_idx:
            return state
        moved = list(queue)
        moved[idx], moved[target] = moved[target], moved[idx]
        return _with_queue(state, moved)

    blocks = [(s.start_idx, s.end_idx) for s in iter_segments(queue)]
    here   = next(k for k, (s, e) in enumerate(blocks) if s <= idx < e)
    there  = here + step
    if there < 0 or there >= len(blocks):
        return state
    return _with_queue(state, _swap_blocks(queue, blocks, min(here, there), max(here, there)))


def _queue_set_repeat(state: GameState, cmd: QueueSetRepeat) -> GameState:
    if _index_of(state.run.queue, cmd.uid) < 0 or not valid_repeat(cmd.repeat):
        return state
    return _with_queue(state, [replace(e, repeat=cmd.repeat) if e.uid == cmd.uid else e
                               for e in state.run.queue])


def _queue_set_group_repeat(state: GameState, cmd: QueueSetGroupRepeat) -> GameState:
    queue = state.run.queue
    if not any(e.group_id == cmd.group_id for e in queue) or not valid_repeat(cmd.group_repeat):
        return state
    return _with_queue(state, [replace(e, group_repeat=cmd.group_repeat)
                               if e.group_id == cmd.group_id else e for e in queue])


def _queue_duplicate(state: GameState, cmd: QueueDuplicate) -> GameState:
    queue = state.run.queue
    idx   = _index_of(queue, cmd.uid)
    if idx < 0:
        return state
    copied = replace(queue[idx], uid=_next_uid(queue))
    return _with_queue(state, queue[:idx + 1] + [copied] + queue[idx + 1:])


def _queue_merge(state: GameState, cmd: QueueMerge) -> GameState:
    queue = state.run.queue
    idx   = _index_of(queue, cmd.uid)
    if idx < 0:
        return state
    blocks = list(iter_segments(queue))
    here   = next(k for k, s in enumerate(blocks) if s.start_idx <= idx < s.end_idx)
    if here + 1 >= len(blocks):
        return state
    first, second = blocks[here], blocks[here + 1]
    if first.group_id is not None:
        gid, grepeat = first.group_id, queue[first.start_idx].group_repeat
    else:
        gid, grepeat = _next_group_id(queue), 1
    merged = list(queue)
    for k in range(first.start_idx, second.end_idx):
        merged[k] = replace(merged[k], group_id=gid, group_repeat=grepeat)
    return _with_queue(state, merged)


def _queue_split(state: GameState, cmd: QueueSplit) -> GameState:
    queue = state.run.queue
    idx   = _index_of(queue, cmd.uid)
    rng   = get_group_range(queue, idx)
    if rng is None or idx == rng.start_idx:
        return state
    gid   = _next_group_id(queue)
    split = list(queue)
    for k in range(idx, rng.end_idx):
        split[k] = replace(split[k], group_id=gid)
    return _with_queue(state, split)


def _queue_ungroup(state: GameState, cmd: QueueUngroup) -> GameState:
    queue = state.run.queue
    if not any(e.group_id == cmd.group_id for e in queue):
        return state
    return _with_queue(state, [replace(e, group_id=None, group_repeat=None)
                               if e.group_id == cmd.group_id else e for e in queue])


def _queue_clear(state: GameState, cmd: QueueClear) -> GameState:
    new = _with_queue(state, [])
    new.run.current_queue_index = 0
    new.run.current_action_progress = 0
    return new


def _load_queue(state: GameState, cmd: LoadQueue) -> GameState:
    kept  = [e for e in cmd.entries if e.action_id in ACTION_DEFS and valid_repeat(e.repeat)]
    queue = [replace(e, uid=f'q_{i}') for i, e in enumerate(kept, start=1)]
    if not queue_is_well_formed(queue):
        return state
    new = _with_queue(state, queue)
    new.run.current_queue_index = 0
    new.run.current_action_progress = 0
    return new


_HANDLERS: dict = {
    Tick:                   _tick,
    StartRun:               _start,
    PauseRun:               _pause,
    ResumeRun:              _resume,
    ResetRun:               _reset,
    AbandonRun:             _abandon,
    DismissEvent:           _dismiss,
    ToggleAutoRestart:      _toggle_auto_restart,
    ToggleRepeatLastAction: _toggle_repeat,
    SetAutoDismiss:         _set_auto_dismiss,
    ImportSave:             _import,
    HardReset:              _hard_reset,
    QueueAdd:               _queue_add,
    QueueRemove:            _queue_remove,
    QueueMove:              _queue_move,
    QueueSetRepeat:         _queue_set_repeat,
    QueueSetGroupRepeat:    _queue_set_group_repeat,
    QueueDuplicate:         _queue_duplicate,
    QueueMerge:             _queue_merge,
    QueueSplit:             _queue_split,
    QueueUngroup:           _queue_ungroup,
    QueueClear:             _queue_clear,
    LoadQueue:              _load_queue,
}


def apply_command(state: GameState, command: SessionCommand) -> GameState:
    """Single entry point for every state change.  Unknown commands are no-ops."""
    handler = _HANDLERS.get(type(command))
    if handler is None:
        return state
    return handler(state, command)


# ══════════════════════════════════════════════════════════════════════════
# Session — timer, auto-restart, checkpoints, memoised preview
# ══════════════════════════════════════════════════════════════════════════

class Session:
    """Owns one GameState and drives it one tick per timer callback.

    store is anything with save(state) (see store.SaveStore); None disables
    checkpoints.  Auto-restart waits *restart_delay_ticks* timer callbacks
    after a collapse, then resets and starts a new run.
    """

    def __init__(self, state: GameState = None, store=None, *,
                 save_every: int = config.SAVE_EVERY_TICKS,
                 restart_delay_ticks: int = None) -> None:
        self.state      = state if state is not None else new_game_state()
        self.store      = store
        self.save_every = save_every
        if restart_delay_ticks is None:
            restart_delay_ticks = max(1, config.AUTO_RESTART_DELAY_MS // config.TICK_MS)
        self.restart_delay_ticks = restart_delay_ticks
        self.ticks          = 0
        self.runs_finished  = 0
        self._waiting       = 0      # timer callbacks spent since the collapse
        self._preview_key   = None
        self._preview_value = None

    # ── Commands ──────────────────────────────────────────────────────────

    def dispatch(self, command: SessionCommand) -> GameState:
        self.state = apply_command(self.state, command)
        return self.state

    # ── Timer ─────────────────────────────────────────────────────────────

    def step(self) -> GameState:
        """One timer callback: tick if running, or count down to auto-restart."""
        run = self.state.run
        if run.status == STATUS_RUNNING:
            self.dispatch(Tick())
            self.ticks += 1
            if self.state.run.status in TERMINAL_STATUSES:
                self.runs_finished += 1
                self._waiting = 0
                self.save()
            elif self.save_every and self.ticks % self.save_every == 0:
                self.save()
        elif run.status == STATUS_COLLAPSED and run.auto_restart:
            self._waiting += 1
            if self._waiting >= self.restart_delay_ticks:
                self._waiting = 0
                self.dispatch(ResetRun())
                self.dispatch(StartRun())
        return self.state

    def run(self, max_ticks: int = 0, interval: float = config.TICK_MS / 1000,
            on_tick: Callable = None, max_runs: int = 0) -> GameState:
        """Drive the timer until the run stops needing it.

        Stops when the run is idle, paused (and on_tick did not resume it) or
        won, when a collapse will not auto-restart, after *max_ticks* years
        (0 = no limit) or after *max_runs* finished runs (0 = no limit).
        interval=0 runs flat out.
        """
        while True:
            state = self.step()
            if on_tick is not None:
                on_tick(self, state)
                state = self.state
            status = state.run.status
            if max_ticks and self.ticks >= max_ticks:
                break
            if max_runs and self.runs_finished >= max_runs:
                break
            if status not in (STATUS_RUNNING, STATUS_COLLAPSED):
                break
            if status == STATUS_COLLAPSED and not state.run.auto_restart:
                break
            if interval > 0:
                time.sleep(interval)
        self.save()
        return self.state

    # ── Persistence ───────────────────────────────────────────────────────

    def save(self) -> None:
        if self.store is not None:
            self.store.save(self.state)

    # ── Preview ───────────────────────────────────────────────────────────

    def preview(self, include_winter: bool = True):
        """Projection of the current queue; recomputed only when its inputs change."""
        state = self.state
        key = (tuple(state.run.queue),
               tuple(sorted(state.skills.items())),
               state.run.repeat_last_action,
               tuple(state.achievements),
               include_winter)
        if key != self._preview_key:
            self._preview_value = simulate_queue_preview(
                state.run.queue, state.skills, state.run.repeat_last_action,
                achievements=state.achievements, include_winter=include_winter)
            self._preview_key = key
        return self._preview_value
