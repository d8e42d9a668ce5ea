# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
models.py — Plain-data state for the epoch simulation.

Every type here is a dataclass of primitives, lists and nested dataclasses:
no handles, no cycles.  dataclasses.asdict() turns any of them into JSON-ready
structured data, which is all the persistence layer (store.py) relies on.

Ownership
─────────
  GameState  — session-wide: skills, meta-progression, the current RunState.
  RunState   — one playthrough: year, resources, queue, status, log, events.
  Resources  — the civilization's stockpiles and building counts.

The engine never mutates a value it was handed; tick() deep-copies the
GameState first and returns the copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# ── Sentinels and enums (string-valued, JSON friendly) ───────────────────
REPEAT_FOREVER = -1          # QueueEntry.repeat / group_repeat: never exhausts

STATUS_IDLE      = 'idle'
STATUS_RUNNING   = 'running'
STATUS_PAUSED    = 'paused'
STATUS_COLLAPSED = 'collapsed'
STATUS_VICTORY   = 'victory'
TERMINAL_STATUSES = frozenset({STATUS_COLLAPSED, STATUS_VICTORY})

SEVERITY_INFO    = 'info'
SEVERITY_SUCCESS = 'success'
SEVERITY_WARNING = 'warning'
SEVERITY_DANGER  = 'danger'

SKILL_NAMES = ('farming', 'building', 'research', 'military')


# ══════════════════════════════════════════════════════════════════════════
# Skills and resources
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SkillState:
    level: int = 1
    xp:    float = 0.0


@dataclass
class Resources:
    """Stockpiles of one run.  Numeric fields are fractional internally."""
    food:              float = 2.0
    preserved_food:    float = 0.0
    population:        int   = 2
    max_population:    int   = 2
    wood:              float = 0.0
    military_strength: float = 0.0
    walls_built:       int   = 0
    barracks_built:    int   = 0
    smokehouses_built: int   = 0
    granaries_built:   int   = 0
    food_storage:      float = 200.0
    researched_techs:  list[str] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Queue
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class QueueEntry:
    """One queue line.  Members of a group share group_id and group_repeat
    and sit next to each other in queue order."""
    uid:          str
    action_id:    str
    repeat:       int = 1
    group_id:     Optional[str] = None
    group_repeat: Optional[int] = None


@dataclass(frozen=True)
class GroupRange:
    start_idx:      int          # first member (inclusive)
    end_idx:        int          # one past the last member (exclusive)
    group_repeat:   int
    iteration_size: int          # sum of member repeats


@dataclass(frozen=True)
class ResolvedPosition:
    array_index:        int
    group_iteration:    int
    repeat_within_entry: int


@dataclass(frozen=True)
class Segment:
    """A top-level queue block: one ungrouped entry or one whole group."""
    start_idx: int
    end_idx:   int
    group_id:  Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Narrative output
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LogEntry:
    year:     int
    message:  str
    severity: str = SEVERITY_INFO


@dataclass(frozen=True)
class EventPopup:
    event_id:   str
    title:      str
    message:    str
    severity:   str
    year:       int
    first_time: bool = True


# ══════════════════════════════════════════════════════════════════════════
# Run / game
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class RunState:
    year:                   int = 0
    max_year:               int = 10000
    resources:              Resources = field(default_factory=Resources)
    queue:                  list[QueueEntry] = field(default_factory=list)
    current_queue_index:    int = 0
    current_action_progress: int = 0
    last_action_population: Optional[int] = None
    status:                 str = STATUS_IDLE
    log:                    list[LogEntry] = field(default_factory=list)
    collapse_reason:        Optional[str] = None
    auto_restart:           bool = True
    repeat_last_action:     bool = True
    pending_events:         list[EventPopup] = field(default_factory=list)
    paused_by_event:        bool = False
    total_food_spoiled:     float = 0.0


@dataclass
class RunHistoryQueueEntry:
    action_id:    str
    repeat:       int
    completions:  int
    group_id:     Optional[str] = None
    group_repeat: Optional[int] = None


@dataclass
class RunHistoryEntry:
    run_number:        int
    outcome:           str                 # collapsed | victory | abandoned
    year:              int
    collapse_reason:   Optional[str]
    queue:             list[RunHistoryQueueEntry]
    resources:         Resources
    total_food_spoiled: float
    skill_gains:       dict[str, int]      # levels gained during the run
    last_action_id:    Optional[str] = None
    last_action_years_done: int = 0
    last_action_years_left: int = 0


@dataclass
class GameState:
    skills:                      dict[str, SkillState]
    run:                         RunState = field(default_factory=RunState)
    total_runs:                  int = 0
    total_winter_years_survived: int = 0
    unlocked_actions:            list[str] = field(default_factory=lambda: ['farm'])
    encountered_disasters:       list[str] = field(default_factory=list)
    seen_event_types:            list[str] = field(default_factory=list)
    auto_dismiss_event_types:    list[str] = field(default_factory=list)
    achievements:                list[str] = field(default_factory=list)
    last_run_year:               int = 0
    skills_at_run_start:         dict[str, SkillState] = field(default_factory=dict)
    run_history:                 list[RunHistoryEntry] = field(default_factory=list)


@dataclass(frozen=True)
class QueuePreview:
    resources:          Resources
    years_used:         int
    collapsed:          bool
    collapse_action_id: Optional[str] = None
