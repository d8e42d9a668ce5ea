# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
sim.py — Command-line runner for the epoch simulation.

Run with:  python -m epoch_sim --queue "farm:inf" --fast

Queue syntax (--queue)
──────────────────────
  Comma-separated entries  action_id[:repeat]   (repeat: integer or 'inf')
  A group is members joined with '+', optionally followed by '*N':
      farm:3,gather_wood:2+train_militia:1*4,farm:inf
  --queue-file takes a JSON list of {"action_id", "repeat", "group_id",
  "group_repeat"} objects instead.

Everything printed goes to logs/run_<timestamp>.txt; only notable lines
(disasters, deaths, buildings, research, progress) reach the terminal.
"""

import argparse
import json
import pathlib
import sys
from datetime import datetime

from . import config
from . import dashboard_bridge
from . import display
from .actions import ACTION_DEFS
from .metrics import RunMetricsLogger
from .models import QueueEntry, REPEAT_FOREVER, STATUS_IDLE, STATUS_PAUSED, TERMINAL_STATUSES
from .session import (
    DismissEvent, LoadQueue, ResetRun, ResumeRun, Session, StartRun,
    ToggleAutoRestart, ToggleRepeatLastAction, new_game_state,
)
from .store import SaveFormatError, SaveStore


# ══════════════════════════════════════════════════════════════════════════
# Logging — tees stdout to file; shows only notable lines on terminal
# ══════════════════════════════════════════════════════════════════════════

class _LogTee:
    """Every byte goes to the log file.  Only filtered lines reach the terminal."""

    # Keywords that earn a line a spot on the terminal during the run
    _SHOW = frozenset({
        # Scripted events
        'EVENT ·', 'Raiders', 'Great Cold', 'Achievement',
        # Losses and endings
        'starved', 'perished', 'Victory', 'abandoned',
        # Progress in the run
        'built', 'researched', 'Cannot', 'Queue complete', 'Cured',
        # Fatal / terminal signals
        '[Simulation interrupted',
    })

    passthrough: bool = False   # True → show everything (used for final report)

    def __init__(self, log_fh, real_stdout):
        self._log  = log_fh
        self._real = real_stdout
        self._buf  = ''

    def write(self, text: str) -> None:
        self._log.write(text)
        self._log.flush()
        self._buf += text
        while '\n' in self._buf:
            line, self._buf = self._buf.split('\n', 1)
            if self.passthrough or any(kw in line for kw in self._SHOW):
                self._real.write(line + '\n')
                self._real.flush()

    def flush(self) -> None:
        self._log.flush()

    def fileno(self) -> int:          # lets sys.stderr etc. work
        return self._real.fileno()


# ══════════════════════════════════════════════════════════════════════════
# Queue parsing
# ══════════════════════════════════════════════════════════════════════════

def _parse_repeat(text: str) -> int:
    if text.lower() in ('inf', 'forever', '-1'):
        return REPEAT_FOREVER
    value = int(text)
    if value < 1:
        raise ValueError(f'repeat must be >= 1 or inf, got {value}')
    return value


def _parse_member(text: str) -> tuple:
    action_id, _, repeat = text.strip().partition(':')
    if action_id not in ACTION_DEFS:
        raise ValueError(f'unknown action {action_id!r} '
                         f'(known: {", ".join(sorted(ACTION_DEFS))})')
    return action_id, _parse_repeat(repeat) if repeat else 1


def parse_queue_spec(spec: str) -> list:
    """'farm:3,gather_wood:2+scout*4' → list of QueueEntry (uids reissued on load)."""
    entries: list = []
    groups = 0
    for part in filter(None, (p.strip() for p in spec.split(','))):
        body, star, group_repeat = part.partition('*')
        members = body.split('+')
        if len(members) == 1 and not star:
            action_id, repeat = _parse_member(members[0])
            entries.append(QueueEntry(f'q_{len(entries) + 1}', action_id, repeat))
            continue
        groups += 1
        gid  = f'g_{groups}'
        grep = _parse_repeat(group_repeat) if star else 1
        for m in members:
            action_id, repeat = _parse_member(m)
            entries.append(QueueEntry(f'q_{len(entries) + 1}', action_id, repeat, gid, grep))
    return entries


def load_queue_file(path: str) -> list:
    raw = json.loads(pathlib.Path(path).read_text(encoding='utf-8'))
    if not isinstance(raw, list):
        raise ValueError('queue file must hold a JSON list')
    entries = []
    for i, item in enumerate(raw, start=1):
        action_id = item['action_id']
        if action_id not in ACTION_DEFS:
            raise ValueError(f'unknown action {action_id!r}')
        entries.append(QueueEntry(f'q_{i}', action_id, int(item.get('repeat', 1)),
                                  item.get('group_id'), item.get('group_repeat')))
    return entries


# ══════════════════════════════════════════════════════════════════════════
# CLI
# ══════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='epoch_sim',
        description='Deterministic idle civilization simulation')
    parser.add_argument('--queue', type=str, default=None,
                        help='Queue spec, e.g. "farm:3,gather_wood:2+scout*4,farm:inf"')
    parser.add_argument('--queue-file', type=str, default=None,
                        help='JSON file holding the queue')
    parser.add_argument('--ticks', type=int, default=config.MAX_TICKS,
                        help='Stop after this many simulated years (0 = until the run ends)')
    parser.add_argument('--runs', type=int, default=1,
                        help='Stop after this many finished runs (0 = no limit)')
    parser.add_argument('--interval-ms', type=int, default=config.TICK_MS,
                        help=f'Milliseconds between ticks (default: {config.TICK_MS})')
    parser.add_argument('--fast', action='store_true',
                        help='No delay between ticks')
    parser.add_argument('--save', type=str, default=config.SAVE_PATH,
                        help=f'Save file (default: {config.SAVE_PATH})')
    parser.add_argument('--no-save', action='store_true',
                        help='Neither load nor write a save file')
    parser.add_argument('--fresh', action='store_true',
                        help='Ignore an existing save and start a new game')
    parser.add_argument('--no-repeat-last', action='store_true',
                        help='Pause when the queue runs out instead of repeating the last action')
    parser.add_argument('--no-auto-restart', action='store_true',
                        help='Stop after a collapse instead of starting a new run')
    parser.add_argument('--never-pause', action='store_true',
                        help='Dismissed events never pause future runs')
    parser.add_argument('--preview', action='store_true',
                        help='Print the projected outcome of the queue and exit')
    parser.add_argument('--metrics', type=str, default=None, metavar='DIR',
                        help='Write per-year CSV metrics into DIR')
    parser.add_argument('--dashboard', action='store_true',
                        help=f'Write {config.DASHBOARD_DATA_PATH} for the Streamlit dashboard')
    return parser


def _load_state(store):
    if store is None or not store.exists():
        return new_game_state()
    try:
        return store.load()
    except SaveFormatError as exc:
        print(f'Save file unreadable ({exc}); starting a new game.')
        return new_game_state()


def _prepare(session: Session, args, queue) -> None:
    """Apply CLI queue/flags and get the run into the running state."""
    run = session.state.run
    if run.status in TERMINAL_STATUSES:
        session.dispatch(ResetRun())
    if queue is not None:
        session.dispatch(LoadQueue(queue))
    if args.no_repeat_last == session.state.run.repeat_last_action:
        session.dispatch(ToggleRepeatLastAction())
    if args.no_auto_restart == session.state.run.auto_restart:
        session.dispatch(ToggleAutoRestart())
    status = session.state.run.status
    if status == STATUS_IDLE:
        session.dispatch(StartRun())
    elif status == STATUS_PAUSED:
        session.dispatch(ResumeRun())


def run(argv=None) -> None:
    parser = build_parser()
    args   = parser.parse_args(argv)

    queue = None
    try:
        if args.queue_file:
            queue = load_queue_file(args.queue_file)
        elif args.queue:
            queue = parse_queue_spec(args.queue)
    except (ValueError, KeyError, OSError) as exc:
        parser.error(f'bad queue: {exc}')

    store = None
    if not args.no_save:
        store = SaveStore(args.save)
        if args.fresh:
            store.clear()
    session = Session(_load_state(store), store)

    if args.preview:
        if queue is not None:
            session.dispatch(LoadQueue(queue))
        display.print_queue(session.state)
        display.print_preview(session.preview())
        return

    _prepare(session, args, queue)

    # ── Set up file logging ────────────────────────────────────────────────
    pathlib.Path(config.LOG_DIR).mkdir(exist_ok=True)
    _ts       = datetime.now().strftime('%Y%m%d_%H%M%S')
    _log_path = f'{config.LOG_DIR}/run_{_ts}.txt'
    _log_fh   = open(_log_path, 'w', encoding='utf-8')
    _real     = sys.stdout
    _tee      = _LogTee(_log_fh, _real)
    sys.stdout = _tee

    _real.write(f'Log → {_log_path}\n')
    metrics  = RunMetricsLogger(args.metrics, label=_ts) if args.metrics else None
    interval = 0 if args.fast else args.interval_ms / 1000
    dashboard_bridge.reset_history()

    printed = {'run': None, 'n': 0, 'ticks': -1}   # echoed log lines, last recorded tick

    def on_tick(sess: Session, state) -> None:
        run_no = state.total_runs + 1
        if printed['run'] != run_no:
            printed['run'], printed['n'] = run_no, 0
            print(f'── Run {run_no} begins ──')
        display.print_log_lines(state.run.log[printed['n']:])
        printed['n'] = len(state.run.log)

        for event in list(state.run.pending_events):
            display.print_popup(event)
            sess.dispatch(DismissEvent(event.event_id, never_pause=args.never_pause))

        # restart countdown callbacks advance no year
        if sess.ticks == printed['ticks']:
            return
        printed['ticks'] = sess.ticks

        year = state.run.year
        if year and year % config.PROGRESS_EVERY == 0 and state.run.status != STATUS_IDLE:
            _real.write(display.status_line(sess.state) + '\n')
            _real.flush()
        if metrics is not None:
            metrics.record_year(sess.state)
        if args.dashboard and sess.ticks % config.DASHBOARD_WRITE_EVERY == 0:
            dashboard_bridge.write_dashboard_snapshot(sess.state, preview=sess.preview())

    try:
        session.run(max_ticks=args.ticks, interval=interval,
                    on_tick=on_tick, max_runs=args.runs)
    except KeyboardInterrupt:
        print('\n\n[Simulation interrupted by user]\n')
        session.save()

    finally:
        # Final report: passthrough so everything shows on terminal AND in log
        _real.write('\n')
        _tee.passthrough = True
        display.final_report(session.state)
        if metrics is not None:
            summary = metrics.finalize()
            metrics.close()
            print(f'Metrics → {args.metrics} ({summary["years_recorded"]} years)')
        if args.dashboard:
            dashboard_bridge.write_dashboard_snapshot(session.state, preview=session.preview())
        sys.stdout = _real
        _log_fh.close()
        print(f'\nFull log saved → {_log_path}')


# ══════════════════════════════════════════════════════════════════════════
if __name__ == '__main__':
    run()
