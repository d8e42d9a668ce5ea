# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
metrics.py — Per-year metrics logger for epoch runs.

Writes one CSV row per simulated year plus one row per narrated log line, so
runs can be compared offline (pandas, spreadsheets, the dashboard).

Files (inside output_dir)
─────────────────────────
  years_<label>.csv   — run, year, status, resources, defense, skill levels
  events_<label>.csv  — run, year, severity, message
  run_summaries.csv   — one row per finalize() call, appended across sessions
"""

import csv
import os
import time
from pathlib import Path

from .economy import total_defense
from .models import GameState, SKILL_NAMES


class RunMetricsLogger:
    """Collects per-year simulation metrics and writes them to CSV."""

    def __init__(self, output_dir: str = 'data', label: str = 'run'):
        self.output_dir = output_dir
        self.label = label
        Path(output_dir).mkdir(parents=True, exist_ok=True)

        self._years_path  = os.path.join(output_dir, f'years_{label}.csv')
        self._events_path = os.path.join(output_dir, f'events_{label}.csv')

        self._years_fh  = open(self._years_path, 'w', newline='', encoding='utf-8')
        self._events_fh = open(self._events_path, 'w', newline='', encoding='utf-8')
        self._years_writer  = csv.writer(self._years_fh)
        self._events_writer = csv.writer(self._events_fh)

        self._years_writer.writerow([
            'run', 'year', 'status', 'population', 'max_population',
            'food', 'preserved_food', 'wood', 'military_strength',
            'total_defense', 'food_storage', 'techs', 'total_food_spoiled',
            'queue_index',
        ] + [f'{s}_level' for s in SKILL_NAMES])
        self._events_writer.writerow(['run', 'year', 'severity', 'message'])
        self._years_fh.flush()
        self._events_fh.flush()

        # Running stats for finalize
        self._rows            = 0
        self._peak_population = 0
        self._final_year      = 0
        self._final_status    = 'idle'
        self._runs_seen       = set()
        self._log_seen        = {}      # run number → log lines already written
        self.start_time       = time.time()

    # ──────────────────────────────────────────────────────────────────────
    # Recording
    # ──────────────────────────────────────────────────────────────────────

    def record_year(self, state: GameState) -> None:
        """Append the year row for *state* and any log lines not yet written."""
        run     = state.run
        res     = run.resources
        run_no  = state.total_runs + 1
        self._years_writer.writerow([
            run_no, run.year, run.status, res.population, res.max_population,
            round(res.food, 3), round(res.preserved_food, 3), round(res.wood, 3),
            round(res.military_strength, 3), round(total_defense(res), 3),
            round(res.food_storage, 3), len(res.researched_techs),
            round(run.total_food_spoiled, 3), run.current_queue_index,
        ] + [state.skills[s].level for s in SKILL_NAMES])

        written = self._log_seen.get(run_no, 0)
        for entry in run.log[written:]:
            self._events_writer.writerow([run_no, entry.year, entry.severity, entry.message])
        self._log_seen[run_no] = len(run.log)

        self._rows += 1
        self._runs_seen.add(run_no)
        self._peak_population = max(self._peak_population, res.population)
        self._final_year      = run.year
        self._final_status    = run.status
        if self._rows % 100 == 0:
            self._years_fh.flush()
            self._events_fh.flush()

    # ──────────────────────────────────────────────────────────────────────
    # Summary
    # ──────────────────────────────────────────────────────────────────────

    def finalize(self) -> dict:
        """Append a summary row to run_summaries.csv and return it."""
        summary = {
            'label':           self.label,
            'runs':            len(self._runs_seen),
            'years_recorded':  self._rows,
            'final_year':      self._final_year,
            'final_status':    self._final_status,
            'peak_population': self._peak_population,
            'wall_clock_seconds': round(time.time() - self.start_time, 2),
        }
        summary_path = os.path.join(self.output_dir, 'run_summaries.csv')
        file_exists  = os.path.isfile(summary_path)
        with open(summary_path, 'a', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=list(summary))
            if not file_exists:
                writer.writeheader()
            writer.writerow(summary)
        return summary

    def close(self) -> None:
        """Flush and close both CSV handles.  Call after finalize()."""
        for fh in (self._years_fh, self._events_fh):
            if not fh.closed:
                fh.flush()
                fh.close()
