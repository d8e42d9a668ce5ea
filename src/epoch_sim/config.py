# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
config.py — Shared runtime configuration constants for the epoch simulation.

Simulation rules (food per pop, disaster years, spoilage tuning) are fixed
constants of engine.py / economy.py and are deliberately not listed here.
CLI arguments in sim.run() override these at runtime.
"""

# ── Timer ─────────────────────────────────────────────────────────────────
TICK_MS               = 100    # wall-clock milliseconds between live ticks
AUTO_RESTART_DELAY_MS = 1500   # pause between a collapse and the next run
MAX_TICKS             = 0      # 0 → tick until the run ends (CLI --ticks)

# ── Persistence ───────────────────────────────────────────────────────────
SAVE_PATH        = 'epoch_save.json'
SAVE_EVERY_TICKS = 50          # periodic checkpoint cadence (ticks)

# ── Output ────────────────────────────────────────────────────────────────
LOG_DIR               = 'logs'
METRICS_DIR           = 'data'
DASHBOARD_DATA_PATH   = 'dashboard_data.json'
DASHBOARD_WRITE_EVERY = 25     # snapshot cadence (ticks)
PROGRESS_EVERY        = 250    # terminal progress line cadence (years)

# ── Meta-progression bookkeeping ─────────────────────────────────────────
RUN_HISTORY_LIMIT = 50         # newest runs kept in GameState.run_history
