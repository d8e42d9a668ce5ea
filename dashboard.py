"""
dashboard.py — Streamlit live dashboard for the epoch civilization simulation.

Launch:
    streamlit run dashboard.py

Reads only dashboard_data.json (written by `python -m epoch_sim --dashboard`);
no simulation modules imported.  Auto-refreshes at 2 FPS via
streamlit-autorefresh (falls back to a manual Refresh button when the
package is not installed).
"""

import json
import pathlib
import numpy as np
import streamlit as st
import plotly.graph_objects as go
import plotly.express as px

# ── streamlit-autorefresh is optional ────────────────────────────────────
try:
    from streamlit_autorefresh import st_autorefresh as _st_autorefresh
    _HAS_AUTOREFRESH = True
except ImportError:
    _HAS_AUTOREFRESH = False

DATA_PATH = pathlib.Path("dashboard_data.json")

RAIDER_YEAR  = 1500
WINTER_START = 4000
WINTER_END   = 4500

_SERIES_COLORS = {
    'food':       '#9ACD32',
    'preserved':  '#D2B48C',
    'wood':       '#A0522D',
    'population': '#66ECFF',
    'defense':    '#FF4B4B',
}
_STATUS_ICON = {
    'idle': '⏸', 'running': '▶', 'paused': '⏸',
    'collapsed': '💀', 'victory': '🏆',
}


# ══════════════════════════════════════════════════════════════════════════
# Snapshot loading, cached per file mtime
# ══════════════════════════════════════════════════════════════════════════

@st.cache_data(ttl=2)
def _read_json(mtime: float) -> dict | None:          # mtime is the cache-bust key
    try:
        return json.loads(DATA_PATH.read_text(encoding='utf-8'))
    except (FileNotFoundError, json.JSONDecodeError):
        return None


def load_data() -> dict | None:
    try:
        mtime = DATA_PATH.stat().st_mtime
    except FileNotFoundError:
        return None
    return _read_json(mtime)


# ══════════════════════════════════════════════════════════════════════════
# Resource history figure
# ══════════════════════════════════════════════════════════════════════════

def history_arrays(history: list, run: int) -> dict[str, np.ndarray]:
    """Column arrays for the samples belonging to *run*."""
    rows = [h for h in history if h.get('run') == run]
    keys = ['year', *_SERIES_COLORS]
    return {k: np.array([r.get(k, 0) for r in rows], dtype=float) for k in keys}


def build_history_chart(data: dict) -> go.Figure:
    """Line chart: stockpiles, population and defense over the current run."""
    cols = history_arrays(data.get('history', []), data['run'])
    fig  = go.Figure()
    for name, color in _SERIES_COLORS.items():
        if cols['year'].size == 0:
            break
        fig.add_trace(go.Scatter(
            x=cols['year'], y=cols[name],
            mode='lines',
            line=dict(color=color, width=2),
            name=name.capitalize(),
            yaxis='y2' if name == 'population' else 'y',
        ))

    # Disaster markers
    fig.add_vline(x=RAIDER_YEAR, line_dash='dot', line_color='#8b5555', opacity=0.7,
                  annotation_text=' Raiders', annotation_font_color='#cc8888')
    fig.add_vrect(x0=WINTER_START, x1=WINTER_END, fillcolor='#7a9aad', opacity=0.15,
                  line_width=0, annotation_text=' Great Cold',
                  annotation_font_color='#9ab8cc')

    fig.update_layout(
        title=dict(text='Run History', font=dict(color='#dddddd', size=13), x=0.0),
        paper_bgcolor='#0e1117',
        plot_bgcolor='#111827',
        font=dict(color='white'),
        xaxis=dict(title='Year', gridcolor='#1e2233', zeroline=False,
                   range=[0, max(data.get('year', 0), 100)]),
        yaxis=dict(title='Amount', gridcolor='#1e2233', zeroline=False),
        yaxis2=dict(title='Population', overlaying='y', side='right', showgrid=False),
        legend=dict(bgcolor='rgba(0,0,0,0)', font=dict(color='white', size=11)),
        margin=dict(l=50, r=60, t=40, b=50),
        height=340,
    )
    return fig


def food_trend(data: dict) -> float:
    """Average change in food per sampled year over the last 20 samples."""
    cols = history_arrays(data.get('history', []), data['run'])
    food, years = cols['food'][-20:], cols['year'][-20:]
    if food.size < 2 or years[-1] == years[0]:
        return 0.0
    return float(np.polyfit(years, food, 1)[0])


# ══════════════════════════════════════════════════════════════════════════
# Skills figure
# ══════════════════════════════════════════════════════════════════════════

def build_skills_chart(data: dict) -> go.Figure:
    skills = data.get('skills', {})
    fig = px.bar(
        x=list(skills), y=[s['level'] for s in skills.values()],
        labels={'x': 'Skill', 'y': 'Level'},
        color=list(skills),
        color_discrete_sequence=['#9ACD32', '#A0522D', '#6699FF', '#FF4B4B'],
    )
    fig.update_layout(
        showlegend=False,
        paper_bgcolor='#0e1117',
        plot_bgcolor='#111827',
        font=dict(color='white'),
        margin=dict(l=40, r=10, t=10, b=40),
        height=220,
    )
    return fig


# ══════════════════════════════════════════════════════════════════════════
# Page setup
# ══════════════════════════════════════════════════════════════════════════

st.set_page_config(
    page_title='Epoch — Live Dashboard',
    page_icon='🏛',
    layout='wide',
    initial_sidebar_state='expanded',
)

# ── Auto-refresh: 500 ms = 2 FPS ─────────────────────────────────────────
if _HAS_AUTOREFRESH:
    _st_autorefresh(interval=500, key='sim_autorefresh')

# ── Load data ─────────────────────────────────────────────────────────────
data = load_data()

# ══════════════════════════════════════════════════════════════════════════
# Sidebar
# ══════════════════════════════════════════════════════════════════════════

with st.sidebar:
    st.title('🏛 Epoch')
    st.caption('Civilization Loop · Live Monitor')

    if not _HAS_AUTOREFRESH:
        if st.button('⟳  Refresh', use_container_width=True):
            st.cache_data.clear()
            st.rerun()
        st.caption('Auto-refresh unavailable.\n`pip install streamlit-autorefresh`')

    st.divider()

    if data is None:
        st.warning(
            '**No snapshot yet.**\n\n'
            'Run the simulation first:\n\n```\npython -m epoch_sim --dashboard\n```\n\n'
            'A new snapshot lands every 25 simulated years.'
        )
    else:
        res = data['resources']
        st.metric('⏳ Year',        f'{data["year"]:,} / {data["max_year"]:,}')
        st.metric('🔁 Run',         str(data['run']))
        st.metric('👥 Population',  f'{res["population"]}/{res["max_population"]}')
        st.metric('🌾 Food',        f'{res["food"]:,} / {res["food_storage"]:,}',
                  delta=f'{food_trend(data):+.2f}/yr')
        st.metric('🪵 Wood',        f'{res["wood"]:,}')
        st.metric('🛡 Defense',     f'{res["defense"]:,}')

        st.divider()
        st.subheader('Skills')
        st.plotly_chart(build_skills_chart(data), use_container_width=True,
                        key='skills_chart', config={'displayModeBar': False})

        if data.get('achievements'):
            st.subheader('Achievements')
            for a in data['achievements']:
                st.markdown(f'🏅 `{a}`')

# ══════════════════════════════════════════════════════════════════════════
# Main panel
# ══════════════════════════════════════════════════════════════════════════

if data is None:
    st.info(
        'No dashboard_data.json in this directory.  \n'
        'Start the simulation (`python -m epoch_sim --dashboard`) and the first '
        'snapshot appears after tick 25.'
    )
    st.stop()

# Header bar
icon = _STATUS_ICON.get(data['status'], '')
st.markdown(
    f'### Year **{data["year"]:,}** &nbsp;·&nbsp; run {data["run"]} &nbsp;·&nbsp; '
    f'{icon} {data["status"]}',
    unsafe_allow_html=True,
)
if data.get('collapse_reason'):
    st.error(data['collapse_reason'])

col_chart, col_right = st.columns([3, 2], gap='medium')

with col_chart:
    st.plotly_chart(
        build_history_chart(data),
        use_container_width=True,
        key='history_chart',
        config={'displayModeBar': False},
    )
    preview = data.get('preview')
    if preview:
        verdict = 'collapses' if preview['collapsed'] else 'ends'
        st.caption(
            f'Preview: this queue {verdict} at year {preview["years_used"]:,} '
            f'with pop {preview["population"]} and {preview["food"]:,} food.'
        )

with col_right:
    st.subheader('Queue')
    queue = data.get('queue', [])
    if not queue:
        st.caption('(empty)')
    for row in queue:
        rep    = '∞' if row['repeat'] < 0 else f'×{row["repeat"]}'
        marker = '▶' if row['active'] else '&nbsp;&nbsp;'
        group  = f' `{row["group_id"]}`' if row['group_id'] else ''
        st.markdown(
            f'{marker} **{row["action"]}** {rep}{group} · done {row["completions"]}',
            unsafe_allow_html=True,
        )
        if row['active']:
            st.progress(min(1.0, row['progress']))

    st.subheader('Chronicle')
    tail = data.get('event_tail', [])
    st.code('\n'.join(reversed(tail[-30:])) or '(nothing yet)', language=None)

    finished = data.get('runs', [])
    if finished:
        st.subheader('Past Runs')
        st.dataframe(finished, hide_index=True, use_container_width=True)
