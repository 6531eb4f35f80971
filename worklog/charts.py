from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence, Tuple

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

LEVEL_COLORS = {"HIGH": "#f97066", "MID": "#f9a825", "LOW": "#4eed9e"}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def daily_trend_chart(daily: Sequence[Tuple[str, int]]) -> alt.Chart:
    trend = pd.DataFrame(daily, columns=["day", "count"])
    trend["day"] = pd.to_datetime(trend["day"])
    # Temporal x keeps year-crossing ranges in date order; only the axis label is shortened.
    return (
        alt.Chart(trend)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("day:T", title="Question Date", axis=alt.Axis(format="%m-%d", grid=False)),
            y=alt.Y("count:Q", title="Cases", axis=alt.Axis(tickMinStep=1, gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("day:T", title="Date", format="%Y-%m-%d"), alt.Tooltip("count:Q", title="Cases")],
        )
        .properties(height=260)
    )


def share_chart(groups: Sequence[Tuple[str, int]], *, title: str) -> alt.Chart:
    df = pd.DataFrame(groups, columns=["label", "count"])
    order = df["label"].tolist()
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=60, outerRadius=100)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("label:N", title=title, sort=order),
            tooltip=[alt.Tooltip("label:N", title=title), alt.Tooltip("count:Q", title="Cases")],
        )
        .properties(height=260)
    )


def count_bar_chart(groups: Sequence[Tuple[str, int]], *, title: str) -> alt.Chart:
    df = pd.DataFrame(groups, columns=["label", "count"])
    return (
        alt.Chart(df)
        .mark_bar(cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
        .encode(
            x=alt.X("label:N", title=title, sort=df["label"].tolist()),
            y=alt.Y("count:Q", title="Count", axis=alt.Axis(tickMinStep=1)),
            tooltip=[alt.Tooltip("label:N", title=title), alt.Tooltip("count:Q", title="Count")],
        )
        .properties(height=240)
    )


def difficulty_time_chart(breakdown: List[Mapping[str, Any]]) -> alt.Chart:
    df = pd.DataFrame(breakdown)
    levels = df["level"].tolist()
    return (
        alt.Chart(df)
        .mark_bar(cornerRadiusTopRight=4, cornerRadiusBottomRight=4)
        .encode(
            y=alt.Y("label:N", title="Difficulty", sort=df["label"].tolist()),
            x=alt.X("avg_minutes:Q", title="Avg Minutes"),
            color=alt.Color(
                "level:N",
                scale=alt.Scale(domain=levels, range=[LEVEL_COLORS[lv] for lv in levels]),
                legend=None,
            ),
            tooltip=[
                alt.Tooltip("label:N", title="Difficulty"),
                alt.Tooltip("count:Q", title="Done Cases"),
                alt.Tooltip("avg_minutes:Q", title="Avg Minutes"),
            ],
        )
        .properties(height=240)
    )
