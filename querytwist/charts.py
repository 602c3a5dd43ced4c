import enum
from dataclasses import dataclass
from typing import List, Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .models import ColumnProfile, Row
from .profiler import profile as profile_rows

FIG_W, FIG_H = 6.0, 3.6
COLORS = ["#ea580c", "#d97706", "#e11d48", "#059669", "#0891b2", "#475569", "#8b5cf6", "#db2777"]


class ChartType(enum.Enum):
    BAR = "bar"
    LINE = "line"
    AREA = "area"
    PIE = "pie"


@dataclass(frozen=True)
class ChartSpec:
    chart_type: ChartType
    x: str
    y: str
    temporal_x: bool = False


def compatible_charts(profile: ColumnProfile) -> List[ChartType]:
    charts: List[ChartType] = []
    if not profile.numeric:
        return charts
    charts.append(ChartType.BAR)
    if profile.temporal or profile.categorical or len(profile.numeric) > 1:
        charts += [ChartType.LINE, ChartType.AREA]
    if profile.categorical:
        charts.append(ChartType.PIE)
    return charts


def default_chart(rows: Sequence[Row], previous: Optional[ChartSpec] = None) -> Optional[ChartSpec]:
    """Axis and chart picks for a result set; None when nothing numeric can be plotted."""
    if not rows:
        return None
    prof = profile_rows(rows)
    charts = compatible_charts(prof)
    if not charts:
        return None
    first = rows[0]

    if previous is not None and previous.x in first:
        x = previous.x
    elif prof.temporal:
        x = prof.temporal[0]
    elif prof.categorical:
        x = prof.categorical[0]
    else:
        x = next(iter(first))

    if previous is not None and previous.y in prof.numeric:
        y = previous.y
    else:
        y = prof.numeric[0]

    chart_type = previous.chart_type if previous is not None and previous.chart_type in charts else charts[0]
    return ChartSpec(chart_type=chart_type, x=x, y=y, temporal_x=x in prof.temporal)


# ----- Date-safe plotting + tick helpers -----
def plot_datetime(ax, x_like, y_vals, **kwargs):
    """Plot with a guaranteed date x-axis to avoid categorical UnitData issues."""
    xd = pd.to_datetime(pd.Series(x_like), errors="coerce")
    xnum = mdates.date2num(pd.DatetimeIndex(xd).to_pydatetime())
    line = ax.plot(xnum, np.asarray(y_vals, dtype=float), **kwargs)
    ax.xaxis_date()
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m-%d"))
    return line


def fill_between_datetime(ax, x_like, y1, y2, **kwargs):
    xd = pd.to_datetime(pd.Series(x_like), errors="coerce")
    xnum = mdates.date2num(pd.DatetimeIndex(xd).to_pydatetime())
    ax.fill_between(xnum, np.asarray(y1, dtype=float), np.asarray(y2, dtype=float), **kwargs)
    ax.xaxis_date()


def set_tick_label_alignment(ax, axis="x", rotation=0, ha="center"):
    """Safely set rotation + horizontal alignment on tick labels."""
    if axis in ("x", "both"):
        for lbl in ax.get_xticklabels():
            lbl.set_rotation(rotation)
            lbl.set_horizontalalignment(ha)
    if axis in ("y", "both"):
        for lbl in ax.get_yticklabels():
            lbl.set_rotation(rotation)
            lbl.set_horizontalalignment(ha)


def render_chart(rows: Sequence[Row], spec: ChartSpec):
    df = pd.DataFrame(list(rows))
    y = pd.to_numeric(df[spec.y], errors="coerce").fillna(0.0)
    x = df[spec.x]
    fig, ax = plt.subplots(figsize=(FIG_W, FIG_H))

    if spec.chart_type is ChartType.PIE:
        ax.pie(y.clip(lower=0), labels=x.astype(str), colors=COLORS, autopct="%1.0f%%", textprops={"fontsize": 8})
        ax.axis("equal")
    elif spec.temporal_x and spec.chart_type in (ChartType.LINE, ChartType.AREA):
        ts = pd.DataFrame({"x": pd.to_datetime(x, errors="coerce"), "y": y}).dropna(subset=["x"]).sort_values("x")
        xs, ys = ts["x"], ts["y"]
        plot_datetime(ax, xs, ys, color=COLORS[0], linewidth=2, marker="o", label=spec.y)
        if spec.chart_type is ChartType.AREA:
            fill_between_datetime(ax, xs, np.zeros(len(ys)), ys, color=COLORS[0], alpha=0.2)
        set_tick_label_alignment(ax, axis="x", rotation=45, ha="right")
    else:
        labels = x.astype(str).tolist()
        pos = np.arange(len(labels))
        if spec.chart_type is ChartType.BAR:
            ax.bar(pos, y, color=COLORS[0], label=spec.y)
        else:
            ax.plot(pos, y, color=COLORS[0], linewidth=2, marker="o", label=spec.y)
            if spec.chart_type is ChartType.AREA:
                ax.fill_between(pos, 0, y, color=COLORS[0], alpha=0.2)
        ax.set_xticks(pos)
        ax.set_xticklabels(labels)
        set_tick_label_alignment(ax, axis="x", rotation=45, ha="right")

    if spec.chart_type is not ChartType.PIE:
        ax.set_xlabel(spec.x)
        ax.set_ylabel(spec.y)
        ax.grid(alpha=0.2)
        ax.legend(fontsize=8)
    fig.tight_layout()
    return fig
