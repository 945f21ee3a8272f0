import pandas as pd
import plotly.graph_objects as go

from .config import COHORT_LABELS, PARTIES, PARTY_COLORS, VALUE_COL


# ============================================================
# Configuration / constants
# ============================================================

HOVER_TEMPLATE_AGE = (
    "Party: %{customdata[0]}<br>"
    "Age: %{x}<br>"
    "Environmental support: %{y:.2f} of 4<extra></extra>"
)

HOVER_TEMPLATE_COHORT = (
    "Party: %{customdata[0]}<br>"
    "Cohort: %{customdata[1]}<br>"
    "Environmental support: %{y:.2f} of 4<extra></extra>"
)


# ============================================================
# Helper functions
# ============================================================


def _build_palette(party_colors: dict[str, str] | None) -> dict[str, str]:
    """
    Merge user-supplied colors with defaults (user overrides default).
    """
    return {**PARTY_COLORS, **(party_colors or {})}


def _cohort_text(cohort: int) -> str:
    return COHORT_LABELS.get(int(cohort), str(cohort))


# ============================================================
# Main plotting function
# ============================================================


def create_cohort_plot(
    df: pd.DataFrame,
    *,
    banded: bool,
    title: str | None = None,
    value_col: str = VALUE_COL,
    party_colors: dict[str, str] | None = None,
) -> go.Figure:
    """
    Line chart of weighted mean environmental support by cohort, one line per party.

    Parameters
    ----------
    df : pd.DataFrame
        Aggregate table with columns 'party', 'cohort' and value_col, as
        produced by ``aggregate.result_to_frame``.
    banded : bool
        True when 'cohort' holds band labels (1-4); the x axis then shows
        the band age ranges. False when 'cohort' holds capped ages.
    title : str | None, default None
        Figure title; a default is derived from ``banded``.
    value_col : str, default "weighted_mean_env_scale"
        Column used for the Y-axis.
    party_colors : dict[str, str] | None, default None
        Optional mapping of party -> hex color. Overrides defaults.

    Returns
    -------
    go.Figure
        A Plotly Figure; empty when ``df`` has no plottable rows.
    """
    df_clean = df.dropna(subset=["party", "cohort", value_col])
    if df_clean.empty:
        return go.Figure()

    palette = _build_palette(party_colors)
    hover_template = HOVER_TEMPLATE_COHORT if banded else HOVER_TEMPLATE_AGE

    fig = go.Figure()
    for party in PARTIES:
        sub = df_clean[df_clean["party"] == party].sort_values("cohort")
        if sub.empty:
            continue

        x = [_cohort_text(c) for c in sub["cohort"]] if banded else sub["cohort"]
        color = palette.get(party)
        fig.add_trace(
            go.Scatter(
                x=x,
                y=sub[value_col],
                mode="lines+markers",
                line=dict(width=3, color=color),
                marker=dict(size=9 if banded else 5, color=color),
                name=party,
                hovertemplate=hover_template,
                customdata=list(
                    zip([party] * len(sub), [_cohort_text(c) for c in sub["cohort"]])
                ),
            )
        )

    if title is None:
        title = (
            "Support for environmental policy by party and age cohort"
            if banded
            else "Support for environmental policy by party and age"
        )

    fig.update_xaxes(
        title_text="Age cohort" if banded else "Age (85 = 85 and older)",
        type="category" if banded else "linear",
    )
    fig.update_yaxes(
        title_text="Weighted mean of pro-environment answers (0-4)",
        range=[0, 4],
    )
    fig.update_layout(
        title=dict(text=f"<b>{title}</b>", x=0.5),
        height=600,
        width=1000,
        legend=dict(
            title="Party",
            orientation="h",
            x=0.5,
            y=1.02,
            xanchor="center",
            yanchor="bottom",
            bordercolor="#c7c7c7",
            borderwidth=2,
            bgcolor="#f9f9f9",
            font=dict(size=12),
        ),
        margin=dict(t=100, l=50, r=80, b=40),
        plot_bgcolor="#f5f7fb",
        xaxis_showgrid=True,
    )
    return fig
