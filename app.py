import pandas as pd
from shiny import reactive, render
from shiny.express import input, ui
from shinywidgets import render_plotly

# Import organized modules
from env_cohorts.config import (
    COHORT_LABELS,
    DEFAULT_VIEW,
    PARTIES,
    VALUE_COL,
    VIEW_OPTIONS,
)
from env_cohorts.data_manager import try_load_payload
from env_cohorts.plotting import create_cohort_plot

# Helpers for UI mapping
VIEW_MAPPING = {value: label for label, value in VIEW_OPTIONS}

# ======================================================
#  REACTIVE STATE
# ======================================================
# Load once on startup; values stay in-memory until app restart.
# None when no survey wave could be harmonized.
payload_store = reactive.Value(try_load_payload())


@reactive.calc
def filtered_data():
    payload = payload_store.get()
    if payload is None:
        return pd.DataFrame(columns=["party", "cohort", VALUE_COL])

    df = payload[input.view()]
    return df[df["party"].isin(input.parties())]


# ======================================================
#  UI LAYOUT
# ======================================================
ui.page_opts(
    title="Environmental policy support by party and age",
    fillable=False,
    full_width=True,
    lang="en",
)

with ui.sidebar(open="always", position="right"):
    ui.input_select("view", "Age grouping", VIEW_MAPPING, selected=DEFAULT_VIEW)
    ui.input_checkbox_group(
        "parties", "Parties", {party: party for party in PARTIES}, selected=PARTIES
    )
    ui.input_action_button("reset_filters", "Reset filters", class_="btn-primary mt-3")

    @render.ui
    def wave_status():
        payload = payload_store.get()
        if payload is None:
            return ui.p("No survey waves available.", class_="text-danger")
        waves = ", ".join(str(wave) for wave in payload["waves"])
        failed = payload["failed_waves"]
        items = [ui.p(f"Pooled waves: {waves}")]
        for wave, message in failed.items():
            items.append(ui.p(f"Wave {wave} not loaded: {message}", class_="text-danger"))
        return ui.div(*items)


@reactive.effect
@reactive.event(input.reset_filters)
def _reset_filters():
    ui.update_select("view", selected=DEFAULT_VIEW)
    ui.update_checkbox_group("parties", selected=PARTIES)


with ui.navset_tab(id="main_tabs"):
    with ui.nav_panel("Chart"):

        @render_plotly
        def cohort_plot():
            df = filtered_data()
            return create_cohort_plot(df, banded=input.view() == "by_cohort")

    with ui.nav_panel("Data"):

        @render.data_frame
        def display_df():
            table = filtered_data().copy()
            if input.view() == "by_cohort" and not table.empty:
                table["cohort"] = table["cohort"].map(COHORT_LABELS)
            return render.DataGrid(table, height=600, filters=True)
