# dashboard.py

import logging

import pandas as pd
import streamlit as st

import charts
import psychrometrics
from climate_data import (
    DatasetCache,
    find_vpd_discrepancies,
    load_excel_dataset,
    load_json_dataset,
    workbook_index,
)
from config import get_config
from crop_config import (
    CROP_LABELS,
    WEEKS,
    CropType,
    IslandConfigStore,
    JsonFileBackend,
    MemoryBackend,
    average_band,
    get_band,
    get_focus,
)
from island_stats import (
    compute_statistics,
    assess_island,
    filter_by_island_selection,
    filter_records,
    group_islands_by_week,
    island_energy_status,
    optimal_time_rating,
    pooled_statistics,
    records_to_frame,
    thermal_alerts,
    thermal_profile,
    thermal_summary,
)
from recommendations import (
    Action,
    VPDStatus,
    humidity_scenarios,
    recommend,
    recommend_for_island,
    vpd_surface,
)
from time_blocks import (
    BlockScheme,
    DayNightConvention,
    Period,
    block_label,
    blocks_for,
)

logger = logging.getLogger(__name__)


PERIOD_LABELS = {
    Period.FULL: "Full day",
    Period.DAY: "Day",
    Period.NIGHT: "Night",
}

SCHEME_LABELS = {
    BlockScheme.FIVE_BLOCK: "Five time blocks",
    BlockScheme.TWO_BLOCK: "Day / night",
}

CONVENTION_LABELS = {
    DayNightConvention.PLANT_CYCLE: "Plant cycle (day 23:00-16:59)",
    DayNightConvention.SIMPLE: "Clock (day 06:00-16:59)",
}

SOURCE_OPTIONS = ["Upload JSON", "Upload Excel", "Server data file"]


def _fmt(value, digits=2, suffix=""):
    if value is None or pd.isna(value):
        return "–"
    return f"{value:.{digits}f}{suffix}"


# ----------------- Session-scoped services ----------------- #

def get_config_store() -> IslandConfigStore:
    """One store per session, file-backed when CONFIG_STORE_PATH is set."""
    if "vpd_config_store" not in st.session_state:
        cfg = get_config()
        if cfg.CONFIG_STORE_PATH:
            backend = JsonFileBackend(cfg.CONFIG_STORE_PATH)
        else:
            backend = MemoryBackend()
        st.session_state["vpd_config_store"] = IslandConfigStore(backend)
    return st.session_state["vpd_config_store"]


def _cached(slot: str, key: tuple, loader):
    """Keep one DatasetCache per slot for the current source; a new source replaces it."""
    caches = st.session_state.setdefault("vpd_caches", {})
    cached_key, cache = caches.get(slot, (None, None))
    if cache is None or cached_key != key:
        cache = DatasetCache(loader, ttl_seconds=get_config().DATA_CACHE_TTL_SECONDS)
        caches[slot] = (key, cache)
    return cache.get()


def select_dataset(prefix: str):
    """
    Data source picker shared by the pages. Returns a VPDDataset or None
    after reporting the problem in the page.
    """
    source = st.radio("Data source", SOURCE_OPTIONS, horizontal=True, key=f"{prefix}_source")

    try:
        if source == "Upload JSON":
            uploaded = st.file_uploader(
                "VPD data (JSON)",
                type=["json"],
                key=f"{prefix}_json",
                help="Document with metadata, data and statistics sections.",
            )
            if uploaded is None:
                st.info("Upload a JSON VPD document to begin.")
                return None
            content = uploaded.getvalue()
            return _cached("dataset", ("json", uploaded.name, len(content)), lambda: load_json_dataset(content))

        if source == "Upload Excel":
            uploaded = st.file_uploader(
                "Weekly climate workbook",
                type=["xlsx"],
                key=f"{prefix}_excel",
                help="One sheet per sector with a Time column and per-island readings.",
            )
            if uploaded is None:
                st.info("Upload an Excel workbook to begin.")
                return None
            content = uploaded.getvalue()
            return _excel_dataset(prefix, ("excel", uploaded.name, len(content)), content)

        path = get_config().DATA_PATH
        if not path:
            st.warning("No server data file configured. Set DATA_PATH in the environment or .env.")
            return None
        if path.lower().endswith(".json"):
            return _cached("dataset", ("path", path), lambda: load_json_dataset(path))
        return _excel_dataset(prefix, ("path", path), path)

    except ValueError as e:
        logger.warning(f"Could not load VPD data: {e}")
        st.error(f"Could not load data: {e}")
        return None


def _excel_dataset(prefix: str, key: tuple, source):
    # Sector and date lists are read once per workbook, like the dataset itself
    index = _cached("workbook_index", key, lambda: workbook_index(source))
    if not index:
        st.warning("The workbook has no sheets.")
        return None

    c1, c2 = st.columns(2)
    with c1:
        sector = st.selectbox("Sector", list(index), key=f"{prefix}_sector")
    with c2:
        dates = index[sector]
        if not dates:
            st.warning(f"Sector {sector} has no timestamped rows.")
            return None
        day = st.selectbox("Date", dates, index=len(dates) - 1, key=f"{prefix}_date")
    return _cached("dataset", key + (sector, day), lambda: load_excel_dataset(source, sector, day))


def select_window(prefix: str, default_convention: str):
    """Convention, period and time block pickers; returns (convention, period, block)."""
    c1, c2, c3 = st.columns(3)
    with c1:
        convention = st.selectbox(
            "Day/night convention",
            list(DayNightConvention),
            index=list(DayNightConvention).index(DayNightConvention(default_convention)),
            format_func=lambda c: CONVENTION_LABELS[c],
            key=f"{prefix}_convention",
        )
    with c2:
        period = st.selectbox(
            "Period",
            list(PERIOD_LABELS),
            format_func=lambda p: PERIOD_LABELS[p],
            key=f"{prefix}_period",
        )
    with c3:
        scheme = st.selectbox(
            "Block scheme",
            list(BlockScheme),
            format_func=lambda s: SCHEME_LABELS[s],
            key=f"{prefix}_scheme",
        )
        block = st.selectbox(
            "Time block",
            [None] + blocks_for(scheme),
            format_func=lambda b: "All hours" if b is None else block_label(b, convention),
            key=f"{prefix}_block",
        )
    return convention, period, block


# ----------------- Streamlit UI wrapper classes ----------------- #

class VPDDashboardUI:
    """Per-island VPD statistics and adjustment recommendations for one day."""

    @classmethod
    def render(cls):
        st.subheader("VPD Dashboard")

        st.markdown(
            """
            Load a day of island readings to see:
            - VPD, temperature and humidity per island for the selected period
            - How long each island stayed in its crop's optimal VPD band
            - The cheaper of two ways to move VPD back to target
            """
        )

        dataset = select_dataset("dash")
        if dataset is None:
            return
        if not dataset.records:
            st.warning("The selected data contains no records.")
            return

        cfg = get_config()
        store = get_config_store()
        sector = dataset.sector
        island_ids = dataset.island_ids

        meta = dataset.metadata
        st.caption(
            f"Sector **{sector}** · {meta.get('date', '')} · {len(dataset.records)} records"
            f" · interval {meta.get('timeInterval', 'unknown')}"
        )

        # ---------- Filters ----------
        st.markdown("#### Analysis window")
        convention, period, block = select_window("dash", cfg.DAY_NIGHT_CONVENTION)
        selected = st.multiselect("Islands", island_ids, default=island_ids)

        if not selected:
            st.info("Select at least one island.")
            return

        cls._render_config_editor(store, sector, island_ids)

        records = filter_records(dataset.records, period=period, block=block, convention=convention)
        records = filter_by_island_selection(records, selected)
        if not records:
            st.warning("No records fall inside the selected period and time block.")
            return

        assignments = store.resolve_sector(sector, selected)
        bands = store.bands_for_sector(sector, selected)
        stats = compute_statistics(records, selected, bands)

        # ---------- Statistics ----------
        st.markdown("#### Island statistics")
        rows = []
        for island_id in selected:
            s = stats[island_id]
            assignment = assignments[island_id]
            assessment = assess_island(s, bands[island_id])
            rows.append({
                "Island": island_id,
                "Crop": f"{CROP_LABELS[assignment.crop_type]} w{assignment.week}",
                "Optimal band (kPa)": bands[island_id].label(),
                "Avg VPD": _fmt(s.vpd.avg if s.vpd else None),
                "Min VPD": _fmt(s.vpd.min if s.vpd else None),
                "Max VPD": _fmt(s.vpd.max if s.vpd else None),
                "Std VPD": _fmt(s.vpd.std if s.vpd else None, 3),
                "Avg temp (°C)": _fmt(s.temperature.avg if s.temperature else None, 1),
                "Avg RH (%)": _fmt(s.humidity.avg if s.humidity else None, 1),
                "Time optimal": _fmt(s.optimal_time_percentage, 0, " %"),
                "Rating": optimal_time_rating(s.optimal_time_percentage),
                "Status": assessment.status if assessment else "no data",
            })
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

        # ---------- Charts ----------
        show_consumption = st.checkbox("Show dehumidifier consumption", value=False)
        chart_band = bands[selected[0]] if len(selected) == 1 else average_band(bands.values())
        frame = records_to_frame(records, selected, convention)
        st.plotly_chart(
            charts.vpd_timeline_figure(frame, selected, chart_band, show_consumption),
            use_container_width=True,
        )
        if len(selected) > 1:
            st.caption("Shaded band is the average of the selected islands' optimal bands.")
            st.plotly_chart(charts.island_summary_figure(stats), use_container_width=True)

        # ---------- Recommendations ----------
        st.markdown("#### Recommendations")
        for island_id in selected:
            rec = recommend_for_island(
                stats[island_id],
                bands[island_id],
                island_energy_status(records, island_id),
            )
            with st.container(border=True):
                if rec is None:
                    st.markdown(f"**{island_id}**")
                    st.info("Not enough temperature, humidity and VPD data for a recommendation.")
                    continue
                cls._render_recommendation(island_id, rec)
                assessment = assess_island(stats[island_id], bands[island_id])
                if assessment and assessment.problems:
                    for problem, suggestion in zip(assessment.problems, assessment.suggestions):
                        st.caption(f"⚠️ {problem}: {suggestion.lower()}")

        # ---------- Growth weeks ----------
        st.markdown("#### By growth week")
        groups = [g for g in group_islands_by_week(assignments, selected) if g.island_ids]
        if not groups:
            st.info("None of the selected islands is planted (all are at week 0).")
        for group in groups:
            cls._render_week_section(group, records, frame)

        with st.expander("Check stored VPD values"):
            issues = find_vpd_discrepancies(records)
            if not issues:
                st.success("Stored VPD values agree with temperature and humidity (±0.05 kPa).")
            else:
                st.warning(f"{len(issues)} samples differ from the VPD computed from temperature and RH.")
                st.dataframe(pd.DataFrame(issues), use_container_width=True, hide_index=True)

    @classmethod
    def _render_week_section(cls, group, records, frame):
        islands = list(group.island_ids)
        with st.expander(f"Week {group.week} · {', '.join(islands)} · optimal {group.band.label()} kPa", expanded=True):
            st.plotly_chart(
                charts.vpd_timeline_figure(frame, islands, group.band),
                use_container_width=True,
                key=f"week_{group.week}_timeline",
            )
            pooled = pooled_statistics(records, islands, group.band)
            c1, c2, c3 = st.columns(3)
            c1.metric("Avg VPD", _fmt(pooled.vpd.avg if pooled.vpd else None, 2, " kPa"))
            c2.metric("Time optimal", _fmt(pooled.optimal_time_percentage, 0, " %"))
            c3.metric("Samples", pooled.vpd.count if pooled.vpd else 0)

            rec = recommend_for_island(pooled, group.band)
            if rec is None:
                st.info("Not enough temperature, humidity and VPD data for a recommendation.")
            else:
                cls._render_recommendation(f"Week {group.week}", rec)

    @staticmethod
    def _render_config_editor(store: IslandConfigStore, sector: str, island_ids):
        with st.expander(f"Crop and growth week per island ({sector})"):
            st.caption("Week 0 means the island is empty; it is judged against a wide default band.")
            assignments = store.resolve_sector(sector, island_ids)
            choices = {}
            cols = st.columns(min(len(island_ids), 3))
            for i, island_id in enumerate(island_ids):
                current = assignments[island_id]
                with cols[i % len(cols)]:
                    crop = st.selectbox(
                        f"{island_id} crop",
                        list(CropType),
                        index=list(CropType).index(current.crop_type),
                        format_func=lambda c: CROP_LABELS[c],
                        key=f"cfg_{sector}_{island_id}_crop",
                    )
                    week = st.selectbox(
                        f"{island_id} week",
                        list(WEEKS),
                        index=list(WEEKS).index(current.week),
                        key=f"cfg_{sector}_{island_id}_week",
                    )
                    st.caption(f"{get_focus(crop, week)} · {get_band(crop, week).label()} kPa")
                    choices[island_id] = (crop, week)

            c1, c2 = st.columns(2)
            with c1:
                if st.button("Save configuration", type="primary"):
                    for island_id, (crop, week) in choices.items():
                        store.set(sector, island_id, crop, week)
                    st.success("Configuration saved.")
            with c2:
                if st.button("Reset sector to defaults"):
                    store.clear(sector)
                    for island_id in island_ids:
                        st.session_state.pop(f"cfg_{sector}_{island_id}_crop", None)
                        st.session_state.pop(f"cfg_{sector}_{island_id}_week", None)
                    st.rerun()

    @staticmethod
    def _render_recommendation(island_id: str, rec):
        st.markdown(
            f"**{island_id}** · VPD {rec.current_vpd:.2f} kPa · target {rec.target_vpd:.2f} kPa"
            f" · {rec.current_temperature:.1f} °C / {rec.current_humidity:.0f} % RH"
        )
        if rec.status == VPDStatus.OPTIMAL:
            st.success("VPD is inside the optimal band. Maintain current conditions.")
        elif rec.status == VPDStatus.LOW:
            st.warning("VPD below the optimal band (air too humid for the crop).")
        else:
            st.warning("VPD above the optimal band (air too dry for the crop).")

        if rec.status != VPDStatus.OPTIMAL:
            c1, c2 = st.columns(2)
            for col, option, action, unit in (
                (c1, rec.temperature_option, Action.ADJUST_TEMPERATURE, "°C"),
                (c2, rec.humidity_option, Action.ADJUST_HUMIDITY, "% RH"),
            ):
                star = "⭐ " if rec.recommended_action == action else ""
                with col:
                    st.markdown(f"{star}**{option.kind.capitalize()} {option.delta:+.1f} {unit}**")
                    st.write(
                        f"→ {option.resulting_value:.1f} {unit}, VPD {option.resulting_vpd:.2f} kPa"
                    )
                    st.caption(f"~{option.energy_cost_w:.0f} W · {option.feasibility}")

        t = rec.to_target
        humidity_note = "" if t.humidity_feasible else " (not reachable at this temperature)"
        st.caption(
            f"All the way to target: temperature {t.temperature_delta:+.1f} °C (~{t.temperature_energy_w:.0f} W)"
            f" or RH {t.required_humidity:.1f} %{humidity_note} (~{t.humidity_energy_w:.0f} W);"
            f" {t.cheaper} is cheaper."
        )
        if rec.energy_status is not None:
            st.caption(
                f"Dehumidifiers: avg {rec.energy_status.avg_consumption_kw:.1f} kW,"
                f" peak {rec.energy_status.peak_consumption_kw:.1f} kW"
            )


class ThermalAnalysisUI:
    """Temperature profile, gradients and thermal stages for one island."""

    @classmethod
    def render(cls):
        st.subheader("Thermal Analysis")
        st.markdown(
            "Follow how an island warms and cools through the day. The gradient is the rate of "
            "change between consecutive samples in °C per hour."
        )

        dataset = select_dataset("thermal")
        if dataset is None:
            return
        island_ids = dataset.island_ids
        if not island_ids:
            st.warning("The selected data has no islands.")
            return

        island_id = st.selectbox("Island", island_ids)
        convention, period, block = select_window("thermal", get_config().DAY_NIGHT_CONVENTION)
        records = filter_records(dataset.records, period=period, block=block, convention=convention)
        profile = thermal_profile(records, island_id)
        summary = thermal_summary(profile)
        if summary is None:
            st.warning(f"No temperature data for {island_id} in the selected period and time block.")
            return

        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Average", _fmt(summary["avg_temp"], 1, " °C"))
        c2.metric("Amplitude", _fmt(summary["amplitude"], 1, " °C"))
        c3.metric("Fastest rise", _fmt(summary["max_gradient"], 1, " °C/h"))
        c4.metric("Fastest drop", _fmt(summary["min_gradient"], 1, " °C/h"))
        st.caption(
            f"Min {summary['min_temp']:.1f} °C · max {summary['max_temp']:.1f} °C"
            f" · {summary['degree_hours']:.0f} degree-hours"
        )

        for alert in thermal_alerts(summary):
            notify = st.warning if alert.level == "warning" else st.info
            notify(f"{alert.message} → {alert.action}")

        tabs = st.tabs(["Temperature", "Gradient", "By stage"])
        with tabs[0]:
            st.plotly_chart(charts.thermal_figure(profile, "temperature"), use_container_width=True)
        with tabs[1]:
            st.plotly_chart(charts.thermal_figure(profile, "gradient"), use_container_width=True)
        with tabs[2]:
            by_stage = (
                profile.groupby("stage")
                .agg(avg_temp=("temperature", "mean"), avg_gradient=("gradient", "mean"), samples=("temperature", "size"))
                .reset_index()
            )
            st.dataframe(by_stage, use_container_width=True, hide_index=True)


class VPDOptimizerUI:
    """Manual what-if tool: check a temperature/RH pair against a crop stage."""

    @classmethod
    def render(cls):
        st.subheader("VPD Optimizer")

        st.markdown(
            """
            Enter the current climate and the crop stage. The tool shows where
            VPD sits against the band, the two single-step corrections and the
            humidity that would hit the target exactly.
            """
        )

        c1, c2 = st.columns(2)
        with c1:
            crop = st.selectbox("Crop", list(CropType), format_func=lambda c: CROP_LABELS[c])
            week = st.selectbox("Growth week", list(WEEKS), index=2)
            band = get_band(crop, week)
            st.caption(f"{get_focus(crop, week)} · optimal {band.label()} kPa")
        with c2:
            temp_c = st.number_input("Air temperature (°C)", value=20.0, step=0.5)
            rh = st.number_input("Relative humidity (%)", min_value=0.0, max_value=100.0, value=70.0, step=1.0)

        current_vpd = psychrometrics.vpd(temp_c, rh)
        rec = recommend(temp_c, rh, current_vpd, band)

        st.markdown(f"**VPD: {current_vpd:.2f} kPa**")
        VPDDashboardUI._render_recommendation("Current", rec)

        st.markdown("#### Humidity scenarios at this temperature")
        scenarios = humidity_scenarios(temp_c, band)
        st.dataframe(scenarios.round(3), use_container_width=True, hide_index=True)

        st.markdown("#### VPD map")
        st.plotly_chart(charts.vpd_surface_figure(vpd_surface(band)), use_container_width=True)
