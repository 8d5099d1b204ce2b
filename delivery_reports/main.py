from pathlib import Path

import streamlit as st

from delivery_reports.app import config
from delivery_reports.app.context import MONTHLY, PERFORMANCE, REPORT_TYPES
from delivery_reports.app.data_loader import (
    LocalReportSource,
    connect_duckdb,
    resolve_data_path,
    resolve_offices_path,
)
from delivery_reports.app.filters import FilterController
from delivery_reports.app.layout import (
    render_filter_bar,
    render_monthly,
    render_performance,
    render_routes,
)
from delivery_reports.app.logging import configure_logging, get_logger
from delivery_reports.app.report_client import ReportClient
from delivery_reports.app.report_presets import REPORT_PRESETS
from delivery_reports.app.report_queue import ReportFetcher

FETCHER_KEY = "report_fetcher"
CONTROLLER_KEY = "filter_controller"

logger = get_logger(__name__)


@st.cache_resource(show_spinner=False)
def _local_connection(data_path: str, offices_path: str):
    return connect_duckdb(data_path, offices_path)


def _record_source():
    api_url = config.reports_api_url()
    if api_url:
        logger.info("record_source_selected", source="remote", base_url=api_url)
        return ReportClient(api_url)

    data_path = resolve_data_path()
    if not data_path:
        st.error("Data path not configured. Set DATA_PATH or REPORTS_API_URL.")
        st.stop()
    if not Path(data_path).exists():
        st.error("Data path not found. Set DATA_PATH or place consignments.parquet in ./data.")
        st.stop()
    offices_path = resolve_offices_path()
    logger.info("record_source_selected", source="local", data_path=data_path)
    conn = _local_connection(data_path, offices_path)
    return LocalReportSource(conn, config.on_time_threshold(), has_directory=bool(offices_path))


def _session():
    """One fetcher and one filter controller per browser session."""
    if FETCHER_KEY not in st.session_state:
        source = _record_source()
        threshold_hours = config.on_time_threshold().total_seconds() / 3600.0
        fetcher = ReportFetcher(source.fetch_report, on_time_threshold_hours=threshold_hours)
        fetcher.load_offices(source.list_offices)

        controller = FilterController.from_query_params(st.query_params.to_dict())
        controller.subscribe(fetcher.request)
        fetcher.request(controller.applied)

        st.session_state[FETCHER_KEY] = fetcher
        st.session_state[CONTROLLER_KEY] = controller
    return st.session_state[FETCHER_KEY], st.session_state[CONTROLLER_KEY]


def _sync_query_params(controller: FilterController) -> None:
    params = dict(controller.applied.to_query_params())
    if params != st.query_params.to_dict():
        st.query_params.from_dict(params)


def main() -> None:
    st.set_page_config(page_title="Delivery Performance Reports", layout="wide")
    configure_logging(config.SERVICE_NAME, config.log_level())
    fetcher, controller = _session()

    st.title("Delivery Performance Reports")
    st.caption("On-time delivery, monthly trends and route performance for the selected window.")

    office_store = fetcher.snapshot()
    if office_store.office_error:
        st.warning(office_store.office_error)

    if render_filter_bar(controller, office_store.offices):
        controller.apply()

    report_type = st.radio(
        "Report",
        REPORT_TYPES,
        index=REPORT_TYPES.index(controller.applied.report_type),
        format_func=lambda rt: REPORT_PRESETS[rt].label,
        horizontal=True,
        label_visibility="collapsed",
    )
    controller.select_report_type(report_type)
    _sync_query_params(controller)

    with st.spinner("Loading report..."):
        store = fetcher.wait(timeout=config.http_timeout())

    if store.error:
        col_msg, col_retry = st.columns([5, 1])
        col_msg.error(store.error)
        if col_retry.button("Retry", use_container_width=True):
            fetcher.retry()
            st.rerun()

    if not controller.applied.date_range.is_complete:
        st.info("Pick both a start and an end date to load the report.")
        return

    report = store.report
    preset = REPORT_PRESETS[controller.applied.report_type]
    st.subheader(preset.label)
    if report is None:
        return
    if controller.applied.report_type == PERFORMANCE:
        render_performance(report.performance)
    elif controller.applied.report_type == MONTHLY:
        render_monthly(report.monthly)
    else:
        render_routes(report.routes)


if __name__ == "__main__":
    main()
