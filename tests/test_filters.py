from datetime import datetime, timedelta, timezone

import pytest

from delivery_reports.app.context import ALL_OFFICES, DateRange, FilterState
from delivery_reports.app.errors import ValidationError
from delivery_reports.app.filters import IDLE, PENDING_APPLY, FilterController
from delivery_reports.app.models import Office

NOW = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)
OFFICES = [Office(id="o1", name="Lagos"), Office(id="o2", name="Abuja"), Office(id="o3", name="Kano")]


@pytest.fixture
def controller():
    ctrl = FilterController.from_query_params({}, now=NOW)
    ctrl.seen = []
    ctrl.subscribe(ctrl.seen.append)
    return ctrl


def test_initial_state_defaults(controller):
    assert controller.state == IDLE
    assert controller.applied.report_type == "performance"
    assert controller.applied.source_office == ALL_OFFICES
    assert controller.applied.destination_office == ALL_OFFICES
    assert controller.applied.date_range.end == NOW
    assert controller.applied.date_range.start == NOW - timedelta(days=30)


def test_initial_report_type_comes_from_query():
    ctrl = FilterController.from_query_params({"reportType": "monthly"}, now=NOW)
    assert ctrl.applied.report_type == "monthly"


def test_tab_switch_applies_immediately(controller):
    state = controller.select_report_type("routes")

    assert state.report_type == "routes"
    assert controller.applied.report_type == "routes"
    assert controller.state == IDLE
    assert controller.seen == [controller.applied]


def test_tab_switch_to_current_tab_is_a_no_op(controller):
    controller.select_report_type("performance")
    assert controller.seen == []


def test_tab_switch_rejects_unknown_type(controller):
    with pytest.raises(ValidationError):
        controller.select_report_type("weekly")


def test_date_edits_wait_for_apply(controller):
    before = controller.applied
    controller.set_date_range(datetime(2024, 1, 1), datetime(2024, 1, 31))

    assert controller.state == PENDING_APPLY
    assert controller.applied == before
    assert controller.seen == []

    query = controller.apply()

    assert controller.state == IDLE
    assert controller.applied.date_range == DateRange(datetime(2024, 1, 1), datetime(2024, 1, 31))
    assert controller.seen == [controller.applied]
    assert FilterState.from_query_string(query) == controller.applied


def test_apply_is_idempotent(controller):
    controller.set_source_office("o1")
    first = controller.apply()
    second = controller.apply()

    assert first == second
    # Re-applying still notifies so a failed load can be retried.
    assert len(controller.seen) == 2


def test_tab_switch_keeps_pending_edits(controller):
    controller.set_source_office("o2")
    controller.select_report_type("monthly")

    assert controller.applied.source_office == ALL_OFFICES
    assert controller.draft.source_office == "o2"
    assert controller.draft.report_type == "monthly"

    controller.apply()
    assert controller.applied.source_office == "o2"
    assert controller.applied.report_type == "monthly"


def test_destination_cannot_equal_source(controller):
    controller.set_source_office("o1")
    with pytest.raises(ValidationError):
        controller.set_destination_office("o1")
    assert controller.draft.destination_office == ALL_OFFICES


def test_destination_free_when_source_is_all(controller):
    controller.set_destination_office("o1")
    assert controller.draft.destination_office == "o1"


def test_picking_source_equal_to_destination_clears_destination(controller):
    controller.set_destination_office("o2")
    controller.set_source_office("o2")

    assert controller.draft.source_office == "o2"
    assert controller.draft.destination_office == ALL_OFFICES


def test_destination_options_hide_source(controller):
    assert controller.destination_options(OFFICES) == OFFICES
    controller.set_source_office("o1")
    assert [o.id for o in controller.destination_options(OFFICES)] == ["o2", "o3"]


def test_reset_discards_draft(controller):
    controller.set_source_office("o3")
    controller.reset()

    assert controller.state == IDLE
    assert controller.draft == controller.applied
    assert controller.draft.source_office == ALL_OFFICES


def test_incomplete_range_can_be_drafted(controller):
    controller.set_date_range(datetime(2024, 1, 1), None)
    assert not controller.draft.date_range.is_complete


def test_inverted_range_is_rejected(controller):
    with pytest.raises(ValidationError):
        controller.set_date_range(datetime(2024, 2, 1), datetime(2024, 1, 1))
    assert controller.state == IDLE
