"""Tests using realistic RailRadar API responses to validate fetching and normalization.

These exercise the shapes the real API returns:
- the {success, data, error} envelope, with `retryable` error flags
- scheduled routes in minutes-after-midnight plus a 1-based `day`
- live routes keyed by `station.code` with epoch-second actual times
- non-halting stations mixed into the scheduled route
- trains with no live data at all
"""

from datetime import date, datetime, timezone
from unittest.mock import patch

import httpx
import pytest

import railradar_status.api as api
from railradar_status.models import RecordStatus, StopStatus
from railradar_status.reconcile import reconcile
from conftest import (
    FIXED_NOW, JOURNEY_DATE,
    ist, load_fixture, make_mock_httpx_client,
)


API_URL = "https://railradar.in/api/v1/trains/12301"


def make_raw_response(status_code, text="", json_body=None):
    """A real httpx.Response, so raise_for_status behaves as it does live."""
    request = httpx.Request("GET", API_URL)
    if json_body is not None:
        return httpx.Response(status_code, json=json_body, request=request)
    return httpx.Response(status_code, text=text, request=request)


@pytest.fixture
def live_status():
    data = load_fixture("train_status_live.json")["data"]
    return api.parse_train_status(data, JOURNEY_DATE)


@pytest.fixture
def live_view(live_status):
    return reconcile(live_status.itinerary, live_status.live_feed)


# =============================================================================
# TestFetchTrainStatus
# =============================================================================


class TestFetchTrainStatus:
    """Feed fixtures through fetch_train_status via mocked httpx."""

    @patch("railradar_status.api.httpx.Client")
    def test_success_returns_data(self, mock_client_cls):
        mock_client_cls.return_value = make_mock_httpx_client(load_fixture("train_status_live.json"))

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert "error" not in result
        assert result["train"]["trainNumber"] == "12301"
        assert len(result["route"]) == 5

    @patch("railradar_status.api.httpx.Client")
    def test_request_shape(self, mock_client_cls):
        client = make_mock_httpx_client(load_fixture("train_status_live.json"))
        mock_client_cls.return_value = client

        api.fetch_train_status("12301", JOURNEY_DATE)

        client.get.assert_called_once_with(
            API_URL,
            params={"journeyDate": "2025-10-05"},
            headers={"X-Api-Key": "test-key"},
        )

    @patch("railradar_status.api.httpx.Client")
    def test_explicit_api_key_wins(self, mock_client_cls):
        client = make_mock_httpx_client(load_fixture("train_status_live.json"))
        mock_client_cls.return_value = client

        api.fetch_train_status("12301", JOURNEY_DATE, api_key="other-key")

        assert client.get.call_args.kwargs["headers"] == {"X-Api-Key": "other-key"}

    @patch("railradar_status.api.httpx.Client")
    def test_missing_api_key(self, mock_client_cls, monkeypatch):
        monkeypatch.delenv("RAIL_RADAR_API_KEY")

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result["code"] == "NO_API_KEY"
        assert "RAIL_RADAR_API_KEY" in result["error"]
        mock_client_cls.assert_not_called()

    @patch("railradar_status.api.httpx.Client")
    def test_not_found_is_not_retried(self, mock_client_cls):
        client = make_mock_httpx_client(load_fixture("train_not_found.json"))
        mock_client_cls.return_value = client

        result = api.fetch_train_status("99999", JOURNEY_DATE)

        assert result == {"error": "Train 99999 not found", "code": "TRAIN_NOT_FOUND"}
        assert client.get.call_count == 1

    @patch("railradar_status.api.httpx.Client")
    def test_retryable_error_is_retried(self, mock_client_cls):
        client = make_mock_httpx_client(load_fixture("upstream_unavailable.json"))
        mock_client_cls.return_value = client

        with patch("railradar_status.api.sleep") as mock_sleep:
            result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result["code"] == "UPSTREAM_UNAVAILABLE"
        assert client.get.call_count == api.MAX_RETRIES
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2, 4]

    @patch("railradar_status.api.httpx.Client")
    def test_recovers_after_retry(self, mock_client_cls):
        client = make_mock_httpx_client(None)
        failure = make_raw_response(200, json_body=load_fixture("upstream_unavailable.json"))
        success = make_raw_response(200, json_body=load_fixture("train_status_live.json"))
        client.get.side_effect = [failure, success]
        mock_client_cls.return_value = client

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert "error" not in result
        assert client.get.call_count == 2

    @patch("railradar_status.api.httpx.Client")
    def test_server_error_page_is_retried(self, mock_client_cls):
        client = make_mock_httpx_client(None)
        client.get.return_value = make_raw_response(503, text="<html>Service Unavailable</html>")
        mock_client_cls.return_value = client

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result == {"error": "HTTP 503", "code": "HTTP_ERROR"}
        assert client.get.call_count == api.MAX_RETRIES

    @patch("railradar_status.api.httpx.Client")
    def test_client_error_page_is_not_retried(self, mock_client_cls):
        client = make_mock_httpx_client(None)
        client.get.return_value = make_raw_response(404, text="Not Found")
        mock_client_cls.return_value = client

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result["error"] == "HTTP 404"
        assert client.get.call_count == 1

    @patch("railradar_status.api.httpx.Client")
    def test_transport_error_is_retried(self, mock_client_cls):
        client = make_mock_httpx_client(None)
        client.get.side_effect = httpx.ConnectError("Connection refused")
        mock_client_cls.return_value = client

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result == {"error": "Connection refused", "code": "TRANSPORT_ERROR"}
        assert client.get.call_count == api.MAX_RETRIES

    @patch("railradar_status.api.httpx.Client")
    def test_non_json_ok_response(self, mock_client_cls):
        client = make_mock_httpx_client(None)
        client.get.return_value = make_raw_response(200, text="<html>maintenance</html>")
        mock_client_cls.return_value = client

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result["code"] == "BAD_RESPONSE"
        assert client.get.call_count == 1

    @patch("railradar_status.api.httpx.Client")
    def test_json_without_envelope(self, mock_client_cls):
        mock_client_cls.return_value = make_mock_httpx_client({"trainNumber": "12301"})

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result["code"] == "BAD_RESPONSE"

    @patch("railradar_status.api.httpx.Client")
    def test_string_error_in_envelope(self, mock_client_cls):
        mock_client_cls.return_value = make_mock_httpx_client({"success": False, "error": "boom"})

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert result == {"error": "boom", "code": None}

    @patch("railradar_status.api.httpx.Client")
    def test_success_without_data(self, mock_client_cls):
        mock_client_cls.return_value = make_mock_httpx_client({"success": True, "data": None})

        result = api.fetch_train_status("12301", JOURNEY_DATE)

        assert "error" in result


# =============================================================================
# TestParseTrainStatus
# =============================================================================


class TestParseTrain:
    def test_metadata(self, live_status):
        train = live_status.train
        assert train.number == "12301"
        assert train.name == "Howrah Rajdhani Express"
        assert train.source_name == "Howrah Jn"
        assert train.destination_code == "NDLS"
        assert train.running_days == "Daily"
        assert train.travel_time_minutes == 1030
        assert train.distance_km == 1447
        assert train.return_train_number == "12302"

    def test_alternate_day_train(self):
        data = load_fixture("train_status_no_live.json")["data"]
        train = api.parse_train_status(data, JOURNEY_DATE).train
        assert train.running_days == "Mo We Fr"
        assert train.return_train_number == ""

    def test_empty_data(self):
        status = api.parse_train_status({})
        assert status.train.number == ""
        assert len(status.itinerary) == 0
        assert status.live_feed is None
        assert status.journey_date is None


class TestParseItinerary:
    def test_passing_stations_skipped(self, live_status):
        codes = [s.station_code for s in live_status.itinerary]
        assert codes == ["HWH", "ASN", "DHN", "NDLS"]
        assert [s.sequence_index for s in live_status.itinerary] == [0, 1, 2, 3]

    def test_passing_stations_included_on_request(self):
        data = load_fixture("train_status_live.json")["data"]
        status = api.parse_train_status(data, JOURNEY_DATE, include_passing=True)
        stops = status.itinerary.stops
        assert [s.station_code for s in stops] == ["HWH", "BWN", "ASN", "DHN", "NDLS"]
        assert not stops[1].is_halt

    def test_scheduled_times(self, live_status):
        origin, asansol, _, terminus = live_status.itinerary.stops
        assert origin.scheduled_arrival is None
        assert origin.scheduled_departure == ist(16, 50)
        assert asansol.scheduled_arrival == ist(19, 31)
        assert terminus.scheduled_arrival == ist(10, 0, day=6)
        assert terminus.day == 2
        assert terminus.scheduled_departure is None

    def test_route_sorted_by_sequence(self):
        route = [
            {"sequence": 2, "stationCode": "bbb", "stationName": "B", "scheduledArrival": 60},
            {"sequence": 1, "stationCode": "aaa", "stationName": "A", "scheduledDeparture": 0},
        ]
        itinerary = api.parse_itinerary(route, date(2025, 10, 5))
        assert [s.station_code for s in itinerary] == ["AAA", "BBB"]
        assert itinerary.stops[0].scheduled_departure == ist(0, 0)

    def test_entries_without_code_dropped(self):
        route = [{"sequence": 1, "stationName": "Nowhere"}, "junk", None]
        assert len(api.parse_itinerary(route, None)) == 0

    def test_schedule_beyond_calendar_left_blank(self):
        route = [
            {"sequence": 1, "stationCode": "A", "scheduledDeparture": 10**13},
            {"sequence": 2, "stationCode": "B", "scheduledArrival": 60, "day": 10**9},
        ]
        itinerary = api.parse_itinerary(route, date(2025, 10, 5))
        assert [s.station_code for s in itinerary] == ["A", "B"]
        assert itinerary.stops[0].scheduled_departure is None
        assert itinerary.stops[1].scheduled_arrival is None

    def test_oversized_schedule_in_full_payload(self):
        data = {
            "train": {"trainNumber": "12301"},
            "route": [{"stationCode": "A", "sequence": 1, "scheduledDeparture": 10**13}],
        }
        status = api.parse_train_status(data, JOURNEY_DATE)
        assert status.itinerary.stops[0].scheduled_departure is None

    def test_journey_date_falls_back_to_live_data(self):
        data = load_fixture("train_status_live.json")["data"]
        status = api.parse_train_status(data)
        assert status.journey_date == date(2025, 10, 5)
        assert status.itinerary.stops[0].scheduled_departure == ist(16, 50)


class TestParseLiveFeed:
    def test_records(self, live_status):
        records = {r.station_code: r for r in live_status.live_feed.records}
        assert set(records) == {"HWH", "ASN", "DHN", "NDLS"}
        assert records["ASN"].actual_arrival == ist(19, 43)
        assert records["ASN"].delay_arrival_minutes == 12
        assert records["DHN"].delay_departure_minutes is None
        assert records["NDLS"].actual_arrival is None

    def test_status_stamped_against_now(self, live_status):
        records = {r.station_code: r for r in live_status.live_feed.records}
        assert records["HWH"].status is RecordStatus.DEPARTED
        assert records["ASN"].status is RecordStatus.DEPARTED
        assert records["DHN"].status is RecordStatus.ARRIVED
        assert records["NDLS"].status is None

    def test_current_location(self, live_status):
        location = live_status.live_feed.current_location
        assert location.station_code == "DHN"
        assert location.status == "Arrived at"
        assert location.distance_from_origin_km == 259.4
        assert location.distance_from_last_station_km == 0.0
        assert (location.latitude, location.longitude) == (23.7957, 86.4304)

    def test_feed_metadata(self, live_status):
        feed = live_status.live_feed
        assert feed.summary == "Running 2 min early"
        assert feed.data_source == "NTES"
        assert feed.last_updated_at == datetime(2025, 10, 5, 15, 20, tzinfo=timezone.utc)

    def test_no_live_data(self):
        data = load_fixture("train_status_no_live.json")["data"]
        assert api.parse_train_status(data, JOURNEY_DATE).live_feed is None

    def test_blank_summary(self):
        feed = api.parse_live_feed({"statusSummary": "  ", "route": []}, now=FIXED_NOW)
        assert feed.summary is None
        assert feed.records == ()

    def test_live_data_snake_case_key(self):
        data = load_fixture("train_status_live.json")["data"]
        data["live_data"] = data.pop("liveData")
        assert api.parse_train_status(data, JOURNEY_DATE).live_feed is not None


class TestParseStopRecord:
    def test_explicit_tag_kept(self):
        record = api.parse_stop_record(
            {"stationCode": "abc", "status": "Upcoming", "actualArrival": 1759663500},
            now=FIXED_NOW,
        )
        assert record.station_code == "ABC"
        assert record.status is RecordStatus.UPCOMING

    def test_not_stamped_without_now(self):
        record = api.parse_stop_record({"stationCode": "ABC", "actualDeparture": 1759663500})
        assert record.status is None

    def test_missing_code(self):
        assert api.parse_stop_record({"actualArrival": 1759663500}) is None
        assert api.parse_stop_record({"station": {"code": None}}) is None

    def test_malformed_delay_is_unknown(self):
        record = api.parse_stop_record({"stationCode": "ABC", "delayArrivalMinutes": "late"})
        assert record.delay_arrival_minutes is None


class TestStampRecordStatus:
    def test_departed(self):
        assert api.stamp_record_status(ist(20), ist(20, 5), FIXED_NOW) is RecordStatus.DEPARTED

    def test_arrived_waiting(self):
        assert api.stamp_record_status(ist(20), None, FIXED_NOW) is RecordStatus.ARRIVED

    def test_departure_in_future_is_still_arrived(self):
        assert api.stamp_record_status(ist(20), ist(21, 30), FIXED_NOW) is RecordStatus.ARRIVED

    def test_arrival_in_future(self):
        assert api.stamp_record_status(ist(22), None, FIXED_NOW) is RecordStatus.UPCOMING

    def test_nothing_known(self):
        assert api.stamp_record_status(None, None, FIXED_NOW) is None


# =============================================================================
# TestFixtureReconcile
# =============================================================================


class TestFixtureReconcile:
    def test_statuses(self, live_view):
        assert [(s.station_code, s.status) for s in live_view.stops] == [
            ("HWH", StopStatus.DEPARTED),
            ("ASN", StopStatus.DEPARTED),
            ("DHN", StopStatus.CURRENT),
            # Live record present but empty: no position information
            ("NDLS", StopStatus.SCHEDULED),
        ]

    def test_origin(self, live_view):
        origin = live_view.stops[0]
        assert origin.scheduled_display == "Start\n16:50"
        assert origin.actual_display == "Dep: 16:55"
        assert origin.caption == "Left at 16:55"
        assert [a.describe() for a in origin.delay_annotations] == ["Departure Late +5m"]

    def test_intermediate(self, live_view):
        asansol = live_view.stops[1]
        assert asansol.scheduled_display == "Arr: 19:31\nDep: 19:33"
        assert asansol.actual_display == "Arr: 19:43\nDep: 19:45"
        assert [a.describe() for a in asansol.delay_annotations] == [
            "Arrival Late +12m", "Departure Late +12m",
        ]

    def test_current(self, live_view):
        current = live_view.current_stop
        assert current.station_code == "DHN"
        assert current.actual_display == "Arr: 20:48"
        assert [a.describe() for a in current.delay_annotations] == ["Arrival Early -2m"]
        assert live_view.current_station_name == "Dhanbad Jn"

    def test_terminus(self, live_view):
        terminus = live_view.stops[-1]
        assert terminus.scheduled_display == "10:00\nEnd"
        assert terminus.actual_display == "--"
        assert terminus.delay_annotations == ()
        assert terminus.platform == "14"

    def test_progress(self, live_view):
        assert live_view.has_live_data
        assert live_view.completed_count == 2

    def test_passing_station_behind_pointer_is_completed(self):
        data = load_fixture("train_status_live.json")["data"]
        status = api.parse_train_status(data, JOURNEY_DATE, include_passing=True)
        view = reconcile(status.itinerary, status.live_feed)
        assert view.stops[1].station_code == "BWN"
        assert view.stops[1].status is StopStatus.COMPLETED

    def test_no_live_data(self):
        data = load_fixture("train_status_no_live.json")["data"]
        status = api.parse_train_status(data, JOURNEY_DATE)
        view = reconcile(status.itinerary, status.live_feed)
        assert not view.has_live_data
        assert all(s.status is StopStatus.SCHEDULED for s in view.stops)
        assert view.stops[2].platform is None
