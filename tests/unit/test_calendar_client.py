"""Unit tests for the Google Calendar API client"""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from googleapiclient.errors import HttpError

from calq.calendar.client import CalendarFetchError, GoogleCalendarClient, client_factory


@pytest.fixture
def service():
    return Mock()


@pytest.fixture
def client(service):
    return GoogleCalendarClient(credentials=Mock(), service=service)


def test_list_events_follows_pages(client, service):
    list_call = service.events.return_value.list
    list_call.return_value.execute.side_effect = [
        {"items": [{"id": "1"}, {"id": "2"}], "nextPageToken": "p2"},
        {"items": [{"id": "3"}]},
    ]

    items = client.list_events("primary", "2024-06-10T00:00:00+00:00", "2024-06-11T00:00:00+00:00")

    assert [i["id"] for i in items] == ["1", "2", "3"]
    assert list_call.call_count == 2
    first_kwargs = list_call.call_args_list[0].kwargs
    assert first_kwargs["calendarId"] == "primary"
    assert first_kwargs["singleEvents"] is True
    assert first_kwargs["orderBy"] == "startTime"
    assert first_kwargs["pageToken"] is None
    assert list_call.call_args_list[1].kwargs["pageToken"] == "p2"


def test_list_events_wraps_http_error(client, service):
    error = HttpError(Mock(status=403, reason="Forbidden"), b"forbidden")
    service.events.return_value.list.return_value.execute.side_effect = error

    with pytest.raises(CalendarFetchError) as exc_info:
        client.list_events("shared@group", "a", "b")

    assert exc_info.value.calendar_id == "shared@group"


def test_list_events_wraps_network_error(client, service):
    service.events.return_value.list.return_value.execute.side_effect = OSError("timed out")

    with pytest.raises(CalendarFetchError):
        client.list_events("primary", "a", "b")


def test_list_calendars(client, service):
    service.calendarList.return_value.list.return_value.execute.return_value = {
        "items": [
            {"id": "me@example.com", "summary": "Me", "primary": True},
            {"id": "team", "summary": "Team", "backgroundColor": "#ff0000"},
        ]
    }

    calendars = client.list_calendars()

    assert [c.id for c in calendars] == ["me@example.com", "team"]
    assert calendars[0].primary is True
    assert calendars[1].color == "#ff0000"


@patch("calq.calendar.client.build")
def test_service_built_lazily_for_calendar_v3(mock_build):
    credentials = Mock()
    client = GoogleCalendarClient(credentials)

    mock_build.assert_not_called()
    assert client.service is mock_build.return_value
    mock_build.assert_called_once_with(
        "calendar", "v3", credentials=credentials, cache_discovery=False
    )


def test_client_factory_gets_fresh_credentials():
    oauth = Mock()

    client = client_factory(oauth)()

    oauth.get_credentials.assert_called_once_with()
    assert client.credentials is oauth.get_credentials.return_value
