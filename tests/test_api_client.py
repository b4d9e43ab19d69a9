from unittest import mock

import pytest
import requests

from atelier_planner.models.scheduling_model import Placement
from atelier_planner.utils.api_client import HostAPIClient


def make_session(payload):
    session = mock.Mock(spec=requests.Session)
    session.headers = {}
    response = mock.Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    session.get.return_value = response
    session.post.return_value = response
    return session


def test_token_sets_bearer_header():
    session = make_session({})
    HostAPIClient("http://host/api/", token="abc", session=session)
    assert session.headers["Authorization"] == "Bearer abc"


def test_fetch_snapshot_unwraps_data():
    session = make_session({
        "success": True,
        "data": {
            "rooms": [{"id": 1, "capacity": 20}],
            "workshops": [{"id": 3, "name": "Chess", "duration": 2, "max_capacity": 8, "teachers": ["B"]}],
            "availability": {"B": [1, 2]},
        },
    })
    client = HostAPIClient("http://host/api/", session=session)
    snapshot = client.fetch_snapshot()

    session.get.assert_called_once_with("http://host/api/planning/snapshot", timeout=10.0)
    assert snapshot.workshops[0].name == "Chess"
    assert snapshot.availability == {"B": {1, 2}}


def test_push_placements():
    session = make_session({"success": True})
    client = HostAPIClient("http://host/api", session=session, timeout=3)
    client.push_placements([Placement(workshop_id=3, room_id=1, start_slot_id=4, slot_count=1)])

    session.post.assert_called_once_with(
        "http://host/api/planning/placements",
        json={"placements": [{"id": None, "workshop_id": 3, "room_id": 1, "start_slot_id": 4, "slot_count": 1}]},
        timeout=3,
    )


def test_http_errors_propagate():
    session = make_session({})
    session.get.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    client = HostAPIClient("http://host/api", session=session)
    with pytest.raises(requests.HTTPError):
        client.get("planning/snapshot")
