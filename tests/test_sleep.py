"""
Tests for the sleep entry endpoints
"""

from datetime import datetime, timezone

import pytest

from conftest import bearer, register
from sleep_tracker.models import SleepEntry

NIGHT = {"startTime": "2024-01-01T00:00:00Z", "endTime": "2024-01-01T08:00:00Z"}


def create(client, headers, payload=NIGHT):
    return client.post("/v1/sleep", json=payload, headers=headers)


@pytest.fixture
def other_headers(client):
    token = register(client, name="B", email="b@x.com").json()["data"]["token"]
    client.cookies.clear()
    return bearer(token)


class TestScenario:
    """End-to-end walk through register, login and the sleep lifecycle"""

    def test_full_flow(self, client):
        registered = register(client, name="A", email="a@x.com", password="p12345")
        assert registered.status_code == 201
        assert registered.json()["data"]["token"]
        client.cookies.clear()

        login = client.post("/v1/auth/login", json={"email": "a@x.com", "password": "p12345"})
        assert login.status_code == 200
        headers = bearer(login.json()["data"]["token"])
        client.cookies.clear()

        created = create(client, headers)
        assert created.status_code == 201
        entry = created.json()["data"]
        assert entry["duration"] == 480

        listed = client.get("/v1/sleep", headers=headers)
        assert listed.status_code == 200
        assert len(listed.json()["data"]) == 1

        deleted = client.delete(f"/v1/sleep/{entry['id']}", headers=headers)
        assert deleted.status_code == 200
        assert "data" not in deleted.json()

        listed = client.get("/v1/sleep", headers=headers)
        assert listed.json()["data"] == []


class TestCreate:
    """Test creating entries"""

    def test_created_entry_shape(self, client, auth_headers):
        response = create(client, auth_headers)

        body = response.json()
        assert body["message"] == "Sleep entry created successfully"
        entry = body["data"]
        assert set(entry) == {"id", "userId", "startTime", "endTime", "duration", "createdAt", "updatedAt"}
        assert entry["startTime"] == "2024-01-01T00:00:00Z"

    @pytest.mark.parametrize(
        "end_time, expected",
        [
            ("2024-01-01T00:01:30Z", 2),
            ("2024-01-01T00:01:29Z", 1),
            ("2024-01-01T00:00:20Z", 0),
            ("2024-01-02T01:00:00Z", 1500),
        ],
    )
    def test_duration_is_rounded_minutes(self, client, auth_headers, end_time, expected):
        response = create(client, auth_headers, {"startTime": "2024-01-01T00:00:00Z", "endTime": end_time})

        assert response.json()["data"]["duration"] == expected

    def test_duration_cannot_be_supplied(self, client, auth_headers):
        response = create(client, auth_headers, {**NIGHT, "duration": 5})

        assert response.json()["data"]["duration"] == 480

    def test_offsets_are_normalized(self, client, auth_headers):
        payload = {"startTime": "2024-01-01T01:00:00+01:00", "endTime": "2024-01-01T08:00:00Z"}

        response = create(client, auth_headers, payload)

        assert response.json()["data"]["duration"] == 480

    @pytest.mark.parametrize("payload", [{}, {"startTime": NIGHT["startTime"]}, {"endTime": NIGHT["endTime"]}])
    def test_missing_times(self, client, auth_headers, payload):
        response = create(client, auth_headers, payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Start time and end time are required"

    @pytest.mark.parametrize("end_time", ["2024-01-01T00:00:00Z", "2023-12-31T23:00:00Z"])
    def test_end_must_follow_start(self, client, auth_headers, store, end_time):
        response = create(client, auth_headers, {"startTime": NIGHT["startTime"], "endTime": end_time})

        assert response.status_code == 400
        assert response.json()["message"] == "End time must be after start time"
        assert store.find("sleep_entries") == []

    def test_unparseable_time(self, client, auth_headers):
        response = create(client, auth_headers, {"startTime": "yesterday", "endTime": NIGHT["endTime"]})

        assert response.status_code == 400
        assert response.json()["message"] == "Validation Error"

    def test_requires_auth(self, client):
        response = client.post("/v1/sleep", json=NIGHT)

        assert response.status_code == 401


class TestRead:
    """Test listing and fetching entries"""

    def test_list_is_newest_first(self, client, auth_headers):
        first = create(client, auth_headers).json()["data"]
        second = create(client, auth_headers).json()["data"]

        listed = client.get("/v1/sleep", headers=auth_headers).json()["data"]

        assert [entry["id"] for entry in listed] == [second["id"], first["id"]]

    def test_entries_from_the_same_instant_list_latest_insert_first(self, client, app, store):
        user_id = register(client).json()["data"]["user"]["id"]
        stamp = datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)
        start, end = datetime(2024, 1, 1, 23, 0, tzinfo=timezone.utc), datetime(2024, 1, 2, 7, 0, tzinfo=timezone.utc)
        ids = []
        for _ in range(3):
            entry = SleepEntry(user_id=user_id, start_time=start, end_time=end, created_at=stamp, updated_at=stamp)
            store.insert("sleep_entries", entry.model_dump(mode="json"))
            ids.append(entry.id)

        listed = app.state.sleep.list(user_id)

        assert [entry.id for entry in listed] == ids[::-1]

    def test_list_only_shows_own_entries(self, client, auth_headers, other_headers):
        create(client, other_headers)

        response = client.get("/v1/sleep", headers=auth_headers)

        assert response.json()["data"] == []

    def test_get_entry(self, client, auth_headers):
        entry = create(client, auth_headers).json()["data"]

        response = client.get(f"/v1/sleep/{entry['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"] == entry

    def test_get_unknown_entry(self, client, auth_headers):
        response = client.get(f"/v1/sleep/{'f' * 32}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Sleep entry not found"

    def test_malformed_id(self, client, auth_headers):
        response = client.get("/v1/sleep/not-an-id", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Resource not found"


class TestUpdate:
    """Test partial updates"""

    def test_update_end_recomputes_duration(self, client, auth_headers):
        entry = create(client, auth_headers).json()["data"]

        response = client.put(
            f"/v1/sleep/{entry['id']}", json={"endTime": "2024-01-01T06:30:00Z"}, headers=auth_headers
        )

        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["duration"] == 390
        assert updated["startTime"] == entry["startTime"]

    def test_update_start_recomputes_duration(self, client, auth_headers):
        entry = create(client, auth_headers).json()["data"]

        response = client.put(
            f"/v1/sleep/{entry['id']}", json={"startTime": "2024-01-01T02:00:00Z"}, headers=auth_headers
        )

        assert response.json()["data"]["duration"] == 360

    def test_update_is_validated_against_merged_entry(self, client, auth_headers):
        entry = create(client, auth_headers).json()["data"]

        response = client.put(
            f"/v1/sleep/{entry['id']}", json={"startTime": "2024-01-01T09:00:00Z"}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["message"] == "End time must be after start time"
        stored = client.get(f"/v1/sleep/{entry['id']}", headers=auth_headers).json()["data"]
        assert stored == entry

    def test_empty_update_keeps_entry(self, client, auth_headers):
        entry = create(client, auth_headers).json()["data"]

        response = client.put(f"/v1/sleep/{entry['id']}", json={}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"]["duration"] == entry["duration"]


class TestOwnership:
    """Another user's entries are invisible"""

    def test_cross_user_access_is_not_found(self, client, auth_headers, other_headers):
        entry = create(client, other_headers).json()["data"]
        path = f"/v1/sleep/{entry['id']}"

        responses = [
            client.get(path, headers=auth_headers),
            client.put(path, json={"endTime": "2024-01-01T09:00:00Z"}, headers=auth_headers),
            client.delete(path, headers=auth_headers),
        ]

        for response in responses:
            assert response.status_code == 404
            assert response.json()["message"] == "Sleep entry not found"
            assert "data" not in response.json()

        still_there = client.get(path, headers=other_headers).json()["data"]
        assert still_there == entry


class TestDelete:
    """Test deletion"""

    def test_delete_twice(self, client, auth_headers):
        entry = create(client, auth_headers).json()["data"]

        first = client.delete(f"/v1/sleep/{entry['id']}", headers=auth_headers)
        second = client.delete(f"/v1/sleep/{entry['id']}", headers=auth_headers)

        assert first.json()["message"] == "Sleep entry deleted successfully"
        assert second.status_code == 404
