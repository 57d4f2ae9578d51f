"""
Tests for the /classes API endpoints.
"""
from datetime import date, datetime, time, timedelta, timezone
from uuid import uuid4
from fastapi.testclient import TestClient

from tests.constants import DAYS_AHEAD


BASE_DAY = date.today() + timedelta(days=DAYS_AHEAD)


def utc(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def class_body(catalogue: dict, title: str = "Algebra I", instructor: str = "instructor", room: str = "room", **rule) -> dict:
    body = {
        "title": title,
        "instructorId": catalogue[instructor]["id"],
        "roomId": catalogue[room]["id"],
        "recurrenceKind": "single",
        "seriesStartDate": BASE_DAY.isoformat(),
        "timeSlots": [{"start": "14:00", "end": "16:00"}],
    }
    body.update(rule)
    return body


def daily_body(catalogue: dict, title: str = "Daily Drills", days: int = 3) -> dict:
    return class_body(
        catalogue, title=title,
        recurrenceKind="daily",
        seriesEndDate=(BASE_DAY + timedelta(days=days - 1)).isoformat(),
        timeSlots=[{"start": "09:00", "end": "10:00"}]
    )


class TestHealthCheck:

    def test_health_check(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestClassesAPIPreview:

    def test_preview_weekly_rule(self, client: TestClient):
        response = client.post("/classes/preview", json={
            "recurrenceKind": "daily",
            "seriesStartDate": BASE_DAY.isoformat(),
            "seriesEndDate": (BASE_DAY + timedelta(days=6)).isoformat(),
            "intervalUnit": 2,
            "timeSlots": [{"start": "08:00", "end": "09:00"}],
        })
        assert response.status_code == 200
        starts = [parse(item["start"]) for item in response.json()]
        assert starts == [utc(BASE_DAY + timedelta(days=offset), 8) for offset in (0, 2, 4, 6)]

    def test_preview_does_not_save(self, client: TestClient):
        client.post("/classes/preview", json={
            "recurrenceKind": "single",
            "seriesStartDate": BASE_DAY.isoformat(),
            "timeSlots": [{"start": "08:00", "end": "09:00"}],
        })
        assert client.get("/classes/").json()["total"] == 0

    def test_preview_rejects_short_slot(self, client: TestClient):
        response = client.post("/classes/preview", json={
            "recurrenceKind": "single",
            "seriesStartDate": BASE_DAY.isoformat(),
            "timeSlots": [{"start": "08:00", "end": "08:15"}],
        })
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "timeSlots"

    def test_preview_unknown_kind_is_unprocessable(self, client: TestClient):
        response = client.post("/classes/preview", json={
            "recurrenceKind": "yearly",
            "seriesStartDate": BASE_DAY.isoformat(),
        })
        assert response.status_code == 422


class TestClassesAPIWrite:

    def test_create_class(self, client: TestClient, api_catalogue: dict):
        response = client.post("/classes/", json=class_body(api_catalogue))
        assert response.status_code == 201
        series = response.json()
        assert series["title"] == "Algebra I"
        assert series["recurrenceKind"] == "single"
        assert series["instructor"]["email"] == api_catalogue["instructor"]["email"]
        assert series["room"]["roomType"]["name"] == "Lecture Hall"
        assert len(series["sessions"]) == 1
        assert parse(series["sessions"][0]["start"]) == utc(BASE_DAY, 14)
        assert series["exceptions"] == []

    def test_create_conflict_returns_409(self, client: TestClient, api_catalogue: dict):
        first = client.post("/classes/", json=class_body(api_catalogue)).json()
        response = client.post("/classes/", json=class_body(
            api_catalogue, title="Poetry", instructor="other_instructor",
            timeSlots=[{"start": "15:00", "end": "17:00"}]
        ))
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["field"] == "room"
        assert detail["details"][0]["seriesId"] == first["id"]
        assert detail["details"][0]["seriesTitle"] == "Algebra I"

    def test_create_weekly_without_weekdays_is_unprocessable(self, client: TestClient, api_catalogue: dict):
        response = client.post("/classes/", json=class_body(
            api_catalogue, recurrenceKind="weekly",
            seriesEndDate=(BASE_DAY + timedelta(days=14)).isoformat(), weekdays=[]
        ))
        assert response.status_code == 422

    def test_create_with_unknown_room(self, client: TestClient, api_catalogue: dict):
        body = class_body(api_catalogue)
        body["roomId"] = str(uuid4())
        response = client.post("/classes/", json=body)
        assert response.status_code == 404
        assert response.json()["detail"]["field"] == "roomId"

    def test_update_class_replaces_sessions(self, client: TestClient, api_catalogue: dict):
        series = client.post("/classes/", json=daily_body(api_catalogue)).json()
        body = daily_body(api_catalogue, title="Daily Drills (extended)", days=5)
        response = client.put(f"/classes/{series['id']}", json=body)
        assert response.status_code == 200
        updated = response.json()
        assert updated["title"] == "Daily Drills (extended)"
        assert len(updated["sessions"]) == 5

    def test_update_missing_class(self, client: TestClient, api_catalogue: dict):
        response = client.put(f"/classes/{uuid4()}", json=daily_body(api_catalogue))
        assert response.status_code == 404

    def test_delete_class(self, client: TestClient, api_catalogue: dict):
        series = client.post("/classes/", json=class_body(api_catalogue)).json()
        response = client.delete(f"/classes/{series['id']}")
        assert response.status_code == 204
        assert client.get(f"/classes/{series['id']}").status_code == 404


class TestClassesAPIRead:

    def test_list_classes_paginates(self, client: TestClient, api_catalogue: dict):
        for offset in range(3):
            day = (BASE_DAY + timedelta(days=offset)).isoformat()
            assert client.post("/classes/", json=class_body(api_catalogue, title=f"Session {offset}", seriesStartDate=day)).status_code == 201

        response = client.get("/classes/", params={"page": 2, "limit": 2})
        assert response.status_code == 200
        page = response.json()
        assert page["total"] == 3
        assert page["totalPages"] == 2
        assert page["page"] == 2
        assert len(page["items"]) == 1

    def test_list_classes_empty(self, client: TestClient):
        page = client.get("/classes/").json()
        assert page["items"] == []
        assert page["totalPages"] == 0

    def test_list_classes_rejects_bad_paging(self, client: TestClient):
        assert client.get("/classes/", params={"page": 0}).status_code == 422
        assert client.get("/classes/", params={"limit": 101}).status_code == 422

    def test_get_class_with_bad_id(self, client: TestClient):
        assert client.get("/classes/not-a-uuid").status_code == 422


class TestClassesAPIInstances:

    def test_patch_instance_detaches_session(self, client: TestClient, api_catalogue: dict):
        series = client.post("/classes/", json=daily_body(api_catalogue)).json()
        session = series["sessions"][1]
        second_day = BASE_DAY + timedelta(days=1)

        response = client.patch(f"/classes/{series['id']}/instances/{session['id']}", json={
            "newStart": utc(second_day, 11).isoformat(),
            "newEnd": utc(second_day, 12).isoformat(),
            "reason": "Room swap",
        })
        assert response.status_code == 200
        result = response.json()

        assert len(result["series"]["sessions"]) == 2
        assert result["series"]["exceptions"][0]["status"] == "CANCELLED"
        assert result["series"]["exceptions"][0]["reason"] == "Room swap"

        detached = result["detached"]
        assert detached["recurrenceKind"] == "single"
        assert detached["sessions"][0]["id"] == session["id"]
        assert parse(detached["sessions"][0]["start"]) == utc(second_day, 11)

    def test_patch_instance_into_conflict(self, client: TestClient, api_catalogue: dict):
        client.post("/classes/", json=class_body(
            api_catalogue, title="Evening Talk", instructor="other_instructor",
            timeSlots=[{"start": "18:00", "end": "19:00"}]
        ))
        series = client.post("/classes/", json=daily_body(api_catalogue)).json()
        session = series["sessions"][0]

        response = client.patch(f"/classes/{series['id']}/instances/{session['id']}", json={
            "newStart": utc(BASE_DAY, 18, 30).isoformat(),
            "newEnd": utc(BASE_DAY, 19, 30).isoformat(),
        })
        assert response.status_code == 409
        assert response.json()["detail"]["field"] == "room"

    def test_patch_unknown_instance(self, client: TestClient, api_catalogue: dict):
        series = client.post("/classes/", json=daily_body(api_catalogue)).json()
        response = client.patch(f"/classes/{series['id']}/instances/{uuid4()}", json={"title": "Renamed"})
        assert response.status_code == 404
        assert response.json()["detail"]["field"] == "sessionId"

    def test_cancel_instance(self, client: TestClient, api_catalogue: dict):
        series = client.post("/classes/", json=daily_body(api_catalogue)).json()
        session = series["sessions"][0]

        response = client.delete(
            f"/classes/{series['id']}/instances/{session['id']}",
            params={"reason": "Public holiday"}
        )
        assert response.status_code == 200
        updated = response.json()
        assert session["id"] not in [s["id"] for s in updated["sessions"]]
        assert updated["exceptions"][0]["reason"] == "Public holiday"
        assert parse(updated["exceptions"][0]["anchor"]) == parse(session["originalStart"])
