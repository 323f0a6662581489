
def auth_header_present(call):
    return call["headers"].get("Authorization", "").startswith("Bearer ")


def test_root_and_schema(client):
    assert client.get("/").status_code == 200
    schema = client.get("/schema").json()
    assert "eventType" in schema["Event"]["properties"]


def test_events_overview_for_month(client, backend):
    backend.seed(
        "events",
        {"_id": "e1", "title": "Fair", "startDate": "2025-03-10", "endDate": "2025-03-12", "eventType": ["Other"]},
        {"_id": "e2", "title": "Camp", "startDate": "2025-02-20", "endDate": "2025-04-02", "eventType": ["Sport"]},
        {"_id": "e3", "title": "Later", "startDate": "2025-05-01", "eventType": ["Academic"]},
    )
    r = client.get("/console/events", params={"month": "2025-03"})
    assert r.status_code == 200
    body = r.json()
    assert body["month"] == "2025-03"
    assert [e["_id"] for e in body["monthly"]] == ["e2", "e1"]
    assert body["calendar"][:6] == [None] * 6
    day_10 = next(c for c in body["calendar"] if c and c["date_str"] == "2025-03-10")
    assert sorted(e["_id"] for e in day_10["events"]) == ["e1", "e2"]
    assert auth_header_present(backend.calls[0])


def test_events_overview_rejects_bad_month(client):
    assert client.get("/console/events", params={"month": "March"}).status_code == 400


def test_events_for_selected_day(client, backend):
    backend.seed("events", {"_id": "e1", "title": "Fair", "startDate": "2025-03-10"})
    body = client.get("/console/events/day/2025-03-10").json()
    assert [e["_id"] for e in body["events"]] == ["e1"]
    assert client.get("/console/events/day/2025-03-11").json()["events"] == []


def test_create_event_round_trip(client, backend, event_payload):
    r = client.post("/console/events", json=event_payload())
    assert r.status_code == 200
    events = r.json()
    assert events[0]["title"] == "Sports Day"
    assert events[0]["targetAudience"] == ["all_students"]


def test_invalid_event_is_blocked_without_network(client, backend, event_payload):
    r = client.post("/console/events", json=event_payload(eventType=[], targetAudience=[]))
    assert r.status_code == 422
    assert set(r.json()["errors"]) == {"eventType", "targetAudience"}
    assert backend.calls == []


def test_validate_endpoint_returns_error_map(client, event_payload):
    r = client.post("/console/events/validate", json=event_payload(title="  "))
    assert r.json() == {"errors": {"title": "Title is required"}}


def test_delete_needs_confirmation(client, backend):
    backend.seed("events", {"_id": "e1", "title": "Fair", "startDate": "2025-03-10"})
    r = client.delete("/console/events/e1")
    assert r.status_code == 409
    assert backend.mutations() == []
    r = client.delete("/console/events/e1", params={"confirm": "true"})
    assert r.status_code == 200
    assert r.json() == []


def test_upcoming_events_endpoint_filters_by_status(client, backend):
    backend.seed("events", {"_id": "e1", "title": "Fair", "startDate": "2999-03-10", "status": "upcoming"},
                 {"_id": "e2", "title": "Off", "startDate": "2999-03-09", "status": "cancelled"})
    assert [e["_id"] for e in client.get("/console/events/upcoming").json()] == ["e2", "e1"]
    body = client.get("/console/events/upcoming", params={"status": "upcoming"}).json()
    assert [e["_id"] for e in body] == ["e1"]


def test_resources_filtered_listing(client, backend):
    backend.seed(
        "resources",
        {"_id": "r1", "title": "Math drills", "subject": "Science", "classes": ["Class 3"], "type": "pdf", "url": "u"},
        {"_id": "r2", "title": "Fractions", "subject": "Math", "classes": ["Class 3"], "type": "link", "url": "u"},
    )
    body = client.get("/console/resources", params={"searchQuery": "math", "subject": "Science"}).json()
    assert [r["_id"] for r in body["resources"]] == ["r1"]
    assert body["subjects"] == ["All", "Math", "Science"]
    assert body["active_filters"] == 1
    unfiltered = client.get("/console/resources").json()
    assert [r["_id"] for r in unfiltered["resources"]] == ["r1", "r2"]
    by_class = client.get("/console/resources", params={"class": "Class 4"}).json()
    assert by_class["resources"] == []


def test_teacher_duplicate_phone_flow(client, backend, teacher_payload):
    backend.seed(
        "teachers",
        {"_id": "a", "user_id": "T1", "full_name": "A", "email": "a@gmail.com", "phone": "9998887776"},
        {"_id": "b", "user_id": "T2", "full_name": "B", "email": "b@gmail.com", "phone": "9998887776"},
    )
    r = client.post("/console/teachers", json=teacher_payload(user_id="T3", email="c@gmail.com"))
    assert r.status_code == 422
    assert r.json()["errors"] == {"phone": "Duplicate phone number found"}

    edit = {"user_id": "T1", "full_name": "A Prime", "email": "a@gmail.com", "phone": "9998887776", "password": ""}
    r = client.put("/console/teachers/a", json=edit)
    assert r.status_code == 200
    assert next(t for t in r.json() if t["_id"] == "a")["full_name"] == "A Prime"


def test_new_teacher_posted_with_existing_id_is_rejected(client, backend, teacher_payload):
    backend.seed("teachers", {"_id": "a", "user_id": "T1", "full_name": "A", "email": "asha@gmail.com",
                              "phone": "9998887776"})
    r = client.post("/console/teachers", json=teacher_payload(_id="a"))
    assert r.status_code == 422
    assert set(r.json()["errors"]) == {"user_id", "email", "phone"}
    assert backend.mutations() == []


def test_teacher_listing_never_exposes_password(client, backend, teacher_payload):
    client.post("/console/teachers", json=teacher_payload())
    teachers = client.get("/console/teachers", params={"searchQuery": "asha"}).json()["teachers"]
    assert len(teachers) == 1
    assert "password" not in teachers[0]


def test_teacher_edit_form_resolves_class_label(client, backend):
    backend.seed("classes", {"class_name": "7", "section": "B"})
    backend.seed("teachers", {"_id": "a", "user_id": "T1", "full_name": "A", "email": "a@gmail.com",
                              "phone": "9998887776", "class_teacher": "7"})
    assert client.get("/console/teachers/a").json()["class_teacher"] == "7-B"
    assert client.get("/console/classes").json() == {"classes": ["7-B"]}
    assert client.get("/console/teachers/zzz").status_code == 404


def test_api_failure_is_reported(client, backend):
    backend.fail("GET", "/api/teachers/", 503, None)
    r = client.get("/console/teachers")
    assert r.status_code == 502
    assert r.json() == {"message": "Server error. Please try again later."}


def test_refresh_module(client, backend):
    client.get("/console/resources")
    backend.seed("resources", {"_id": "r9", "title": "New", "subject": "Art", "type": "link", "url": "u"})
    assert [r["_id"] for r in client.post("/console/resources/refresh").json()] == ["r9"]
    assert client.post("/console/nothing/refresh").status_code == 404


def test_login_logout_cycle(client, backend):
    assert client.post("/auth/logout").json() == {"status": "logged out"}
    assert client.get("/console/events").status_code == 401
    assert backend.calls == []

    r = client.post("/auth/login", json={"user_id": "admin", "password": "pw"})
    assert r.status_code == 200
    assert r.json()["role"] == "admin"
    assert client.get("/auth/session").json()["authenticated"] is True


def test_media_upload(client, backend):
    r = client.post("/console/media", params={"type": "image"},
                    files={"file": ("photo.png", b"\x89PNG", "image/png")})
    assert r.status_code == 200
    assert r.json() == {"url": "https://media.test/uploaded.png"}
