import json
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

import pytest
import requests
from fastapi.testclient import TestClient
from jose import jwt
from requests.adapters import BaseAdapter

from main import app, get_store
from sync import ConsoleStore

COLLECTION_PATH = re.compile(r"^/api/(events|resources|teachers|classes)/?(?P<id>[^/]+)?$")


class FakeSchoolApi(BaseAdapter):
    """In-memory school API mounted on a requests.Session."""

    def __init__(self):
        super().__init__()
        self.collections = {"events": [], "resources": [], "teachers": [], "classes": []}
        self.calls = []
        self.failures = {}
        self.login_response = {
            "token": make_token(),
            "role": "admin",
            "userprofile": {"_id": "admin-1", "status": "Active"},
        }
        self._next_id = 1

    def fail(self, method, path, status, body=None):
        self.failures[(method, path)] = (status, body)

    def seed(self, name, *items):
        for item in items:
            item = dict(item)
            item.setdefault("_id", self._new_id())
            self.collections[name].append(item)

    def mutations(self):
        return [c for c in self.calls if c["method"] in ("POST", "PUT", "DELETE")]

    def _new_id(self):
        value = f"id{self._next_id}"
        self._next_id += 1
        return value

    def send(self, request, **kwargs):
        path = urlparse(request.url).path
        body = None
        if request.body and "json" in request.headers.get("Content-Type", ""):
            body = json.loads(request.body)
        self.calls.append({"method": request.method, "path": path, "body": body,
                           "headers": dict(request.headers)})

        if (request.method, path) in self.failures:
            status, payload = self.failures[(request.method, path)]
            return self._respond(request, status, payload)
        if path == "/api/users/login":
            return self._respond(request, 200, self.login_response)
        if path.endswith("/upload"):
            return self._respond(request, 200, {"secure_url": "https://media.test/uploaded.png"})

        match = COLLECTION_PATH.match(path)
        if not match:
            return self._respond(request, 404, {"message": "Not found"})
        items = self.collections[match.group(1)]
        record_id = match.group("id")

        if record_id is None and request.method == "GET":
            return self._respond(request, 200, items)
        if record_id is None and request.method == "POST":
            item = self._stored(match.group(1), body)
            item["_id"] = self._new_id()
            items.append(item)
            return self._respond(request, 201, item)

        existing = next((i for i in items if i["_id"] == record_id), None)
        if existing is None:
            return self._respond(request, 404, {"message": "Record not found"})
        if request.method == "PUT":
            existing.update(self._stored(match.group(1), body))
            return self._respond(request, 200, existing)
        if request.method == "DELETE":
            items.remove(existing)
            return self._respond(request, 200, {"message": "Deleted"})
        return self._respond(request, 405, {"message": "Method not allowed"})

    def close(self):
        pass

    @staticmethod
    def _stored(name, body):
        item = dict(body or {})
        # the real API answers with targetGroups for what it was sent as targetAudience
        if name == "events" and "targetAudience" in item:
            item["targetGroups"] = item.pop("targetAudience")
        item.pop("password", None)
        return item

    @staticmethod
    def _respond(request, status, payload):
        response = requests.Response()
        response.status_code = status
        response._content = b"" if payload is None else json.dumps(payload).encode()
        response.headers["Content-Type"] = "application/json"
        response.url = request.url
        response.request = request
        response.encoding = "utf-8"
        return response


def make_token(minutes=60):
    expires = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode({"sub": "admin-1", "exp": int(expires.timestamp())}, "test-secret", algorithm="HS256")


@pytest.fixture()
def backend():
    return FakeSchoolApi()


@pytest.fixture()
def http(backend):
    session = requests.Session()
    session.mount("http://", backend)
    session.mount("https://", backend)
    return session


@pytest.fixture()
def store(http):
    console = ConsoleStore(base_url="http://school.test", http=http)
    console.auth.login(make_token(), "admin", {"_id": "admin-1", "status": "Active"})
    return console


@pytest.fixture()
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def teacher_payload():
    def build(**overrides):
        data = {
            "user_id": "T1",
            "full_name": "Asha Rao",
            "email": "asha@gmail.com",
            "phone": "9998887776",
            "address": "12 Hill Road",
            "class_teacher": "",
            "password": "secret1",
        }
        data.update(overrides)
        return data
    return build


@pytest.fixture()
def event_payload():
    def build(**overrides):
        data = {
            "title": "Sports Day",
            "eventName": "Annual Sports Day",
            "description": "Track and field events",
            "eventType": ["Sport"],
            "startDate": "2025-03-10",
            "endDate": "2025-03-12",
            "status": "upcoming",
            "targetAudience": ["all_students"],
        }
        data.update(overrides)
        return data
    return build
