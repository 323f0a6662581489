"""
Record synchronization with the external school API.

Each console module keeps a full in-memory copy of its collection. Writes go
through a RecordSynchronizer: validate against the peers in memory, send the
request, then re-list the whole collection so the console always shows what
the server holds. A failed call raises and leaves the in-memory copy alone.
"""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

import requests
from pydantic import ValidationError

from errors import (
    ApiError, ConfirmationRequiredError, RecordNotFoundError,
    RecordValidationError, RequestInFlightError,
)
from schemas import Classroom, ErrorMap, Event, LibraryResource, Record, Teacher
from session import AuthSession
from validation import validate_event, validate_resource, validate_teacher

logger = logging.getLogger(__name__)

SCHOOL_API_BASE_URL = os.getenv("SCHOOL_API_BASE_URL", "http://localhost:5000")
SCHOOL_API_TIMEOUT = float(os.getenv("SCHOOL_API_TIMEOUT", "10"))
MEDIA_UPLOAD_URL = os.getenv("MEDIA_UPLOAD_URL", "https://api.cloudinary.com/v1_1/demo")
MEDIA_UPLOAD_PRESET = os.getenv("MEDIA_UPLOAD_PRESET", "sims_development")

AUTH_FAILED_MESSAGE = "Authentication failed. Please check your session."
SERVER_ERROR_MESSAGE = "Server error. Please try again later."


def error_message(response: requests.Response, fallback: str, authenticated: bool = True) -> str:
    """Message to show for a failed response: the server's own, else `fallback`."""
    if authenticated and response.status_code == 401:
        return AUTH_FAILED_MESSAGE
    if response.status_code >= 500:
        return SERVER_ERROR_MESSAGE
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        for key in ("message", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return fallback


class SchoolApiClient:
    """Thin JSON client for the school API; every call is authenticated by `auth`."""

    def __init__(self, base_url: str = SCHOOL_API_BASE_URL, auth: Optional[AuthSession] = None,
                 http: Optional[requests.Session] = None, timeout: float = SCHOOL_API_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.auth = auth or AuthSession()
        self.http = http or requests.Session()
        self.http.headers.update({"Accept": "application/json"})
        self.timeout = timeout

    def request(self, method: str, path: str, failure_message: str, json: Any = None,
                authenticated: bool = True) -> Any:
        headers = self.auth.bearer_headers() if authenticated else {}
        try:
            response = self.http.request(method, f"{self.base_url}{path}", json=json,
                                         headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error(f"{method} {path} failed: {exc}")
            raise ApiError(failure_message) from exc

        if not response.ok:
            message = error_message(response, failure_message, authenticated)
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            raise ApiError(message, upstream_status=response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(failure_message) from exc

    def login(self, user_id: str, password: str) -> Dict[str, Any]:
        data = self.request("POST", "/api/users/login", "Login failed. Please check your credentials.",
                            json={"user_id": user_id, "password": password}, authenticated=False) or {}
        token = data.get("token")
        role = data.get("role")
        profile = data.get("userprofile") or {}
        if not token:
            raise ApiError("Login failed. Please check your credentials.")
        if role != "admin":
            logger.warning(f"Login refused for role={role}")
            raise ApiError("Only administrators can use this console.", upstream_status=403)
        if profile.get("status") and profile["status"] != "Active":
            raise ApiError("Your account is not active.", upstream_status=403)
        self.auth.login(token, role, profile)
        return data


@dataclass(frozen=True)
class Collection:
    name: str
    label: str
    list_path: str
    item_path: str
    model: Type[Record]
    validate: Callable[[Any, List[Any], bool], ErrorMap]
    stamp_admin: bool = False


EVENTS = Collection("events", "event", "/api/events/", "/api/events/{id}", Event,
                    lambda record, peers, creating: validate_event(record), stamp_admin=True)
RESOURCES = Collection("resources", "resource", "/api/resources", "/api/resources/{id}", LibraryResource,
                       lambda record, peers, creating: validate_resource(record))
TEACHERS = Collection("teachers", "teacher", "/api/teachers/", "/api/teachers/{id}", Teacher,
                      validate_teacher, stamp_admin=True)


class RecordSynchronizer:
    def __init__(self, api: SchoolApiClient, collection: Collection):
        self.api = api
        self.collection = collection
        self.records: List[Record] = []
        self.loaded = False
        self._mutating = threading.Lock()

    def list(self) -> List[Record]:
        c = self.collection
        data = self.api.request("GET", c.list_path, f"Failed to fetch {c.name}. Please try again.")
        try:
            records = [c.model.model_validate(item) for item in data or [] if item]
        except ValidationError as exc:
            logger.error(f"Unexpected {c.label} payload: {exc}")
            raise ApiError(f"Unexpected {c.label} data from the server.") from exc
        self.records = records
        self.loaded = True
        return list(records)

    def ensure_loaded(self) -> List[Record]:
        if not self.loaded:
            return self.list()
        return list(self.records)

    def clear(self) -> None:
        self.records = []
        self.loaded = False

    def get(self, record_id: str) -> Record:
        for record in self.records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"No {self.collection.label} with id {record_id}.")

    def check(self, record: Record, record_id: Optional[str] = None) -> ErrorMap:
        # a new record has no identity yet, whatever the form sent
        record = record.model_copy(update={"id": record_id})
        # the edited record stays in the list; validators recognise it by id
        return self.collection.validate(record, list(self.records), record_id is None)

    @contextmanager
    def _mutation(self):
        if not self._mutating.acquire(blocking=False):
            logger.warning(f"Rejected concurrent {self.collection.label} request")
            raise RequestInFlightError(f"Another {self.collection.label} request is still in progress.")
        try:
            yield
        finally:
            self._mutating.release()

    def _payload(self, record: Record, creating: bool) -> Dict[str, Any]:
        payload = record.to_payload(creating)
        if self.collection.stamp_admin:
            payload["admin_id"] = self.api.auth.admin_id()
        return payload

    def _gate(self, record: Record, record_id: Optional[str]) -> None:
        errors = self.check(record, record_id)
        if errors:
            logger.warning(f"{self.collection.label} rejected by validation: {sorted(errors)}")
            raise RecordValidationError(errors)

    def create(self, record: Record) -> List[Record]:
        c = self.collection
        self._gate(record, None)
        with self._mutation():
            self.api.request("POST", c.list_path, f"Failed to add {c.label}.",
                             json=self._payload(record, creating=True))
            logger.info(f"Created {c.label}")
            return self.list()

    def update(self, record_id: str, record: Record) -> List[Record]:
        c = self.collection
        self._gate(record, record_id)
        with self._mutation():
            self.api.request("PUT", c.item_path.format(id=record_id), f"Failed to update {c.label}.",
                             json=self._payload(record, creating=False))
            logger.info(f"Updated {c.label} {record_id}")
            return self.list()

    def delete(self, record_id: str, confirmed: bool = False) -> List[Record]:
        c = self.collection
        if not confirmed:
            raise ConfirmationRequiredError(f"Are you sure you want to delete this {c.label}? Confirm to continue.")
        with self._mutation():
            self.api.request("DELETE", c.item_path.format(id=record_id), f"Failed to delete {c.label}.")
            logger.info(f"Deleted {c.label} {record_id}")
            return self.list()


class ClassDirectory:
    """Read-only class list; its labels are the allowed class-teacher values."""

    def __init__(self, api: SchoolApiClient):
        self.api = api
        self.classes: List[Classroom] = []

    def list(self) -> List[Classroom]:
        data = self.api.request("GET", "/api/classes/", "Failed to fetch classes.")
        try:
            classes = [Classroom.model_validate(item) for item in data or [] if item]
        except ValidationError as exc:
            raise ApiError("Unexpected class data from the server.") from exc
        self.classes = [c for c in classes if c.class_name]
        return list(self.classes)

    def labels(self) -> List[str]:
        return [c.label for c in self.classes]

    def resolve(self, value: Optional[str]) -> str:
        """Match a stored class-teacher value to a current label, keeping it when nothing matches."""
        if not value:
            return ""
        labels = self.labels()
        if value in labels:
            return value
        for label in labels:
            if label.startswith(value + "-"):
                return label
        return value


class MediaUploader:
    """Uploads files to the external media host and returns their public URL."""

    def __init__(self, upload_url: str = MEDIA_UPLOAD_URL, preset: str = MEDIA_UPLOAD_PRESET,
                 http: Optional[requests.Session] = None, timeout: float = SCHOOL_API_TIMEOUT):
        self.upload_url = upload_url.rstrip("/")
        self.preset = preset
        self.http = http or requests.Session()
        self.timeout = timeout

    @staticmethod
    def resource_type_for(kind: Optional[str]) -> str:
        if kind == "pdf":
            return "raw"
        if kind == "video":
            return "video"
        return "image"

    def upload(self, filename: str, content: bytes, content_type: Optional[str] = None,
               kind: Optional[str] = "image") -> str:
        url = f"{self.upload_url}/{self.resource_type_for(kind)}/upload"
        try:
            response = self.http.post(url, files={"file": (filename, content, content_type)},
                                      data={"upload_preset": self.preset}, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error(f"Upload of {filename} failed: {exc}")
            raise ApiError("Failed to upload file.") from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if not response.ok:
            message = (body.get("error") or {}).get("message")
            raise ApiError(message or "Upload failed.", upstream_status=response.status_code)
        stored = body.get("secure_url") or body.get("url")
        if not stored:
            raise ApiError("Upload failed.")
        logger.info(f"Uploaded {filename}")
        return stored


class ConsoleStore:
    """Everything one console process holds: the session and each module's collection."""

    def __init__(self, base_url: str = SCHOOL_API_BASE_URL, auth: Optional[AuthSession] = None,
                 http: Optional[requests.Session] = None, uploader: Optional[MediaUploader] = None):
        self.auth = auth or AuthSession()
        self.api = SchoolApiClient(base_url, self.auth, http=http)
        self.events = RecordSynchronizer(self.api, EVENTS)
        self.resources = RecordSynchronizer(self.api, RESOURCES)
        self.teachers = RecordSynchronizer(self.api, TEACHERS)
        self.classes = ClassDirectory(self.api)
        self.media = uploader or MediaUploader(http=http)

    def synchronizers(self) -> Iterable[RecordSynchronizer]:
        return (self.events, self.resources, self.teachers)

    def synchronizer(self, name: str) -> Optional[RecordSynchronizer]:
        for sync in self.synchronizers():
            if sync.collection.name == name:
                return sync
        return None

    def reset(self) -> None:
        """Drop every cached collection, as a fresh page load would."""
        for sync in self.synchronizers():
            sync.clear()
        self.classes.classes = []
