"""
Form validation for console records.

Each validator is a pure function returning an ErrorMap keyed by the wire
field name. Every rule is evaluated, so one call reports all problems at once.
Callers re-run validation on every change and refuse to submit while the map
is non-empty.
"""

import re
from typing import Iterable, Optional

from schemas import ErrorMap, Event, LibraryResource, Teacher

GMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@gmail\.com$")
PHONE_PATTERN = re.compile(r"^[0-9]{10}$")
MIN_PASSWORD_LENGTH = 6


def _blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def validate_event(event: Event, check_date_order: bool = False) -> ErrorMap:
    errors: ErrorMap = {}
    if _blank(event.title):
        errors["title"] = "Title is required"
    if _blank(event.description):
        errors["description"] = "Description is required"
    if not event.event_type:
        errors["eventType"] = "At least one event type is required"
    if event.start_date is None:
        errors["startDate"] = "Start Date is required"
    # off unless asked for: events have always been accepted with any end date
    if check_date_order and event.start_date and event.end_date and event.end_date < event.start_date:
        errors["endDate"] = "End Date must be after Start Date"
    if _blank(event.event_name):
        errors["eventName"] = "Event Name is required"
    if not event.target_audience:
        errors["targetAudience"] = "At least one target audience is required"
    return errors


def validate_resource(resource: LibraryResource) -> ErrorMap:
    errors: ErrorMap = {}
    if _blank(resource.title):
        errors["title"] = "Title is required"
    if _blank(resource.subject):
        errors["subject"] = "Subject is required"
    if resource.type is None:
        errors["type"] = "Resource type is required"
    elif _blank(resource.url):
        if resource.type == "link":
            errors["url"] = "A link is required"
        else:
            errors["url"] = "Please upload a file"
    return errors


def validate_teacher(teacher: Teacher, peers: Iterable[Teacher], creating: bool = True) -> ErrorMap:
    """Validate a teacher form against the rest of the collection.

    On edit, `peers` may include the record being edited; it is skipped by identifier
    and serves as the stored version: a field left unchanged by the edit is
    not re-checked for duplicates. On edit an empty password means "keep the
    current one".
    """
    errors: ErrorMap = {}
    user_id = teacher.user_id.strip()
    email = teacher.email.strip().lower()
    phone = teacher.phone.strip()

    if not user_id:
        errors["user_id"] = "EMP ID is required"
    if _blank(teacher.full_name):
        errors["full_name"] = "Name is required"

    if not email:
        errors["email"] = "Email is required"
    elif not GMAIL_PATTERN.match(email):
        errors["email"] = "Only Gmail addresses are allowed"

    if not phone:
        errors["phone"] = "Phone number is required"
    elif not PHONE_PATTERN.match(phone):
        errors["phone"] = "Phone number must be exactly 10 digits"

    if creating:
        if _blank(teacher.password):
            errors["password"] = "Password is required"
    elif teacher.password and len(teacher.password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

    peers = [p for p in peers if p is not None]
    stored = None
    if not creating and teacher.id is not None:
        stored = next((p for p in peers if p.id == teacher.id), None)
    if stored is not None:
        if (stored.user_id or "").lower() == user_id.lower():
            user_id = ""
        if (stored.email or "").lower() == email:
            email = ""
        if (stored.phone or "") == phone:
            phone = ""

    for peer in peers:
        if peer is stored:
            continue
        if user_id and (peer.user_id or "").lower() == user_id.lower():
            errors["user_id"] = "Duplicate EMP ID found"
        if email and (peer.email or "").lower() == email:
            errors["email"] = "Duplicate Gmail ID found"
        if phone and (peer.phone or "") == phone:
            errors["phone"] = "Duplicate phone number found"
    return errors
