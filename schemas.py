"""
Record Schemas for the School Admin Console

Each Pydantic model mirrors one collection of the external school API. Field
names are snake_case; the wire keys used by the API are declared as aliases,
so `model_validate` accepts API payloads and `model_dump(by_alias=True)`
produces them again.
"""

from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# field name -> human readable message; an empty map means the record is valid
ErrorMap = Dict[str, str]

EventCategory = Literal["Academic", "Sport", "Cultural", "Meeting", "Other"]
EventStatus = Literal["upcoming", "ongoing", "completed", "cancelled"]
Audience = Literal["all", "all_teachers", "all_students", "all_parents"]
ResourceType = Literal["pdf", "image", "video", "link"]

EVENT_CATEGORIES: List[str] = ["Academic", "Sport", "Cultural", "Meeting", "Other"]
EVENT_STATUSES: List[str] = ["upcoming", "ongoing", "completed", "cancelled"]
AUDIENCES: List[str] = ["all", "all_teachers", "all_students", "all_parents"]
RESOURCE_TYPES: List[str] = ["pdf", "image", "video", "link"]


class Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id", description="Server identifier")

    def to_payload(self, creating: bool = True) -> dict:
        """Body sent to the API on create/update. The identifier travels in the URL."""
        return self.model_dump(by_alias=True, exclude={"id"}, mode="json")


def _date_part(value):
    # the API returns midnight datetimes ("2025-03-10T00:00:00.000Z") for plain dates
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
        return value[:10]
    if value == "":
        return None
    return value


# Events
class Event(Record):
    title: str = ""
    event_name: str = Field("", alias="eventName")
    description: Optional[str] = ""
    event_type: List[EventCategory] = Field(default_factory=list, alias="eventType")
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate", description="None means a single-day event")
    status: EventStatus = "upcoming"
    target_audience: List[Audience] = Field(
        default_factory=list,
        validation_alias=AliasChoices("targetAudience", "targetGroups", "target_audience"),
        serialization_alias="targetAudience",
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def strip_time(cls, value):
        return _date_part(value)


# Library
class LibraryResource(Record):
    title: str = ""
    subject: str = ""
    topic: Optional[str] = ""
    classes: List[str] = Field(default_factory=list)
    description: Optional[str] = ""
    type: Optional[ResourceType] = Field(None, description="None until a type is chosen")
    url: str = Field("", description="Link target, or the stored URL of an uploaded file")

    @field_validator("type", mode="before")
    @classmethod
    def blank_type(cls, value):
        return value or None


# Staff
class Teacher(Record):
    user_id: str = Field("", description="Employment id, unique across teachers")
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: Optional[str] = ""
    qualification: Optional[str] = ""
    class_teacher: Optional[str] = Field("", description="Class label, empty when not a class teacher")
    profile_image: Optional[str] = None
    password: str = Field("", exclude=True, description="Write-only")

    def to_payload(self, creating: bool = True) -> dict:
        payload = {
            "user_id": self.user_id.strip(),
            "full_name": self.full_name.strip(),
            "email": self.email.strip().lower(),
            "phone": self.phone.strip(),
            "address": (self.address or "").strip(),
            "qualification": (self.qualification or "").strip(),
            "class_teacher": self.class_teacher or "",
            "profile_image": self.profile_image,
        }
        if creating:
            payload["password"] = self.password.strip()
            payload["certificates"] = []
        elif self.password:
            # empty password on edit leaves the stored one unchanged
            payload["password"] = self.password
        return payload


class Classroom(Record):
    class_name: str = ""
    section: Optional[str] = ""

    @property
    def label(self) -> str:
        if self.section:
            return f"{self.class_name}-{self.section}"
        return self.class_name


# Calendar
class DayCell(BaseModel):
    day: date
    date_str: str
    is_past: bool
    is_today: bool
    is_sunday: bool
    events: List[Event] = Field(default_factory=list)


# Auth
class LoginPayload(BaseModel):
    user_id: str
    password: str
