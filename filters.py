"""
List filtering for the console modules.

A filter set is a free-text query, OR'd across a fixed list of record fields,
AND'd with any number of facets. A facet left at its sentinel value ('All',
'All Classes', or empty) is inactive. Filtering never reorders or mutates the
input list.
"""

from typing import Any, Callable, ClassVar, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from schemas import RESOURCE_TYPES, LibraryResource, Teacher

ALL = "All"
ALL_CLASSES = "All Classes"

RESOURCE_CLASS_OPTIONS: List[str] = [ALL_CLASSES] + [f"Class {n}" for n in range(1, 11)]
RESOURCE_TYPE_OPTIONS: List[str] = [ALL] + RESOURCE_TYPES

# (current value, sentinel, predicate)
Facet = Tuple[str, str, Callable[[Any], bool]]


class Filters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    search_query: str = Field("", alias="searchQuery")

    search_fields: ClassVar[Tuple[str, ...]] = ()
    # whether a non-empty search query counts as an active filter
    search_counts: ClassVar[bool] = False

    def facets(self) -> List[Facet]:
        return []

    def matches_search(self, record) -> bool:
        if not self.search_query:
            return True
        needle = self.search_query.lower()
        return any(needle in str(getattr(record, name, None) or "").lower() for name in self.search_fields)

    def matches(self, record) -> bool:
        if not self.matches_search(record):
            return False
        return all(predicate(record) for value, sentinel, predicate in self.facets() if value != sentinel)


class ResourceFilters(Filters):
    subject: str = ALL
    class_name: str = Field(ALL_CLASSES, alias="class")
    type: str = ALL

    search_fields: ClassVar[Tuple[str, ...]] = ("title", "subject", "topic", "description", "id")

    def facets(self) -> List[Facet]:
        return [
            (self.subject, ALL, lambda r: r.subject == self.subject),
            (self.class_name, ALL_CLASSES, lambda r: self.class_name in (r.classes or [])),
            (self.type, ALL, lambda r: r.type == self.type),
        ]


class TeacherFilters(Filters):
    emp_id: str = Field("", alias="empId")
    class_teacher: str = ALL

    search_counts: ClassVar[bool] = True
    search_fields: ClassVar[Tuple[str, ...]] = (
        "user_id", "full_name", "profile_image", "email", "phone", "address", "class_teacher",
    )

    def facets(self) -> List[Facet]:
        return [
            (self.emp_id, "", lambda t: self.emp_id.lower() in (t.user_id or "").lower()),
            (self.class_teacher, ALL, lambda t: (t.class_teacher or "") == self.class_teacher),
        ]


class EventFilters(Filters):
    status: str = ALL
    event_type: str = Field(ALL, alias="eventType")

    search_fields: ClassVar[Tuple[str, ...]] = ("title", "event_name", "description", "id")

    def facets(self) -> List[Facet]:
        return [
            (self.status, ALL, lambda e: e.status == self.status),
            (self.event_type, ALL, lambda e: self.event_type in e.event_type),
        ]


def apply_filters(records: Sequence[Any], filters: Filters) -> List[Any]:
    return [record for record in records if filters.matches(record)]


def active_filter_count(filters: Filters) -> int:
    """Facets currently narrowing the list, plus the query where the module counts it."""
    count = sum(1 for value, sentinel, _ in filters.facets() if value != sentinel)
    if filters.search_counts and filters.search_query:
        count += 1
    return count


def subject_options(resources: Sequence[LibraryResource]) -> List[str]:
    return [ALL] + sorted({r.subject for r in resources if r.subject})


def class_teacher_options(teachers: Sequence[Teacher]) -> List[str]:
    return sorted({t.class_teacher for t in teachers if t.class_teacher})
