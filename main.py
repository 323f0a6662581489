import logging
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from calendar_view import days_in_month, events_on, monthly_filter, sort_by_start, upcoming_events
from errors import ConsoleError, RecordValidationError
from filters import (
    ALL, ALL_CLASSES, RESOURCE_CLASS_OPTIONS, RESOURCE_TYPE_OPTIONS,
    EventFilters, ResourceFilters, TeacherFilters,
    active_filter_count, apply_filters, class_teacher_options, subject_options,
)
from schemas import Classroom, DayCell, Event, LibraryResource, LoginPayload, Teacher
from sync import ConsoleStore, RecordSynchronizer

logger = logging.getLogger(__name__)

app = FastAPI(title="School Admin Console", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = ConsoleStore()


def get_store() -> ConsoleStore:
    return store


def serialize_record(record) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return record.model_dump(by_alias=True, mode="json")


def serialize_list(records) -> List[Optional[Dict[str, Any]]]:
    return [serialize_record(r) for r in records]


def parse_month(month: Optional[str]) -> date:
    if not month:
        return date.today().replace(day=1)
    try:
        return datetime.strptime(month, "%Y-%m").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="month must look like YYYY-MM")


# -------------------- Error handling -------------------- #

@app.exception_handler(ConsoleError)
async def console_error_handler(request: Request, exc: ConsoleError):
    body: Dict[str, Any] = {"message": exc.message}
    if isinstance(exc, RecordValidationError):
        body["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=body)


# -------------------- Meta endpoints -------------------- #

@app.get("/")
def read_root():
    return {"message": "School Admin Console is running"}


@app.get("/schema")
def get_schema():
    models = [Event, LibraryResource, Teacher, Classroom, DayCell]
    return {m.__name__: m.model_json_schema(by_alias=True) for m in models}


# -------------------- Auth endpoints -------------------- #

@app.post("/auth/login")
def login(payload: LoginPayload, console: ConsoleStore = Depends(get_store)):
    data = console.api.login(payload.user_id, payload.password)
    # collections cached under a previous login must not leak into this one
    console.reset()
    expires = console.auth.expires_at
    return {
        "role": data.get("role"),
        "userprofile": data.get("userprofile") or {},
        "expires_at": expires.isoformat() if expires else None,
    }


@app.post("/auth/logout")
def logout(console: ConsoleStore = Depends(get_store)):
    console.auth.logout()
    console.reset()
    return {"status": "logged out"}


@app.get("/auth/session")
def session_info(console: ConsoleStore = Depends(get_store)):
    expires = console.auth.expires_at
    return {
        "authenticated": console.auth.is_authenticated(),
        "role": console.auth.role,
        "expires_at": expires.isoformat() if expires else None,
    }


# -------------------- Filter parameters -------------------- #

def event_filters(
    search_query: str = Query("", alias="searchQuery"),
    status: str = ALL,
    event_type: str = Query(ALL, alias="eventType"),
) -> EventFilters:
    return EventFilters(search_query=search_query, status=status, event_type=event_type)


def resource_filters(
    search_query: str = Query("", alias="searchQuery"),
    subject: str = ALL,
    class_name: str = Query(ALL_CLASSES, alias="class"),
    type: str = ALL,
) -> ResourceFilters:
    return ResourceFilters(search_query=search_query, subject=subject, class_name=class_name, type=type)


def teacher_filters(
    search_query: str = Query("", alias="searchQuery"),
    emp_id: str = Query("", alias="empId"),
    class_teacher: str = ALL,
) -> TeacherFilters:
    return TeacherFilters(search_query=search_query, emp_id=emp_id, class_teacher=class_teacher)


# -------------------- Events -------------------- #

@app.get("/console/events")
def events_overview(month: Optional[str] = None, filters: EventFilters = Depends(event_filters),
                    console: ConsoleStore = Depends(get_store)):
    month_ref = parse_month(month)
    events = apply_filters(console.events.ensure_loaded(), filters)
    monthly = sort_by_start(monthly_filter(month_ref, events))
    return {
        "month": month_ref.strftime("%Y-%m"),
        "calendar": serialize_list(days_in_month(month_ref, monthly)),
        "monthly": serialize_list(monthly),
        "upcoming": serialize_list(upcoming_events(events)),
        "active_filters": active_filter_count(filters),
    }


@app.get("/console/events/day/{day}")
def events_for_day(day: date, console: ConsoleStore = Depends(get_store)):
    return {"date": day.isoformat(), "events": serialize_list(events_on(day, console.events.ensure_loaded()))}


@app.get("/console/events/upcoming")
def upcoming_events_view(status: Optional[str] = None, limit: int = 5, console: ConsoleStore = Depends(get_store)):
    return serialize_list(upcoming_events(console.events.ensure_loaded(), limit=limit, status=status))


@app.get("/console/events/{record_id}")
def get_event(record_id: str, console: ConsoleStore = Depends(get_store)):
    console.events.ensure_loaded()
    return serialize_record(console.events.get(record_id))


@app.post("/console/events/validate")
def validate_event_form(payload: Event, record_id: Optional[str] = None, console: ConsoleStore = Depends(get_store)):
    return {"errors": console.events.check(payload, record_id)}


@app.post("/console/events")
def add_event(payload: Event, console: ConsoleStore = Depends(get_store)):
    return serialize_list(sort_by_start(console.events.create(payload)))


@app.put("/console/events/{record_id}")
def edit_event(record_id: str, payload: Event, console: ConsoleStore = Depends(get_store)):
    return serialize_list(sort_by_start(console.events.update(record_id, payload)))


@app.delete("/console/events/{record_id}")
def remove_event(record_id: str, confirm: bool = False, console: ConsoleStore = Depends(get_store)):
    return serialize_list(sort_by_start(console.events.delete(record_id, confirmed=confirm)))


# -------------------- Library resources -------------------- #

@app.get("/console/resources")
def list_resources(filters: ResourceFilters = Depends(resource_filters), console: ConsoleStore = Depends(get_store)):
    resources = console.resources.ensure_loaded()
    return {
        "resources": serialize_list(apply_filters(resources, filters)),
        "subjects": subject_options(resources),
        "classes": RESOURCE_CLASS_OPTIONS,
        "types": RESOURCE_TYPE_OPTIONS,
        "active_filters": active_filter_count(filters),
    }


@app.get("/console/resources/{record_id}")
def get_resource(record_id: str, console: ConsoleStore = Depends(get_store)):
    console.resources.ensure_loaded()
    return serialize_record(console.resources.get(record_id))


@app.post("/console/resources/validate")
def validate_resource_form(payload: LibraryResource, record_id: Optional[str] = None,
                           console: ConsoleStore = Depends(get_store)):
    return {"errors": console.resources.check(payload, record_id)}


@app.post("/console/resources")
def add_resource(payload: LibraryResource, console: ConsoleStore = Depends(get_store)):
    return serialize_list(console.resources.create(payload))


@app.put("/console/resources/{record_id}")
def edit_resource(record_id: str, payload: LibraryResource, console: ConsoleStore = Depends(get_store)):
    return serialize_list(console.resources.update(record_id, payload))


@app.delete("/console/resources/{record_id}")
def remove_resource(record_id: str, confirm: bool = False, console: ConsoleStore = Depends(get_store)):
    return serialize_list(console.resources.delete(record_id, confirmed=confirm))


# -------------------- Teachers -------------------- #

@app.get("/console/teachers")
def list_teachers(filters: TeacherFilters = Depends(teacher_filters), console: ConsoleStore = Depends(get_store)):
    teachers = console.teachers.ensure_loaded()
    return {
        "teachers": serialize_list(apply_filters(teachers, filters)),
        "class_teachers": class_teacher_options(teachers),
        "active_filters": active_filter_count(filters),
    }


@app.get("/console/teachers/{record_id}")
def get_teacher(record_id: str, console: ConsoleStore = Depends(get_store)):
    console.teachers.ensure_loaded()
    teacher = console.teachers.get(record_id)
    if not console.classes.classes:
        console.classes.list()
    return serialize_record(teacher.model_copy(update={"class_teacher": console.classes.resolve(teacher.class_teacher)}))


@app.post("/console/teachers/validate")
def validate_teacher_form(payload: Teacher, record_id: Optional[str] = None, console: ConsoleStore = Depends(get_store)):
    console.teachers.ensure_loaded()
    return {"errors": console.teachers.check(payload, record_id)}


@app.post("/console/teachers")
def add_teacher(payload: Teacher, console: ConsoleStore = Depends(get_store)):
    # uniqueness is checked against the collection, so it has to be present first
    console.teachers.ensure_loaded()
    return serialize_list(console.teachers.create(payload))


@app.put("/console/teachers/{record_id}")
def edit_teacher(record_id: str, payload: Teacher, console: ConsoleStore = Depends(get_store)):
    console.teachers.ensure_loaded()
    return serialize_list(console.teachers.update(record_id, payload))


@app.delete("/console/teachers/{record_id}")
def remove_teacher(record_id: str, confirm: bool = False, console: ConsoleStore = Depends(get_store)):
    return serialize_list(console.teachers.delete(record_id, confirmed=confirm))


@app.get("/console/classes")
def list_classes(console: ConsoleStore = Depends(get_store)):
    console.classes.list()
    return {"classes": console.classes.labels()}


# -------------------- Refresh & uploads -------------------- #

@app.post("/console/{module}/refresh")
def refresh_module(module: str, console: ConsoleStore = Depends(get_store)):
    sync: Optional[RecordSynchronizer] = console.synchronizer(module)
    if sync is None:
        raise HTTPException(status_code=404, detail=f"Unknown module: {module}")
    return serialize_list(sync.list())


@app.post("/console/media")
def upload_media(file: UploadFile = File(...), type: str = "image", console: ConsoleStore = Depends(get_store)):
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename required")
    url = console.media.upload(file.filename, file.file.read(), file.content_type, kind=type)
    return {"url": url}


# -------------------- Run -------------------- #

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
