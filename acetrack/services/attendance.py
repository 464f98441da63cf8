"""Check-in / check-out resolver.

Each (event_id, student_id) pair moves NotPresent -> TimedIn -> TimedOut and
never backwards. The store serializes each pair: a unique index rejects a
second concurrent insert, and check-out is a conditional update on
``time_out: null``. Handlers hold no locks across awaits.
"""
from __future__ import annotations

import io
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

import pandas as pd
from beanie import UpdateResponse
from pymongo.errors import DuplicateKeyError

from acetrack.config import settings
from acetrack.models.attendance import AttendanceRecord, CheckInMethod, ScanMode, StudentIdentity
from acetrack.models.event import Event
from acetrack.models.scan_log import SCAN_SUCCESS
from acetrack.services.ids import safe_object_id
from acetrack.services.qr_payload import QRPayloadError, decode_payload
from acetrack.services.scan_logs import ScanOrigin, record_scan_attempt

logger = logging.getLogger(__name__)


class AttendanceError(Exception):
    """A scan was rejected. Recoverable by the user; never fatal."""

    reason = "attendance_error"
    status_code = 409
    default_message = "Attendance could not be recorded"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class EventNotFound(AttendanceError):
    reason = "event_not_found"
    status_code = 404
    default_message = "Event not found"


class EventNotAcceptingCheckins(AttendanceError):
    reason = "event_not_accepting_checkins"
    default_message = "Event is not accepting check-ins"


class DuplicateCheckIn(AttendanceError):
    reason = "duplicate_check_in"
    default_message = "Student has already checked in for this event"


class AlreadyCompleted(AttendanceError):
    reason = "already_completed"
    default_message = "Student has already checked out of this event"


class NotCheckedIn(AttendanceError):
    reason = "not_checked_in"
    default_message = "Student has not checked in for this event"


async def get_event(event_id: str) -> Event:
    oid = safe_object_id(event_id)
    event = await Event.get(oid) if oid else None
    if not event or event.is_deleted:
        raise EventNotFound()
    return event


def ensure_accepting_scans(event: Event) -> None:
    if event.status.value not in settings.checkin_event_statuses:
        raise EventNotAcceptingCheckins(f"Event is {event.status.value}; scans are closed")


async def find_record(event_id: str, student_id: str) -> Optional[AttendanceRecord]:
    return await AttendanceRecord.find_one({"event_id": event_id, "student_id": student_id})


def _reject_existing(record: AttendanceRecord) -> None:
    if record.time_out is not None:
        raise AlreadyCompleted()
    raise DuplicateCheckIn()


async def _audited(
    event_id: str,
    action: ScanMode,
    resolve: Callable[[Event], Awaitable[AttendanceRecord]],
    *,
    student_id: str,
    now: datetime,
    scanned_by: Optional[str],
    payload: Optional[str],
    origin: Optional[ScanOrigin],
) -> AttendanceRecord:
    """Run one resolution against a scannable event and log how it ended."""
    event: Optional[Event] = None
    log_fields = dict(scanned_by=scanned_by, student_id=student_id, payload=payload, origin=origin, now=now)
    try:
        event = await get_event(event_id)
        ensure_accepting_scans(event)
        record = await resolve(event)
    except AttendanceError as exc:
        await record_scan_attempt(
            str(event.id) if event else event_id,
            action,
            exc.reason,
            organization_id=event.organization_id if event else None,
            message=str(exc),
            **log_fields,
        )
        raise
    await record_scan_attempt(
        str(event.id), action, SCAN_SUCCESS, organization_id=event.organization_id, **log_fields
    )
    return record


async def _time_in(
    event: Event,
    identity: StudentIdentity,
    *,
    now: datetime,
    scanned_by: Optional[str],
    method: CheckInMethod,
) -> AttendanceRecord:
    event_key = str(event.id)
    existing = await find_record(event_key, identity.student_id)
    if existing:
        logger.info("Rejected time-in for %s at event %s: record exists", identity.student_id, event_key)
        _reject_existing(existing)

    record = AttendanceRecord(
        event_id=event_key,
        student_id=identity.student_id,
        first_name=identity.first_name,
        last_name=identity.last_name,
        middle_name=identity.middle_name,
        course_id=identity.course_id,
        year_level=identity.year_level,
        avatar=identity.avatar,
        time_in=now,
        time_out=None,
        check_in_method=method,
        scanned_by=scanned_by,
        created_at=now,
        updated_at=now,
    )
    try:
        await record.insert()
    except DuplicateKeyError:
        # Lost the race against a concurrent scan of the same pair.
        winner = await find_record(event_key, identity.student_id)
        if winner is None:
            raise
        logger.info("Rejected concurrent time-in for %s at event %s", identity.student_id, event_key)
        _reject_existing(winner)

    logger.info("Time-in recorded for %s at event %s", identity.student_id, event_key)
    return record


async def _time_out(event: Event, student_id: str, *, now: datetime) -> AttendanceRecord:
    event_key = str(event.id)
    record = await find_record(event_key, student_id)
    if record is None or record.time_in is None:
        logger.info("Rejected time-out for %s at event %s: not checked in", student_id, event_key)
        raise NotCheckedIn()
    if record.time_out is not None:
        logger.info("Rejected time-out for %s at event %s: already completed", student_id, event_key)
        raise AlreadyCompleted()

    result = await AttendanceRecord.find_one({"_id": record.id, "time_out": None}).update(
        {"$set": {"time_out": now, "updated_at": now}},
        response_type=UpdateResponse.UPDATE_RESULT,
    )
    if not result or result.modified_count == 0:
        raise AlreadyCompleted()

    record.time_out = now
    record.updated_at = now
    logger.info("Time-out recorded for %s at event %s", student_id, event_key)
    return record


async def mark_time_in(
    event_id: str,
    identity: StudentIdentity,
    *,
    now: Optional[datetime] = None,
    scanned_by: Optional[str] = None,
    method: CheckInMethod = CheckInMethod.QR_CODE,
    payload: Optional[str] = None,
    origin: Optional[ScanOrigin] = None,
) -> AttendanceRecord:
    now = now or datetime.utcnow()
    return await _audited(
        event_id,
        ScanMode.TIME_IN,
        lambda event: _time_in(event, identity, now=now, scanned_by=scanned_by, method=method),
        student_id=identity.student_id,
        now=now,
        scanned_by=scanned_by,
        payload=payload,
        origin=origin,
    )


async def mark_time_out(
    event_id: str,
    student_id: str,
    *,
    now: Optional[datetime] = None,
    scanned_by: Optional[str] = None,
    payload: Optional[str] = None,
    origin: Optional[ScanOrigin] = None,
) -> AttendanceRecord:
    now = now or datetime.utcnow()
    return await _audited(
        event_id,
        ScanMode.TIME_OUT,
        lambda event: _time_out(event, student_id, now=now),
        student_id=student_id,
        now=now,
        scanned_by=scanned_by,
        payload=payload,
        origin=origin,
    )


async def scan(
    event_id: str,
    payload: str,
    mode: ScanMode,
    *,
    now: Optional[datetime] = None,
    scanned_by: Optional[str] = None,
    origin: Optional[ScanOrigin] = None,
) -> AttendanceRecord:
    """Resolve a raw scanner string the way the scanner UI does."""
    now = now or datetime.utcnow()
    try:
        identity = decode_payload(payload)
    except QRPayloadError as exc:
        await record_scan_attempt(
            event_id,
            mode,
            exc.reason,
            scanned_by=scanned_by,
            message=str(exc),
            payload=payload,
            origin=origin,
            now=now,
        )
        raise
    if mode == ScanMode.TIME_OUT:
        return await mark_time_out(
            event_id, identity.student_id, now=now, scanned_by=scanned_by, payload=payload, origin=origin
        )
    return await mark_time_in(event_id, identity, now=now, scanned_by=scanned_by, payload=payload, origin=origin)


async def list_attendance(event_id: str) -> list[AttendanceRecord]:
    event = await get_event(event_id)
    return (
        await AttendanceRecord.find({"event_id": str(event.id)})
        .sort("-updated_at", "-_id")
        .to_list()
    )


async def attendance_stats(event_id: str) -> dict:
    event = await get_event(event_id)
    event_key = str(event.id)
    total = await AttendanceRecord.find({"event_id": event_key}).count()
    checked_out = await AttendanceRecord.find({"event_id": event_key, "time_out": {"$ne": None}}).count()
    return {
        "event_id": event_key,
        "total": total,
        "checked_in": total - checked_out,
        "checked_out": checked_out,
    }


def serialize_record(record: AttendanceRecord) -> dict:
    return {
        "id": str(record.id),
        "event_id": record.event_id,
        "student_id": record.student_id,
        "first_name": record.first_name,
        "middle_name": record.middle_name,
        "last_name": record.last_name,
        "course_id": record.course_id,
        "year_level": record.year_level,
        "avatar": record.avatar,
        "time_in": record.time_in.isoformat() if record.time_in else None,
        "time_out": record.time_out.isoformat() if record.time_out else None,
        "duration_minutes": record.duration_minutes,
        "check_in_method": record.check_in_method.value,
        "scanned_by": record.scanned_by,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }


REPORT_FORMATS = ("csv", "excel")
EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def attendance_report(event_id: str, fmt: str = "csv") -> tuple[bytes, str, str]:
    """Export an event's attendance; return (body, media_type, filename)."""
    if fmt not in REPORT_FORMATS:
        raise ValueError(f"Unsupported report format: {fmt}")
    event = await get_event(event_id)
    records = await list_attendance(event_id)

    rows = [
        {
            "Student ID": r.student_id,
            "Last Name": r.last_name,
            "First Name": r.first_name,
            "Middle Name": r.middle_name or "",
            "Course": r.course_id,
            "Year Level": r.year_level,
            "Time In": r.time_in,
            "Time Out": r.time_out,
            "Duration (min)": r.duration_minutes,
            "Method": r.check_in_method.value,
        }
        for r in records
    ]
    columns = [
        "Student ID", "Last Name", "First Name", "Middle Name", "Course",
        "Year Level", "Time In", "Time Out", "Duration (min)", "Method",
    ]
    df = pd.DataFrame(rows, columns=columns)
    stem = f"attendance_{event.id}"

    if fmt == "csv":
        stream = io.StringIO()
        df.to_csv(stream, index=False)
        return stream.getvalue().encode("utf-8"), "text/csv", f"{stem}.csv"

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Attendance")
    return output.getvalue(), EXCEL_MEDIA_TYPE, f"{stem}.xlsx"
