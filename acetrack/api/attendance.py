"""Attendance scanning, listing and export for one event."""
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from acetrack.api.deps import Session, require_event_permission
from acetrack.models.attendance import CheckInRequest, CheckOutRequest, ScanRequest
from acetrack.models.event import Event
from acetrack.services import attendance as attendance_service
from acetrack.services import scan_logs as scan_log_service

router = APIRouter()

AttendanceAccess = Annotated[Event, Depends(require_event_permission("attendance"))]


def _origin(request: Request) -> scan_log_service.ScanOrigin:
    return scan_log_service.ScanOrigin(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/check-in", status_code=201)
async def check_in(data: CheckInRequest, event: AttendanceAccess, session: Session, request: Request):
    record = await attendance_service.mark_time_in(
        str(event.id),
        data,
        scanned_by=session.user_id,
        method=data.method,
        origin=_origin(request),
    )
    return attendance_service.serialize_record(record)


@router.post("/check-out")
async def check_out(data: CheckOutRequest, event: AttendanceAccess, session: Session, request: Request):
    record = await attendance_service.mark_time_out(
        str(event.id),
        data.student_id.strip(),
        scanned_by=session.user_id,
        origin=_origin(request),
    )
    return attendance_service.serialize_record(record)


@router.post("/scan")
async def scan(data: ScanRequest, event: AttendanceAccess, session: Session, request: Request):
    """Raw scanner text in; the resulting record out."""
    record = await attendance_service.scan(
        str(event.id),
        data.payload,
        data.mode,
        scanned_by=session.user_id,
        origin=_origin(request),
    )
    return attendance_service.serialize_record(record)


@router.get("")
async def list_attendance(event: AttendanceAccess):
    records = await attendance_service.list_attendance(str(event.id))
    return [attendance_service.serialize_record(r) for r in records]


@router.get("/stats")
async def attendance_stats(event: AttendanceAccess):
    return await attendance_service.attendance_stats(str(event.id))


@router.get("/scan-logs")
async def list_scan_logs(
    event: AttendanceAccess,
    result: Optional[str] = Query(None, description='"success", "rejected" or a reason code'),
    limit: int = Query(100, ge=1, le=500),
):
    """Scan attempts at this event, most recent first."""
    logs = await scan_log_service.list_scan_logs(str(event.id), result=result, limit=limit)
    return [scan_log_service.serialize_scan_log(log) for log in logs]


@router.get("/scan-logs/summary")
async def scan_log_summary(event: AttendanceAccess):
    return await scan_log_service.scan_log_summary(str(event.id))


@router.get("/report")
async def download_attendance_report(
    event: AttendanceAccess,
    format: Literal["csv", "excel"] = Query("csv"),
):
    """Download the event's attendance as CSV or Excel."""
    body, media_type, filename = await attendance_service.attendance_report(str(event.id), format)
    return StreamingResponse(
        iter([body]),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
