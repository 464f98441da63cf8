"""Scan attempt audit trail: who scanned what, where from, and how it ended."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pymongo.errors import PyMongoError

from acetrack.models.attendance import ScanMode
from acetrack.models.scan_log import MAX_LOGGED_PAYLOAD, SCAN_SUCCESS, ScanLog

logger = logging.getLogger(__name__)

MAX_USER_AGENT_LENGTH = 255


@dataclass(frozen=True)
class ScanOrigin:
    """The scanning device as seen by the HTTP layer."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


async def record_scan_attempt(
    event_id: str,
    action: ScanMode,
    result: str,
    *,
    organization_id: Optional[str] = None,
    scanned_by: Optional[str] = None,
    student_id: Optional[str] = None,
    message: Optional[str] = None,
    payload: Optional[str] = None,
    origin: Optional[ScanOrigin] = None,
    now: Optional[datetime] = None,
) -> Optional[ScanLog]:
    """Persist one attempt. A failed write is logged and never fails the scan."""
    origin = origin or ScanOrigin()
    entry = ScanLog(
        event_id=event_id,
        organization_id=organization_id,
        scanned_by=scanned_by,
        student_id=student_id,
        scan_action=action,
        scan_result=result,
        message=message,
        qr_code_data=payload[:MAX_LOGGED_PAYLOAD] if isinstance(payload, str) else None,
        ip_address=origin.ip_address,
        user_agent=origin.user_agent[:MAX_USER_AGENT_LENGTH] if origin.user_agent else None,
        created_at=now or datetime.utcnow(),
    )
    try:
        await entry.insert()
    except PyMongoError as e:
        logger.error("Scan log write failed for event %s (%s): %s", event_id, result, e)
        return None
    return entry


async def list_scan_logs(
    event_id: str,
    *,
    result: Optional[str] = None,
    limit: int = 100,
) -> list[ScanLog]:
    query: dict = {"event_id": event_id}
    if result == "rejected":
        query["scan_result"] = {"$ne": SCAN_SUCCESS}
    elif result:
        query["scan_result"] = result
    return await ScanLog.find(query).sort("-created_at", "-_id").limit(limit).to_list()


async def scan_log_summary(event_id: str) -> dict:
    """Attempt counts per result, for spotting misuse at the door."""
    logs = await ScanLog.find({"event_id": event_id}).to_list()
    by_result: dict[str, int] = {}
    for log in logs:
        by_result[log.scan_result] = by_result.get(log.scan_result, 0) + 1
    return {
        "event_id": event_id,
        "total": len(logs),
        "successful": by_result.get(SCAN_SUCCESS, 0),
        "rejected": len(logs) - by_result.get(SCAN_SUCCESS, 0),
        "by_result": by_result,
    }


def serialize_scan_log(log: ScanLog) -> dict:
    return {
        "id": str(log.id),
        "event_id": log.event_id,
        "organization_id": log.organization_id,
        "scanned_by": log.scanned_by,
        "student_id": log.student_id,
        "scan_action": log.scan_action.value,
        "scan_result": log.scan_result,
        "message": log.message,
        "qr_code_data": log.qr_code_data,
        "ip_address": log.ip_address,
        "user_agent": log.user_agent,
        "created_at": log.created_at.isoformat(),
    }
