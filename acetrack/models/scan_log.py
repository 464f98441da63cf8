"""Audit trail of scan attempts, accepted and rejected."""
from datetime import datetime
from typing import Optional

import pymongo
from beanie import Document
from pydantic import Field
from pymongo import IndexModel

from acetrack.models.attendance import ScanMode

SCAN_SUCCESS = "success"
MAX_LOGGED_PAYLOAD = 512


class ScanLog(Document):
    """One row per check-in, check-out or raw scan, whatever the outcome."""

    event_id: str
    organization_id: Optional[str] = None
    scanned_by: Optional[str] = None  # user id of the scanning staff
    student_id: Optional[str] = None  # unknown when the payload did not decode
    scan_action: ScanMode
    scan_result: str  # "success" or the rejection reason code
    message: Optional[str] = None
    qr_code_data: Optional[str] = None  # raw scanner text, truncated
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "scan_logs"
        indexes = [
            IndexModel([("event_id", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)]),
            IndexModel([("organization_id", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)]),
        ]
