from datetime import timedelta

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from acetrack.models.attendance import ScanMode
from acetrack.models.event import EventStatus
from acetrack.models.scan_log import MAX_LOGGED_PAYLOAD, ScanLog
from acetrack.services.attendance import (
    DuplicateCheckIn,
    EventNotAcceptingCheckins,
    NotCheckedIn,
    mark_time_in,
    mark_time_out,
    scan,
)
from acetrack.services.qr_payload import QRPayloadError, encode_payload
from acetrack.services.scan_logs import ScanOrigin, list_scan_logs, record_scan_attempt, scan_log_summary
from tests.conftest import T0, auth_headers, make_event


async def _logs(event):
    return await ScanLog.find({"event_id": str(event.id)}).sort("created_at", "_id").to_list()


async def test_every_outcome_is_logged(event, identity, officer):
    event_id = str(event.id)
    origin = ScanOrigin(ip_address="10.0.0.7", user_agent="DoorScanner/2.1")
    payload = encode_payload(identity)

    await scan(event_id, payload, ScanMode.TIME_IN, now=T0, scanned_by=str(officer.id), origin=origin)
    with pytest.raises(DuplicateCheckIn):
        await scan(event_id, payload, ScanMode.TIME_IN, now=T0 + timedelta(seconds=5), origin=origin)
    with pytest.raises(QRPayloadError):
        await scan(event_id, "not-a-student-code", ScanMode.TIME_IN, now=T0 + timedelta(seconds=6))
    with pytest.raises(NotCheckedIn):
        await mark_time_out(event_id, "S-404", now=T0 + timedelta(seconds=7))
    await mark_time_out(event_id, "S-001", now=T0 + timedelta(minutes=60))

    logs = await _logs(event)
    assert [(log.scan_action, log.scan_result) for log in logs] == [
        (ScanMode.TIME_IN, "success"),
        (ScanMode.TIME_IN, "duplicate_check_in"),
        (ScanMode.TIME_IN, "parse_error"),
        (ScanMode.TIME_OUT, "not_checked_in"),
        (ScanMode.TIME_OUT, "success"),
    ]

    first = logs[0]
    assert first.organization_id == event.organization_id
    assert first.scanned_by == str(officer.id)
    assert first.student_id == "S-001"
    assert first.qr_code_data == payload
    assert first.ip_address == "10.0.0.7"
    assert first.user_agent == "DoorScanner/2.1"
    assert first.created_at == T0

    assert logs[1].message == "Student has already checked in for this event"
    assert logs[2].student_id is None
    assert logs[2].qr_code_data == "not-a-student-code"
    assert logs[3].student_id == "S-404"


async def test_closed_event_rejection_is_logged(organization, org_admin, identity):
    draft = await make_event(organization, org_admin, status=EventStatus.DRAFT)
    with pytest.raises(EventNotAcceptingCheckins):
        await mark_time_in(str(draft.id), identity, now=T0)

    (log,) = await _logs(draft)
    assert log.scan_result == "event_not_accepting_checkins"
    assert log.organization_id == str(organization.id)


async def test_logged_payload_is_truncated(event):
    with pytest.raises(QRPayloadError):
        await scan(str(event.id), "x" * 10_000, ScanMode.TIME_IN, now=T0)
    (log,) = await _logs(event)
    assert len(log.qr_code_data) == MAX_LOGGED_PAYLOAD


async def test_log_write_failure_does_not_fail_the_scan(event, identity, monkeypatch):
    async def unavailable(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("no primary available")

    monkeypatch.setattr(ScanLog, "insert", unavailable)
    record = await mark_time_in(str(event.id), identity, now=T0)
    assert record.time_in == T0


async def test_listing_filters_and_summary(event):
    event_id = str(event.id)
    for i, result in enumerate(["success", "duplicate_check_in", "parse_error", "success"]):
        await record_scan_attempt(event_id, ScanMode.TIME_IN, result, now=T0 + timedelta(seconds=i))

    logs = await list_scan_logs(event_id)
    assert [log.created_at for log in logs] == [T0 + timedelta(seconds=i) for i in (3, 2, 1, 0)]
    assert [log.scan_result for log in await list_scan_logs(event_id, result="rejected")] == [
        "parse_error",
        "duplicate_check_in",
    ]
    assert len(await list_scan_logs(event_id, result="success")) == 2
    assert len(await list_scan_logs(event_id, limit=1)) == 1

    summary = await scan_log_summary(event_id)
    assert summary["total"] == 4
    assert summary["successful"] == 2
    assert summary["rejected"] == 2
    assert summary["by_result"] == {"success": 2, "duplicate_check_in": 1, "parse_error": 1}


async def test_scan_log_routes(client, event, officer, student, identity):
    headers = {**auth_headers(officer), "User-Agent": "DoorScanner/2.1"}
    base = f"/api/events/{event.id}/attendance"
    payload = encode_payload(identity)

    assert (await client.post(f"{base}/scan", json={"payload": payload}, headers=headers)).status_code == 200
    assert (await client.post(f"{base}/scan", json={"payload": payload}, headers=headers)).status_code == 409
    assert (await client.post(f"{base}/scan", json={"payload": "{}"}, headers=headers)).status_code == 400

    res = await client.get(f"{base}/scan-logs", headers=headers)
    assert res.status_code == 200
    logs = res.json()
    assert sorted(log["scan_result"] for log in logs) == ["duplicate_check_in", "parse_error", "success"]
    assert {log["scanned_by"] for log in logs} == {str(officer.id)}
    assert {log["user_agent"] for log in logs} == {"DoorScanner/2.1"}
    assert all(log["ip_address"] for log in logs)

    res = await client.get(f"{base}/scan-logs", params={"result": "rejected"}, headers=headers)
    assert sorted(log["scan_result"] for log in res.json()) == ["duplicate_check_in", "parse_error"]

    res = await client.get(f"{base}/scan-logs/summary", headers=headers)
    assert res.json()["successful"] == 1
    assert res.json()["rejected"] == 2

    res = await client.get(f"{base}/scan-logs", headers=auth_headers(student))
    assert res.status_code == 403
