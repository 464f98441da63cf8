from acetrack.services.qr_payload import decode_payload
from tests.conftest import auth_headers, make_user

REGISTRATION = {
    "email": "Juan@Students.acetrack.app",
    "password": "correct-horse",
    "first_name": "Juan",
    "last_name": "Dela Cruz",
    "student_id": "2023-1001",
    "course_id": 2,
    "year_level": 1,
}


async def test_register_login_refresh_me(client):
    res = await client.post("/api/auth/register", json=REGISTRATION)
    assert res.status_code == 201
    tokens = res.json()
    assert tokens["token_type"] == "bearer"

    res = await client.post("/api/auth/login", json={"email": "juan@students.acetrack.app", "password": "correct-horse"})
    assert res.status_code == 200

    res = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200

    res = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert res.status_code == 200
    me = res.json()
    assert me["email"] == "juan@students.acetrack.app"
    assert me["memberships"] == []
    assert me["dashboard"] == {"type": "no-access", "url": "/no-access"}
    assert "hashed_password" not in me


async def test_register_duplicate_email(client):
    await client.post("/api/auth/register", json=REGISTRATION)
    res = await client.post("/api/auth/register", json=REGISTRATION)
    assert res.status_code == 400


async def test_login_wrong_password(client):
    await client.post("/api/auth/register", json=REGISTRATION)
    res = await client.post("/api/auth/login", json={"email": REGISTRATION["email"], "password": "wrong-password"})
    assert res.status_code == 401


async def test_access_token_cannot_refresh(client):
    res = await client.post("/api/auth/register", json=REGISTRATION)
    res = await client.post("/api/auth/refresh", json={"refresh_token": res.json()["access_token"]})
    assert res.status_code == 401


async def test_me_reports_org_admin_dashboard(client, organization, org_admin):
    res = await client.get("/api/auth/me", headers=auth_headers(org_admin))
    body = res.json()
    assert body["dashboard"]["url"] == "/organization-dashboard"
    assert body["primary_organization_id"] == str(organization.id)


async def test_my_qr_code_carries_profile(client, student):
    res = await client.get("/api/users/me/qr", headers=auth_headers(student))
    assert res.status_code == 200
    body = res.json()
    identity = decode_payload(body["payload"])
    assert identity.student_id == "S-001"
    assert identity.middle_name == "Santos"
    assert body["qr_code"].startswith("data:image/png;base64,")


async def test_my_qr_code_requires_complete_profile(client, officer):
    res = await client.get("/api/users/me/qr", headers=auth_headers(officer))
    assert res.status_code == 400
    assert "student_id" in res.json()["detail"]


async def test_update_profile(client, officer):
    headers = auth_headers(officer)
    res = await client.patch("/api/users/me", json={"student_id": "S-777", "course_id": 1, "year_level": 3}, headers=headers)
    assert res.status_code == 200
    assert res.json()["student_id"] == "S-777"

    res = await client.get("/api/users/me/qr", headers=headers)
    assert res.status_code == 200


async def test_update_profile_rejects_blank_name(client, officer):
    res = await client.patch("/api/users/me", json={"first_name": "   "}, headers=auth_headers(officer))
    assert res.status_code == 400


async def test_avatar_upload(client, student, monkeypatch):
    uploads = []

    async def fake_upload(body, filename, content_type, *, folder):
        uploads.append((filename, content_type, folder))
        return f"https://media.example/{folder}/a.png", f"{folder}/a.png"

    monkeypatch.setattr("acetrack.api.users.upload_image_to_s3", fake_upload)
    res = await client.post(
        "/api/users/me/avatar",
        files={"file": ("me.png", b"\x89PNG fake", "image/png")},
        headers=auth_headers(student),
    )
    assert res.status_code == 200
    assert res.json()["avatar"] == f"https://media.example/avatars/{student.id}/a.png"
    assert uploads == [("me.png", "image/png", f"avatars/{student.id}")]


async def test_avatar_upload_rejects_non_images(client, student):
    res = await client.post(
        "/api/users/me/avatar",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(student),
    )
    assert res.status_code == 400


async def test_qr_generator_for_staff(client, organization, officer, student):
    identity = {"student_id": "S-010", "first_name": "Ana", "last_name": "Lim", "course_id": 1, "year_level": 1}

    res = await client.post("/api/qr/render", json=identity, headers=auth_headers(officer))
    assert res.status_code == 200
    assert decode_payload(res.json()["payload"]).student_id == "S-010"

    res = await client.post("/api/qr/render", json=identity, headers=auth_headers(student))
    assert res.status_code == 403


async def test_qr_generator_rejects_identity_too_large_for_a_qr_code(client, organization, officer):
    identity = {"student_id": "S-010", "first_name": "A" * 3500, "last_name": "Lim", "course_id": 1, "year_level": 1}

    res = await client.post("/api/qr/render", json=identity, headers=auth_headers(officer))
    assert res.status_code == 422

    identity.update(first_name="Ana", course_id=2**31)
    res = await client.post("/api/qr/render", json=identity, headers=auth_headers(officer))
    assert res.status_code == 422


async def test_my_qr_with_oversized_stored_profile_is_rejected(client):
    user = await make_user(
        "legacy@cs.acetrack.app", student_id="S-077", first_name="A" * 3500, course_id=1, year_level=1
    )
    res = await client.get("/api/users/me/qr", headers=auth_headers(user))
    assert res.status_code == 400
    assert "invalid" in res.json()["detail"]


async def test_profile_update_rejects_oversized_fields(client, student):
    res = await client.patch("/api/users/me", json={"first_name": "A" * 500}, headers=auth_headers(student))
    assert res.status_code == 422
