from acetrack import seed
from acetrack.api.deps import verify_password
from acetrack.models.user import User


async def test_seed_is_skipped_without_password(monkeypatch):
    monkeypatch.setattr(seed.settings, "super_admin_password", "")
    await seed.seed_super_admin()
    assert await User.find_all().count() == 0


async def test_seed_creates_super_admin_once(monkeypatch):
    monkeypatch.setattr(seed.settings, "super_admin_password", "s3cret-pass")
    await seed.seed_super_admin()
    await seed.seed_super_admin()

    admins = await User.find(User.is_super_admin == True).to_list()
    assert len(admins) == 1
    assert admins[0].email == seed.settings.super_admin_email
    assert verify_password("s3cret-pass", admins[0].hashed_password)


async def test_health(client):
    res = await client.get("/health")
    assert res.json() == {"status": "ok", "app": "AceTrack"}
