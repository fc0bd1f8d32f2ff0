import pytest
from sqlalchemy.future import select

from helpdesk.models.lookups import Status
from helpdesk.models.user import User
from helpdesk.permissions import ALL_PERMISSIONS
from helpdesk.scripts.set_admin import seed_admin
from helpdesk.utils.security import verify_password


async def test_creates_admin_and_default_status(db):
    admin = await seed_admin(db, "root", "pw-1")

    assert admin.id == 1
    assert set(admin.permissions) == {p.value for p in ALL_PERMISSIONS}
    assert verify_password("pw-1", admin.password_hash)

    result = await db.execute(select(Status).filter(Status.id == 1))
    assert result.scalars().one().name == "Pending"


async def test_rerun_updates_in_place(db):
    await seed_admin(db, "root", "pw-1")
    await seed_admin(db, "boss", "pw-2")

    result = await db.execute(select(User))
    users = result.scalars().all()
    assert [(u.id, u.username) for u in users] == [(1, "boss")]
    assert verify_password("pw-2", users[0].password_hash)


async def test_keeps_existing_default_status(db, seed):
    await seed_admin(db, "admin", "pw")

    result = await db.execute(select(Status).order_by(Status.id))
    assert [s.name for s in result.scalars().all()] == ["Pending", "Done"]


async def test_refuses_another_users_name(db, seed):
    with pytest.raises(ValueError):
        await seed_admin(db, "agent", "pw")
