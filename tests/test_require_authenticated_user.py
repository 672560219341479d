from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
import pytest

from app.api import deps
from app.core.errors import Forbidden, Unauthenticated, register_exception_handlers
from app.core.permissions import UserRole
from app.core.response_envelope import register_response_envelope
from app.core.security import create_access_token
from app.models.user import User

from conftest import make_user


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    register_response_envelope(app)

    @app.get("/protected")
    async def protected_route(user=Depends(deps.require_authenticated_user)):
        return {"user": str(user)}

    @app.get("/admin-only")
    async def admin_route(user=Depends(deps.require_admin)):
        return {"email": user.email}

    return app


def test_protected_route_requires_auth():
    app = _build_app()
    client = TestClient(app)
    resp = client.get("/protected")
    assert resp.status_code == 401
    assert resp.headers.get("www-authenticate") == "Bearer"


def test_protected_route_allows_authenticated():
    app = _build_app()

    async def fake_user():
        return {"id": "user-1"}

    app.dependency_overrides[deps.get_current_user] = fake_user
    client = TestClient(app)
    resp = client.get("/protected", headers={"Authorization": "Bearer test"})
    assert resp.status_code == 200
    assert resp.json()["data"]["user"] == "{'id': 'user-1'}"

    app.dependency_overrides.clear()


@pytest.mark.parametrize(
    ("role", "expected_status"),
    [(UserRole.USER, 403), (UserRole.ADMIN, 200), (UserRole.SUPER_ADMIN, 200)],
)
def test_admin_route_checks_role(role, expected_status):
    app = _build_app()
    user = make_user(email="caller@example.com", role=role)

    async def fake_user():
        return user

    app.dependency_overrides[deps.get_current_user] = fake_user
    resp = TestClient(app).get("/admin-only", headers={"Authorization": "Bearer test"})
    assert resp.status_code == expected_status
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_require_super_admin_rejects_admin():
    with pytest.raises(Forbidden):
        await deps.require_super_admin(current_user=make_user(role=UserRole.ADMIN))


@pytest.mark.asyncio
async def test_bearer_token_resolves_user(fake_db):
    user = make_user()
    fake_db.on_get(User, user.id, user)

    resolved = await deps.get_current_user(token=create_access_token(str(user.id)), db=fake_db)

    assert resolved is user


@pytest.mark.asyncio
async def test_token_for_missing_user_is_rejected(fake_db):
    user = make_user()
    with pytest.raises(Unauthenticated):
        await deps.get_current_user(token=create_access_token(str(user.id)), db=fake_db)


@pytest.mark.asyncio
async def test_token_for_inactive_user_is_rejected(fake_db):
    user = make_user(is_active=False)
    fake_db.on_get(User, user.id, user)
    with pytest.raises(Unauthenticated):
        await deps.get_current_user(token=create_access_token(str(user.id)), db=fake_db)


@pytest.mark.asyncio
async def test_token_with_non_uuid_subject_is_rejected(fake_db):
    with pytest.raises(Unauthenticated):
        await deps.get_current_user(token=create_access_token("not-a-uuid"), db=fake_db)


@pytest.mark.asyncio
async def test_optional_user_tolerates_missing_or_bad_tokens(fake_db):
    assert await deps.get_optional_user(token=None, db=fake_db) is None
    assert await deps.get_optional_user(token="garbage", db=fake_db) is None
