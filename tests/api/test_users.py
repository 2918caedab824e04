"""Tests for user endpoints."""
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from services.metadata_enricher import UrlMetadata


async def test_get_me_in_dev_mode_returns_dev_user(client: AsyncClient) -> None:
    """Test that /users/me returns dev user when DEV_MODE=true."""
    response = await client.get("/users/me")
    assert response.status_code == 200

    data = response.json()
    assert data["external_id"] == "dev|local-development-user"
    assert data["email"] == "dev@localhost"
    assert data["name"] == "Developer"


async def test_get_me_creates_user_on_first_request(
    client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    """Test that user is created in database on first request."""
    response = await client.get("/users/me")
    assert response.status_code == 200

    result = await db_session.execute(
        select(User).where(User.external_id == "dev|local-development-user"),
    )
    user = result.scalar_one_or_none()
    assert user is not None
    assert str(user.id) == response.json()["id"]


async def test_get_me_returns_same_user_on_subsequent_requests(
    client: AsyncClient,
) -> None:
    """Test that the same user is returned on multiple requests."""
    response1 = await client.get("/users/me")
    response2 = await client.get("/users/me")

    assert response1.status_code == 200
    assert response2.status_code == 200
    assert response1.json()["id"] == response2.json()["id"]


async def test_bookmarks_belong_to_current_user(client: AsyncClient) -> None:
    """Created bookmarks carry the current user's ID."""
    me = (await client.get("/users/me")).json()

    with patch(
        "services.bookmark_service.enrich_url",
        new_callable=AsyncMock,
        return_value=UrlMetadata(summary="s", favicon="f"),
    ):
        response = await client.post(
            "/bookmarks/",
            json={"url": "https://example.com", "title": "Mine"},
        )
    assert response.status_code == 201
    assert response.json()["user_id"] == me["id"]
