"""Integration tests for the weekly recap trigger and lookup."""

from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from afterhours.db.models import TimelineEntry, UserRole
from afterhours.engagement.week_utils import previous_week_window


class TestTriggerWeeklyRecap:
    @pytest.mark.asyncio
    async def test_batch_requires_admin(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/recaps/weekly",
            json={"batchMode": True},
            headers=auth_headers("user-1"),
        )
        assert response.status_code == 403
        assert response.json() == {"detail": "Admin access required for batch operations"}

    @pytest.mark.asyncio
    async def test_other_user_requires_admin(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/recaps/weekly",
            json={"userId": "user-2"},
            headers=auth_headers("user-1"),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_own_recap_without_body(self, client: AsyncClient, auth_headers):
        headers = auth_headers("user-1")
        response = await client.post("/api/v1/recaps/weekly", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["successful"] == 1

        start, end = previous_week_window()
        assert data["week"] == {"start": start.date().isoformat(), "end": end.date().isoformat()}

        latest = await client.get("/api/v1/users/me/recaps/latest", headers=headers)
        assert latest.status_code == 200
        assert latest.json()["week_start"] == start.date().isoformat()

    @pytest.mark.asyncio
    async def test_scheduler_batch(self, client: AsyncClient, add_rows, scheduler_headers):
        start, _ = previous_week_window()
        await add_rows(
            *[
                TimelineEntry(
                    user_id=user_id,
                    event_name="Night out",
                    event_city="Berlin",
                    attended_date=start.date() + timedelta(days=offset),
                    highlight_moment=f"{user_id} highlight",
                    created_at=start,
                )
                for offset, user_id in enumerate(["alice", "bob", "carol"])
            ]
        )

        first = await client.post("/api/v1/recaps/weekly", json={"batchMode": True}, headers=scheduler_headers)
        assert first.status_code == 200
        assert (first.json()["processed"], first.json()["successful"]) == (3, 3)

        rerun = await client.post("/api/v1/recaps/weekly", json={"batchMode": True}, headers=scheduler_headers)
        assert (rerun.json()["successful"], rerun.json()["skipped"]) == (0, 3)

    @pytest.mark.asyncio
    async def test_admin_targets_single_user(self, client: AsyncClient, add_rows, auth_headers):
        await add_rows(UserRole(user_id="admin-1", role="admin"))
        response = await client.post(
            "/api/v1/recaps/weekly",
            json={"userId": "user-2"},
            headers=auth_headers("admin-1"),
        )
        assert response.status_code == 200
        assert response.json()["successful"] == 1

        latest = await client.get("/api/v1/users/me/recaps/latest", headers=auth_headers("user-2"))
        assert latest.status_code == 200
        assert latest.json()["events_attended"] == 0


class TestLatestRecap:
    @pytest.mark.asyncio
    async def test_no_recap_yet(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/users/me/recaps/latest", headers=auth_headers("user-1"))
        assert response.status_code == 404
