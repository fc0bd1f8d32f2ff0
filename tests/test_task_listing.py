"""
Listing policy: date window, filters, pagination and ordering.
"""
from datetime import date, datetime, time, timedelta, timezone

import pytest

from helpdesk.schemas.task import TaskFilters
from helpdesk.services.tasks import build_task_conditions, resolve_date_window


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def at(day: date, hour: int = 12, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def ids(response) -> list[int]:
    return [task["id"] for task in response.json()["data"]]


class TestDateWindow:

    def test_defaults_to_trailing_thirty_days(self):
        start, end = resolve_date_window(None, None, today=date(2024, 3, 31))
        assert start == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 4, 1, tzinfo=timezone.utc)

    def test_end_date_covers_its_whole_day(self):
        start, end = resolve_date_window(date(2024, 1, 1), date(2024, 1, 15), today=date(2024, 6, 1))
        assert start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 1, 16, tzinfo=timezone.utc)

    def test_start_only_runs_to_today(self):
        _, end = resolve_date_window(date(2024, 1, 1), None, today=date(2024, 2, 10))
        assert end == datetime(2024, 2, 11, tzinfo=timezone.utc)

    def test_future_start_only_stays_a_valid_range(self):
        start, end = resolve_date_window(date(2024, 3, 10), None, today=date(2024, 3, 1))
        assert start == datetime(2024, 3, 10, tzinfo=timezone.utc)
        assert end == datetime(2024, 3, 11, tzinfo=timezone.utc)

    def test_end_only_opens_thirty_days_earlier(self):
        start, _ = resolve_date_window(None, date(2024, 2, 10), today=date(2024, 6, 1))
        assert start == datetime(2024, 1, 11, tzinfo=timezone.utc)

    def test_only_window_predicates_without_filters(self):
        assert len(build_task_conditions(TaskFilters(), today=date(2024, 1, 1))) == 2

    def test_each_filter_adds_one_predicate(self):
        filters = TaskFilters(location_id=1, status_id=2, tag_id=3)
        assert len(build_task_conditions(filters, today=date(2024, 1, 1))) == 5


class TestFilterValidation:

    @pytest.mark.parametrize("limit", [10, 25, 50, 100])
    def test_allowed_page_sizes(self, limit):
        assert TaskFilters(limit=limit).limit == limit

    async def test_rejects_other_page_sizes(self, client, agent_headers):
        response = await client.get("/tasks", params={"limit": 7}, headers=agent_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "limit must be one of 10, 25, 50, 100"}

    async def test_rejects_page_zero(self, client, agent_headers):
        response = await client.get("/tasks", params={"page": 0}, headers=agent_headers)
        assert response.status_code == 400

    async def test_rejects_reversed_range(self, client, agent_headers):
        response = await client.get(
            "/tasks", params={"startDate": "2024-02-01", "endDate": "2024-01-01"}, headers=agent_headers
        )
        assert response.status_code == 400
        assert response.json() == {"error": "startDate must not be after endDate"}

    async def test_rejects_malformed_date(self, client, agent_headers):
        response = await client.get("/tasks", params={"startDate": "yesterday"}, headers=agent_headers)
        assert response.status_code == 400


class TestListing:

    async def test_empty_listing(self, client, agent_headers):
        response = await client.get("/tasks", headers=agent_headers)

        assert response.status_code == 200
        assert response.json() == {"total": 0, "page": 1, "limit": 25, "totalPages": 0, "data": []}

    async def test_default_window_excludes_old_tasks(self, client, agent_headers, insert_task):
        today = utc_today()
        recent = await insert_task(created_at=at(today - timedelta(days=3)))
        await insert_task(created_at=at(today - timedelta(days=45)))

        response = await client.get("/tasks", headers=agent_headers)
        assert ids(response) == [recent]

    async def test_explicit_range_includes_last_day(self, client, agent_headers, insert_task):
        inside = await insert_task(created_at=datetime(2024, 1, 15, 23, 59, tzinfo=timezone.utc))
        await insert_task(created_at=datetime(2024, 1, 16, 0, 0, tzinfo=timezone.utc))
        first = await insert_task(created_at=datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc))
        await insert_task(created_at=datetime(2023, 12, 31, 23, 59, tzinfo=timezone.utc))

        response = await client.get(
            "/tasks", params={"startDate": "2024-01-01", "endDate": "2024-01-15"}, headers=agent_headers
        )
        assert ids(response) == [inside, first]

    async def test_future_start_date_without_end(self, client, agent_headers, insert_task):
        tomorrow = utc_today() + timedelta(days=1)
        scheduled = await insert_task(created_at=at(tomorrow, 0, 30))
        await insert_task(created_at=at(utc_today()))

        response = await client.get("/tasks", params={"startDate": tomorrow.isoformat()}, headers=agent_headers)

        assert response.status_code == 200
        assert ids(response) == [scheduled]

    async def test_newest_first_with_id_tiebreak(self, client, agent_headers, insert_task):
        day = utc_today() - timedelta(days=1)
        older = await insert_task(created_at=at(day, 8))
        same_a = await insert_task(created_at=at(day, 10))
        same_b = await insert_task(created_at=at(day, 10))

        response = await client.get("/tasks", headers=agent_headers)
        assert ids(response) == [same_b, same_a, older]

    async def test_filters_combine(self, client, agent_headers, insert_task):
        day = at(utc_today() - timedelta(days=1))
        match = await insert_task(created_at=day, location_id=2, status_id=2)
        await insert_task(created_at=day, location_id=2, status_id=1)
        await insert_task(created_at=day, location_id=1, status_id=2)

        response = await client.get(
            "/tasks", params={"locationId": 2, "statusId": 2}, headers=agent_headers
        )
        assert ids(response) == [match]
        assert response.json()["total"] == 1

    async def test_tag_filter_keeps_full_tag_set(self, client, agent_headers, insert_task):
        day = utc_today() - timedelta(days=1)
        both = await insert_task(created_at=at(day, 9), tag_ids=(1, 2))
        only_urgent = await insert_task(created_at=at(day, 10), tag_ids=(1,))
        await insert_task(created_at=at(day, 11), tag_ids=(2,))
        await insert_task(created_at=at(day, 12))

        response = await client.get("/tasks", params={"tagId": 1}, headers=agent_headers)

        assert ids(response) == [only_urgent, both]
        tagged = {task["id"]: [tag["name"] for tag in task["tags"]] for task in response.json()["data"]}
        assert tagged[both] == ["urgent", "warranty"]

    async def test_filter_by_unused_value_is_empty(self, client, agent_headers, insert_task):
        await insert_task(created_at=at(utc_today()))
        response = await client.get("/tasks", params={"deviceTypeId": 5}, headers=agent_headers)
        assert response.json()["total"] == 0

    async def test_pagination(self, client, agent_headers, insert_task):
        day = utc_today() - timedelta(days=2)
        created = [await insert_task(created_at=at(day, 0, minute)) for minute in range(12)]
        newest_first = list(reversed(created))

        first = await client.get("/tasks", params={"limit": 10}, headers=agent_headers)
        second = await client.get("/tasks", params={"limit": 10, "page": 2}, headers=agent_headers)
        beyond = await client.get("/tasks", params={"limit": 10, "page": 3}, headers=agent_headers)

        assert first.json()["total"] == 12
        assert first.json()["totalPages"] == 2
        assert ids(first) == newest_first[:10]
        assert ids(second) == newest_first[10:]
        assert second.json()["page"] == 2
        assert beyond.json()["data"] == []
        assert beyond.json()["total"] == 12
