import json

import httpx
import pytest

from intake_bot.services.notion_service import (
    DEFAULT_PROPERTY_SCHEMA,
    NotionService,
    NotionTask,
    build_page_properties,
    build_property_value,
    classify_status_code,
    parse_date,
    simplify_schema,
)
from intake_bot.services.result import TRANSIENT, VALIDATION

SCHEMA = {
    "Name": {"id": "title", "type": "title", "title": {}},
    "Tags": {"id": "a", "type": "multi_select", "multi_select": {"options": [{"name": "sometimes-later"}]}},
    "project": {"id": "b", "type": "select", "select": {"options": [{"name": "household-tasks"}]}},
    "Date": {"id": "c", "type": "date", "date": {}},
    "Complete": {"id": "d", "type": "button", "button": {}},
    "llm_tag": {"id": "e", "type": "rich_text", "rich_text": {}},
}


def page(page_id, title, **props):
    properties = {"Name": {"type": "title", "title": [{"plain_text": title}]}}
    properties.update(props)
    return {"id": page_id, "properties": properties}


class NotionHandler:
    """Routes MockTransport requests and records them."""

    def __init__(self, create_status=200, schema_status=200, query_pages=None):
        self.create_status = create_status
        self.schema_status = schema_status
        self.query_pages = query_pages or []
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path == "/v1/databases/db-1":
            return httpx.Response(self.schema_status, json={"properties": SCHEMA})
        if request.method == "POST" and path == "/v1/pages":
            if self.create_status != 200:
                return httpx.Response(self.create_status, json={"message": "nope"})
            return httpx.Response(200, json={"id": "abc-123"})
        if request.method == "POST" and path == "/v1/databases/db-1/query":
            return httpx.Response(200, json={"results": self.query_pages, "has_more": False})
        if request.method == "PATCH" and path.startswith("/v1/pages/"):
            return httpx.Response(200, json={"id": path.rsplit("/", 1)[-1]})
        return httpx.Response(404)

    def bodies(self, method, path):
        return [json.loads(r.content) for r in self.requests if r.method == method and r.url.path == path]


def make_service(handler, **kwargs):
    return NotionService("secret", "db-1", transport=httpx.MockTransport(handler), **kwargs)


class TestHelpers:
    def test_classify_status_code(self):
        assert classify_status_code(429) == TRANSIENT
        assert classify_status_code(502) == TRANSIENT
        assert classify_status_code(400) == VALIDATION
        assert classify_status_code(404) == VALIDATION

    def test_parse_date_formats(self):
        assert parse_date("2024-10-23") == "2024-10-23"
        assert parse_date("2024-10-23T10:00:00Z") == "2024-10-23"
        assert parse_date("10/23/2024") == "2024-10-23"
        assert parse_date("23.10.2024") == "2024-10-23"
        assert parse_date("next friday") is None

    def test_build_property_value(self):
        assert build_property_value("select", "household-tasks") == {"select": {"name": "household-tasks"}}
        assert build_property_value("multi_select", "a") == {"multi_select": [{"name": "a"}]}
        assert build_property_value("checkbox", "yes") == {"checkbox": True}
        assert build_property_value("number", "4.5") == {"number": 4.5}
        assert build_property_value("number", "many") is None
        assert build_property_value("select", "") is None

    def test_button_like_properties_are_skipped(self):
        payload = build_page_properties({"Complete": True, "Done button": "x", "project": "household-tasks"}, SCHEMA)
        assert payload == {"project": {"select": {"name": "household-tasks"}}}

    def test_unknown_properties_are_dropped_with_schema(self):
        assert build_page_properties({"Priority": "high"}, SCHEMA) == {}

    def test_fallback_types_without_schema(self):
        payload = build_page_properties({"Tags": ["a", "b"], "Date": "2024-10-23", "Notes": "hi"}, None)
        assert payload["Tags"] == {"multi_select": [{"name": "a"}, {"name": "b"}]}
        assert payload["Date"] == {"date": {"start": "2024-10-23"}}
        assert payload["Notes"]["rich_text"][0]["text"]["content"] == "hi"

    def test_simplify_schema(self):
        simplified = simplify_schema(SCHEMA)
        assert simplified["Name"] == {"type": "title", "required": True}
        assert simplified["Tags"] == {"type": "multi_select", "options": ["sometimes-later"]}
        assert simplified["Complete"] == {"type": "button"}

    def test_default_schema_has_title(self):
        assert DEFAULT_PROPERTY_SCHEMA["Name"]["type"] == "title"

    def test_task_url_strips_dashes(self):
        assert NotionTask(id="ab-cd-12", title="x").url == "https://notion.so/abcd12"


class TestCreateRecord:
    @pytest.mark.asyncio
    async def test_creates_page_with_title(self):
        handler = NotionHandler()
        service = make_service(handler)

        result = await service.create_record("Buy milk", {})

        assert result.ok is True
        assert result.value == "abc-123"
        body = handler.bodies("POST", "/v1/pages")[0]
        assert body["parent"] == {"database_id": "db-1"}
        assert body["properties"]["Name"]["title"][0]["text"]["content"] == "Buy milk"
        headers = handler.requests[-1].headers
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Notion-Version"] == "2022-06-28"

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        service = make_service(NotionHandler(create_status=503))
        result = await service.create_record("Buy milk", {})
        assert result.ok is False
        assert result.error_code == TRANSIENT

    @pytest.mark.asyncio
    async def test_bad_request_is_validation(self):
        service = make_service(NotionHandler(create_status=400))
        result = await service.create_record("Buy milk", {})
        assert result.error_code == VALIDATION

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        service = make_service(handler)
        result = await service.create_record("Buy milk", {})
        assert result.ok is False
        assert result.error_code == TRANSIENT

    @pytest.mark.asyncio
    async def test_empty_title_is_validation(self):
        handler = NotionHandler()
        result = await make_service(handler).create_record("  ", {})
        assert result.error_code == VALIDATION
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_unconfigured_is_validation(self):
        service = NotionService("", "")
        result = await service.create_record("Buy milk", {})
        assert result.error_code == VALIDATION

    @pytest.mark.asyncio
    async def test_schema_is_cached(self):
        handler = NotionHandler()
        service = make_service(handler)

        await service.create_record("one", {})
        await service.create_record("two", {})

        assert len([r for r in handler.requests if r.method == "GET"]) == 1

    @pytest.mark.asyncio
    async def test_schema_failure_falls_back(self):
        handler = NotionHandler(schema_status=500)
        service = make_service(handler)

        assert await service.get_database_schema() is None
        result = await service.create_record("Buy milk", {"project": "household-tasks"})

        assert result.ok is True
        body = handler.bodies("POST", "/v1/pages")[0]
        assert body["properties"]["project"] == {"select": {"name": "household-tasks"}}


class TestQueryOpenTasks:
    @pytest.mark.asyncio
    async def test_filters_done_and_parked_tasks(self):
        pages = [
            page("p1", "Buy milk"),
            page("p2", "Old", status={"type": "status", "status": {"name": "Done"}}),
            page("p3", "Someday", Tags={"type": "multi_select", "multi_select": [{"name": "sometimes-later"}]}),
        ]
        handler = NotionHandler(query_pages=pages)
        service = make_service(handler)

        tasks = await service.query_open_tasks()

        assert [t.id for t in tasks] == ["p1"]
        assert tasks[0].title == "Buy milk"
        query = handler.bodies("POST", "/v1/databases/db-1/query")[0]
        assert query["filter"]["multi_select"] == {"does_not_contain": "sometimes-later"}

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self):
        with pytest.raises(RuntimeError):
            await NotionService("", "").query_open_tasks()

    @pytest.mark.asyncio
    async def test_update_llm_tag(self):
        handler = NotionHandler()
        service = make_service(handler)

        result = await service.update_llm_tag("p1", "journal")

        assert result.ok is True
        body = handler.bodies("PATCH", "/v1/pages/p1")[0]
        assert body["properties"]["llm_tag"]["rich_text"][0]["text"]["content"] == "journal"
