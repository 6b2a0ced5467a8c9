import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx

from intake_bot.logging_config import get_logger
from intake_bot.services.record_store import MAX_TITLE_LENGTH
from intake_bot.services.result import TRANSIENT, VALIDATION, Result

logger = get_logger("notion_service")

NOTION_API_URL = "https://api.notion.com/v1"

# Keys that name button-like columns in the task database; Notion rejects writes to them.
SKIPPED_PROPERTY_KEYS = {"button", "complete", "status", "done", "checkbox"}
UNWRITABLE_TYPES = {"button", "unsupported", "formula", "rollup", "created_time", "last_edited_time"}

DEFAULT_PROPERTY_SCHEMA = {
    "Name": {"type": "title", "required": True},
    "Tags": {"type": "multi_select", "options": ["sometimes-later"]},
    "project": {"type": "select", "options": ["household-tasks", "the-wellness-hub"]},
    "Date": {"type": "date"},
    "Complete": {"type": "checkbox"},
}

SOMETIMES_LATER_TAG = "sometimes-later"
LLM_TAG_PROPERTY = "llm_tag"

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d-%m-%Y", "%m-%d-%Y", "%d.%m.%Y")


@dataclass
class NotionTask:
    id: str
    title: str
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return f"https://notion.so/{self.id.replace('-', '')}"


def classify_status_code(status_code: int) -> str:
    """Rate limits and server errors are worth retrying; other 4xx are not."""
    if status_code == 429 or status_code >= 500:
        return TRANSIENT
    return VALIDATION


def parse_date(value: str) -> Optional[str]:
    """Normalize a user-supplied date to the ISO form Notion expects."""
    value = value.strip()
    if len(value) >= 10 and value[4] == "-" and value[7] == "-":
        return value[:10]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date().isoformat()
    except ValueError:
        logger.warning(f"Unrecognized date format: {value}")
        return None


def coerce_checkbox(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    if isinstance(value, (int, float)):
        return value != 0
    return False


def coerce_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _rich_text(content: str) -> list[dict]:
    return [{"type": "text", "text": {"content": content}}]


def build_property_value(prop_type: str, value: Any) -> Optional[dict]:
    """Render one value as a Notion property payload, or None if it cannot be."""
    if prop_type == "title" and isinstance(value, str):
        return {"title": _rich_text(value[:MAX_TITLE_LENGTH])}
    if prop_type == "multi_select":
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            options = [{"name": item} for item in value if isinstance(item, str) and item]
            return {"multi_select": options}
        return None
    if prop_type in ("select", "status"):
        if isinstance(value, str) and value:
            return {prop_type: {"name": value}}
        return None
    if prop_type == "date":
        if isinstance(value, str) and value:
            parsed = parse_date(value)
            return {"date": {"start": parsed}} if parsed else None
        return None
    if prop_type == "checkbox":
        return {"checkbox": coerce_checkbox(value)}
    if prop_type == "number":
        number = coerce_number(value)
        if number is None:
            logger.warning(f"Could not parse {value!r} as number, skipping")
            return None
        return {"number": number}
    if prop_type in ("url", "email", "phone_number"):
        return {prop_type: value} if isinstance(value, str) else None
    if prop_type == "rich_text":
        return {"rich_text": _rich_text(value)} if isinstance(value, str) else None
    return None


def _fallback_type(key: str) -> str:
    return {"Tags": "multi_select", "project": "select", "Date": "date"}.get(key, "rich_text")


def is_skipped_key(key: str) -> bool:
    lowered = key.lower()
    return lowered in SKIPPED_PROPERTY_KEYS or "button" in lowered


def build_page_properties(properties: dict[str, Any], schema: Optional[dict[str, dict]]) -> dict[str, dict]:
    """Filter and convert user properties against the database schema.

    Without a schema, well-known keys get their usual types and everything
    else is written as text.
    """
    payload: dict[str, dict] = {}
    for key, value in (properties or {}).items():
        if is_skipped_key(key):
            logger.debug(f"Skipping button-like property: {key}")
            continue

        if schema is not None:
            config = schema.get(key)
            if config is None:
                logger.info(f"Property {key} does not exist in database schema, skipping")
                continue
            prop_type = config.get("type", "")
            if prop_type in UNWRITABLE_TYPES:
                logger.info(f"Skipping unwritable property {key} (type: {prop_type})")
                continue
        else:
            prop_type = _fallback_type(key)

        rendered = build_property_value(prop_type, value)
        if rendered is not None:
            payload[key] = rendered
    return payload


def simplify_property(prop: dict) -> Any:
    """Flatten a page property value into plain Python data."""
    prop_type = prop.get("type")
    raw = prop.get(prop_type) if prop_type else None
    if prop_type in ("title", "rich_text"):
        return "".join(part.get("plain_text") or part.get("text", {}).get("content", "") for part in raw or [])
    if prop_type in ("select", "status"):
        return raw.get("name") if raw else None
    if prop_type == "multi_select":
        return [option.get("name") for option in raw or []]
    if prop_type == "date":
        return raw.get("start") if raw else None
    if prop_type in ("checkbox", "number", "url", "email", "phone_number"):
        return raw
    return None


def simplify_schema(schema: dict[str, dict]) -> dict[str, dict]:
    """Schema in the shape the mini-app form renders."""
    simplified: dict[str, dict] = {}
    for name, config in schema.items():
        prop_type = config.get("type", "")
        info: dict[str, Any] = {"type": prop_type}
        if prop_type in ("select", "multi_select"):
            info["options"] = [option.get("name") for option in config.get(prop_type, {}).get("options", [])]
        elif prop_type == "title":
            info["required"] = True
        simplified[name] = info
    return simplified


class NotionService:
    """Record store backed by a Notion database."""

    def __init__(
        self,
        api_key: str,
        database_id: str,
        notion_version: str = "2022-06-28",
        title_property: str = "Name",
        schema_ttl_seconds: float = 300,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.database_id = database_id
        self.notion_version = notion_version
        self.title_property = title_property
        self.schema_ttl_seconds = schema_ttl_seconds
        self.timeout = timeout
        self._transport = transport
        self._schema: Optional[dict[str, dict]] = None
        self._schema_fetched_at = 0.0

        if not api_key:
            logger.warning("NOTION_API_KEY is not set")
        if not database_id:
            logger.warning("NOTION_DATABASE_ID is not set")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.database_id)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.request(method, f"{NOTION_API_URL}{path}", headers=self._headers(), json=payload)

    async def get_database_schema(self, force: bool = False) -> Optional[dict[str, dict]]:
        """Database property configs by name, cached for schema_ttl_seconds."""
        now = time.monotonic()
        if not force and self._schema is not None and now - self._schema_fetched_at < self.schema_ttl_seconds:
            return self._schema

        if not self.is_configured:
            return None

        try:
            response = await self._request("GET", f"/databases/{self.database_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch database properties: {e}")
            return self._schema

        if response.status_code != 200:
            logger.warning(f"Could not fetch database properties: {response.status_code} - {response.text}")
            return self._schema

        self._schema = response.json().get("properties", {})
        self._schema_fetched_at = now
        logger.debug(f"Fetched database schema: {len(self._schema)} properties")
        return self._schema

    async def create_record(self, title: str, properties: dict[str, Any]) -> Result[str]:
        title = (title or "").strip()
        if not title:
            return Result.failure("Task title cannot be empty", VALIDATION)
        if not self.is_configured:
            return Result.failure("Notion is not configured", VALIDATION)

        schema = await self.get_database_schema()
        page_properties = build_page_properties(properties, schema)
        page_properties[self.title_property] = build_property_value("title", title)

        payload = {
            "parent": {"database_id": self.database_id},
            "properties": page_properties,
        }

        started = time.monotonic()
        try:
            response = await self._request("POST", "/pages", payload)
        except httpx.TimeoutException as e:
            return Result.failure(f"Notion request timed out: {e}", TRANSIENT)
        except httpx.HTTPError as e:
            return Result.failure(f"Notion request failed: {e}", TRANSIENT)

        elapsed = time.monotonic() - started
        logger.debug(f"Notion API request took {elapsed:.2f}s")

        if response.status_code != 200:
            code = classify_status_code(response.status_code)
            logger.error(f"Notion API error: {response.status_code} - {response.text}")
            return Result.failure(f"Notion API error: {response.status_code}", code)

        page_id = response.json().get("id")
        logger.info(f"Task created with ID: {page_id}")
        return Result.success(page_id)

    async def query_open_tasks(self, limit: int = 1000) -> list[NotionTask]:
        """Tasks not marked done and not parked under the sometimes-later tag."""
        if not self.is_configured:
            raise RuntimeError("Notion is not configured")

        schema = await self.get_database_schema() or {}
        query: dict[str, Any] = {"page_size": min(limit, 100)}
        if schema.get("Tags", {}).get("type") == "multi_select":
            query["filter"] = {"property": "Tags", "multi_select": {"does_not_contain": SOMETIMES_LATER_TAG}}

        tasks: list[NotionTask] = []
        while len(tasks) < limit:
            response = await self._request("POST", f"/databases/{self.database_id}/query", query)
            if response.status_code != 200:
                raise RuntimeError(f"Notion query failed: {response.status_code} - {response.text}")

            data = response.json()
            for page in data.get("results", []):
                task = self._page_to_task(page)
                if self._is_open(task):
                    tasks.append(task)

            if not data.get("has_more") or not data.get("next_cursor"):
                break
            query["start_cursor"] = data["next_cursor"]

        return tasks[:limit]

    async def update_llm_tag(self, page_id: str, tag: str) -> Result[bool]:
        schema = await self.get_database_schema() or {}
        prop_type = schema.get(LLM_TAG_PROPERTY, {}).get("type", "rich_text")
        rendered = build_property_value(prop_type, tag) or build_property_value("rich_text", tag)

        try:
            response = await self._request("PATCH", f"/pages/{page_id}", {"properties": {LLM_TAG_PROPERTY: rendered}})
        except httpx.HTTPError as e:
            return Result.failure(f"Notion request failed: {e}", TRANSIENT)

        if response.status_code != 200:
            return Result.failure(
                f"Notion API error: {response.status_code}",
                classify_status_code(response.status_code),
            )
        return Result.success(True)

    def _page_to_task(self, page: dict) -> NotionTask:
        properties = {name: simplify_property(prop) for name, prop in page.get("properties", {}).items()}
        title = ""
        for name, prop in page.get("properties", {}).items():
            if prop.get("type") == "title":
                title = properties[name] or ""
                break
        return NotionTask(id=page.get("id", ""), title=title, properties=properties)

    @staticmethod
    def _is_open(task: NotionTask) -> bool:
        status = task.properties.get("status")
        if isinstance(status, str) and status.lower() == "done":
            return False
        tags = task.properties.get("Tags")
        if isinstance(tags, list) and SOMETIMES_LATER_TAG in tags:
            return False
        return True
