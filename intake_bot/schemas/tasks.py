from typing import Any, Optional

from pydantic import BaseModel


class TaskRequest(BaseModel):
    title: str = ""
    properties: dict[str, Any] = {}


class TaskResponse(BaseModel):
    status: str
    message: str
    id: Optional[str] = None

