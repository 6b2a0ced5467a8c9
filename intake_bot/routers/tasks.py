"""Backend for the mini-app task form."""

from fastapi import APIRouter, Depends, HTTPException, status

from intake_bot.dependencies import get_pipeline
from intake_bot.logging_config import get_logger
from intake_bot.pipeline import IntakePipeline
from intake_bot.schemas.tasks import TaskRequest, TaskResponse
from intake_bot.services.notion_service import DEFAULT_PROPERTY_SCHEMA, simplify_schema
from intake_bot.services.result import TRANSIENT

logger = get_logger("tasks")

router = APIRouter(prefix="/api")


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(request: TaskRequest, pipeline: IntakePipeline = Depends(get_pipeline)):
    if not request.title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Task title is required")

    logger.info(f"Received task request: title={request.title[:50]}, properties={list(request.properties)}")

    result = await pipeline.records.create_record(request.title, request.properties)
    if not result.ok:
        code = status.HTTP_502_BAD_GATEWAY if result.error_code == TRANSIENT else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=f"Failed to create task: {result.error}")

    return TaskResponse(status="success", message="Task created successfully", id=result.value)


@router.get("/properties")
async def get_properties(pipeline: IntakePipeline = Depends(get_pipeline)):
    schema = await pipeline.records.get_database_schema()
    if schema is None:
        logger.warning("Database schema unavailable, serving default properties")
        return DEFAULT_PROPERTY_SCHEMA
    return simplify_schema(schema)
