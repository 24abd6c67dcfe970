import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse

from contact_agent.dependencies import BearerAuth, TaskServiceDep
from contact_agent.schemas.tasks import TaskRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "OK"


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    return {"ok": True}


@router.post("/run-task", dependencies=[BearerAuth])
async def run_task(
    service: TaskServiceDep,
    request: TaskRequest | None = None,
) -> JSONResponse:
    result = await service.run(request)
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True, exclude_none=True))
