from fastapi import FastAPI, Body, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import Any, Optional, Set
import asyncio
import secrets

from src.core.config import get_settings
from src.core.errors import AuthError
from src.core.logger import logger
from src.core.model import TaskRequest
from src.core.pipeline import PipelineDeps, process_task


# App and Enables Cors
app = FastAPI(title="GitHub Pages Task Builder")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Strong references to in-flight background jobs
running_tasks: Set[asyncio.Task] = set()


def verify_secret(secret: Optional[str]) -> None:
    expected = get_settings().gform_secret
    if not expected:
        logger.error("GFORM_SECRET is not configured, rejecting every task")
        raise AuthError("server secret not configured")
    if not isinstance(secret, str) or not secrets.compare_digest(secret.encode(), expected.encode()):
        raise AuthError("invalid secret")


def _job_done(job: asyncio.Task) -> None:
    running_tasks.discard(job)
    if job.cancelled():
        logger.warning(f"Background job cancelled | {job.get_name()}")
        return
    error = job.exception()
    if error is not None:
        logger.error(f"Background job failed | {job.get_name()} | {type(error).__name__}: {error}", exc_info=error)
    else:
        logger.info(f"Background job completed | {job.get_name()}")


def spawn(task_request: TaskRequest, deps: Optional[PipelineDeps] = None) -> asyncio.Task:
    """Run the pipeline detached from the request; failures are logged here"""
    job = asyncio.create_task(
        process_task(task_request, deps),
        name=f"task={task_request.task}|round={task_request.round}|nonce={task_request.nonce}",
    )
    running_tasks.add(job)
    job.add_done_callback(_job_done)
    return job


# Just Health Check
@app.get("/")
@app.get("/task")
async def home():
    return {"status": "ok", "message": "POST the task JSON to /task"}


@app.post("/task")
async def task(body: Any = Body(None)):
    # Anything other than a JSON object carries no secret and is rejected as such
    body = body if isinstance(body, dict) else {}
    logger.info(f"=====New task received | Email={body.get('email')} | Round={body.get('round')} | Task={body.get('task')}=====")

    # Verify secret before anything else
    try:
        verify_secret(body.get("secret"))
    except AuthError as e:
        logger.warning(f"==========Sending 403 for {body.get('email')}: {e}==========")
        raise HTTPException(status_code=403, detail="Invalid secret")

    try:
        task_request = TaskRequest.model_validate({k: v for k, v in body.items() if k != "secret"})
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    spawn(task_request)

    # Return 200 OK immediately
    return {
        "status": "accepted",
        "message": "Task is being processed",
        "email": task_request.email,
        "round": task_request.round,
        "task": task_request.task,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
