"""
Build/revision pipeline for one task request:
generate -> merge attachments -> redact -> publish -> verify -> notify
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from src.ai.agent import ContentGenerator, PydanticAIClient
from src.core.attachments import merge_attachments, summarize_attachments
from src.core.config import Settings, get_settings
from src.core.errors import PublishError
from src.core.github import GithubHost
from src.core.license import mit_license
from src.core.logger import logger
from src.core.model import CompletionPayload, TaskRequest, repo_name_for
from src.core.publisher import RepositoryPublisher
from src.core.redact import redact_files
from src.core.send_eval import send_evaluation
from src.core.verify import wait_for_live


@dataclass
class PipelineDeps:
    generator: ContentGenerator
    publisher: RepositoryPublisher
    http: httpx.AsyncClient
    settings: Settings

    async def aclose(self) -> None:
        await self.http.aclose()
        self.publisher.host.close()


def build_deps(settings: Optional[Settings] = None) -> PipelineDeps:
    """Construct fresh clients for one request"""
    settings = settings or get_settings()
    if not settings.github_access_token:
        raise PublishError("GITHUB_ACCESS_TOKEN not set")

    host = GithubHost(settings.github_access_token, owner=settings.github_username, timeout=settings.http_timeout)
    publisher = RepositoryPublisher(
        host,
        branch=settings.default_branch,
        max_attempts=settings.publish_max_attempts,
        base_delay=settings.publish_base_delay,
    )
    return PipelineDeps(
        generator=ContentGenerator(PydanticAIClient(settings.aimodel_name)),
        publisher=publisher,
        http=httpx.AsyncClient(timeout=settings.http_timeout, follow_redirects=True),
        settings=settings,
    )


def commit_message_for(task: TaskRequest) -> str:
    if task.round == 1:
        return "Initial build via LLM"
    return f"Round 2 Revision: {task.brief[:50]}..."


async def run_pipeline(task: TaskRequest, deps: PipelineDeps) -> CompletionPayload:
    settings = deps.settings
    repo_name = repo_name_for(task.task)
    context = f"Task={task.task} | Round={task.round}"

    existing = {}
    if task.round == 2:
        # fails fast if round 1 never produced the branch
        base_sha = await deps.publisher.resolve_base(repo_name, task.round)
        existing = await deps.publisher.fetch_existing(repo_name, base_sha)

    logger.info(f"Generating files | {context}")
    files = await deps.generator.generate(
        task.brief,
        summarize_attachments(task.attachments),
        task.round,
        existing,
        task.checks,
    )

    if task.round == 1:
        files["LICENSE"] = mit_license(await deps.publisher.owner())

    files = merge_attachments(files, task.attachments)
    files = redact_files(files)

    logger.info(f"Publishing {len(files)} files to {repo_name} | {context}")
    result = await deps.publisher.publish(
        task.task,
        task.round,
        files,
        commit_message_for(task),
        description=f"LLM-generated app for task: {task.task}",
    )

    status = await wait_for_live(
        result.pages_url,
        poll_interval=settings.verify_poll_interval,
        timeout=settings.verify_timeout,
        client=deps.http,
    )
    if not status.ready:
        logger.warning(f"Site {result.pages_url} not live yet, notifying anyway | {context}")

    payload = CompletionPayload(
        email=str(task.email),
        task=task.task,
        round=task.round,
        nonce=task.nonce,
        repo_url=result.repo_url,
        commit_sha=result.commit_sha,
        pages_url=result.pages_url,
    )
    await send_evaluation(
        str(task.evaluation_url),
        payload.model_dump(),
        max_retries=settings.notify_max_attempts,
        base_delay=settings.notify_base_delay,
        timeout=settings.http_timeout,
        client=deps.http,
    )
    logger.info(f"Task complete and notified | {context} | Commit={result.commit_sha}")
    return payload


async def process_task(task: TaskRequest, deps: Optional[PipelineDeps] = None) -> CompletionPayload:
    """Run the pipeline with per-request clients unless `deps` is given"""
    logger.info(f"Background job started | Round={task.round} | Email={task.email} | Task={task.task}")
    own_deps = deps is None
    if own_deps:
        deps = build_deps()
    try:
        return await run_pipeline(task, deps)
    finally:
        if own_deps:
            await deps.aclose()
