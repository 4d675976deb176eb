"""
Repository publisher: turns a generated file set into one commit on the
default branch of the task's repository
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from github import UnknownObjectException

from src.core.errors import ConcurrentModificationError, PublishError
from src.core.github import GITHUB_ERRORS, GithubHost, TreeEntry
from src.core.logger import logger
from src.core.model import BinaryFile, GeneratedFileSet, pages_url_for, repo_name_for, repo_url_for
from src.core.retry import retry_async

T = TypeVar("T")

# Files handed back to the model as prior context in round 2
WELL_KNOWN_FILES = ("index.html", "script.js", "style.css")


@dataclass(frozen=True)
class PublishResult:
    repo_name: str
    repo_url: str
    pages_url: str
    commit_sha: str
    base_sha: Optional[str]


class RepositoryPublisher:
    """
    Round 1: create repo -> tree -> orphan commit -> create/replace ref -> enable Pages.
    Round 2: read tip -> tree on tip -> commit with tip as parent -> guarded ref update.

    Every mutating call goes through the same bounded retry. Nothing is rolled
    back on failure; a repository may be left created but uncommitted.
    """

    def __init__(self, host: GithubHost, branch: str = "main", max_attempts: int = 3,
                 base_delay: float = 1.0, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.host = host
        self.branch = branch
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    async def _mutate(self, label: str, fn: Callable[[], Awaitable[T]]) -> T:
        return await retry_async(
            fn,
            label=label,
            attempts=self.max_attempts,
            base_delay=self.base_delay,
            retry_on=GITHUB_ERRORS,
            sleep=self._sleep,
        )

    async def owner(self) -> str:
        try:
            return await self.host.owner()
        except GITHUB_ERRORS as e:
            raise PublishError(f"cannot resolve repository owner: {e}") from e

    async def ensure_repository(self, repo_name: str, description: str) -> Optional[str]:
        """
        Create the repository for round 1 and return the tip its auto-init
        commit left on the default branch (None if the branch is absent).

        A repository that already exists is a collision: the host refuses the
        create, the refusal is retried like any other mutation and then fatal.
        """
        await self._mutate(f"create_repo({repo_name})", lambda: self.host.create_repo(repo_name, description))
        init_sha = await self._current_ref(repo_name)
        logger.info(f"ensure_repository({repo_name}): created, {self.branch} at {init_sha}")
        return init_sha

    async def resolve_base(self, repo_name: str, round: int) -> Optional[str]:
        """Tip commit of the default branch for round 2; None for round 1. Single attempt."""
        if round == 1:
            return None
        try:
            sha = await self.host.get_branch_sha(repo_name, self.branch)
        except GITHUB_ERRORS as e:
            raise PublishError(
                f"cannot read {self.branch} of {repo_name}; round 1 has not completed: {e}"
            ) from e
        logger.info(f"resolve_base({repo_name}): {self.branch} at {sha}")
        return sha

    async def fetch_existing(self, repo_name: str, ref: Optional[str] = None) -> Dict[str, str]:
        """
        Read the well-known files at `ref` (default branch if None).

        Best effort: a missing or unreadable file yields "".
        """
        existing = {}
        for path in WELL_KNOWN_FILES:
            try:
                content = await self.host.get_text_file(repo_name, path, ref or self.branch)
            except GITHUB_ERRORS as e:
                logger.warning(f"fetch_existing({repo_name}, {path}): unreadable, using empty placeholder | Error: {e}")
                content = None
            if content is None:
                logger.info(f"fetch_existing({repo_name}, {path}): not found")
            existing[path] = content or ""
        return existing

    async def materialize(self, repo_name: str, files: GeneratedFileSet) -> List[TreeEntry]:
        """Upload binary files as blobs; text files stay inline in the tree"""
        entries = []
        for path, content in files.items():
            if isinstance(content, BinaryFile):
                sha = await self._mutate(
                    f"create_blob({repo_name}, {path})",
                    lambda content=content: self.host.create_blob(repo_name, content.base64),
                )
                logger.info(f"materialize({repo_name}): blob {path} -> {sha}")
                entries.append(TreeEntry(path=path, sha=sha))
            else:
                entries.append(TreeEntry(path=path, content=content))
        return entries

    async def _current_ref(self, repo_name: str) -> Optional[str]:
        try:
            return await self.host.get_ref_sha(repo_name, self.branch)
        except UnknownObjectException:
            return None

    async def advance_ref(self, repo_name: str, base_sha: Optional[str], commit_sha: str,
                          init_sha: Optional[str] = None) -> None:
        """
        Move the default branch to `commit_sha`. Only called once the commit exists.

        Without a base the branch is created, or force-replaced only while it
        still points at `init_sha`, the auto-init commit this request created.
        With a base the update is refused unless the branch still points at
        `base_sha`.
        """
        current = await self._current_ref(repo_name)

        if base_sha is None:
            if current is None:
                await self._mutate(
                    f"create_ref({repo_name})",
                    lambda: self.host.create_ref(repo_name, self.branch, commit_sha),
                )
            elif current != init_sha:
                raise ConcurrentModificationError(repo_name, init_sha or "<missing>", current)
            else:
                await self._mutate(
                    f"update_ref({repo_name})",
                    lambda: self.host.update_ref(repo_name, self.branch, commit_sha, force=True),
                )
            return

        if current != base_sha:
            raise ConcurrentModificationError(repo_name, base_sha, current or "<missing>")

        async def _fast_forward():
            try:
                await self.host.update_ref(repo_name, self.branch, commit_sha, force=False)
            except GITHUB_ERRORS as e:
                # 422: tip moved after our check, the update is no longer a fast-forward
                if getattr(e, "status", None) == 422:
                    raise ConcurrentModificationError(repo_name, base_sha, "<moved>") from e
                raise

        await self._mutate(f"update_ref({repo_name})", _fast_forward)

    async def publish(self, task_id: str, round: int, files: GeneratedFileSet,
                      commit_message: str, description: str = "") -> PublishResult:
        repo_name = repo_name_for(task_id)
        owner = await self.owner()
        stage = "ensure repository"
        try:
            init_sha = None
            if round == 1:
                init_sha = await self.ensure_repository(repo_name, description)

            stage = "resolve base"
            base_sha = await self.resolve_base(repo_name, round)

            stage = "materialize blobs"
            entries = await self.materialize(repo_name, files)

            stage = "create tree"
            tree_sha = await self._mutate(
                f"create_tree({repo_name})",
                lambda: self.host.create_tree(repo_name, entries, base_sha),
            )

            stage = "create commit"
            parents = [base_sha] if base_sha else []
            commit_sha = await self._mutate(
                f"create_commit({repo_name})",
                lambda: self.host.create_commit(repo_name, commit_message, tree_sha, parents),
            )
            logger.info(f"publish({repo_name}): commit {commit_sha} on tree {tree_sha}")

            stage = "advance ref"
            await self.advance_ref(repo_name, base_sha, commit_sha, init_sha)

            if round == 1:
                stage = "enable pages"
                await self._mutate(
                    f"enable_pages({repo_name})",
                    lambda: self.host.enable_pages(repo_name, self.branch),
                )
        except GITHUB_ERRORS as e:
            raise PublishError(f"{stage} failed for {repo_name}: {e}") from e

        return PublishResult(
            repo_name=repo_name,
            repo_url=repo_url_for(owner, repo_name),
            pages_url=pages_url_for(owner, repo_name),
            commit_sha=commit_sha,
            base_sha=base_sha,
        )
