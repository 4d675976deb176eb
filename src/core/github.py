from github import Github, Auth, GithubException, InputGitTreeElement, UnknownObjectException
from dataclasses import dataclass
from typing import List, Optional
import asyncio
import requests

from src.core.logger import logger


# Errors worth retrying for any call made through GithubHost
GITHUB_ERRORS = (GithubException, requests.RequestException)


@dataclass(frozen=True)
class TreeEntry:
    """One file of a new tree: inline text `content` or an existing blob `sha`"""
    path: str
    content: Optional[str] = None
    sha: Optional[str] = None


class GithubHost:
    """
    Async facade over PyGithub for the handful of calls the publisher needs.

    PyGithub is blocking, so every call runs in a worker thread. Each method
    is a single remote operation; retry policy lives with the caller.
    """

    def __init__(self, token: str, owner: Optional[str] = None, timeout: float = 30.0,
                 api_url: str = "https://api.github.com"):
        self._token = token
        self._owner = owner
        self._timeout = timeout
        self._api_url = api_url.rstrip("/")
        self._github = Github(auth=Auth.Token(token), timeout=int(timeout))

    def close(self) -> None:
        self._github.close()

    async def owner(self) -> str:
        """Login the repositories are created under"""
        if not self._owner:
            user = await asyncio.to_thread(self._github.get_user)
            self._owner = await asyncio.to_thread(lambda: user.login)
        return self._owner

    async def _repo(self, repo_name: str):
        owner = await self.owner()
        return self._github.get_repo(f"{owner}/{repo_name}", lazy=True)

    async def create_repo(self, repo_name: str, description: str) -> None:
        """
        Create a public repository under the authenticated user.

        auto_init gives the repository a default branch, which the git data API
        needs before it accepts blobs or trees.
        """
        def _create():
            self._github.get_user().create_repo(
                name=repo_name,
                description=description,
                private=False,
                auto_init=True,
            )

        await asyncio.to_thread(_create)
        logger.info(f"create_repo({repo_name}): created")

    async def get_branch_sha(self, repo_name: str, branch: str) -> str:
        repo = await self._repo(repo_name)
        found = await asyncio.to_thread(repo.get_branch, branch)
        return found.commit.sha

    async def get_text_file(self, repo_name: str, path: str, ref: str) -> Optional[str]:
        """Decoded file content at `ref`, or None if the path does not exist"""
        repo = await self._repo(repo_name)
        try:
            content_file = await asyncio.to_thread(repo.get_contents, path, ref=ref)
        except UnknownObjectException:
            return None
        if isinstance(content_file, list):
            # path is a directory
            return None
        return content_file.decoded_content.decode("utf-8", errors="replace")

    async def create_blob(self, repo_name: str, content_base64: str) -> str:
        repo = await self._repo(repo_name)
        blob = await asyncio.to_thread(repo.create_git_blob, content_base64, "base64")
        return blob.sha

    async def create_tree(self, repo_name: str, entries: List[TreeEntry], base_commit_sha: Optional[str] = None) -> str:
        repo = await self._repo(repo_name)
        elements = [
            InputGitTreeElement(path=e.path, mode="100644", type="blob", content=e.content)
            if e.sha is None
            else InputGitTreeElement(path=e.path, mode="100644", type="blob", sha=e.sha)
            for e in entries
        ]

        def _create():
            if base_commit_sha is None:
                return repo.create_git_tree(elements)
            base_tree = repo.get_git_commit(base_commit_sha).tree
            return repo.create_git_tree(elements, base_tree)

        tree = await asyncio.to_thread(_create)
        return tree.sha

    async def create_commit(self, repo_name: str, message: str, tree_sha: str, parent_shas: List[str]) -> str:
        repo = await self._repo(repo_name)

        def _create():
            tree = repo.get_git_tree(tree_sha)
            parents = [repo.get_git_commit(sha) for sha in parent_shas]
            return repo.create_git_commit(message, tree, parents)

        commit = await asyncio.to_thread(_create)
        return commit.sha

    async def get_ref_sha(self, repo_name: str, branch: str) -> str:
        repo = await self._repo(repo_name)
        ref = await asyncio.to_thread(repo.get_git_ref, f"heads/{branch}")
        return ref.object.sha

    async def create_ref(self, repo_name: str, branch: str, sha: str) -> None:
        repo = await self._repo(repo_name)
        await asyncio.to_thread(repo.create_git_ref, f"refs/heads/{branch}", sha)

    async def update_ref(self, repo_name: str, branch: str, sha: str, force: bool = False) -> None:
        """
        Point `branch` at `sha`.

        With force=False GitHub rejects (422) anything that is not a
        fast-forward of the current tip.
        """
        repo = await self._repo(repo_name)

        def _update():
            repo.get_git_ref(f"heads/{branch}").edit(sha, force=force)

        await asyncio.to_thread(_update)

    async def enable_pages(self, repo_name: str, branch: str, path: str = "/") -> str:
        """
        Enable GitHub Pages for a repository.

        Returns:
            "enabled" - Pages enabled now (201)
            "already enabled" - Pages were active (409)

        Raises:
            requests.HTTPError on any other status
        """
        owner = await self.owner()
        url = f"{self._api_url}/repos/{owner}/{repo_name}/pages"
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28"
        }
        data = {
            "source": {
                "branch": branch,
                "path": path
            }
        }

        response = await asyncio.to_thread(requests.post, url, headers=headers, json=data, timeout=self._timeout)

        if response.status_code == 409:
            logger.info(f"enable_pages({repo_name}): already enabled")
            return "already enabled"
        if response.status_code >= 400:
            logger.error(f"enable_pages({repo_name}): failed: {response.status_code} - {response.text[:200]}")
            response.raise_for_status()
        logger.info(f"enable_pages({repo_name}): enabled")
        return "enabled"
