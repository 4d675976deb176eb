from github import GithubException, UnknownObjectException
import pytest

from src.core.config import Settings, reset_settings


class FakeHost:
    """In-memory stand-in for GithubHost that records every call in order"""

    def __init__(self, owner="Octo-Cat", exists=False, tip=None, files=None, auto_init=True):
        self.calls = []
        self._owner = owner
        self.exists = exists
        self.tip = tip
        self.files = files or {}
        self.auto_init = auto_init
        self.fail = {}
        self.pages_status = "enabled"
        self.entries = None
        self.commits = []
        self.on_get_ref = None
        self._blobs = 0

    def _maybe_fail(self, name):
        errors = self.fail.get(name)
        if errors:
            raise errors.pop(0)

    async def owner(self):
        self._maybe_fail("owner")
        return self._owner

    async def create_repo(self, repo_name, description):
        self.calls.append(("create_repo", repo_name))
        self._maybe_fail("create_repo")
        if self.exists:
            raise GithubException(422, {"message": "name already exists on this account"}, None)
        self.exists = True
        if self.auto_init:
            self.tip = "init-sha"

    async def get_branch_sha(self, repo_name, branch):
        self.calls.append(("get_branch_sha", branch))
        if self.tip is None:
            raise UnknownObjectException(404, {"message": "Branch not found"}, None)
        return self.tip

    async def get_text_file(self, repo_name, path, ref):
        self.calls.append(("get_text_file", path, ref))
        self._maybe_fail("get_text_file")
        return self.files.get(path)

    async def create_blob(self, repo_name, content_base64):
        self.calls.append(("create_blob", content_base64))
        self._maybe_fail("create_blob")
        self._blobs += 1
        return f"blob-{self._blobs}"

    async def create_tree(self, repo_name, entries, base_commit_sha=None):
        self.calls.append(("create_tree", base_commit_sha))
        self._maybe_fail("create_tree")
        self.entries = list(entries)
        return "tree-sha"

    async def create_commit(self, repo_name, message, tree_sha, parent_shas):
        self.calls.append(("create_commit", tree_sha, list(parent_shas)))
        self._maybe_fail("create_commit")
        sha = f"commit-{len(self.commits) + 1}"
        self.commits.append({"sha": sha, "message": message, "parents": list(parent_shas)})
        return sha

    async def get_ref_sha(self, repo_name, branch):
        self.calls.append(("get_ref_sha", branch))
        if self.on_get_ref:
            self.on_get_ref(self)
        if self.tip is None:
            raise UnknownObjectException(404, {"message": "Not Found"}, None)
        return self.tip

    async def create_ref(self, repo_name, branch, sha):
        self.calls.append(("create_ref", sha))
        self._maybe_fail("create_ref")
        self.tip = sha

    async def update_ref(self, repo_name, branch, sha, force=False):
        self.calls.append(("update_ref", sha, force))
        self._maybe_fail("update_ref")
        self.tip = sha

    async def enable_pages(self, repo_name, branch, path="/"):
        self.calls.append(("enable_pages", repo_name))
        self._maybe_fail("enable_pages")
        return self.pages_status

    def close(self):
        self.calls.append(("close",))

    def names(self):
        return [c[0] for c in self.calls]


def _github_error(status=500, message="boom"):
    return GithubException(status, {"message": message}, None)


@pytest.fixture
def github_error():
    return _github_error


@pytest.fixture
def make_host():
    return FakeHost


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)
    return _sleep


@pytest.fixture
def settings():
    return Settings(
        gform_secret="s3cret",
        github_access_token="token",
        github_username="Octo-Cat",
        verify_poll_interval=0.0,
        verify_timeout=0.0,
        publish_base_delay=0.0,
        notify_base_delay=0.0,
        http_timeout=5.0,
    )


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


class FakeModelClient:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, system_prompt, user_prompt, output_type=None):
        self.calls.append((system_prompt, user_prompt, output_type))
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def make_model():
    return FakeModelClient
