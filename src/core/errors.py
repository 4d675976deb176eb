"""
Error kinds raised by the build pipeline
"""


class BuildError(Exception):
    """Base class for every pipeline failure"""


class AuthError(BuildError):
    """Shared secret missing or mismatched"""


class GenerationError(BuildError):
    """Model call failed or its reply could not be turned into files"""


class ReplyParseError(GenerationError):
    """None of the reply parse strategies produced a file mapping"""


class PublishError(BuildError):
    """A version-control stage failed after exhausting its retries"""


class ConcurrentModificationError(PublishError):
    """Branch tip moved between reading the base commit and advancing the ref"""

    def __init__(self, repo_name: str, expected_sha: str, actual_sha: str):
        self.repo_name = repo_name
        self.expected_sha = expected_sha
        self.actual_sha = actual_sha
        super().__init__(
            f"concurrent modification of {repo_name}: expected tip {expected_sha}, found {actual_sha}"
        )


class VerificationTimeout(BuildError):
    """Published site did not answer 200 before the poll deadline"""

    def __init__(self, site_url: str, timeout: float):
        self.site_url = site_url
        self.timeout = timeout
        super().__init__(f"{site_url} not live after {timeout}s")


class NotificationError(BuildError):
    """Every callback attempt failed"""
