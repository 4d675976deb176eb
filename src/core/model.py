from dataclasses import dataclass
from pydantic import BaseModel, EmailStr, AnyUrl, Field, field_validator
from typing import Dict, List, Literal, Optional, Union
import re


class Attachment(BaseModel):
    name: str = Field(..., description="Target file path, e.g., sample.png")
    url: str = Field(..., description="data will be like data:image/png;base64,iVBOR...")


class TaskRequest(BaseModel):
    email: EmailStr
    task: str
    round: Literal[1, 2]
    nonce: str
    brief: str
    evaluation_url: AnyUrl
    checks: Optional[List[str]] = None
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator("checks", mode="before")
    @classmethod
    def _checks_as_list(cls, value):
        # callers sometimes send a single check as a bare string
        if isinstance(value, str):
            return [value]
        return value


@dataclass(frozen=True)
class BinaryFile:
    """Marker for file content that must be uploaded as a base64 blob"""
    base64: str


FileContent = Union[str, BinaryFile]
GeneratedFileSet = Dict[str, FileContent]


class CompletionPayload(BaseModel):
    email: str
    task: str
    round: int
    nonce: str
    repo_url: str
    commit_sha: str
    pages_url: str


_SLUG_RE = re.compile(r"[^A-Za-z0-9._-]+")


def slugify(task: str) -> str:
    slug = _SLUG_RE.sub("-", task.strip()).strip("-")
    return slug or "task"


def repo_name_for(task: str) -> str:
    return f"project-{slugify(task)}"


def repo_url_for(owner: str, repo_name: str) -> str:
    return f"https://github.com/{owner}/{repo_name}"


def pages_url_for(owner: str, repo_name: str) -> str:
    # GitHub Pages hosts are case-insensitive and served lower-cased
    return f"https://{owner}.github.io/{repo_name}/".lower()
