import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai import Agent

from src.core.errors import GenerationError, ReplyParseError
from src.core.logger import logger
from src.core.model import GeneratedFileSet

REQUIRED_FILES = ("index.html", "README.md")
OPTIONAL_FILES = ("script.js", "style.css")

SYSTEM_PROMPT = """
You are an expert web developer building a minimal, functional static web app hosted on GitHub Pages.
Satisfy every constraint in the brief and every evaluation check.
Reply with a single JSON object that maps relative file paths to complete file contents, and nothing else.
`index.html` and `README.md` are mandatory; `script.js` and `style.css` are optional.
Reference attachments by their exact file name at the repository root.
Never include secrets, tokens or API keys in any file.
"""


class GeneratedFiles(BaseModel):
    """
    Response schema enforced by the model provider
    """
    model_config = ConfigDict(populate_by_name=True)

    index_html: str = Field(..., alias="index.html", description="entry point page")
    readme_md: str = Field(..., alias="README.md", description="project README")
    script_js: Optional[str] = Field(None, alias="script.js")
    style_css: Optional[str] = Field(None, alias="style.css")


class ModelClient(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str, output_type: Optional[type] = None) -> Any:
        ...


class PydanticAIClient:
    """
    ModelClient backed by a pydantic-ai Agent.

    The Agent is built on every call, so a missing provider key surfaces as an
    error of that request only.
    """

    def __init__(self, model_name: str, structured: bool = True):
        self.model_name = model_name
        self.structured = structured

    async def complete(self, system_prompt: str, user_prompt: str, output_type: Optional[type] = None) -> Any:
        agent = Agent(
            self.model_name,
            output_type=output_type if (self.structured and output_type) else str,
            system_prompt=system_prompt,
        )
        result = await agent.run(user_prompt)
        output = result.output
        if isinstance(output, BaseModel):
            return output.model_dump(by_alias=True, exclude_none=True)
        return output


# ---- reply shapes ----

@dataclass(frozen=True)
class FileMappingReply:
    files: Mapping[str, Any]


@dataclass(frozen=True)
class EnvelopeReply:
    body: Mapping[str, Any]


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class PartsReply:
    parts: Sequence[Any]


Reply = Union[FileMappingReply, EnvelopeReply, TextReply, PartsReply]

ENVELOPE_KEYS = ("files", "output", "content", "text", "data", "result")
_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _present(value: Mapping[str, Any]) -> Dict[str, Any]:
    # optional files come back as null when the model leaves them out
    return {k: v for k, v in value.items() if v is not None}


def _looks_like_file_mapping(value: Mapping[str, Any]) -> bool:
    present = _present(value)
    if not present:
        return False
    return all(isinstance(k, str) and isinstance(v, str) for k, v in present.items()) and any(
        k in REQUIRED_FILES or k in OPTIONAL_FILES or "." in k for k in present
    )


def classify_reply(raw: Any) -> Reply:
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True, exclude_none=True)
    if isinstance(raw, Mapping):
        if _looks_like_file_mapping(raw):
            return FileMappingReply(raw)
        return EnvelopeReply(raw)
    if isinstance(raw, str):
        return TextReply(raw)
    if isinstance(raw, (list, tuple)):
        return PartsReply(raw)
    raise ReplyParseError(f"unsupported reply type {type(raw).__name__}")


def _json_candidates(text: str) -> List[str]:
    stripped = text.strip()
    candidates = [stripped]
    candidates += _FENCE_RE.findall(stripped)
    match = _OBJECT_RE.search(stripped)
    if match:
        candidates.append(match.group(0))
    return candidates


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, Mapping):
        for key in ("text", "content"):
            if isinstance(part.get(key), str):
                return part[key]
    text = getattr(part, "text", None) or getattr(part, "content", None)
    return text if isinstance(text, str) else ""


def parse_reply(raw: Any, _depth: int = 0) -> Dict[str, str]:
    """
    Turn a model reply into {path: content}.

    Strategies in order: file mapping as is, envelope object (unwrap a known
    key), plain string (raw JSON, fenced JSON, first {...} substring), list of
    parts (join their text). Raises ReplyParseError if none works.
    """
    if _depth > 4:
        raise ReplyParseError("reply nested too deeply")

    reply = classify_reply(raw)

    if isinstance(reply, FileMappingReply):
        return _present(reply.files)

    if isinstance(reply, EnvelopeReply):
        for key in ENVELOPE_KEYS:
            if key in reply.body:
                try:
                    return parse_reply(reply.body[key], _depth + 1)
                except ReplyParseError:
                    continue
        raise ReplyParseError(f"no file mapping inside envelope with keys {sorted(reply.body)[:10]}")

    if isinstance(reply, TextReply):
        for candidate in _json_candidates(reply.text):
            try:
                decoded = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(decoded, (Mapping, list)):
                try:
                    return parse_reply(decoded, _depth + 1)
                except ReplyParseError:
                    continue
        raise ReplyParseError(f"no JSON file mapping in text reply: {reply.text[:120]!r}")

    joined = "".join(_part_text(p) for p in reply.parts)
    if not joined:
        raise ReplyParseError("list reply has no text parts")
    return parse_reply(joined, _depth + 1)


def build_user_prompt(
    brief: str,
    attachment_summaries: List[str],
    round: int,
    existing_files: Optional[Dict[str, str]] = None,
    checks: Optional[List[str]] = None,
) -> str:
    attached = ", ".join(attachment_summaries) if attachment_summaries else "none"
    checks_text = "\n".join(f"- {c}" for c in checks) if checks else "- (none provided)"
    prompt = f"""
Task Round: {round}
Application Brief: "{brief}"
Attached Files (already present at the repository root): {attached}
Evaluation Checks to Satisfy:
{checks_text}
"""
    if round == 2:
        existing = existing_files or {}
        prompt += "\nExisting Codebase (revise it, keep working features):\n"
        for path, content in existing.items():
            prompt += f"\n{path}:\n{content or 'N/A'}\n"

    prompt += """
Generate ONLY the JSON object with the required files.
Output JSON Format (mandatory):
{
  "index.html": "...",
  "script.js": "...",
  "style.css": "...",
  "README.md": "..."
}
"""
    return prompt


class ContentGenerator:
    """Builds the prompt, calls the injected model client and validates the files it returns"""

    def __init__(self, client: ModelClient):
        self.client = client

    async def generate(
        self,
        brief: str,
        attachment_summaries: List[str],
        round: int,
        existing_files: Optional[Dict[str, str]] = None,
        checks: Optional[List[str]] = None,
    ) -> GeneratedFileSet:
        prompt = build_user_prompt(brief, attachment_summaries, round, existing_files, checks)
        logger.debug(f"running content generator on prompt:\n{prompt}\n=====")

        try:
            raw = await self.client.complete(SYSTEM_PROMPT, prompt, GeneratedFiles)
        except Exception as e:
            # provider, credential and network failures all end generation
            raise GenerationError(f"model call failed: {e}") from e

        files = parse_reply(raw)
        missing = [name for name in REQUIRED_FILES if not files.get(name)]
        if missing:
            raise GenerationError(f"model reply is missing mandated files: {missing}")

        logger.info(f"content generator returned files: {sorted(files)}")
        return files
