"""
Best-effort credential masking for text files before they are published.

This is a heuristic scan over generated and attached text, not a security
boundary: anything that does not look like one of the patterns below passes
through untouched.
"""
import re

from src.core.model import GeneratedFileSet

MASK = "[REDACTED]"

SENSITIVE_ENV_NAMES = (
    "GITHUB_TOKEN",
    "GITHUB_ACCESS_TOKEN",
    "GITHUB_PAT",
    "GH_TOKEN",
    "GFORM_SECRET",
    "EXPECTED_SECRET",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_ACCESS_KEY_ID",
    "VERCEL_TOKEN",
    "NPM_TOKEN",
)

# NAME=value, NAME: "value", "NAME": 'value'
_ASSIGNMENT_RE = re.compile(
    r"""(?P<key>["']?\b(?:%s)\b["']?\s*[:=]\s*["']?)(?P<value>[^\s"',;]+)""" % "|".join(SENSITIVE_ENV_NAMES)
)

_TOKEN_PATTERNS = [
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]{22,}"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}"),
    re.compile(r"\bAIza[0-9A-Za-z_\-]{35}"),
    re.compile(r"\bsk-(?:proj-|ant-)?[A-Za-z0-9_\-]{20,}"),
    re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
    re.compile(r"\bxox[abprs]-[A-Za-z0-9\-]{10,}"),
    re.compile(r"\bglpat-[A-Za-z0-9_\-]{20,}"),
]


def redact(text: str) -> str:
    """Mask known credential shapes. Idempotent."""
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(MASK, text)
    return _ASSIGNMENT_RE.sub(lambda m: m.group("key") + MASK, text)


def redact_files(files: GeneratedFileSet) -> GeneratedFileSet:
    return {path: redact(content) if isinstance(content, str) else content for path, content in files.items()}
