"""
Attachment decoding: data URIs into inline text files or base64 blobs
"""
import base64
import binascii
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote

from src.core.logger import logger
from src.core.model import Attachment, BinaryFile, FileContent, GeneratedFileSet

# data:[<media type>][;param=value]*[;base64],<payload>
DATA_URI_RE = re.compile(r"^data:(?P<header>[^,]*),(?P<payload>.*)$", re.IGNORECASE | re.DOTALL)

BINARY_TOP_LEVEL_TYPES = {"image", "audio", "video"}


@dataclass(frozen=True)
class DecodedAttachment:
    path: str
    content: FileContent


def parse_data_uri(uri: str) -> Optional[Tuple[str, bool, str]]:
    """
    Split a data URI into (media type, base64 flag, payload).

    Returns None when the string is not a data URI.
    """
    match = DATA_URI_RE.match(uri.strip())
    if not match:
        return None
    params = [p.strip() for p in match.group("header").split(";")]
    is_base64 = len(params) > 1 and params[-1].lower() == "base64"
    if is_base64:
        params = params[:-1]
    media_type = params[0].lower() if params and params[0] else "text/plain"
    if "/" not in media_type:
        return None
    return media_type, is_base64, match.group("payload")


def is_safe_path(name: str) -> bool:
    """True for a relative repository path with no empty, "." or ".." segments"""
    if not name or name.startswith("/"):
        return False
    return all(segment not in ("", ".", "..") for segment in name.split("/"))


def decode_attachment(attachment: Attachment) -> Optional[DecodedAttachment]:
    """
    Decode one attachment.

    image/*, audio/* and video/* payloads that are base64 encoded stay base64 and
    are wrapped in BinaryFile for blob upload; everything else becomes UTF-8 text.
    Returns None (skip) for malformed URIs and for names that are not a safe
    relative path inside the repository.
    """
    if not is_safe_path(attachment.name):
        logger.warning(f"decode_attachment({attachment.name!r}): unsafe repository path, skipped")
        return None

    parsed = parse_data_uri(attachment.url)
    if parsed is None:
        logger.warning(f"decode_attachment({attachment.name}): not a data URI, skipped")
        return None

    media_type, is_base64, payload = parsed
    top_level = media_type.split("/", 1)[0]

    if is_base64:
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"decode_attachment({attachment.name}): bad base64 payload, skipped: {e}")
            return None
        if top_level in BINARY_TOP_LEVEL_TYPES:
            return DecodedAttachment(attachment.name, BinaryFile(payload))
        try:
            return DecodedAttachment(attachment.name, raw.decode("utf-8"))
        except UnicodeDecodeError:
            logger.warning(f"decode_attachment({attachment.name}): {media_type} payload is not UTF-8 text, skipped")
            return None

    return DecodedAttachment(attachment.name, unquote(payload))


def summarize_attachment(attachment: Attachment, prefix: int = 30) -> str:
    """Prompt-safe one-liner: name, media type and a short prefix of the URI"""
    parsed = parse_data_uri(attachment.url)
    media_type = parsed[0] if parsed else "unknown"
    return f"{attachment.name} [{media_type}] ({attachment.url[:prefix]}...)"


def merge_attachments(files: GeneratedFileSet, attachments: Iterable[Attachment]) -> GeneratedFileSet:
    """
    Add decoded attachments to the generated files.

    Generated files win over attachments with the same path.
    """
    merged = dict(files)
    for attachment in attachments:
        decoded = decode_attachment(attachment)
        if decoded is None:
            continue
        if decoded.path in merged:
            logger.info(f"merge_attachments: {decoded.path} already generated, attachment ignored")
            continue
        merged[decoded.path] = decoded.content
    return merged


def summarize_attachments(attachments: Iterable[Attachment]) -> List[str]:
    return [summarize_attachment(a) for a in attachments]
