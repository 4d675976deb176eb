import pytest

from src.core.model import BinaryFile
from src.core.redact import MASK, redact, redact_files

GH_TOKEN = "ghp_" + "a1B2c3D4e5F6g7H8i9J0k1L2m3N4o5P6q7R8"
GOOGLE_KEY = "AIza" + "SyA1234567890abcdefghijklmnopqrstuv"


@pytest.mark.parametrize("token", [
    GH_TOKEN,
    "github_pat_" + "11ABCDEFG0123456789_abcdefghijklmnopqrstuvwxyz",
    GOOGLE_KEY,
    "sk-proj-" + "abcdefghijklmnopqrstuvwxyz012345",
    "AKIA" + "ABCDEFGHIJKLMNOP",
])
def test_literal_token_is_fully_replaced(token):
    assert redact(token) == MASK
    assert redact(f"const key = '{token}';") == f"const key = '{MASK}';"


def test_assignment_of_sensitive_env_names():
    text = 'GITHUB_TOKEN=abc123\nconst cfg = {"OPENAI_API_KEY": "xyz"};\nGEMINI_API_KEY: hunter2'
    out = redact(text)
    assert "abc123" not in out and "xyz" not in out and "hunter2" not in out
    assert f"GITHUB_TOKEN={MASK}" in out
    assert f'"OPENAI_API_KEY": "{MASK}"' in out


def test_ordinary_text_untouched():
    text = "<h1 id='hello'>Hello World</h1>\nlet skip = 'sk-short';"
    assert redact(text) == text


@pytest.mark.parametrize("text", [
    f"token {GH_TOKEN} and GFORM_SECRET='s3cret'",
    f"GITHUB_TOKEN={GH_TOKEN}",
    "nothing to see",
])
def test_redaction_is_idempotent(text):
    once = redact(text)
    assert redact(once) == once


def test_redact_files_only_touches_text():
    files = {"index.html": f"<!-- {GOOGLE_KEY} -->", "logo.png": BinaryFile("AAAA")}
    out = redact_files(files)
    assert out["index.html"] == f"<!-- {MASK} -->"
    assert out["logo.png"] == BinaryFile("AAAA")
