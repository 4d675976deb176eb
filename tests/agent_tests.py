import json
import pytest

from src.ai.agent import (
    ContentGenerator,
    GeneratedFiles,
    PydanticAIClient,
    SYSTEM_PROMPT,
    build_user_prompt,
    parse_reply,
)
from src.core.errors import GenerationError, ReplyParseError

FILES = {"index.html": "<h1 id=\"hello\">Hello World</h1>", "README.md": "# Hello"}


@pytest.mark.parametrize("reply", [
    FILES,
    json.dumps(FILES),
    "```json\n" + json.dumps(FILES) + "\n```",
    "Sure! Here you go: " + json.dumps(FILES) + " Enjoy.",
    {"text": json.dumps(FILES)},
    {"output": FILES},
    {"candidates": 1, "content": json.dumps(FILES)},
    [json.dumps(FILES)[:10], json.dumps(FILES)[10:]],
    [{"text": json.dumps(FILES)}],
    GeneratedFiles.model_validate(FILES),
    json.dumps(dict(FILES, **{"script.js": None, "style.css": None})),
    {"output": dict(FILES, **{"script.js": None})},
])
def test_parse_reply_shapes(reply):
    assert parse_reply(reply) == FILES


@pytest.mark.parametrize("reply", [
    "no json here",
    "{not json}",
    {"unrelated": 1},
    [],
    [{"image": "..."}],
    42,
    None,
])
def test_parse_reply_failures_are_uniform(reply):
    with pytest.raises(ReplyParseError):
        parse_reply(reply)


async def test_generate_round1_calls_model_once_with_schema(make_model):
    client = make_model(reply=json.dumps(FILES))
    files = await ContentGenerator(client).generate(
        "Publish a static page that shows Hello World in #hello", [], 1
    )

    assert files == FILES
    assert len(client.calls) == 1
    system_prompt, user_prompt, output_type = client.calls[0]
    assert system_prompt == SYSTEM_PROMPT
    assert output_type is GeneratedFiles
    assert "Task Round: 1" in user_prompt
    assert "Hello World in #hello" in user_prompt
    assert "Existing Codebase" not in user_prompt


async def test_generate_missing_mandated_file(make_model):
    client = make_model(reply={"index.html": "<p>only</p>"})
    with pytest.raises(GenerationError, match="README.md"):
        await ContentGenerator(client).generate("brief", [], 1)


async def test_generate_wraps_client_errors(make_model):
    client = make_model(error=RuntimeError("GEMINI_API_KEY not set"))
    with pytest.raises(GenerationError, match="model call failed"):
        await ContentGenerator(client).generate("brief", [], 1)


async def test_generate_unparseable_reply_is_parse_error(make_model):
    client = make_model(reply="I cannot help with that")
    with pytest.raises(ReplyParseError):
        await ContentGenerator(client).generate("brief", [], 1)


def test_round2_prompt_embeds_existing_files_and_summaries():
    prompt = build_user_prompt(
        "Add a dark mode toggle",
        ["logo.png [image/png] (data:image/png;base64,AAAA...)"],
        2,
        {"index.html": "<p>v1</p>", "script.js": ""},
        ["#toggle exists"],
    )
    assert "Task Round: 2" in prompt
    assert "index.html:\n<p>v1</p>" in prompt
    assert "script.js:\nN/A" in prompt
    assert "logo.png [image/png]" in prompt
    assert "- #toggle exists" in prompt


def test_pydantic_ai_client_builds_no_agent_until_called():
    # construction must not need provider credentials
    client = PydanticAIClient("google-gla:gemini-2.5-flash")
    assert client.model_name == "google-gla:gemini-2.5-flash"


def test_response_schema_uses_file_names():
    schema = GeneratedFiles.model_json_schema(by_alias=True)
    assert set(schema["required"]) == {"index.html", "README.md"}
    assert "script.js" in schema["properties"]
