import base64
import json

import httpx
import pytest

from gemini_rest import GeminiClient
from gemini_rest.config import resolve_config
from gemini_rest.constants import FILES_API_THRESHOLD
from gemini_rest.conversation import ChatSession
from gemini_rest.core.types import (
    BearerCredential,
    Failure,
    GenerationConfig,
    InlineDataPart,
    Success,
    TextOutput,
)
from gemini_rest.credentials import StaticCredentialProvider
from gemini_rest.exceptions import (
    APIError,
    CredentialError,
    FileError,
    MissingKeyError,
    ResponseShapeError,
    UnsupportedContentError,
    ValidationError,
)
from gemini_rest.response import output_texts, parse_structured
from tests.fixtures.api_responses import (
    COUNT_TOKENS_RESPONSE,
    HELLO_RESPONSE,
    IMAGE_RESPONSE,
    MULTI_CANDIDATE_RESPONSE,
    PNG_BASE64,
    STRUCTURED_RESPONSE,
    TOKEN_RESPONSE,
    UPLOAD_URL,
    UPLOADED_FILE_RESPONSE,
)
from tests.helpers import json_response

API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"
VERTEX_URL = (
    "https://us-central1-aiplatform.googleapis.com/v1/projects/p/locations/us-central1"
    "/publishers/google/models/gemini-2.0-flash:generateContent"
)


@pytest.fixture
def make_client(frozen_config, credentials):
    def _make(transport, config=None, provider=None):
        return GeminiClient(
            config or frozen_config,
            credentials=provider or credentials,
            http=transport.client,
        )

    return _make


@pytest.fixture
def bearer() -> BearerCredential:
    return BearerCredential(token="ya29.tok", endpoint_url=VERTEX_URL, expires_at=4e9)


def _texts(result) -> list[str]:
    assert isinstance(result, Success), result
    return output_texts(result.value)


def _oversized(path):
    with open(path, "wb") as f:
        f.truncate(FILES_API_THRESHOLD + 1)
    return path


def _uploaded_as(mime_type: str) -> dict:
    return {"file": {**UPLOADED_FILE_RESPONSE["file"], "mimeType": mime_type}}


@pytest.mark.unit
class TestGenerate:
    """Text generation through the full pipeline."""

    def test_say_hi(self, recorder, make_client, mock_api_key):
        transport = recorder(json_response(HELLO_RESPONSE))

        result = make_client(transport).generate("Say hi", model="2.0-flash")

        assert _texts(result) == ["Hello!"]
        request = transport.requests[0]
        assert str(request.url) == f"{API_ROOT}/gemini-2.0-flash:generateContent"
        assert request.headers["x-goog-api-key"] == mock_api_key
        assert request.content == (
            b'{"contents":[{"parts":[{"text":"Say hi"}]}],'
            b'"generationConfig":{"temperature":1,"maxOutputTokens":8192,'
            b'"topP":0.95,"topK":40,"seed":1234}}'
        )

    @pytest.mark.parametrize(
        "config",
        [
            GenerationConfig(temperature=2.5),
            GenerationConfig(top_p=1.5),
            GenerationConfig(top_k=101),
            GenerationConfig(seed=1.5),
            GenerationConfig(max_output_tokens=0),
        ],
    )
    def test_invalid_config_sends_nothing(self, recorder, make_client, config):
        transport = recorder()
        result = make_client(transport).generate("hi", config=config)
        assert isinstance(result, Failure)
        assert isinstance(result.error, ValidationError)
        assert transport.call_count == 0

    def test_missing_key_sends_nothing(self, recorder, make_client):
        transport = recorder()
        result = make_client(transport, provider=StaticCredentialProvider(None)).generate("hi")
        assert isinstance(result, Failure)
        assert isinstance(result.error, MissingKeyError)
        assert transport.call_count == 0

    def test_legacy_query_key_from_config(self, recorder, make_client, mock_api_key):
        config = resolve_config({"api_key": mock_api_key, "api_key_in_query": True}).to_frozen()
        transport = recorder(json_response(HELLO_RESPONSE))
        make_client(transport, config=config).generate("hi")
        assert transport.requests[0].url.params["key"] == mock_api_key

    def test_image_model_requests_modalities(self, recorder, make_client):
        transport = recorder(json_response(IMAGE_RESPONSE))
        result = make_client(transport).generate("Draw", model="2.0-flash-exp-image-generation")
        assert isinstance(result, Success)
        assert transport.body()["generationConfig"]["responseModalities"] == ["Text", "Image"]

    def test_gemma_model_name_passes_through(self, recorder, make_client):
        transport = recorder(json_response(HELLO_RESPONSE))
        make_client(transport).generate("hi", model="gemma-3-1b-it")
        assert transport.requests[0].url.path.endswith("/gemma-3-1b-it:generateContent")

    def test_bearer_with_labels(self, recorder, make_client, bearer):
        transport = recorder(json_response(HELLO_RESPONSE))

        result = make_client(transport).generate(
            "hi", credential=bearer, labels={"team": "research"}
        )

        assert isinstance(result, Success)
        request = transport.requests[0]
        assert str(request.url) == VERTEX_URL
        body = transport.body()
        assert body["contents"][0]["role"] == "user"
        assert body["labels"] == {"team": "research"}

    def test_labels_need_bearer(self, recorder, make_client):
        transport = recorder()
        result = make_client(transport).generate("hi", labels={"team": "a"})
        assert isinstance(result, Failure)
        assert result.error.field == "labels"
        assert transport.call_count == 0

    def test_api_error_is_surfaced(self, recorder, make_client):
        transport = recorder(httpx.Response(429, text="quota"))
        result = make_client(transport).generate("hi")
        assert isinstance(result, Failure)
        assert isinstance(result.error, APIError)
        assert result.error.status_code == 429
        assert transport.call_count == 1


@pytest.mark.unit
class TestChatAndStructured:
    def test_chat_session(self, recorder, make_client):
        transport = recorder(json_response(HELLO_RESPONSE), json_response(HELLO_RESPONSE))
        session = make_client(transport).chat(model="2.0-flash")

        assert isinstance(session, ChatSession)
        session.send("Hi")
        reply = session.send("Again")

        assert isinstance(reply, Success)
        assert len(reply.value.conversation) == 4
        assert transport.requests[1].url.path.endswith("/gemini-2.0-flash:generateContent")

    def test_structured_output(self, recorder, make_client):
        schema = {"type": "OBJECT", "properties": {"name": {"type": "STRING"}}}
        transport = recorder(json_response(STRUCTURED_RESPONSE))

        result = make_client(transport).generate_structured("Invent a person", schema)

        assert isinstance(result, Success)
        assert json.loads(result.value) == {"name": "Ada", "age": 36}
        assert parse_structured((TextOutput(result.value),)) == Success({"name": "Ada", "age": 36})
        config = transport.body()["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"] == schema

    def test_structured_requires_schema(self, recorder, make_client):
        transport = recorder()
        result = make_client(transport).generate_structured("p", {})
        assert isinstance(result, Failure)
        assert transport.call_count == 0


@pytest.mark.unit
class TestSearch:
    def test_search_uses_fixed_model_and_tool(self, recorder, make_client):
        transport = recorder(json_response(HELLO_RESPONSE))
        make_client(transport).search("news?")
        assert transport.requests[0].url.path.endswith("/gemini-2.0-flash:generateContent")
        assert transport.body()["tools"] == [{"google_search": {}}]

    def test_search_retrieval_model_allow_list(self, recorder, make_client):
        transport = recorder()
        result = make_client(transport).search_retrieval("q", model="2.0-flash")
        assert isinstance(result, Failure)
        assert isinstance(result.error, UnsupportedContentError)
        assert transport.call_count == 0

    def test_search_retrieval_threshold(self, recorder, make_client):
        transport = recorder(json_response(HELLO_RESPONSE))
        make_client(transport).search_retrieval("q", model="1.5-pro", dynamic_threshold=0.5)
        assert transport.requests[0].url.path.endswith("/gemini-1.5-pro:generateContent")
        retrieval = transport.body()["tools"][0]["google_search_retrieval"]
        assert retrieval["dynamic_retrieval_config"]["dynamic_threshold"] == 0.5

    def test_search_retrieval_threshold_bounds(self, recorder, make_client):
        transport = recorder()
        result = make_client(transport).search_retrieval("q", dynamic_threshold=2)
        assert isinstance(result, Failure)
        assert transport.call_count == 0


@pytest.mark.unit
class TestMediaAnalysis:
    """Image, audio, document and file-URI pipelines."""

    def test_describe_image_inline(self, recorder, make_client, tmp_path):
        image = tmp_path / "cat.png"
        image.write_bytes(base64.b64decode(PNG_BASE64))
        transport = recorder(json_response(HELLO_RESPONSE))

        result = make_client(transport).describe_image(image)

        assert isinstance(result, Success)
        parts = transport.body()["contents"][0]["parts"]
        assert parts[0] == {"text": "Explain this image"}
        assert parts[1] == {"inlineData": {"mimeType": "image/png", "data": PNG_BASE64}}

    def test_large_image_is_uploaded_then_referenced(self, recorder, make_client, tmp_path):
        image = _oversized(tmp_path / "big.png")
        uploaded = _uploaded_as("image/png")
        transport = recorder(
            httpx.Response(200, headers={"X-Goog-Upload-URL": UPLOAD_URL}),
            json_response(uploaded),
            json_response(HELLO_RESPONSE),
        )

        result = make_client(transport).describe_image(image)

        assert isinstance(result, Success)
        start, upload, generate = transport.requests
        assert "/upload/" in start.url.path
        assert start.headers["X-Goog-Upload-Header-Content-Length"] == str(
            FILES_API_THRESHOLD + 1
        )
        assert start.headers["X-Goog-Upload-Header-Content-Type"] == "image/png"
        assert json.loads(start.content) == {"file": {"display_name": "big.png"}}
        assert str(upload.url) == UPLOAD_URL
        assert generate.url.path.endswith("/gemini-2.5-flash:generateContent")
        assert transport.body()["contents"][0]["parts"] == [
            {"text": "Explain this image"},
            {"fileData": {"mimeType": "image/png", "fileUri": uploaded["file"]["uri"]}},
        ]

    def test_image_at_threshold_stays_inline(self, recorder, make_client, tmp_path):
        image = tmp_path / "edge.png"
        with open(image, "wb") as f:
            f.truncate(FILES_API_THRESHOLD)
        transport = recorder(json_response(HELLO_RESPONSE))

        result = make_client(transport).describe_image(image)

        assert isinstance(result, Success)
        assert transport.call_count == 1
        assert "inlineData" in transport.body()["contents"][0]["parts"][1]

    def test_large_image_with_invalid_prompt_sends_nothing(
        self, recorder, make_client, tmp_path
    ):
        image = _oversized(tmp_path / "big.png")
        transport = recorder()
        result = make_client(transport).describe_image(image, "   ")
        assert isinstance(result, Failure)
        assert isinstance(result.error, ValidationError)
        assert transport.call_count == 0

    def test_analyze_audio_uploads_then_generates(self, recorder, make_client, tmp_path):
        audio = tmp_path / "talk.mp3"
        audio.write_bytes(b"hello")
        transport = recorder(
            httpx.Response(200, headers={"X-Goog-Upload-URL": UPLOAD_URL}),
            json_response(UPLOADED_FILE_RESPONSE),
            json_response(HELLO_RESPONSE),
        )

        result = make_client(transport).analyze_audio(audio)

        assert _texts(result) == ["Hello!"]
        start, upload, generate = transport.requests
        assert json.loads(start.content) == {"file": {"display_name": "AUDIO"}}
        assert str(upload.url) == UPLOAD_URL
        assert generate.url.path.endswith("/gemini-2.0-flash:generateContent")
        assert transport.body()["contents"][0]["parts"] == [
            {"text": "Describe this audio"},
            {
                "fileData": {
                    "mimeType": "audio/mp3",
                    "fileUri": UPLOADED_FILE_RESPONSE["file"]["uri"],
                }
            },
        ]

    def test_audio_upload_start_failure_stops_pipeline(self, recorder, make_client, tmp_path):
        audio = tmp_path / "talk.mp3"
        audio.write_bytes(b"hello")
        transport = recorder(httpx.Response(500, text="nope"))

        result = make_client(transport).analyze_audio(audio)

        assert isinstance(result, Failure)
        assert isinstance(result.error, APIError)
        assert transport.call_count == 1

    def test_audio_generation_failure_after_upload(self, recorder, make_client, tmp_path):
        audio = tmp_path / "talk.mp3"
        audio.write_bytes(b"hello")
        transport = recorder(
            httpx.Response(200, headers={"X-Goog-Upload-URL": UPLOAD_URL}),
            json_response(UPLOADED_FILE_RESPONSE),
            httpx.Response(503, text="unavailable"),
        )
        result = make_client(transport).analyze_audio(audio)
        assert isinstance(result, Failure)
        assert result.error.status_code == 503
        assert transport.call_count == 3

    def test_audio_model_allow_list(self, recorder, make_client, tmp_path):
        audio = tmp_path / "talk.mp3"
        audio.write_bytes(b"hello")
        transport = recorder()
        result = make_client(transport).analyze_audio(audio, model="1.5-pro")
        assert isinstance(result, Failure)
        assert isinstance(result.error, UnsupportedContentError)
        assert transport.call_count == 0

    def test_empty_audio_file_sends_nothing(self, recorder, make_client, tmp_path):
        audio = tmp_path / "silence.wav"
        audio.write_bytes(b"")
        transport = recorder()
        result = make_client(transport).analyze_audio(audio)
        assert isinstance(result, Failure)
        assert isinstance(result.error, FileError)
        assert transport.call_count == 0

    def test_audio_with_bearer_references_remote_uri(self, recorder, make_client, bearer):
        transport = recorder(json_response(HELLO_RESPONSE))

        result = make_client(transport).analyze_audio("gs://bucket/talk.mp3", credential=bearer)

        assert isinstance(result, Success)
        assert transport.call_count == 1
        turn = transport.body()["contents"][0]
        assert turn["role"] == "user"
        assert turn["parts"] == [
            {"fileData": {"mimeType": "audio/mp3", "fileUri": "gs://bucket/talk.mp3"}},
            {"text": "Describe this audio"},
        ]

    def test_documents_inline_then_prompt(self, recorder, make_client, tmp_path):
        docs = []
        for name in ("a.pdf", "b.pdf"):
            path = tmp_path / name
            path.write_bytes(b"%PDF-1.4")
            docs.append(path)
        payload = {
            "candidates": [{"content": {"parts": [{"text": "Part one"}, {"text": "Part two"}]}}]
        }
        transport = recorder(json_response(payload))

        result = make_client(transport).analyze_documents(docs, "Summarize")

        assert result == Success("Part one\nPart two")
        body = transport.body()
        assert "generationConfig" not in body
        parts = body["contents"][0]["parts"]
        assert [p.get("inlineData", {}).get("mimeType") for p in parts[:2]] == [
            "application/pdf",
            "application/pdf",
        ]
        assert parts[2] == {"text": "Summarize"}
        assert transport.requests[0].url.path.endswith("/gemini-2.0-flash:generateContent")

    def test_documents_return_first_candidate_text(self, recorder, make_client, tmp_path):
        doc = tmp_path / "a.pdf"
        doc.write_bytes(b"%PDF-1.4")
        transport = recorder(json_response(MULTI_CANDIDATE_RESPONSE))

        result = make_client(transport).analyze_documents([doc], "Summarize")

        assert result == Success("First\nSecond")

    def test_large_document_uploaded_before_prompt(self, recorder, make_client, tmp_path):
        small = tmp_path / "a.pdf"
        small.write_bytes(b"%PDF-1.4")
        large = _oversized(tmp_path / "b.pdf")
        uploaded = _uploaded_as("application/pdf")
        transport = recorder(
            httpx.Response(200, headers={"X-Goog-Upload-URL": UPLOAD_URL}),
            json_response(uploaded),
            json_response(HELLO_RESPONSE),
        )

        result = make_client(transport).analyze_documents([small, large], "Summarize")

        assert result == Success("Hello!")
        assert transport.call_count == 3
        assert str(transport.requests[1].url) == UPLOAD_URL
        parts = transport.body()["contents"][0]["parts"]
        assert parts[0]["inlineData"]["mimeType"] == "application/pdf"
        assert parts[1] == {
            "fileData": {"mimeType": "application/pdf", "fileUri": uploaded["file"]["uri"]}
        }
        assert parts[2] == {"text": "Summarize"}

    def test_documents_invalid_prompt_skips_upload(self, recorder, make_client, tmp_path):
        large = _oversized(tmp_path / "b.pdf")
        transport = recorder()
        result = make_client(transport).analyze_documents([large], "")
        assert isinstance(result, Failure)
        assert transport.call_count == 0

    def test_documents_unknown_kind(self, recorder, make_client, tmp_path):
        transport = recorder()
        result = make_client(transport).analyze_documents([tmp_path / "a"], "p", kind="DOCX")
        assert isinstance(result, Failure)
        assert transport.call_count == 0

    def test_documents_need_at_least_one(self, recorder, make_client):
        transport = recorder()
        assert isinstance(make_client(transport).analyze_documents([], "p"), Failure)

    def test_documents_with_bearer_use_file_uris(self, recorder, make_client, bearer):
        transport = recorder(json_response(HELLO_RESPONSE))
        make_client(transport).analyze_documents(
            ["gs://b/a.pdf"], "Summarize", credential=bearer
        )
        body = transport.body()
        assert body["contents"][0]["parts"] == [
            {"fileData": {"mimeType": "application/pdf", "fileUri": "gs://b/a.pdf"}},
            {"text": "Summarize"},
        ]
        assert "generationConfig" in body

    def test_file_uris(self, recorder, make_client):
        transport = recorder(json_response(HELLO_RESPONSE))
        make_client(transport).analyze_file_uris(
            ["files/1", "files/2"], "Compare", mime_type="video/mp4"
        )
        parts = transport.body()["contents"][0]["parts"]
        assert parts[0] == {"text": "Compare"}
        assert [p["fileData"]["fileUri"] for p in parts[1:]] == ["files/1", "files/2"]


@pytest.mark.unit
class TestImages:
    def test_generate_image_saves_file(self, recorder, make_client, tmp_path):
        target = tmp_path / "out.png"
        transport = recorder(json_response(IMAGE_RESPONSE))

        result = make_client(transport).generate_image("A cat", target)

        assert result == Success(target.resolve())
        assert target.read_bytes() == base64.b64decode(PNG_BASE64)

    def test_generate_image_model_allow_list(self, recorder, make_client, tmp_path):
        transport = recorder()
        result = make_client(transport).generate_image("A cat", tmp_path / "x.png", model="2.0-flash")
        assert isinstance(result, Failure)
        assert transport.call_count == 0

    def test_generate_image_existing_file_without_overwrite(self, recorder, make_client, tmp_path):
        target = tmp_path / "out.png"
        target.write_bytes(b"old")
        transport = recorder()
        result = make_client(transport).generate_image("A cat", target, overwrite=False)
        assert isinstance(result, Failure)
        assert transport.call_count == 0

    def test_response_without_image(self, recorder, make_client, tmp_path):
        transport = recorder(json_response(HELLO_RESPONSE))
        result = make_client(transport).generate_image("A cat", tmp_path / "out.png")
        assert isinstance(result, Failure)
        assert isinstance(result.error, ResponseShapeError)

    def test_edit_image_sends_prompt_then_image(self, recorder, make_client, tmp_path):
        source = tmp_path / "in.png"
        source.write_bytes(base64.b64decode(PNG_BASE64))
        transport = recorder(json_response(IMAGE_RESPONSE))

        result = make_client(transport).edit_image(
            "Make it blue", tmp_path / "out.png", mode="edit", images=[source]
        )

        assert isinstance(result, Success)
        assert transport.requests[0].url.path.endswith(
            "/gemini-2.5-flash-image-preview:generateContent"
        )
        body = transport.body()
        assert body["contents"][0]["parts"][0] == {"text": "Make it blue"}
        assert body["contents"][0]["parts"][1]["inlineData"]["mimeType"] == "image/png"
        assert body["generationConfig"]["responseModalities"] == ["Text", "Image"]

    def test_edit_image_uploads_large_source(self, recorder, make_client, tmp_path):
        source = _oversized(tmp_path / "in.png")
        uploaded = _uploaded_as("image/png")
        transport = recorder(
            httpx.Response(200, headers={"X-Goog-Upload-URL": UPLOAD_URL}),
            json_response(uploaded),
            json_response(IMAGE_RESPONSE),
        )

        result = make_client(transport).edit_image(
            "Make it blue", tmp_path / "out.png", mode="edit", images=[source]
        )

        assert isinstance(result, Success)
        assert transport.call_count == 3
        assert transport.body()["contents"][0]["parts"][1] == {
            "fileData": {"mimeType": "image/png", "fileUri": uploaded["file"]["uri"]}
        }

    @pytest.mark.parametrize(("mode", "count"), [("generate", 1), ("edit", 0), ("transfer", 1)])
    def test_edit_image_wrong_image_count(self, recorder, make_client, tmp_path, mode, count):
        source = tmp_path / "in.png"
        source.write_bytes(b"x")
        transport = recorder()
        result = make_client(transport).edit_image(
            "p", tmp_path / "out.png", mode=mode, images=[source] * count
        )
        assert isinstance(result, Failure)
        assert result.error.field == "images"
        assert transport.call_count == 0

    def test_edit_image_unknown_mode(self, recorder, make_client, tmp_path):
        transport = recorder()
        result = make_client(transport).edit_image("p", tmp_path / "o.png", mode="blend")
        assert isinstance(result, Failure)
        assert result.error.field == "mode"


@pytest.mark.unit
class TestTokensAndMinting:
    def test_count_tokens_text_and_media(self, recorder, make_client):
        transport = recorder(json_response(COUNT_TOKENS_RESPONSE))

        result = make_client(transport).count_tokens(
            ["hello", InlineDataPart("image/png", PNG_BASE64)], model="2.0-flash"
        )

        assert result == Success(42)
        assert transport.requests[0].url.path.endswith("/gemini-2.0-flash:countTokens")
        parts = transport.body()["contents"][0]["parts"]
        assert parts[0] == {"text": "hello"}
        assert parts[1]["inlineData"]["mimeType"] == "image/png"

    def test_count_tokens_single_string(self, recorder, make_client):
        transport = recorder(json_response(COUNT_TOKENS_RESPONSE))
        assert make_client(transport).count_tokens("hello") == Success(42)

    @pytest.mark.parametrize("content", [[], [""], [42]])
    def test_count_tokens_invalid_content(self, recorder, make_client, content):
        transport = recorder()
        result = make_client(transport).count_tokens(content)
        assert isinstance(result, Failure)
        assert transport.call_count == 0

    def test_mint_without_key_configured(self, recorder, make_client):
        transport = recorder()
        result = make_client(transport).mint_bearer_token()
        assert isinstance(result, Failure)
        assert isinstance(result.error, CredentialError)

    def test_mint_from_configured_key_file(self, recorder, make_client, tmp_path, monkeypatch):
        key_file = tmp_path / "sa.json"
        key_file.write_text(
            json.dumps(
                {"client_email": "a@b", "private_key": "k", "project_id": "proj"}
            ),
            encoding="utf-8",
        )
        monkeypatch.setattr(
            "gemini_rest.credentials.sign_assertion", lambda key, claims: Success("signed")
        )
        config = resolve_config(
            {"api_key": "k", "service_account_key": str(key_file), "region": "europe-west1"}
        ).to_frozen()
        transport = recorder(json_response(TOKEN_RESPONSE))
        client = make_client(transport, config=config, provider=StaticCredentialProvider(
            "k", http=transport.client
        ))

        result = client.mint_bearer_token(model="2.0-flash")

        assert isinstance(result, Success)
        assert result.value.endpoint_url.startswith("https://europe-west1-aiplatform")
        assert "/projects/proj/" in result.value.endpoint_url
