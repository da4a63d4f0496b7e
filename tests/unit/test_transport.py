"""Tests for the Telegram transport and the in-memory Recorder."""

import json

import httpx
import pytest
from clawbot.transport import TELEGRAM_API, Recorder, Telegram, TransportError, split_message


def _telegram(handler) -> Telegram:
    client = httpx.Client(base_url=TELEGRAM_API, transport=httpx.MockTransport(handler))
    return Telegram("123:ABC", client=client)


class TestSplitMessage:
    def test_short_message(self):
        assert split_message("hi", 10) == ["hi"]

    def test_splits_on_newlines(self):
        assert split_message("aaaa\nbbbb\ncccc", 10) == ["aaaa\nbbbb", "cccc"]

    def test_hard_split_without_newlines(self):
        assert split_message("x" * 25, 10) == ["x" * 10, "x" * 10, "x" * 5]


class TestTelegram:
    def test_requires_token(self):
        with pytest.raises(ValueError):
            Telegram("")

    def test_send_message(self):
        payloads = []

        def handler(request):
            assert request.url.path == "/bot123:ABC/sendMessage"
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

        _telegram(handler).send_message("42", "*hello*")

        assert payloads == [{"chat_id": "42", "text": "*hello*", "parse_mode": "Markdown"}]

    def test_retries_without_markup_on_400(self):
        payloads = []

        def handler(request):
            payload = json.loads(request.content)
            payloads.append(payload)
            if "parse_mode" in payload:
                return httpx.Response(
                    400, json={"ok": False, "description": "Bad Request: can't parse entities"}
                )
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 2}})

        sent = _telegram(handler).send_message("42", "unbalanced *markdown")

        assert len(payloads) == 2
        assert "parse_mode" not in payloads[1]
        assert payloads[1]["text"] == "unbalanced *markdown"
        assert sent == [{"message_id": 2}]

    def test_other_failures_raise(self):
        handler = lambda r: httpx.Response(403, json={"ok": False, "description": "Forbidden: bot was blocked"})
        with pytest.raises(TransportError, match="blocked"):
            _telegram(handler).send_message("42", "hi", parse_mode=None)

    def test_long_text_is_sent_in_chunks(self):
        texts = []

        def handler(request):
            texts.append(json.loads(request.content)["text"])
            return httpx.Response(200, json={"ok": True, "result": {}})

        _telegram(handler).send_message("42", "line\n" * 2000)

        assert len(texts) == 3
        assert all(len(t) <= 4096 for t in texts)

    def test_get_file_url(self):
        def handler(request):
            assert json.loads(request.content) == {"file_id": "f1"}
            return httpx.Response(200, json={"ok": True, "result": {"file_path": "voice/file_0.oga"}})

        url = _telegram(handler).get_file_url("f1")
        assert url == "https://api.telegram.org/file/bot123:ABC/voice/file_0.oga"

    def test_get_file_url_failure(self):
        handler = lambda r: httpx.Response(400, json={"ok": False, "description": "invalid file_id"})
        with pytest.raises(TransportError):
            _telegram(handler).get_file_url("bad")

    def test_set_webhook(self):
        def handler(request):
            assert json.loads(request.content) == {"url": "https://bot.dev/webhook", "secret_token": "s3"}
            return httpx.Response(200, json={"ok": True, "result": True})

        assert _telegram(handler).set_webhook("https://bot.dev/webhook", "s3")


class TestRecorder:
    def test_records_messages(self):
        recorder = Recorder()
        recorder.send_message("1", "hello")
        assert recorder.sent == [("1", "hello")]

    def test_files(self):
        recorder = Recorder(files={"v1": b"audio"})
        url = recorder.get_file_url("v1")
        assert recorder.download(url) == b"audio"

    def test_unknown_file(self):
        with pytest.raises(TransportError):
            Recorder().get_file_url("nope")
