"""Concrete implementations for chat transports (the delivery boundary)."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
MAX_MESSAGE_CHARS = 4096


class TransportError(RuntimeError):
    """The transport rejected a request for a reason other than formatting."""


class Transport(ABC):
    """Interface for talking back to the chat platform."""

    @abstractmethod
    def send_message(self, chat_id: str, text: str, parse_mode: Optional[str] = "Markdown") -> Any:
        """Delivers ``text`` to the chat."""
        pass

    @abstractmethod
    def get_file_url(self, file_id: str) -> str:
        """Resolves an attachment id to a downloadable URL."""
        pass

    @abstractmethod
    def download(self, url: str) -> bytes:
        """Fetches the bytes behind a URL returned by ``get_file_url``."""
        pass


def split_message(text: str, limit: int = MAX_MESSAGE_CHARS) -> List[str]:
    """Splits long replies on line boundaries where possible."""
    if len(text) <= limit:
        return [text]
    chunks = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text:
        chunks.append(text)
    return chunks


class Telegram(Transport):
    """Telegram Bot API over HTTPS."""

    def __init__(self, token: str, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        if not token:
            raise ValueError("A Telegram bot token is required")
        self._token = token
        self.client = client or httpx.Client(base_url=TELEGRAM_API, timeout=timeout)

    def _call(self, method: str, payload: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        response = self.client.post(f"/bot{self._token}/{method}", json=payload)
        try:
            data = response.json()
        except ValueError:
            data = {"ok": False, "description": response.text}
        return response.status_code, data

    def send_message(self, chat_id: str, text: str, parse_mode: Optional[str] = "Markdown") -> List[Dict[str, Any]]:
        """Sends ``text``, retrying once without formatting if Telegram rejects the markup."""
        sent = []
        for chunk in split_message(text):
            payload = {"chat_id": chat_id, "text": chunk}
            if parse_mode:
                payload["parse_mode"] = parse_mode
            status, data = self._call("sendMessage", payload)
            if status == 400 and parse_mode:
                logger.info("Telegram rejected %s markup (%s), resending as plain text", parse_mode, data.get("description"))
                payload.pop("parse_mode")
                status, data = self._call("sendMessage", payload)
            if not data.get("ok"):
                raise TransportError(f"sendMessage failed ({status}): {data.get('description')}")
            sent.append(data["result"])
        return sent

    def get_file_url(self, file_id: str) -> str:
        status, data = self._call("getFile", {"file_id": file_id})
        if not data.get("ok"):
            raise TransportError(f"Could not get file path from Telegram ({status})")
        return f"{TELEGRAM_API}/file/bot{self._token}/{data['result']['file_path']}"

    def download(self, url: str) -> bytes:
        response = self.client.get(url)
        response.raise_for_status()
        return response.content

    def set_webhook(self, url: str, secret_token: Optional[str] = None) -> bool:
        payload = {"url": url}
        if secret_token:
            payload["secret_token"] = secret_token
        status, data = self._call("setWebhook", payload)
        if not data.get("ok"):
            raise TransportError(f"setWebhook failed ({status}): {data.get('description')}")
        return True


class Recorder(Transport):
    """Keeps sent messages in memory; used for local runs and tests."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self.sent: List[Tuple[str, str]] = []
        self.files = files or {}

    def send_message(self, chat_id: str, text: str, parse_mode: Optional[str] = "Markdown") -> Tuple[str, str]:
        self.sent.append((chat_id, text))
        return chat_id, text

    def get_file_url(self, file_id: str) -> str:
        if file_id not in self.files:
            raise TransportError(f"Unknown file {file_id}")
        return f"memory://{file_id}"

    def download(self, url: str) -> bytes:
        return self.files[url.removeprefix("memory://")]
