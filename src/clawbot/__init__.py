"""
The main entrypoint for the ClawBot package.

This module contains the primary ClawBot class, which wires the extensible
pillars (LLM, store, tools, transport, engine) together and implements the
per-message handler: chat commands, link pre-fetching, attachments and the
catch-all that guarantees every inbound message gets exactly one reply.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from . import engine as engine_module
from . import llm as llm_module
from . import store as store_module
from . import tools as tools_module
from . import transport as transport_module
from .config import Settings
from .github import GitHub, GitHubError, parse_pr_url
from .models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, InboundMessage
from .skills import Skill, SkillRegistry, ToolContext, default_skills
from .skills.job_search import PREFS_KEY, load_job_preferences
from .skills.system import HELP_TEXT
from .web import BrowserUnavailableError, FetchError, WebFetcher, extract_url, is_valid_url

logger = logging.getLogger(__name__)

START_REPLY = (
    "Hello! I am ClawBot 🦞. Send me a PR or article to review, ask about your "
    "GitHub repos, or just chat. /help lists what I can do."
)
CLEAR_REPLY = "🧹 Memory cleared! Fresh start."
CRASH_REPLY = "⚠️ I crashed! Something went wrong. Please try again."


def parse_command(text: str) -> Tuple[Optional[str], List[str]]:
    """Splits ``/cmd@BotName arg1 arg2`` into ``("cmd", ["arg1", "arg2"])``."""
    if not text or not text.startswith("/"):
        return None, []
    parts = text.strip().split()
    command = parts[0][1:].split("@", 1)[0].lower()
    return command, parts[1:]


def build_store(settings: Settings) -> store_module.Store:
    """Creates the store selected by ``settings.store_backend``."""
    kwargs = {
        "history_cap": settings.history_cap,
        "ttl_seconds": settings.history_ttl_seconds,
    }
    if settings.store_backend == "file":
        return store_module.File(settings.store_path, **kwargs)
    if settings.store_backend == "sqlite":
        return store_module.SQLite(str(Path(settings.store_path) / "clawbot.db"), **kwargs)
    return store_module.InMemory(**kwargs)


class ClawBot:
    """
    The Telegram assistant.

    This class acts as the central coordinator, using the injected pillar
    components to handle every inbound message. The constructor uses concrete
    default implementations built from ``Settings``, while every pillar can be
    replaced.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm: Optional[llm_module.LLM] = None,
        store: Optional[store_module.Store] = None,
        skills: Optional[Iterable[Skill]] = None,
        tools: Optional[tools_module.Tool] = None,
        transport: Optional[transport_module.Transport] = None,
        engine: Optional[engine_module.Engine] = None,
        github: Optional[GitHub] = None,
        web: Optional[WebFetcher] = None,
    ) -> None:
        """
        Initialize the bot with configurable pillars.

        Parameters
        ----------
        settings : Settings, optional
            Runtime configuration. Defaults to ``Settings()``, which reads
            ``CLAWBOT_*`` environment variables and ``.env``.
        llm : llm.LLM, optional
            Model gateway. Defaults to ``llm.OpenAI`` with the configured model.
        store : store.Store, optional
            Conversation store. Defaults to the backend named by
            ``settings.store_backend``.
        skills : iterable of Skill, optional
            Skills to register. Defaults to the built-in skills. Ignored when
            ``tools`` is given.
        tools : tools.Tool, optional
            Tool executor. Defaults to ``tools.SkillTool`` over the registry.
        transport : transport.Transport, optional
            Delivery boundary. Defaults to ``transport.Telegram`` when a bot
            token is configured, else ``transport.Recorder``.
        engine : engine.Engine, optional
            Orchestration engine. Defaults to ``engine.Synchronous`` with
            ``settings.max_turns``. The engine is bound to this bot.
        github, web : optional
            Collaborators handed to tool handlers.

        Raises
        ------
        skills.DuplicateToolError
            If two skills declare the same tool name.
        """
        self.settings = settings if settings is not None else Settings()

        self.llm = (
            llm
            if llm is not None
            else llm_module.OpenAI(
                default_model=self.settings.model,
                api_key=self.settings.openai_api_key,
                temperature=self.settings.temperature,
            )
        )
        self.store = store if store is not None else build_store(self.settings)
        self.skills = SkillRegistry(default_skills() if skills is None else skills)
        self.tools = tools if tools is not None else tools_module.SkillTool(self.skills)
        self.github = (
            github
            if github is not None
            else GitHub(token=self.settings.github_token, timeout=self.settings.fetch_timeout)
        )
        self.web = (
            web
            if web is not None
            else WebFetcher(
                timeout=self.settings.fetch_timeout,
                browser_timeout=self.settings.browser_timeout,
            )
        )

        if transport is not None:
            self.transport = transport
        elif self.settings.telegram_token:
            self.transport = transport_module.Telegram(self.settings.telegram_token)
        else:
            logger.warning("No Telegram token configured; replies are only recorded in memory")
            self.transport = transport_module.Recorder()

        self.engine = (
            engine
            if engine is not None
            else engine_module.Synchronous(
                max_turns=self.settings.max_turns,
                tool_workers=self.settings.tool_workers,
            )
        )
        self.engine.app = self

    def build_tool_context(self, chat_id: str, history: List[ChatMessage]) -> ToolContext:
        return ToolContext(
            chat_id=chat_id,
            settings=self.settings,
            store=self.store,
            github=self.github,
            web=self.web,
            history=list(history),
        )

    # --- inbound ---

    def handle_update(self, update: Dict[str, Any]) -> Optional[str]:
        """Handles a raw Telegram update; returns the reply, or None if ignored."""
        inbound = InboundMessage.from_telegram(update)
        if inbound is None:
            return None
        return self.handle_message(inbound)

    def handle_message(self, inbound: InboundMessage) -> str:
        """Produces, records and delivers exactly one reply. Never raises."""
        command, _ = parse_command(inbound.text)
        logger.info(
            "Chat %s: inbound message (command=%s, attachment=%s)",
            inbound.chat_id,
            command or "none",
            inbound.attachment.kind if inbound.attachment else "none",
        )
        try:
            reply = self._respond(inbound)
        except Exception:
            logger.exception("Unhandled error for chat %s", inbound.chat_id)
            reply = CRASH_REPLY
            self._record_exchange(inbound.chat_id, inbound.text, reply)

        self.deliver(inbound.chat_id, reply)
        return reply

    def deliver(self, chat_id: str, text: str) -> None:
        try:
            self.transport.send_message(chat_id, text)
        except Exception:
            logger.exception("Failed to deliver reply to chat %s", chat_id)

    def _respond(self, inbound: InboundMessage) -> str:
        chat_id = inbound.chat_id
        command, args = parse_command(inbound.text)

        if command == "start":
            self._record_exchange(chat_id, inbound.text, START_REPLY, reset=True)
            return START_REPLY
        if command == "clear":
            self.store.clear_history(chat_id)
            return CLEAR_REPLY
        if command == "help":
            self._record_exchange(chat_id, inbound.text, HELP_TEXT)
            return HELP_TEXT

        if command in ("browse", "review", "pr"):
            url = args[0] if args else None
            if not is_valid_url(url):
                reply = f"Please provide a valid URL. Example: /{command} https://example.com"
                self._record_exchange(chat_id, inbound.text, reply)
                return reply
            prompt, context, direct_reply = self._command_context(command, url)
            if direct_reply is not None:
                self._record_exchange(chat_id, inbound.text, direct_reply)
                return direct_reply
            return self._orchestrate(chat_id, prompt, context)

        text, context, image_url = self._attachment_context(inbound)
        if context is None and image_url is None:
            url = extract_url(text)
            if url:
                context = self._link_context(url)
        return self._orchestrate(chat_id, text, context, image_url=image_url)

    def _orchestrate(
        self,
        chat_id: str,
        text: str,
        context: Optional[Dict[str, Any]],
        image_url: Optional[str] = None,
    ) -> str:
        result = self.engine.handle_message(chat_id, text, context=context, image_url=image_url)
        logger.info(
            "Chat %s: reply after %d turn(s), %d tool call(s), converged=%s",
            chat_id,
            result.turns,
            len(result.tool_results),
            result.converged,
        )
        return result.reply

    def _record_exchange(self, chat_id: str, user_text: str, reply: str, reset: bool = False):
        """Appends a (user, assistant) pair for replies produced outside the engine."""
        try:
            history = [] if reset else self.store.load_history(chat_id)
            history += [
                ChatMessage(role=USER_ROLE, content=user_text),
                ChatMessage(role=ASSISTANT_ROLE, content=reply),
            ]
            self.store.save_history(chat_id, history)
        except Exception:
            logger.exception("Failed to record exchange for chat %s", chat_id)

    # --- pre-fetched context ---

    def _command_context(
        self, command: str, url: str
    ) -> Tuple[str, Optional[Dict[str, Any]], Optional[str]]:
        """Returns ``(prompt, context, direct_reply)`` for /browse, /review and /pr."""
        if command == "browse":
            try:
                page = self.web.browse_page(url)
                return (
                    f"I browsed this page with a real browser: {url}. "
                    f'The page title is "{page.title}". Analyze the content.',
                    {"type": "browser_page", "title": page.title, "content": page.text, "url": url},
                    None,
                )
            except (BrowserUnavailableError, FetchError) as e:
                browser_error = e
                logger.info("Browser failed for %s, falling back to fast fetch", url)
            try:
                page = self.web.fetch_article(url)
            except FetchError:
                return "", None, (
                    "⚠️ Couldn't load the page. The site might be blocking bots or too slow."
                    f"\n\nError: {browser_error}"
                )
            return (
                f"I fetched this page: {url}. Analyze the content.",
                {
                    "type": "article_review",
                    "content": page.text,
                    "url": url,
                    "note": "Fetched with fast method (browser unavailable)",
                },
                None,
            )

        if command == "pr":
            if parse_pr_url(url) is None:
                return "", None, "Invalid GitHub PR URL format."
            return "Please review this PR. Be critical but helpful.", self._link_context(url), None

        return (
            "Review this article. Summarize it and give your unique take.",
            self._link_context(url),
            None,
        )

    def _link_context(self, url: str) -> Dict[str, Any]:
        """Pre-fetches a pull request or article; failures are reported in the context."""
        pr = parse_pr_url(url)
        if pr is not None:
            owner, repo, number = pr
            try:
                return {"type": "pr_review", "url": url, "content": self.github.fetch_pr(owner, repo, number)}
            except (GitHubError, ValueError, OSError) as e:
                logger.warning("Could not pre-fetch PR %s: %s", url, e)
                return {"type": "pr_review", "url": url, "error": str(e)}
        try:
            page = self.web.fetch_article(url)
            return {"type": "article_review", "url": url, "content": page.text}
        except FetchError as e:
            logger.warning("Could not pre-fetch %s: %s", url, e)
            return {"type": "article_review", "url": url, "error": str(e)}

    def _attachment_context(
        self, inbound: InboundMessage
    ) -> Tuple[str, Optional[Dict[str, Any]], Optional[str]]:
        """Returns ``(text, context, image_url)`` for the inbound attachment, if any."""
        attachment = inbound.attachment
        text = inbound.text
        if attachment is None:
            return text, None, None

        file_url = self.transport.get_file_url(attachment.file_id)
        if attachment.kind == "image":
            return text, None, file_url

        if attachment.kind == "voice":
            try:
                transcript = self.llm.transcribe(self.transport.download(file_url))
                logger.info("Transcribed voice note (%d chars)", len(transcript))
                transcribed = f"[Voice Note Transcription]: {transcript}"
                text = f"{text}\n{transcribed}" if text else transcribed
            except llm_module.TranscriptionUnavailableError as e:
                logger.info("Voice note not transcribed: %s", e)
                text = f"{text}\n[System: Voice transcription failed]".strip()
            except Exception as e:
                logger.warning("Voice transcription failed: %s", e, exc_info=True)
                text = f"{text}\n[System: Voice transcription failed]".strip()
            return text, None, None

        context = {
            "type": "document",
            "file_name": attachment.file_name,
            "mime_type": attachment.mime_type,
            "url": file_url,
        }
        return text or "I sent you a document. Please take a look.", context, None

    # --- scheduled ---

    def run_daily_briefing(self) -> int:
        """Sends every chat with saved job preferences a fresh job search.

        Each briefing goes through ``handle_message`` like any user message.
        Returns the number of chats briefed.
        """
        briefed = 0
        for key in self.store.list_keys(PREFS_KEY):
            chat_id = key[len(PREFS_KEY):]
            try:
                prefs = load_job_preferences(self.store, chat_id)
            except ValidationError as e:
                logger.warning("Skipping unreadable job preferences for chat %s: %s", chat_id, e)
                continue
            if prefs is None:
                continue
            text = (
                f"Daily Job Briefing: search jobs for a {prefs.role} role "
                f"({', '.join(prefs.keywords)}) in {prefs.location} and summarize the best matches."
            )
            self.handle_message(InboundMessage(chat_id=chat_id, text=text))
            briefed += 1
        logger.info("Daily briefing sent to %d chat(s)", briefed)
        return briefed

    def close(self) -> None:
        for collaborator in (self.github, self.web, self.transport):
            client = getattr(collaborator, "client", None)
            if client is not None:
                client.close()
