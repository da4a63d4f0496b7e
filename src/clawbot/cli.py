"""Command line entry points: serve the webhook, run the briefing, chat locally."""

import argparse
import logging
import sys
from typing import List, Optional

from . import ClawBot
from .config import Settings, configure_logging
from .llm import Echo
from .models import InboundMessage
from .transport import Recorder, Telegram

logger = logging.getLogger(__name__)


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    from .server import create_app

    app = create_app(ClawBot(settings=settings))
    app.run(host=args.host, port=args.port)
    return 0


def _briefing(settings: Settings, args: argparse.Namespace) -> int:
    bot = ClawBot(settings=settings)
    try:
        bot.run_daily_briefing()
    finally:
        bot.close()
    return 0


def _chat(settings: Settings, args: argparse.Namespace) -> int:
    transport = Recorder()
    bot = ClawBot(
        settings=settings,
        llm=Echo() if args.echo else None,
        transport=transport,
    )
    print("ClawBot local chat. Ctrl-D to quit.")
    for line in sys.stdin:
        text = line.strip()
        if not text:
            continue
        print(bot.handle_message(InboundMessage(chat_id=args.chat_id, text=text)))
    bot.close()
    return 0


def _set_webhook(settings: Settings, args: argparse.Namespace) -> int:
    if not settings.telegram_token:
        logger.error("CLAWBOT_TELEGRAM_TOKEN is not set")
        return 1
    Telegram(settings.telegram_token).set_webhook(args.url, settings.webhook_secret or None)
    logger.info("Webhook set to %s", args.url)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clawbot", description="Telegram assistant with tools.")
    parser.add_argument("--log-level", default=None, help="Overrides CLAWBOT_LOG_LEVEL.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the Telegram webhook server.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)
    serve.set_defaults(func=_serve)

    briefing = commands.add_parser("briefing", help="Send the daily job briefing to subscribed chats.")
    briefing.set_defaults(func=_briefing)

    chat = commands.add_parser("chat", help="Chat with the bot from the terminal.")
    chat.add_argument("--chat-id", default="local")
    chat.add_argument("--echo", action="store_true", help="Use the offline Echo model.")
    chat.set_defaults(func=_chat)

    webhook = commands.add_parser("set-webhook", help="Point Telegram at a public webhook URL.")
    webhook.add_argument("url")
    webhook.set_defaults(func=_set_webhook)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {"log_level": args.log_level} if args.log_level else {}
    settings = Settings(**overrides)
    configure_logging(settings.log_level)
    return args.func(settings, args)
