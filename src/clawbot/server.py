"""Flask webhook that receives Telegram updates."""

import hmac
import logging
from typing import Optional

from flask import Flask, request

from . import ClawBot
from .config import configure_logging
from .models import InboundMessage

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def create_app(bot: Optional[ClawBot] = None) -> Flask:
    """Builds the webhook app around ``bot`` (a default ClawBot if omitted).

    ``POST /`` and ``POST /webhook`` accept updates. Any well-formed update
    is acknowledged with ``OK`` even when the reply failed, so Telegram does
    not redeliver it.
    """
    if bot is None:
        bot = ClawBot()
        configure_logging(bot.settings.log_level)

    app = Flask(__name__)
    app.config["CLAWBOT"] = bot
    secret = bot.settings.webhook_secret

    @app.route("/", methods=["GET", "POST"])
    @app.route("/webhook", methods=["GET", "POST"])
    def webhook():
        if request.method == "GET":
            return "OK"

        if secret and not hmac.compare_digest(request.headers.get(SECRET_HEADER, ""), secret):
            logger.warning("Rejected update with a bad secret token")
            return "Forbidden", 403

        update = request.get_json(silent=True)
        if not isinstance(update, dict):
            return "Bad Request", 400

        if InboundMessage.from_telegram(update) is None:
            logger.debug("Ignoring update %s without a usable message", update.get("update_id"))
            return "No message"

        bot.handle_update(update)
        return "OK"

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "tools": len(bot.skills)}

    return app
