"""Web browsing capabilities."""

import logging

from pydantic import BaseModel, Field, field_validator

from ..web import BrowserUnavailableError, FetchError, is_valid_url
from .base import Skill, ToolContext, ToolSpec

logger = logging.getLogger(__name__)

PAGE_CHARS = 5000


class BrowseArgs(BaseModel):
    url: str = Field(..., description="The URL to browse")

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_url(value):
            raise ValueError("must be an http(s) URL")
        return value


def browse_page(args: BrowseArgs, ctx: ToolContext) -> str:
    """Renders the page in a browser, falling back to a plain fetch."""
    try:
        page = ctx.web.browse_page(args.url)
        return (
            f"Browsed content from {args.url}:\nTitle: {page.title}\n\n"
            f"{page.text[:PAGE_CHARS]}..."
        )
    except (BrowserUnavailableError, FetchError) as e:
        browser_error = e
        logger.info("Browser failed for %s (%s), falling back to fast fetch", args.url, e)

    try:
        page = ctx.web.fetch_article(args.url)
    except FetchError as e:
        return (
            "⚠️ Couldn't load the page. The site might be blocking bots. "
            f"Error: {browser_error}; fast fetch: {e}"
        )
    return f"(Fetched via Fast Mode) Content from {args.url}:\n\n{page.text[:PAGE_CHARS]}..."


browser_skill = Skill(
    name="browser",
    description="Web browsing capabilities",
    tools=[
        ToolSpec(
            name="browse_page",
            description=(
                "Browse a web page to read its content. Use this when the user asks "
                "to read, summarize, or analyze a URL."
            ),
            handler=browse_page,
            args_model=BrowseArgs,
        )
    ],
)
