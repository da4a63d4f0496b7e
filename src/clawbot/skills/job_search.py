"""Tools for analyzing CVs and finding jobs."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from ..web import FetchError, html_to_text
from .base import Skill, ToolContext, ToolSpec

logger = logging.getLogger(__name__)

PREFS_KEY = "prefs:"
REMOTEOK_URL = "https://remoteok.com/api"
CV_CHARS = 8000
MIN_CV_CHARS = 100
TOP_JOBS = 5

_GOOGLE_DOC_RE = re.compile(r"docs\.google\.com/document/d/([a-zA-Z0-9_-]+)")


class ReadCVArgs(BaseModel):
    file_url: str = Field(..., description="The URL of the file or Google Doc to read.")


class SearchJobsArgs(BaseModel):
    query: str = Field(
        "software", description='Job title or keywords (e.g., "Senior React Developer").'
    )
    location: Optional[str] = Field(
        None, description='Location to search in (e.g., "Remote", "London").'
    )


class JobPreferences(BaseModel):
    role: str = Field(..., description="Preferred job role.")
    keywords: List[str] = Field(..., description="Key skills or technologies.")
    location: str = Field("Remote", description="Preferred location.")


def google_doc_export_url(url: str) -> str:
    """Rewrites a Google Docs link to its plain-text export URL."""
    match = _GOOGLE_DOC_RE.search(url)
    if not match:
        return url
    return f"https://docs.google.com/document/d/{match.group(1)}/export?format=txt"


def search_tags(query: str) -> List[str]:
    """Splits a free-text query into RemoteOK tags, dropping words under 3 chars."""
    words = re.sub(r"[^\w\s]", " ", query.lower()).split()
    return [w for w in words if len(w) > 2]


def read_cv(args: ReadCVArgs, ctx: ToolContext) -> str:
    url = google_doc_export_url(args.file_url)
    try:
        response = ctx.web.get(url)
    except FetchError as e:
        return f"[System] Failed to fetch CV URL: {e}. Please copy-paste the text."

    if "application/pdf" in response.headers.get("content-type", ""):
        return (
            "[System] I downloaded the PDF but I lack a built-in PDF parser. "
            "Please copy-paste the text of your CV directly."
        )

    text = html_to_text(response.text)[:CV_CHARS]
    if len(text) < MIN_CV_CHARS:
        return (
            "[System] Content read from URL was too short or empty. It might be "
            f'protected or require login. Text found: "{text}". '
            "Please copy-paste your CV text instead."
        )
    return (
        "[System] Successfully read content from URL.\n\n"
        f"--- START OF CV CONTENT ---\n{text}\n--- END OF CV CONTENT ---\n\n"
        "(Please analyze this content for skills and roles)"
    )


def _fetch_remoteok(ctx: ToolContext, tags: List[str]) -> list:
    data = ctx.web.get(REMOTEOK_URL, params={"tag": ",".join(tags)}).json()
    # the first element is the API's legal notice
    return data[1:] if isinstance(data, list) else []


def _format_date(value: Optional[str]) -> str:
    if not value:
        return "n/a"
    try:
        return datetime.fromisoformat(value).astimezone(timezone.utc).date().isoformat()
    except ValueError:
        return value


def search_jobs(args: SearchJobsArgs, ctx: ToolContext) -> str:
    tags = search_tags(args.query) or ["software"]
    logger.info("Searching RemoteOK with tags %s", tags)
    try:
        jobs = _fetch_remoteok(ctx, tags)
        # all tags together often match nothing; the first one is the broadest
        if not jobs and len(tags) > 1:
            logger.info("No results for %s, retrying with %s", tags, tags[0])
            jobs = _fetch_remoteok(ctx, tags[:1])
    except (FetchError, ValueError) as e:
        return f"[System] Failed to search jobs: {e}."

    location = (args.location or "").lower()
    if location and location != "remote":
        jobs = [
            j
            for j in jobs
            if location in (j.get("location") or "").lower()
            or location in (j.get("description") or "").lower()
        ]

    if not jobs:
        return (
            f'[System] No jobs found on RemoteOK for tags "{",".join(tags)}". '
            'Try broader keywords (e.g. "software", "engineer", "react").'
        )

    listing = "\n\n".join(
        f"{i}. **{j.get('position')}** at {j.get('company')}\n"
        f"   📍 {j.get('location') or 'Remote'}\n"
        f"   📅 {_format_date(j.get('date'))}\n"
        f"   🔗 [Apply Here]({j.get('url')})"
        for i, j in enumerate(jobs[:TOP_JOBS], start=1)
    )
    return f"[System] Found {len(jobs)} jobs on RemoteOK. Here are the top {TOP_JOBS}:\n\n{listing}"


def save_job_preferences(args: JobPreferences, ctx: ToolContext) -> str:
    payload = args.model_dump()
    ctx.store.set_value(PREFS_KEY + ctx.chat_id, json.dumps(payload))
    return f"Saved preferences for Daily Job Briefing: {json.dumps(payload)}"


def load_job_preferences(store, chat_id: str) -> Optional[JobPreferences]:
    raw = store.get_value(PREFS_KEY + chat_id)
    if not raw:
        return None
    return JobPreferences.model_validate_json(raw)


job_search_skill = Skill(
    name="job_search",
    description="Tools for analyzing CVs and finding jobs.",
    tools=[
        ToolSpec(
            name="read_cv",
            description=(
                "Extracts text from a CV (PDF or Google Doc URL) to understand "
                "the user's skills and experience."
            ),
            handler=read_cv,
            args_model=ReadCVArgs,
        ),
        ToolSpec(
            name="search_jobs",
            description="Searches for jobs based on keywords and location.",
            handler=search_jobs,
            args_model=SearchJobsArgs,
        ),
        ToolSpec(
            name="save_job_preferences",
            description="Saves the user's job preferences for daily updates.",
            handler=save_job_preferences,
            args_model=JobPreferences,
        ),
    ],
)
