"""Ability to read and modify the bot's own source code on GitHub."""

from typing import Optional, Tuple

from pydantic import BaseModel, Field

from ..github import split_repo
from .base import Skill, ToolContext, ToolSpec
from .github import REPO_KEY

FILE_CHARS = 10000


class ReadFileArgs(BaseModel):
    path: str = Field(..., description="Path to file (e.g. src/clawbot/engine.py)")
    owner: Optional[str] = Field(None, description="Repo owner (optional, defaults to current context)")
    repo: Optional[str] = Field(None, description="Repo name (optional, defaults to current context)")


class ModifyFileArgs(ReadFileArgs):
    content: str = Field(..., description="The FULL new content of the file")
    message: str = Field(..., min_length=1, description="Commit message explaining the change")


def resolve_repo(args: ReadFileArgs, ctx: ToolContext) -> Tuple[str, str]:
    """Explicit arguments win, then the chat's default repo, then the configured one."""
    default_owner, default_repo = split_repo(
        ctx.store.get_value(REPO_KEY + ctx.chat_id) or ctx.settings.default_repo
    )
    return args.owner or default_owner, args.repo or default_repo


def read_file(args: ReadFileArgs, ctx: ToolContext) -> str:
    owner, repo = resolve_repo(args, ctx)
    content = ctx.github.fetch_file_content(owner, repo, args.path)
    return f"📄 Content of {args.path}:\n\n{content[:FILE_CHARS]}"


def modify_file(args: ModifyFileArgs, ctx: ToolContext) -> str:
    owner, repo = resolve_repo(args, ctx)
    result = ctx.github.update_file_content(owner, repo, args.path, args.content, args.message)
    commit_url = result.get("commit", {}).get("html_url", "")
    return (
        f"✅ Successfully updated {args.path}!\nCommit: {commit_url}\n\n"
        "⚠️ Note: You may need to redeploy the bot for changes to take effect."
    )


self_improvement_skill = Skill(
    name="self_improvement",
    description="Ability to read and modify bot source code",
    tools=[
        ToolSpec(
            name="read_file",
            description="Read a file from the bot's source code to understand how it works.",
            handler=read_file,
            args_model=ReadFileArgs,
        ),
        ToolSpec(
            name="modify_file",
            description="Modify a file in the bot's source code. Use this to add features or fix bugs.",
            handler=modify_file,
            args_model=ModifyFileArgs,
        ),
    ],
)
