"""GitHub integration for managing repos and issues."""

from typing import Literal

from pydantic import BaseModel, Field

from ..github import split_repo
from .base import NoArgs, Skill, ToolContext, ToolSpec

REPO_KEY = "repo:"
README_CHARS = 5000


class RepoArgs(BaseModel):
    owner: str = Field(..., description="Repository owner (e.g. facebook)")
    repo: str = Field(..., description="Repository name (e.g. react)")


class SetRepoArgs(BaseModel):
    repo: str = Field(..., description="Full repository name (e.g. facebook/react)")


class NumberedArgs(RepoArgs):
    number: int = Field(..., ge=1, description="Issue or pull request number")


class CommentArgs(NumberedArgs):
    body: str = Field(..., min_length=1, description="Markdown body of the comment")


class IssueStateArgs(NumberedArgs):
    state: Literal["open", "closed"] = Field(..., description="New state")


def get_repos(args: NoArgs, ctx: ToolContext) -> str:
    return ctx.github.fetch_user_repos()


def get_issues(args: RepoArgs, ctx: ToolContext) -> str:
    return ctx.github.fetch_issues(args.owner, args.repo)


def set_repo(args: SetRepoArgs, ctx: ToolContext) -> str:
    split_repo(args.repo)
    ctx.store.set_value(REPO_KEY + ctx.chat_id, args.repo)
    return f"Default repository set to {args.repo}"


def get_repo_readme(args: RepoArgs, ctx: ToolContext) -> str:
    content = ctx.github.fetch_file_content(args.owner, args.repo, "README.md")
    if len(content) > README_CHARS:
        content = content[:README_CHARS] + "..."
    return f"📄 README for {args.owner}/{args.repo}:\n\n{content}"


def get_pull_request(args: NumberedArgs, ctx: ToolContext) -> str:
    return ctx.github.fetch_pr(args.owner, args.repo, args.number)


def comment_on_issue(args: CommentArgs, ctx: ToolContext) -> str:
    url = ctx.github.create_comment(args.owner, args.repo, args.number, args.body)
    return f"Comment posted on {args.owner}/{args.repo}#{args.number}: {url}"


def set_issue_state(args: IssueStateArgs, ctx: ToolContext) -> str:
    state = ctx.github.update_issue_state(args.owner, args.repo, args.number, args.state)
    return f"{args.owner}/{args.repo}#{args.number} is now {state}"


github_skill = Skill(
    name="github",
    description="GitHub integration for managing repos and issues",
    tools=[
        ToolSpec(
            name="get_repos",
            description="Get list of user's recently updated repositories",
            handler=get_repos,
        ),
        ToolSpec(
            name="get_issues",
            description="Get open issues for a repository",
            handler=get_issues,
            args_model=RepoArgs,
        ),
        ToolSpec(
            name="set_repo",
            description="Set the default repository for this chat context",
            handler=set_repo,
            args_model=SetRepoArgs,
        ),
        ToolSpec(
            name="get_repo_readme",
            description=(
                "Get the README file content of a repository. "
                "Use this to explain what a repo does."
            ),
            handler=get_repo_readme,
            args_model=RepoArgs,
        ),
        ToolSpec(
            name="get_pull_request",
            description="Get title, author, description and changed files of a pull request",
            handler=get_pull_request,
            args_model=NumberedArgs,
        ),
        ToolSpec(
            name="comment_on_issue",
            description="Post a comment on an issue or pull request",
            handler=comment_on_issue,
            args_model=CommentArgs,
        ),
        ToolSpec(
            name="set_issue_state",
            description="Close or reopen an issue or pull request",
            handler=set_issue_state,
            args_model=IssueStateArgs,
        ),
    ],
)
