"""A small GitHub REST client used by the github and self_improvement skills."""

import base64
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
USER_AGENT = "ClawBot"


class GitHubError(RuntimeError):
    """A non-successful GitHub API response."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"GitHub API Error ({status_code}): {message}")
        self.status_code = status_code


def parse_pr_url(url: str) -> Optional[Tuple[str, str, int]]:
    """Returns ``(owner, repo, number)`` for a pull request URL, else None."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.netloc.lower() not in ("github.com", "www.github.com"):
        return None
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) >= 4 and parts[2] == "pull" and parts[3].isdigit():
        return parts[0], parts[1], int(parts[3])
    return None


class GitHub:
    """Thin wrapper over the handful of GitHub endpoints the bot needs.

    Methods return plain text or dicts ready to be handed to the model and
    raise ``GitHubError`` on API failures.
    """

    def __init__(
        self,
        token: str = "",
        client: Optional[httpx.Client] = None,
        timeout: float = 15.0,
    ):
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github.v3+json",
        }
        if token:
            headers["Authorization"] = f"token {token}"
        self.client = client or httpx.Client(base_url=API_URL, timeout=timeout)
        self.client.headers.update(headers)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self.client.request(method, path, **kwargs)
        if response.is_error:
            logger.warning("GitHub %s %s -> %s", method, path, response.status_code)
            raise GitHubError(response.status_code, _error_message(response))
        return response.json()

    def fetch_user_repos(self, limit: int = 10) -> str:
        repos = self._request(
            "GET",
            "/user/repos",
            params={"sort": "updated", "per_page": limit, "type": "all"},
        )
        if not repos:
            return "No repositories found."
        return "\n".join(
            f"📂 {r['full_name']} ({'🔒 private' if r.get('private') else 'public'})"
            for r in repos
        )

    def fetch_issues(self, owner: str, repo: str, limit: int = 5) -> str:
        issues = self._request(
            "GET",
            f"/repos/{owner}/{repo}/issues",
            params={"state": "open", "sort": "updated", "per_page": limit},
        )
        if not issues:
            return "No open issues found."
        lines = []
        for issue in issues:
            kind = "[PR]" if "pull_request" in issue else "[Issue]"
            lines.append(
                f"#{issue['number']} {kind} {issue['title']} (by {issue['user']['login']})"
            )
        return "\n".join(lines)

    def fetch_pr(self, owner: str, repo: str, number: int, max_files: int = 10) -> str:
        pr = self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        try:
            files = self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}/files")
        except GitHubError:
            files = []
        file_list = "\n".join(
            f"- {f['filename']} ({f['status']})" for f in files[:max_files]
        )
        return (
            f"Title: {pr['title']}\n"
            f"Author: {pr['user']['login']}\n"
            f"State: {pr['state']}\n"
            f"Description: {pr.get('body') or ''}\n\n"
            f"Files Changed (Top {max_files}):\n{file_list}\n\n"
            f"Ref: {pr['html_url']}"
        )

    def create_comment(self, owner: str, repo: str, number: int, body: str) -> str:
        comment = self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{number}/comments",
            json={"body": body},
        )
        return comment.get("html_url", "")

    def update_issue_state(self, owner: str, repo: str, number: int, state: str) -> str:
        issue = self._request(
            "PATCH", f"/repos/{owner}/{repo}/issues/{number}", json={"state": state}
        )
        return issue["state"]

    def fetch_file_content(self, owner: str, repo: str, path: str) -> str:
        data = self._request("GET", f"/repos/{owner}/{repo}/contents/{path}")
        return _decode_content(data)

    def update_file_content(
        self, owner: str, repo: str, path: str, content: str, message: str
    ) -> Dict[str, Any]:
        """Commits ``content`` as the new version of an existing file."""
        current = self._request("GET", f"/repos/{owner}/{repo}/contents/{path}")
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "sha": current["sha"],
        }
        return self._request("PUT", f"/repos/{owner}/{repo}/contents/{path}", json=body)

    def close(self):
        self.client.close()


def _decode_content(data: Dict[str, Any]) -> str:
    content = data.get("content") or ""
    if data.get("encoding") == "base64":
        return base64.b64decode(content.replace("\n", "")).decode("utf-8", errors="replace")
    return content


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", response.text)
    except ValueError:
        return response.text or response.reason_phrase


def split_repo(full_name: str) -> Tuple[str, str]:
    owner, _, repo = full_name.partition("/")
    if not owner or not repo:
        raise ValueError(f"Expected 'owner/repo', got {full_name!r}")
    return owner, repo
