"""GitHub issue fetching.

Turns a GitHub issue URL into a ``GitHubIssue``:
- parse_issue_url: pure shape check (host + owner + repo + numeric id)
- ApifyIssueFetcher: hosted scraper actor, used in production
- HtmlIssueFetcher: direct page fetch with light HTML parsing, used elsewhere
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any, Protocol

import httpx

from osfit.config import Settings, get_settings
from osfit.errors import IssueFetchError, ValidationError
from osfit.schemas import GitHubIssue, IssueComment, IssueRef


logger = logging.getLogger(__name__)

ISSUE_URL_PATTERN = re.compile(
    r"^https?://(?:www\.)?github\.com/"
    r"(?P<owner>[A-Za-z0-9](?:[A-Za-z0-9-]{0,38}))/"
    r"(?P<repo>[A-Za-z0-9._-]+)/issues/"
    r"(?P<number>\d+)"
    r"/?(?:[?#].*)?$"
)

BODY_CHAR_LIMIT = 500

USER_AGENT = "Mozilla/5.0 (compatible; OSFIT/1.0)"


def parse_issue_url(issue_url: str) -> IssueRef:
    """Validate a GitHub issue URL and split it into its parts.

    Raises:
        ValidationError: If the URL is not a github.com issue URL
    """
    match = ISSUE_URL_PATTERN.match((issue_url or "").strip())
    if not match:
        raise ValidationError(
            "issue_url must look like https://github.com/<owner>/<repo>/issues/<number>"
        )
    return IssueRef(
        owner=match.group("owner"),
        repo=match.group("repo"),
        number=int(match.group("number")),
    )


class IssueFetcher(Protocol):
    """Anything that can turn an issue URL into structured issue data."""

    async def fetch(self, issue_url: str) -> GitHubIssue:
        ...

    async def close(self) -> None:
        ...


# =============================================================================
# Apify actor
# =============================================================================

class ApifyIssueFetcher:
    """Runs the hosted GitHub scraper actor and reads its first dataset item."""

    def __init__(
        self,
        api_key: str,
        actor_id: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        if not api_key:
            raise ValueError("Apify API key is required")
        self.actor_id = actor_id or settings.apify_actor_id
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.apify_base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout or settings.github_timeout_seconds * 4,
            transport=transport,
        )

    async def fetch(self, issue_url: str) -> GitHubIssue:
        ref = parse_issue_url(issue_url)

        try:
            response = await self._client.post(
                f"/acts/{self.actor_id}/run-sync-get-dataset-items",
                json={"url": issue_url, "type": "issue"},
            )
            response.raise_for_status()
            items = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Apify actor returned {e.response.status_code} for {issue_url}")
            raise IssueFetchError(
                f"Failed to fetch issue data: scraper returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Apify actor call failed for {issue_url}: {e!r}")
            raise IssueFetchError(f"Failed to fetch issue data: {e}") from e

        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            logger.warning(f"Apify actor returned no usable item for {issue_url}")
            raise IssueFetchError("Failed to fetch issue data")

        return _issue_from_item(items[0], ref, issue_url)

    async def close(self) -> None:
        await self._client.aclose()


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _issue_from_item(item: dict[str, Any], ref: IssueRef, issue_url: str) -> GitHubIssue:
    comments = [
        IssueComment(
            author=str(c.get("author") or ""),
            body=str(c.get("body") or ""),
            created_at=str(c["created_at"]) if c.get("created_at") else None,
        )
        for c in _as_list(item.get("comments"))
        if isinstance(c, dict)
    ]

    try:
        number = int(item.get("number") or ref.number)
    except (TypeError, ValueError):
        number = ref.number

    return GitHubIssue(
        title=str(item.get("title") or f"Issue #{ref.number}"),
        body=str(item.get("body") or ""),
        number=number,
        url=str(item.get("url") or issue_url),
        state=str(item.get("state") or "unknown"),
        labels=[str(label) for label in _as_list(item.get("labels")) if label is not None],
        comments=comments,
    )


# =============================================================================
# Direct HTML fetch
# =============================================================================

_TITLE_BDI = re.compile(r'<bdi class="js-issue-title[^"]*"[^>]*>([^<]+)</bdi>')
_TITLE_TAG = re.compile(r"<title>([^<]+)</title>")
_COMMENT_BODY = re.compile(r'<td class="d-block comment-body[^"]*">[\s\S]*?<p[^>]*>([^<]+)</p>')
_MARKDOWN_BODY = re.compile(r'class="markdown-body[^"]*"[^>]*>([\s\S]*?)</div>')
_LABEL = re.compile(r'class="[^"]*IssueLabel[^"]*"[^>]*>([^<]+)<')
_TAG = re.compile(r"<[^>]+>")
_SPACE = re.compile(r"\s+")


def parse_issue_html(page: str, ref: IssueRef, issue_url: str) -> GitHubIssue:
    """Extract issue fields from a GitHub issue page.

    Only the fields visible in server-rendered HTML are recovered; comments
    are not parsed.
    """
    title = f"Issue #{ref.number}"
    title_match = _TITLE_BDI.search(page)
    page_title_match = _TITLE_TAG.search(page)
    if title_match:
        title = html.unescape(title_match.group(1)).strip()
    elif page_title_match:
        # "<title> · Issue #42 · owner/repo"
        title = html.unescape(page_title_match.group(1)).split("·")[0].strip() or title

    body = ""
    comment_match = _COMMENT_BODY.search(page)
    markdown_match = _MARKDOWN_BODY.search(page)
    if comment_match:
        body = html.unescape(comment_match.group(1)).strip()
    elif markdown_match:
        text = _SPACE.sub(" ", _TAG.sub(" ", markdown_match.group(1))).strip()
        body = html.unescape(text)[:BODY_CHAR_LIMIT]

    state = "unknown"
    if "State--open" in page or 'status="open"' in page:
        state = "open"
    elif "State--closed" in page or 'status="closed"' in page:
        state = "closed"

    labels: list[str] = []
    for match in _LABEL.finditer(page):
        label = html.unescape(match.group(1)).strip()
        if label and label not in labels:
            labels.append(label)

    return GitHubIssue(
        title=title,
        body=body or f"(Issue body could not be parsed. Title: {title})",
        number=ref.number,
        url=issue_url,
        state=state,
        labels=labels,
        comments=[],
    )


class HtmlIssueFetcher:
    """Fetches the public issue page directly from github.com."""

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self._client = httpx.AsyncClient(
            headers={"Accept": "text/html", "User-Agent": USER_AGENT},
            timeout=timeout or settings.github_timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )

    async def fetch(self, issue_url: str) -> GitHubIssue:
        ref = parse_issue_url(issue_url)

        try:
            response = await self._client.get(ref.url)
        except httpx.HTTPError as e:
            logger.warning(f"Fetching {issue_url} failed: {e!r}")
            raise IssueFetchError(f"Failed to fetch issue: network error ({type(e).__name__})") from e

        if response.status_code == 404:
            raise IssueFetchError("Issue not found. The repository may be private or the issue deleted.")
        if response.status_code >= 400:
            raise IssueFetchError(f"Failed to fetch issue: GitHub returned {response.status_code}")

        return parse_issue_html(response.text, ref, issue_url)

    async def close(self) -> None:
        await self._client.aclose()


def get_issue_fetcher(settings: Settings | None = None) -> IssueFetcher:
    """Hosted actor in production when a key is configured, direct fetch otherwise."""
    settings = settings or get_settings()
    if settings.environment == "production" and settings.apify_api_key:
        return ApifyIssueFetcher(api_key=settings.apify_api_key)
    return HtmlIssueFetcher()
