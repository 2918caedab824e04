"""
Metadata enrichment for bookmarks.

Turns a raw bookmark URL into a text summary and a favicon URL using a
text-extraction service (r.jina.ai). The service returns plain text with a
header block (Title, URL Source, Published Time, warnings) followed by markdown
content. When the service is unavailable, a heuristic summary is derived from
the URL itself, so enrichment always produces a result.
"""
import logging
import re
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

SUMMARY_SERVICE_URL = 'https://r.jina.ai/'
USER_AGENT = 'Mozilla/5.0 (compatible; BookmarkBot/1.0)'
DEFAULT_TIMEOUT = 15.0

EMPTY_SUMMARY = 'Content retrieved from URL'
STATIC_FALLBACK_SUMMARY = 'Interesting content to explore'

# Ordered: the first matching keyword group wins
DOMAIN_CATEGORIES: list[tuple[tuple[str, ...], str]] = [
    (('github',), 'Open source projects and code repositories on {domain}'),
    (('stackoverflow', 'stack'), 'Programming questions and developer discussions on {domain}'),
    (('medium', 'blog'), 'Articles and insights from {domain}'),
    (('youtube', 'video'), 'Video content and tutorials from {domain}'),
    (('news', 'reuters', 'bbc'), 'Latest news and updates from {domain}'),
    (('wikipedia', 'wiki'), 'Knowledge and information from {domain}'),
]
DEFAULT_CATEGORY = 'Valuable content and resources from {domain}'

_MARKDOWN_PREFIX_RE = re.compile(r'^[ \t]*(?:Markdown Content:[ \t]*)+', re.MULTILINE)
_HEADER_LINE_RE = re.compile(
    r'^[ \t]*(?:Title|URL Source|Published Time|Warning):.*$', re.MULTILINE,
)
_EXCESS_NEWLINES_RE = re.compile(r'\n{3,}')
_EXCESS_SPACES_RE = re.compile(r' {2,}')
_SLUG_SEPARATOR_RE = re.compile(r'[-_]')
_PAGE_EXTENSION_RE = re.compile(r'\.(?:html|php|aspx?)$', re.IGNORECASE)


@dataclass
class UrlMetadata:
    """Derived bookmark metadata."""

    summary: str
    favicon: str


@dataclass
class FetchResult:
    """Result of calling the text-extraction service."""

    text: str | None
    status_code: int | None
    error: str | None

    @property
    def ok(self) -> bool:
        """True when the service answered with a usable body."""
        return self.error is None and self.text is not None


def normalize_url(url: str) -> str:
    """Prefix https:// to anything that does not already start with http."""
    return url if url.startswith('http') else f'https://{url}'


async def fetch_summary(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    base_url: str = SUMMARY_SERVICE_URL,
) -> FetchResult:
    """
    Fetch the extracted text of a page from the text-extraction service.

    The target URL is appended to the service URL as-is; the service accepts
    raw URLs after its path, so no percent-encoding is applied.

    Best-effort: returns error info on failure rather than raising.

    Args:
        url:
            Normalized URL of the page to summarize.
        timeout:
            Request timeout in seconds. The request is aborted when exceeded.
        base_url:
            Text-extraction service URL the target is appended to.

    Returns:
        FetchResult with the raw response body or error info.
    """
    service_url = f'{base_url}{url}'
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={'Accept': 'text/plain', 'User-Agent': USER_AGENT},
        ) as client:
            response = await client.get(service_url)

            if not response.is_success:
                return FetchResult(
                    text=None,
                    status_code=response.status_code,
                    error=f"HTTP {response.status_code}",
                )
            return FetchResult(
                text=response.text,
                status_code=response.status_code,
                error=None,
            )
    except httpx.TimeoutException:
        return FetchResult(text=None, status_code=None, error="Request timed out")
    except httpx.RequestError as e:
        return FetchResult(text=None, status_code=None, error=f"Request failed: {e}")
    except httpx.InvalidURL as e:
        return FetchResult(text=None, status_code=None, error=f"Invalid URL: {e}")


def clean_summary(text: str) -> str:
    """
    Remove extraction artifacts from the service output, keeping the full body.

    Pure function with no I/O. Applying it to its own output is a no-op.

    - Strips "Markdown Content:" prefixes.
    - Drops the "Title:", "URL Source:" and "Published Time:" header lines and
      any "Warning:" line.
    - Collapses runs of spaces to one (before matching the header lines) and
      3+ consecutive newlines to 2.

    Args:
        text: Raw plain-text body returned by the service.

    Returns:
        Cleaned text, or a placeholder sentence when nothing is left.
    """
    # Spaces first: "URL  Source:" must be dropped now, not on a second pass
    cleaned = _EXCESS_SPACES_RE.sub(' ', text.strip())
    cleaned = _MARKDOWN_PREFIX_RE.sub('', cleaned)
    cleaned = _HEADER_LINE_RE.sub('', cleaned)
    cleaned = _EXCESS_NEWLINES_RE.sub('\n\n', cleaned)
    cleaned = cleaned.strip()
    return cleaned or EMPTY_SUMMARY


def derive_favicon(url: str) -> str:
    """Return the conventional /favicon.ico location for a URL, or '' if unparseable."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return ''
    if not parsed.scheme or not hostname:
        return ''
    return f'{parsed.scheme}://{hostname}/favicon.ico'


def _readable_slug(segment: str) -> str:
    """Turn a URL slug like 'my-cool_article.html' into 'My Cool Article'."""
    words = _PAGE_EXTENSION_RE.sub('', _SLUG_SEPARATOR_RE.sub(' ', segment)).split(' ')
    return ' '.join(word[:1].upper() + word[1:] for word in words)


def _describe_domain(domain: str) -> str:
    for keywords, template in DOMAIN_CATEGORIES:
        if any(keyword in domain for keyword in keywords):
            return template.format(domain=domain)
    return DEFAULT_CATEGORY.format(domain=domain)


def fallback_metadata(url: str) -> UrlMetadata:
    """
    Build metadata from the URL alone, for when the service cannot be used.

    Total and deterministic: the same URL always yields the same result and
    the function never raises.

    Args:
        url: Normalized URL.

    Returns:
        UrlMetadata with a non-empty summary.
    """
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
        if not hostname:
            raise ValueError(f"Invalid URL (no hostname): {url}")

        domain = hostname.removeprefix('www.')
        segments = [part for part in parsed.path.split('/') if part and part != 'index.html']
        last_segment = _readable_slug(segments[-1]).strip() if segments else ''

        if last_segment:
            summary = f'Explore "{last_segment}" on {domain}'
        else:
            summary = _describe_domain(domain)

        return UrlMetadata(summary=summary, favicon=derive_favicon(url))
    except Exception:
        return UrlMetadata(summary=STATIC_FALLBACK_SUMMARY, favicon='')


async def enrich_url(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    base_url: str = SUMMARY_SERVICE_URL,
) -> UrlMetadata:
    """
    Derive summary and favicon for a bookmark URL.

    Flow:
    1. Normalize the URL (add https:// when there is no scheme)
    2. Fetch extracted text from the service under the timeout
    3. On success, clean the text and derive the favicon
    4. On any failure, build fallback metadata from the URL

    Never raises: every failure ends in the fallback path.

    Args:
        url: URL as supplied by the user.
        timeout: Timeout for the service call, in seconds.
        base_url: Text-extraction service URL.

    Returns:
        UrlMetadata for the URL.
    """
    normalized_url = normalize_url(url)
    try:
        logger.info("Fetching summary for %s", normalized_url)
        result = await fetch_summary(normalized_url, timeout=timeout, base_url=base_url)
        if result.ok:
            summary = clean_summary(result.text)
            logger.info(
                "Fetched summary for %s (%d characters)", normalized_url, len(summary),
            )
            return UrlMetadata(summary=summary, favicon=derive_favicon(normalized_url))
        logger.warning(
            "Summary service failed for %s: %s", normalized_url, result.error,
        )
    except Exception:
        logger.exception("Unexpected error enriching %s", normalized_url)

    logger.warning("Using fallback metadata for %s", normalized_url)
    return fallback_metadata(normalized_url)
