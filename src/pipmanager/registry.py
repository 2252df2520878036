"""PyPI search-page client.

The index offers no search API, so results are scraped from the HTML search
page. Only two fragments matter (the results list and the pagination bar)
and both are cut out of the raw response by their structural markers before
being parsed as small standalone trees. The markers below are the whole
compatibility surface; revisit them if the upstream page layout changes.
"""

from __future__ import annotations

import html
import re
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import httpx
import structlog

from pipmanager.cancel import race
from pipmanager.config import SearchSettings
from pipmanager.errors import ErrorCode, NoResultError, PipManagerError
from pipmanager.models.search import SearchPage, SearchResultItem

if TYPE_CHECKING:
    from pipmanager.cancel import CancelToken

log = structlog.get_logger()

_RESULTS_RE = re.compile(
    r'<ul class="unstyled" aria-label="Search results">.*?</ul>',
    re.DOTALL,
)
_PAGINATION_RE = re.compile(
    r'<div class="button-group button-group--pagination">.*?</div>',
    re.DOTALL,
)
_ENTITY_RE = re.compile(r"&([a-zA-Z][a-zA-Z0-9]*);")
_XML_ENTITIES = frozenset({"amp", "lt", "gt", "quot", "apos"})


def build_http_client(settings: SearchSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client used for search requests."""
    settings = settings or SearchSettings()
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"Accept": "text/html"},
    )


class RegistryClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: SearchSettings | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or SearchSettings()

    def build_params(self, keyword: str, page: int) -> dict[str, str | int]:
        params: dict[str, str | int] = {"q": keyword, "page": page}
        if not keyword:
            params["c"] = self._settings.default_category
        return params

    async def search(
        self,
        keyword: str,
        page: int = 1,
        cancel_token: CancelToken | None = None,
    ) -> SearchPage:
        """Fetch one page of search results.

        Raises ``NoResultError`` when the page has no results list at all,
        ``OperationCancelledError`` when ``cancel_token`` fires (the request is
        aborted), and ``PipManagerError(SEARCH_FAILED)`` on HTTP or network
        failures.
        """
        keyword = keyword.strip()
        page = max(page, 1)
        params = self.build_params(keyword, page)
        log.info("search_request", keyword=keyword, page=page)

        try:
            response = await race(
                self._client.get(self._settings.url, params=params),
                cancel_token,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PipManagerError(
                ErrorCode.SEARCH_FAILED,
                f"Search request failed with HTTP {exc.response.status_code}",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise PipManagerError(
                ErrorCode.SEARCH_FAILED,
                f"Search request failed: {exc}",
                recoverable=True,
            ) from exc

        return parse_search_page(response.text, keyword, page, base_url=str(response.url))


def parse_search_page(
    body: str,
    keyword: str,
    page: int,
    base_url: str = "https://pypi.org/",
) -> SearchPage:
    results_match = _RESULTS_RE.search(body)
    if results_match is None:
        log.info("search_no_results", keyword=keyword, page=page)
        raise NoResultError(keyword)

    items = parse_results(results_match.group(0), base_url)

    pagination_match = _PAGINATION_RE.search(body)
    total_pages = 1
    if pagination_match is not None:
        total_pages = parse_total_pages(pagination_match.group(0), page)
    # never report fewer pages than the one just shown
    total_pages = max(total_pages, page)

    log.debug("search_parsed", keyword=keyword, page=page, items=len(items), total=total_pages)
    return SearchPage(items=items, total_pages=total_pages)


def parse_results(fragment: str, base_url: str = "https://pypi.org/") -> list[SearchResultItem]:
    root = _parse_fragment(fragment)
    items: list[SearchResultItem] = []
    for entry in root.iter("li"):
        labels = [_text(span) for span in entry.iter("span")]
        if len(labels) < 2:
            continue

        update_time = ""
        time_el = next(entry.iter("time"), None)
        if time_el is not None:
            update_time = time_el.get("datetime") or _text(time_el)

        desc_el = next(entry.iter("p"), None)
        link_el = next(entry.iter("a"), None)
        href = link_el.get("href") if link_el is not None else None

        items.append(
            SearchResultItem(
                name=labels[0],
                version=labels[1],
                description=_text(desc_el) if desc_el is not None else "",
                update_time=update_time,
                index=len(items),
                url=urljoin(base_url, href) if href else None,
            )
        )
    return items


def parse_total_pages(fragment: str, page: int) -> int:
    """Total page count from the pagination bar: the link before "Next"."""
    root = _parse_fragment(fragment)
    links = list(root.iter("a"))
    if len(links) < 2:
        return page
    try:
        return int(_text(links[-2]))
    except ValueError:
        return page


def _parse_fragment(fragment: str) -> ET.Element:
    try:
        return ET.fromstring(_ENTITY_RE.sub(_convert_entity, fragment))
    except ET.ParseError as exc:
        raise PipManagerError(
            ErrorCode.INVALID_OUTPUT,
            f"Could not parse search page markup: {exc}",
            recoverable=True,
        ) from exc


def _convert_entity(match: re.Match[str]) -> str:
    # ElementTree only knows the five XML entities; resolve the HTML ones
    if match.group(1) in _XML_ENTITIES:
        return match.group(0)
    return html.escape(html.unescape(match.group(0)), quote=False)


def _text(element: ET.Element) -> str:
    return " ".join("".join(element.itertext()).split())
