"""Website crawler that turns a page into a knowledge base entry."""

from datetime import datetime
from uuid import uuid4

import httpx
import structlog
from bs4 import BeautifulSoup

from chatly.core.config import settings
from chatly.core.exceptions import CrawlError, InvalidInput
from chatly.models import KnowledgeEntry, KnowledgeEntryType, KnowledgeSource
from chatly.storage.base import StorageBackend

logger = structlog.get_logger()

CONTENT_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li"]


def extract_page_text(html: str, selector: str | None = None) -> tuple[str, str]:
    """Pull the title and visible text out of an HTML page.

    With a CSS selector, returns the text of the matched elements; otherwise the
    text of paragraphs, headings and list items, one block per element.
    """
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text().strip() if title_tag else ""

    if selector:
        content = " ".join(el.get_text() for el in soup.select(selector)).strip()
    else:
        blocks = [el.get_text().strip() for el in soup.find_all(CONTENT_TAGS)]
        content = "\n\n".join(b for b in blocks if b)

    return title or "Untitled Page", content


class KnowledgeCrawler:
    """Fetches a web page and stores its text as a free-text knowledge entry."""

    def __init__(
        self,
        storage: StorageBackend,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.storage = storage
        self._client = client
        self.timeout = timeout or settings.crawler_timeout_seconds
        self.user_agent = user_agent or settings.crawler_user_agent

    async def fetch(self, url: str) -> str:
        """Fetch a page body."""
        try:
            if self._client is not None:
                response = await self._client.get(url, follow_redirects=True)
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    headers={"User-Agent": self.user_agent},
                ) as client:
                    response = await client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to fetch page", url=url, error=str(e))
            raise CrawlError(f"Failed to fetch {url}: {e}", url=url) from e
        return response.text

    async def crawl(
        self,
        tenant_id: str,
        url: str,
        selector: str | None = None,
    ) -> KnowledgeEntry:
        """Crawl ``url`` into the tenant's knowledge base.

        Raises:
            InvalidInput: If the URL is not http(s) or the page has no text
            CrawlError: If the page cannot be fetched
        """
        if not url or not url.startswith(("http://", "https://")):
            raise InvalidInput("URL is required and must be http(s)", field="url")

        html = await self.fetch(url)
        title, content = extract_page_text(html, selector)
        if not content:
            raise InvalidInput("No text content found on the page", field="selector")

        entry = KnowledgeEntry(
            id=str(uuid4()),
            tenant_id=tenant_id,
            type=KnowledgeEntryType.TEXT,
            content=content,
            metadata=KnowledgeSource(
                source="website_crawler",
                url=url,
                title=title,
                crawled_at=datetime.utcnow(),
                selector=selector,
            ),
        )
        await self.storage.save_knowledge_entry(entry)

        logger.info(
            "Crawled page into knowledge base",
            tenant_id=tenant_id,
            url=url,
            entry_id=entry.id,
            content_length=len(content),
        )
        return entry
