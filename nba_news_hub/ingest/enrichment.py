"""og:image enrichment for articles whose feed entry carries no image."""

import asyncio
from typing import List, Optional

import aiohttp
from selectolax.parser import HTMLParser

from ..config import Settings, get_settings
from ..logging import get_logger, log_processing_stage
from ..schema import RawArticle

logger = get_logger(__name__)

OG_IMAGE_SELECTORS = ('meta[property="og:image"]', 'meta[name="og:image"]')


def extract_og_image(html: str) -> Optional[str]:
    """Return the og:image URL declared in a page head, if any."""
    if not html:
        return None

    tree = HTMLParser(html)
    for selector in OG_IMAGE_SELECTORS:
        node = tree.css_first(selector)
        if node is not None:
            content = (node.attributes.get('content') or '').strip()
            if content:
                return content
    return None


class OgImageEnricher:
    """Fetches article pages concurrently and reads their og:image tag.

    Each page gets a single attempt with a short timeout; only the first
    ``image_max_bytes`` of the response are read since the tag lives in the
    document head.
    """

    def __init__(self, settings: Optional[Settings] = None, session: Optional[aiohttp.ClientSession] = None):
        self.settings = settings or get_settings()
        self.timeout = self.settings.image_timeout_seconds
        self.max_bytes = self.settings.image_max_bytes
        self._session = session

    async def fetch_og_image(self, session: aiohttp.ClientSession, url: str) -> Optional[str]:
        """Fetch the head of a page and extract og:image. Never raises for network errors."""
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status != 200:
                    logger.debug("og:image page returned error status", url=url, status=response.status)
                    return None

                buffer = bytearray()
                async for chunk in response.content.iter_chunked(4096):
                    buffer.extend(chunk)
                    if len(buffer) >= self.max_bytes:
                        break

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("og:image fetch failed", url=url, error=str(e))
            return None

        html = bytes(buffer[:self.max_bytes]).decode('utf-8', errors='ignore')
        return extract_og_image(html)

    async def enrich(self, articles: List[RawArticle]) -> List[RawArticle]:
        """Return the articles with image_url filled in where a page declares one."""
        targets = [i for i, article in enumerate(articles) if not article.image_url and article.url]
        if not targets:
            return list(articles)

        if self._session is not None:
            images = await self._fetch_all(self._session, [articles[i].url for i in targets])
        else:
            async with aiohttp.ClientSession(headers={'User-Agent': self.settings.user_agent}) as session:
                images = await self._fetch_all(session, [articles[i].url for i in targets])

        enriched = list(articles)
        found = 0
        for index, image in zip(targets, images):
            if isinstance(image, str) and image:
                enriched[index] = enriched[index].with_image(image)
                found += 1
            elif isinstance(image, BaseException):
                logger.warning("og:image enrichment error", url=articles[index].url, error=str(image))

        logger.info(
            **log_processing_stage(
                stage="og_image_enrichment",
                input_count=len(targets),
                output_count=found
            )
        )
        return enriched

    async def _fetch_all(self, session: aiohttp.ClientSession, urls: List[str]) -> list:
        return await asyncio.gather(
            *(self.fetch_og_image(session, url) for url in urls),
            return_exceptions=True,
        )
