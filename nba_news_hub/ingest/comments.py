"""Social comment sources used as fan sentiment evidence.

Every source degrades to an empty list on quota, auth or network trouble;
the reason is logged and the caller falls back to headline sentiment.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any, List, Optional, Protocol, runtime_checkable

import aiohttp

from ..config import Settings, get_settings
from ..logging import get_logger
from ..schema import Comment

logger = get_logger(__name__)

MIN_COMMENT_LENGTH = 10


@runtime_checkable
class CommentSource(Protocol):
    """Query -> comments."""

    name: str

    async def search_comments(self, query: str) -> List[Comment]:
        ...


class NullCommentSource:
    """Used when no comment API is configured."""

    name = "none"

    async def search_comments(self, query: str) -> List[Comment]:
        return []


class YouTubeCommentSource:
    """Comments from the top recent YouTube video matching the query (Data API v3)."""

    name = "youtube"
    DEFAULT_BASE_URL = "https://www.googleapis.com/youtube/v3"

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        max_comments: int = 25,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: Optional[str] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.max_comments = max_comments
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent

    async def search_comments(self, query: str) -> List[Comment]:
        if not query:
            return []

        headers = {'User-Agent': self.user_agent} if self.user_agent else None
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=headers,
            ) as session:
                video_id = await self._find_video(session, query)
                if not video_id:
                    logger.info("No YouTube videos found", query=query)
                    return []

                comments = await self._fetch_comments(session, video_id)

        except aiohttp.ClientResponseError as e:
            if e.status == 403:
                logger.error("YouTube API quota exceeded or key rejected", status=e.status, error=e.message)
            elif e.status == 400:
                logger.error("YouTube API bad request", status=e.status, error=e.message)
            else:
                logger.error("YouTube API error", status=e.status, error=e.message)
            return []
        except asyncio.TimeoutError:
            logger.error("YouTube API timeout", query=query)
            return []
        except aiohttp.ClientError as e:
            logger.error("YouTube API request failed", error=str(e))
            return []

        logger.info("YouTube comments fetched", query=query, count=len(comments))
        return comments

    async def _get_json(self, session: aiohttp.ClientSession, path: str, params: dict) -> Any:
        async with session.get(f"{self.base_url}/{path}", params={**params, 'key': self.api_key}) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def _find_video(self, session: aiohttp.ClientSession, query: str) -> Optional[str]:
        published_after = (datetime.now(UTC) - timedelta(days=7)).strftime('%Y-%m-%dT%H:%M:%SZ')
        data = await self._get_json(session, 'search', {
            'part': 'snippet',
            'q': f"{query} NBA",
            'type': 'video',
            'maxResults': 3,
            'order': 'relevance',
            'publishedAfter': published_after,
        })

        for item in data.get('items') or []:
            video_id = (item.get('id') or {}).get('videoId')
            if video_id:
                return video_id
        return None

    async def _fetch_comments(self, session: aiohttp.ClientSession, video_id: str) -> List[Comment]:
        data = await self._get_json(session, 'commentThreads', {
            'part': 'snippet',
            'videoId': video_id,
            'maxResults': 30,
            'order': 'relevance',
            'textFormat': 'plainText',
        })

        comments = []
        for thread in data.get('items') or []:
            snippet = (((thread.get('snippet') or {}).get('topLevelComment') or {}).get('snippet')) or {}
            text = snippet.get('textDisplay') or ''
            if not MIN_COMMENT_LENGTH < len(text) < 500:
                continue
            comments.append(Comment(
                text=text,
                author=snippet.get('authorDisplayName') or '',
                like_count=int(snippet.get('likeCount') or 0),
            ))
            if len(comments) >= self.max_comments:
                break
        return comments


class RedditCommentSource:
    """Top comments from the most relevant recent r/nba thread (public JSON API)."""

    name = "reddit"
    DEFAULT_BASE_URL = "https://www.reddit.com"
    SKIPPED_BODIES = frozenset({'[deleted]', '[removed]'})

    def __init__(
        self,
        subreddit: str = "nba",
        timeout: float = 10.0,
        max_comments: int = 25,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = "NBA-News-Hub/1.0 (News Sentiment Analyzer)",
    ):
        self.subreddit = subreddit
        self.timeout = timeout
        self.max_comments = max_comments
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent

    async def search_comments(self, query: str) -> List[Comment]:
        if not query:
            return []

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={'User-Agent': self.user_agent},
            ) as session:
                permalink = await self._find_thread(session, query)
                if not permalink:
                    return []
                comments = await self._fetch_comments(session, permalink)

        except aiohttp.ClientResponseError as e:
            logger.error("Reddit API error", status=e.status, error=e.message)
            return []
        except asyncio.TimeoutError:
            logger.error("Reddit API timeout", query=query)
            return []
        except aiohttp.ClientError as e:
            logger.error("Reddit API request failed", error=str(e))
            return []

        logger.info("Reddit comments fetched", query=query, count=len(comments))
        return comments

    async def _find_thread(self, session: aiohttp.ClientSession, query: str) -> Optional[str]:
        params = {
            'q': query,
            'sort': 'relevance',
            'limit': 3,
            't': 'week',
            'restrict_sr': 'on',
        }
        async with session.get(f"{self.base_url}/r/{self.subreddit}/search.json", params=params) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)

        posts = [child.get('data') or {} for child in ((data or {}).get('data') or {}).get('children') or []]
        if not posts:
            return None

        top = next((post for post in posts if (post.get('num_comments') or 0) >= 5), posts[0])
        return top.get('permalink')

    async def _fetch_comments(self, session: aiohttp.ClientSession, permalink: str) -> List[Comment]:
        url = f"{self.base_url}{permalink.rstrip('/')}.json"
        async with session.get(url, params={'limit': 50, 'sort': 'top'}) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)

        if not isinstance(data, list) or len(data) < 2:
            return []

        comments = []
        for child in (data[1].get('data') or {}).get('children') or []:
            body = (child.get('data') or {}).get('body')
            if not self._usable(body):
                continue
            comments.append(Comment(
                text=body,
                author=child['data'].get('author') or '',
                like_count=int(child['data'].get('score') or 0),
            ))
            if len(comments) >= self.max_comments:
                break
        return comments

    def _usable(self, body: Optional[str]) -> bool:
        if not body or body in self.SKIPPED_BODIES:
            return False
        if not MIN_COMMENT_LENGTH < len(body) < 1000:
            return False
        return 'I am a bot' not in body


def create_comment_source(settings: Optional[Settings] = None) -> CommentSource:
    """YouTube when a key is configured, else Reddit when enabled, else nothing."""
    settings = settings or get_settings()

    if settings.youtube_api_key:
        return YouTubeCommentSource(
            api_key=settings.youtube_api_key,
            timeout=settings.comment_timeout_seconds,
            max_comments=settings.max_comments_per_article,
            user_agent=settings.user_agent,
        )
    if settings.reddit_enabled:
        return RedditCommentSource(
            timeout=settings.comment_timeout_seconds,
            max_comments=settings.max_comments_per_article,
        )
    return NullCommentSource()
