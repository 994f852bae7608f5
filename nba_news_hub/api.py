"""HTTP query surface for news, polls and cached comments (aiohttp.web)."""

from typing import Any, Optional

import orjson
from aiohttp import web

from .errors import ClientInputError, NewsHubError
from .logging import get_logger, log_error
from .orchestrator import NewsService
from .security import json_response, security_middleware, validate_content_type
from .storage.cache import NewsStore
from .storage.polls import PollService

logger = get_logger(__name__)

COMMENTS_LIMIT = 10


def client_voter_key(request: web.Request) -> str:
    """Identify a voter by client address: first X-Forwarded-For hop, X-Real-IP, then the peer."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded.strip():
        first_hop = forwarded.split(',')[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get('X-Real-IP', '').strip()
    if real_ip:
        return real_ip

    return request.remote or '127.0.0.1'


def error_response(error: NewsHubError) -> web.Response:
    return json_response(error.to_payload(), status=error.status)


class NewsHubAPI:
    """Request handlers bound to the news and poll services."""

    def __init__(self, news: NewsService, polls: PollService, store: Optional[NewsStore] = None):
        self.news = news
        self.polls = polls
        self.store = store

    async def get_news(self, request: web.Request) -> web.Response:
        team = request.query.get('team') or None
        refresh = request.query.get('refresh', '').lower() == 'true'

        try:
            response = await self.news.get_news(team_filter=team, force_refresh=refresh)
        except NewsHubError as e:
            logger.error("News request failed", error=e.message, details=e.details)
            return error_response(e)

        return json_response(response.to_payload())

    async def get_polls(self, request: web.Request) -> web.Response:
        try:
            polls = await self.polls.list_active_polls()
        except NewsHubError as e:
            logger.error("Poll listing failed", error=e.message, details=e.details)
            return error_response(e)

        return json_response({'polls': [poll.to_record() for poll in polls]})

    async def post_vote(self, request: web.Request) -> web.Response:
        try:
            body = await self._json_body(request)
            result = await self.polls.vote(
                body.get('pollId'),
                body.get('optionIndex'),
                client_voter_key(request),
            )
        except NewsHubError as e:
            if e.status >= 500:
                logger.error("Vote failed", error=e.message, details=e.details)
            else:
                logger.info("Vote rejected", reason=e.classification, error=e.message)
            return error_response(e)

        return json_response(result.to_payload())

    async def get_comments(self, request: web.Request) -> web.Response:
        url = request.query.get('url', '').strip()
        if not url:
            return error_response(ClientInputError("Missing required parameter: url"))

        if self.store is None or not self.store.is_configured():
            return json_response({'comments': []})

        try:
            comments = await self.store.read_comments(url, limit=COMMENTS_LIMIT)
        except NewsHubError as e:
            logger.error("Comment lookup failed", url=url, error=e.message, details=e.details)
            return error_response(e)

        return json_response({'comments': [comment.to_record() for comment in comments]})

    @staticmethod
    async def _json_body(request: web.Request) -> dict[str, Any]:
        if not validate_content_type(request.headers.get('Content-Type', ''), ['application/json']):
            raise ClientInputError("Request body must be application/json")

        try:
            body = orjson.loads(await request.read())
        except orjson.JSONDecodeError as e:
            raise ClientInputError("Invalid JSON body", details=str(e)) from e

        if not isinstance(body, dict):
            raise ClientInputError("Request body must be a JSON object")
        return body


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Render unexpected handler failures as a JSON 500 without stack detail."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(**log_error(e, context=f"{request.method} {request.path}"), exc_info=True)
        return json_response({'error': 'Internal server error', 'classification': 'server_error',
                              'retryable': False}, status=500)


def create_app(
    news: NewsService,
    polls: PollService,
    store: Optional[NewsStore] = None,
) -> web.Application:
    """Build the aiohttp application serving the /api routes."""
    api = NewsHubAPI(news, polls, store)

    app = web.Application(middlewares=[security_middleware, error_middleware])
    app.add_routes([
        web.get('/api/news', api.get_news),
        web.get('/api/polls', api.get_polls),
        web.post('/api/polls', api.post_vote),
        web.get('/api/comments', api.get_comments),
    ])

    if store is not None:
        async def close_store(app: web.Application) -> None:
            await store.close()

        app.on_cleanup.append(close_store)

    return app
