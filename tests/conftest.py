"""
Pytest configuration for relay bot tests.

Provides:
1. A BotConfig that never touches the real environment
2. A simulated completion endpoint built on httpx.MockTransport
3. Telegram Message / context doubles
"""

import json
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from relay_bot.bot import CLIENT_KEY
from relay_bot.completion import CompletionClient
from relay_bot.config import BotConfig


# -----------------------------------------------------------------------------
# Test Constants
# -----------------------------------------------------------------------------
TEST_API_KEY = "gsk-test-key"
TEST_BASE_URL = "https://completions.test/openai/v1"
TEST_CHAT_ID = 4242
TEST_MESSAGE_ID = 77


def completion_body(content: Optional[str]) -> Dict[str, Any]:
    """An OpenAI-style response body carrying the given content."""
    return {
        "id": "chatcmpl-test",
        "model": "llama3-70b-8192",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}},
        ],
    }


class FakeCompletionEndpoint:
    """Records requests and answers with a canned response."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def last_payload(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def bot_config() -> BotConfig:
    return BotConfig(
        telegram_token="123456:TEST",
        api_key=TEST_API_KEY,
        base_url=TEST_BASE_URL,
        http_timeout=5.0,
    )


@pytest.fixture
def endpoint_factory(bot_config):
    """Build (endpoint, client) pairs around a responder function."""
    def factory(responder: Callable[[httpx.Request], httpx.Response]):
        endpoint = FakeCompletionEndpoint(responder)
        client = CompletionClient(bot_config, transport=endpoint.transport)
        return endpoint, client
    return factory


@pytest.fixture
def make_message():
    """Build a Telegram Message double, optionally replying to another one."""
    def factory(
        text: str = "/summarize",
        reply_text: Optional[str] = None,
        has_reply: bool = False,
    ) -> MagicMock:
        message = MagicMock()
        message.text = text
        message.chat_id = TEST_CHAT_ID
        message.message_id = TEST_MESSAGE_ID
        message.is_topic_message = False
        message.message_thread_id = None
        message.reply_text = AsyncMock()

        if has_reply or reply_text is not None:
            target = MagicMock()
            target.text = reply_text
            target.message_id = TEST_MESSAGE_ID - 1
            message.reply_to_message = target
        else:
            message.reply_to_message = None
        return message
    return factory


@pytest.fixture
def make_context():
    """Build a handler context whose bot_data holds the given client."""
    def factory(client) -> MagicMock:
        context = MagicMock()
        context.bot_data = {CLIENT_KEY: client}
        return context
    return factory


def make_update(message: MagicMock, user_id: int = 1001) -> MagicMock:
    update = MagicMock()
    update.effective_message = message
    update.effective_user.id = user_id
    return update
