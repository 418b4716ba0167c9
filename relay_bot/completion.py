"""
Chat completion client.

Sends one replied-to message, with a command-specific system instruction,
to an OpenAI-compatible /chat/completions endpoint and reduces the outcome
to a CompletionResult. Every failure is terminal for the call: no retries,
no backoff.
"""

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .commands import Command
from .config import BotConfig, DEFAULT_MODEL

logger = logging.getLogger("relay_bot.completion")

COMPLETIONS_PATH = "/chat/completions"

SYSTEM_PROMPTS: Dict[Command, str] = {
    Command.CAVEMAN: (
        "You are a caveman. Summarize the users message like a caveman would: "
        "all caps, many grammatical errors & similar."
    ),
    Command.EXPLAIN: "Explain the users message.",
    Command.SUMMARIZE: "Summarize the user's message.",
}


# -----------------------------------------------------------------------------
# Request / Result Types
# -----------------------------------------------------------------------------
class CompletionFailure(str, Enum):
    """Ways a completion call can fail."""
    TRANSPORT = "transport"              # connect, DNS, timeout
    HTTP_STATUS = "http_status"          # non-2xx response
    MALFORMED_BODY = "malformed_body"    # not JSON, or wrong shape
    MISSING_CONTENT = "missing_content"  # no choices[0].message.content


@dataclass(frozen=True)
class CompletionRequest:
    """A single system + user prompt for the completion endpoint."""
    system_prompt: str
    user_content: str
    model: str = DEFAULT_MODEL

    def payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": self.user_content},
            ],
        }


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of a completion call: either a completion or a failure."""
    completion: Optional[str] = None
    failure: Optional[CompletionFailure] = None
    status_code: Optional[int] = None
    detail: Optional[str] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failure is None and bool(self.completion)

    @classmethod
    def success(cls, completion: str, status_code: int, elapsed: float) -> "CompletionResult":
        return cls(completion=completion, status_code=status_code, elapsed=elapsed)

    @classmethod
    def failed(
        cls,
        failure: CompletionFailure,
        elapsed: float,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> "CompletionResult":
        return cls(failure=failure, status_code=status_code, detail=detail, elapsed=elapsed)


def build_request(command: Command, text: Optional[str], model: str = DEFAULT_MODEL) -> CompletionRequest:
    """Pick the system instruction for a text command and wrap the source text."""
    try:
        system_prompt = SYSTEM_PROMPTS[command]
    except KeyError:
        raise ValueError(f"Command /{command.value} does not use completions")

    return CompletionRequest(
        system_prompt=system_prompt,
        user_content=text or "",
        model=model,
    )


# -----------------------------------------------------------------------------
# Response Schema
# -----------------------------------------------------------------------------
class ChoiceMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: Optional[str] = None


class Choice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[ChoiceMessage] = None


class ChatCompletionResponse(BaseModel):
    """
    The only part of the OpenAI-style response the bot reads.

    Other fields (id, model, usage, ...) are ignored whatever their type.
    """
    model_config = ConfigDict(extra="ignore")

    choices: List[Choice] = Field(default_factory=list)

    def first_content(self) -> Optional[str]:
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content or None


# -----------------------------------------------------------------------------
# HTTP Client
# -----------------------------------------------------------------------------
class CompletionClient:
    """
    HTTP client for the completion endpoint.

    Holds only immutable configuration; each call opens its own
    httpx.AsyncClient, so concurrent handlers share nothing.
    """

    def __init__(self, config: BotConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = config.base_url.rstrip("/")
        self.model = config.model
        self.timeout = config.http_timeout
        self._api_key = config.api_key
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}{COMPLETIONS_PATH}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    async def complete_command(self, command: Command, text: Optional[str]) -> CompletionResult:
        """Build the request for a text command and send it."""
        return await self.complete(build_request(command, text, self.model))

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """
        POST a completion request and classify the outcome.

        Args:
            request: The prompt to send

        Returns:
            CompletionResult with the completion text, or the failure kind
        """
        started = time.monotonic()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    headers=self._headers(),
                    json=request.payload(),
                )
        except httpx.TransportError as e:
            elapsed = time.monotonic() - started
            logger.error(f"Completion request to {self.url} failed after {elapsed:.2f}s: {e!r}")
            return CompletionResult.failed(CompletionFailure.TRANSPORT, elapsed, detail=str(e))

        elapsed = time.monotonic() - started
        status = response.status_code

        if not response.is_success:
            logger.warning(
                f"Completion endpoint returned HTTP {status} after {elapsed:.2f}s: "
                f"{response.text[:200]}"
            )
            return CompletionResult.failed(
                CompletionFailure.HTTP_STATUS, elapsed, status_code=status,
                detail=response.reason_phrase,
            )

        try:
            parsed = ChatCompletionResponse.model_validate(response.json())
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.error(f"Unparseable completion response (HTTP {status}): {e}")
            return CompletionResult.failed(
                CompletionFailure.MALFORMED_BODY, elapsed, status_code=status, detail=str(e),
            )

        completion = parsed.first_content()
        if completion is None:
            logger.warning(f"Completion response (HTTP {status}) has no choices[0].message.content")
            return CompletionResult.failed(CompletionFailure.MISSING_CONTENT, elapsed, status_code=status)

        logger.info(
            f"Completion received in {elapsed:.2f}s "
            f"(model={request.model}, chars={len(completion)})"
        )
        return CompletionResult.success(completion, status, elapsed)
