"""Z.ai GLM streaming completion client.

Talks to the OpenAI-compatible ``<base>/completions`` endpoint with httpx.
One call to ``stream_turn`` is one model turn: it POSTs the conversation,
retries connection failures with backoff, and then yields text chunks as
they stream in, followed by a final ``TurnResult`` carrying the turn's full
text and assembled tool calls.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from ..config import AppConfig, get_config_or_default
from ..errors import CompletionAPIError, RequestAborted
from ..messages import ToolCallRef
from ..retry import RetryConfig, await_or_abort, with_retry_async
from .stream import DONE, SSEParser, ToolCallAssembler, extract_delta

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (httpx.TransportError, asyncio.TimeoutError)


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one streamed turn.

    Attributes:
        text: All text content streamed during the turn
        tool_calls: Tool calls with a nonempty id and name, in index order
        skipped_lines: Number of malformed stream lines that were ignored
    """

    text: str
    tool_calls: List[ToolCallRef] = field(default_factory=list)
    skipped_lines: int = 0


class ZaiCompletionClient:
    """Streaming client for the Z.ai completion endpoint.

    Args:
        api_key: Bearer token
        base_url: Endpoint base (coding-plan or chat); ``/completions`` is appended
        config: Optional configuration (defaults to the global one)
        http_client: Optional shared ``httpx.AsyncClient``. When omitted the
            client creates and owns one.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        config: Optional[AppConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.config = config or get_config_or_default()
        self.retry_config = RetryConfig.from_app_config(self.config)
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.request_timeout_seconds)
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/completions"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def build_request_body(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
            "stream": True,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"
        return body

    async def open_stream(
        self, body: Dict[str, Any], cancel_event: Optional[asyncio.Event] = None
    ) -> httpx.Response:
        """POST the request and return the streaming response.

        Raises:
            TransportError: Every attempt failed to connect or timed out
            CompletionAPIError: The endpoint returned a non-2xx status
            RequestAborted: ``cancel_event`` fired
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        async def _attempt() -> httpx.Response:
            request = self._http.build_request(
                "POST", self.completions_url, json=body, headers=headers
            )
            return await await_or_abort(
                asyncio.wait_for(
                    self._http.send(request, stream=True),
                    timeout=self.config.request_timeout_seconds,
                ),
                cancel_event,
            )

        response = await with_retry_async(
            _attempt,
            self.retry_config,
            retry_on=RETRYABLE_ERRORS,
            context="Z.ai API connection",
            cancel_event=cancel_event,
        )

        if not response.is_success:
            try:
                await response.aread()
                error_text = response.text
            finally:
                await response.aclose()
            raise CompletionAPIError(response.status_code, error_text)

        return response

    async def stream_turn(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Union[Dict[str, Any], TurnResult]]:
        """Run one model turn.

        Yields:
            - Dict[str, Any]: ``{"type": "text", "content": str}`` for every text delta
            - TurnResult: Final result (yielded last)

        Raises:
            TransportError, CompletionAPIError, RequestAborted: see open_stream
        """
        body = self.build_request_body(messages, model=model, tools=tools)
        response = await self.open_stream(body, cancel_event)

        parser = SSEParser()
        assembler = ToolCallAssembler()
        text_parts: List[str] = []

        def _handle(payload) -> Optional[str]:
            delta = extract_delta(payload)
            if delta is None:
                return None
            if delta.get("tool_calls"):
                assembler.process(delta["tool_calls"])
            content = delta.get("content")
            if isinstance(content, str) and content:
                text_parts.append(content)
                return content
            return None

        try:
            finished = False
            async for chunk in response.aiter_text():
                for payload in parser.feed(chunk):
                    # one network chunk can carry many deltas
                    if cancel_event is not None and cancel_event.is_set():
                        raise RequestAborted()
                    if payload is DONE:
                        finished = True
                        break
                    content = _handle(payload)
                    if content:
                        yield {"type": "text", "content": content}
                if finished:
                    break
            else:
                for payload in parser.flush():
                    if payload is DONE:
                        break
                    content = _handle(payload)
                    if content:
                        yield {"type": "text", "content": content}
        finally:
            await response.aclose()

        yield TurnResult(
            text="".join(text_parts),
            tool_calls=assembler.finalize(),
            skipped_lines=parser.skipped_lines,
        )
