"""Mock oracle for demo/testing.

Replays scripted answers without calling a real backend, and records every
request it receives so callers can inspect the conversation history.
"""

from __future__ import annotations

import asyncio
import json
from typing import Callable, Sequence, Union

from storyloom.models.domain import GenerationRequest, OracleResponse
from storyloom.providers.base import OracleBase

Reply = Union[OracleResponse, str]
Responder = Callable[[GenerationRequest], Reply]


def scenes_payload(count: int, prefix: str = "Scene") -> str:
    """Build a JSON scenes envelope with `count` distinct items."""
    scenes = [
        {
            "visual": f"{prefix} {i + 1} visual",
            "dialogue": f"{prefix} {i + 1} line",
            "sfx": [f"{prefix.lower()} {i + 1} cue"],
            "transition": f"cut to {prefix.lower()} {i + 2}",
        }
        for i in range(count)
    ]
    return json.dumps({"scenes": scenes})


class MockOracle(OracleBase):
    """Scripted oracle.

    Answers come from either a fixed sequence (the last entry repeats once the
    sequence is exhausted) or a responder callable that sees each request.
    Plain strings are treated as successful responses.
    """

    def __init__(
        self,
        replies: Sequence[Reply] | Responder,
        delay_s: float = 0.0,
    ):
        """Initialize mock oracle.

        Args:
            replies: Scripted replies, or a callable producing one per request.
            delay_s: Optional simulated latency per call.
        """
        if not callable(replies) and not replies:
            raise ValueError("MockOracle needs at least one scripted reply")
        self._replies = replies
        self.delay_s = delay_s
        self.requests: list[GenerationRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def _next_reply(self, request: GenerationRequest) -> Reply:
        if callable(self._replies):
            return self._replies(request)
        index = min(len(self.requests) - 1, len(self._replies) - 1)
        return self._replies[index]

    async def call(self, request: GenerationRequest) -> OracleResponse:
        self.requests.append(request)
        if self.delay_s > 0:
            await asyncio.sleep(self.delay_s)
        reply = self._next_reply(request)
        if isinstance(reply, OracleResponse):
            return reply
        return OracleResponse.success(reply)
