"""Base oracle interface.

Oracle adapters implement a narrow interface: call(request) -> OracleResponse.
They make exactly one attempt, never interpret content, and never raise for
backend failures; failures come back classified so callers decide what to do.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storyloom.models.domain import GenerationRequest, OracleResponse


class OracleBase(ABC):
    """Abstract base class for generative text oracles."""

    @abstractmethod
    async def call(self, request: GenerationRequest) -> OracleResponse:
        """Send one request to the oracle.

        Args:
            request: Messages plus optional output contract.

        Returns:
            OracleResponse with text on success or a classified failure.
        """
        pass
