"""
Scoring Invoker
Delegates a task's subject to the external valuation pipeline
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Protocol

import aiohttp
from pydantic import ValidationError

from .exceptions import ValuationError
from .models import ValuationResult

logger = logging.getLogger(__name__)


class ValuationPipeline(Protocol):
    """External collaborator: subject reference -> {score, evidenceUri, displayName}"""

    async def evaluate(self, subject_reference: str) -> Mapping[str, Any]:
        ...


class HttpValuationPipeline:
    """HTTP client for the valuation service (resolve + analyze + store evidence)."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    def _headers(self) -> dict:
        headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        }
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"
        return headers

    async def evaluate(self, subject_reference: str) -> Mapping[str, Any]:
        session = await self._get_session()
        url = f"{self.base_url}/valuations"

        async with session.post(url, json={'subjectReference': subject_reference}, headers=self._headers()) as response:
            if response.status != 200:
                body = await response.text()
                raise ValuationError(
                    f"Valuation service returned HTTP {response.status}: {body[:200]}",
                    subject_reference
                )
            return await response.json(content_type=None)

    async def close(self):
        """Close client session."""
        if self.session and not self.session.closed:
            await self.session.close()


class ScoringInvoker:
    """
    Wraps the pipeline so every failure mode surfaces as one ValuationError.
    A partial result (analysis ok, storage failed) is a total failure; the
    whole invocation is retried as a unit.
    """

    def __init__(self, pipeline: ValuationPipeline):
        self.pipeline = pipeline

    async def invoke(self, subject_reference: str) -> ValuationResult:
        try:
            payload = await self.pipeline.evaluate(subject_reference)
        except ValuationError:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ValuationError(f"Valuation pipeline failed for {subject_reference}: {e}", subject_reference) from e

        if not isinstance(payload, Mapping):
            raise ValuationError(
                f"Valuation pipeline returned {type(payload).__name__}, expected an object",
                subject_reference
            )

        try:
            result = ValuationResult.model_validate(payload)
        except ValidationError as e:
            raise ValuationError(f"Malformed valuation payload for {subject_reference}: {e}", subject_reference) from e

        logger.info(f"📊 Valuation for {subject_reference}: {result.score}/100 ({result.display_name or 'unnamed'})")
        return result
