"""
Export grades to an external HTTP endpoint.

Each grade is POSTed as one JSON document. The endpoint accepts a grade
with a 2xx response and rejects it with a 4xx response; anything else is a
failure of that single import.
"""

import httpx
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from exporter.base import ExternalSink, SinkSession
from schemas.export import GradeRecord, UserRecord
from core.exceptions import SinkImportError, SinkTimeout
import logging

logger = logging.getLogger(__name__)


class HTTPSink(ExternalSink):
    """
    Sink posting grades to a REST endpoint.

    Features:
    - Bearer token authentication
    - One pooled client per session
    - Per-request timeout mapped to SinkTimeout
    """

    def __init__(
        self,
        url: str,
        external_id: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(external_id=external_id, timeout=timeout)
        self.url = url
        self.api_key = api_key
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SinkSession]:
        async with httpx.AsyncClient(
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport
        ) as client:
            yield _HTTPSinkSession(client, self.url, self.external_id)


class _HTTPSinkSession(SinkSession):

    def __init__(self, client: httpx.AsyncClient, url: str, external_id: Optional[str]):
        self.client = client
        self.url = url
        self.external_id = external_id

    async def import_grade(self, user: UserRecord, grade: GradeRecord) -> bool:
        body = {
            "external_id": self.external_id,
            "user_id": user.id,
            "username": user.username,
            "idnumber": user.idnumber,
            "final_grade": grade.final_grade,
        }

        try:
            response = await self.client.post(self.url, json=body)
        except httpx.TimeoutException as e:
            raise SinkTimeout(
                "Request to grade endpoint timed out",
                context={"sink_url": self.url, "user_id": user.id},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise SinkImportError(
                "Request to grade endpoint failed",
                context={"sink_url": self.url, "user_id": user.id},
                original_exception=e
            )

        if 400 <= response.status_code < 500:
            logger.warning(
                f"Grade endpoint rejected user {user.id} "
                f"(status {response.status_code}): {response.text[:500]}"
            )
            return False

        if response.status_code >= 500:
            raise SinkImportError(
                f"Grade endpoint error {response.status_code}",
                context={
                    "sink_url": self.url,
                    "user_id": user.id,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]
                }
            )

        return True
