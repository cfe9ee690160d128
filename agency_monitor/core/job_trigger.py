from __future__ import annotations

import logging

import httpx

from agency_monitor.core.models import TriggerResult


LOGGER = logging.getLogger(__name__)

RUN_AGENCY_PATH = "/run-agency"


class JobTriggerClient:
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Job service base URL is required.")
        self.endpoint = base_url.rstrip("/") + RUN_AGENCY_PATH
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def trigger_run(self, agency_id: str) -> TriggerResult:
        """
        POST {"agency_id": ...} to the job service.
        Transport errors and non-2xx replies come back as ok=False, never raised.
        """
        headers = {"Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.endpoint, json={"agency_id": agency_id}, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            LOGGER.warning("Run trigger rejected agency=%s status=%s", agency_id, status)
            return TriggerResult(agency_id=agency_id, ok=False, status_code=status, error=f"HTTP {status}")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            LOGGER.warning("Run trigger failed agency=%s error=%s", agency_id, exc)
            return TriggerResult(agency_id=agency_id, ok=False, error=str(exc) or exc.__class__.__name__)
        LOGGER.info("Run triggered agency=%s status=%s", agency_id, response.status_code)
        return TriggerResult(agency_id=agency_id, ok=True, status_code=response.status_code)
