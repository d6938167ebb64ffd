"""
Site survey PDF generation.
Fire-and-forget call to the hosted `generate-site-survey-pdf` function.
"""
from typing import Optional

import httpx
import structlog

from ..config import settings

logger = structlog.get_logger(__name__)

FUNCTION_NAME = "generate-site-survey-pdf"


class SiteSurveyPdfClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.functions_base_url or "").rstrip("/")
        self.token = token or settings.functions_service_token
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def generate(self, customer_id, ticket_id) -> Optional[dict]:
        """Response body is logged and returned; the caller never acts on it."""
        if not self.configured:
            logger.info("site_survey_pdf_skipped", reason="functions_base_url not set", ticket_id=str(ticket_id))
            return None
        url = f"{self.base_url}/{FUNCTION_NAME}"
        payload = {"customer_id": str(customer_id), "ticket_id": str(ticket_id)}
        with httpx.Client(timeout=settings.functions_timeout_s, transport=self.transport) as client:
            response = client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
            data = response.json()
        if data.get("success"):
            logger.info("site_survey_pdf_generated", ticket_id=str(ticket_id), file_name=data.get("file_name"))
        else:
            logger.warning("site_survey_pdf_failed", ticket_id=str(ticket_id), error=data.get("error"))
        return data


def request_site_survey_pdf(customer_id, ticket_id, client: Optional[SiteSurveyPdfClient] = None) -> Optional[dict]:
    return (client or SiteSurveyPdfClient()).generate(customer_id, ticket_id)
