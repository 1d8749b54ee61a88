from typing import Any, Dict, Optional

import requests

from installment_recon.core.config import settings
from installment_recon.core.exceptions import VerificationError
from installment_recon.core.logging import get_logger

logger = get_logger(__name__)

INVOICE_PREFIX = "inv_"


class TapGatewayClient:
    """Reads charges and invoices back from the Tap API"""

    def __init__(
        self,
        api_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.api_url = (api_url or settings.TAP_API_URL).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.TAP_SECRET_KEY
        self.timeout = timeout if timeout is not None else settings.TAP_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @staticmethod
    def endpoint_for(gateway_id: str) -> str:
        if gateway_id.startswith(INVOICE_PREFIX):
            return f"invoices/{gateway_id}"
        return f"charges/{gateway_id}"

    def fetch(self, gateway_id: str) -> Dict[str, Any]:
        """Fetch the authoritative record; any failure raises VerificationError"""
        url = f"{self.api_url}/{self.endpoint_for(gateway_id)}"
        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise VerificationError(
                f"Failed to reach Tap: {exc}",
                details={"gateway_id": gateway_id}
            )

        if not response.ok:
            raise VerificationError(
                f"Failed to verify payment with Tap: {response.status_code} {response.reason}",
                details={"gateway_id": gateway_id, "status_code": response.status_code}
            )

        try:
            data = response.json()
        except ValueError:
            raise VerificationError(
                "Tap returned a non-JSON verification response",
                details={"gateway_id": gateway_id}
            )

        if not isinstance(data, dict):
            raise VerificationError(
                "Tap returned an unexpected verification response",
                details={"gateway_id": gateway_id}
            )

        logger.debug(f"Verified {gateway_id} with Tap: status={data.get('status')}")
        return data
