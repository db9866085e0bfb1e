"""HTTP clearinghouse adapter."""
from typing import Any, Dict, Optional

import httpx

from app.config.settings import get_settings
from app.services.integrations.base_adapter import ClearinghouseAdapter, GatewayResult
from app.utils.logger import get_logger

logger = get_logger(__name__)


class HttpClearinghouseAdapter(ClearinghouseAdapter):
    """
    REST clearinghouse client.

    Endpoints:
        POST {api_url}/claims/submit       -> {"claim_id", "status", "message"}
        GET  {api_url}/claims/{id}/status  -> {"status", "details"}

    Config keys: ``api_url``, ``api_key``, ``timeout`` (seconds). An httpx
    client may be injected (tests use httpx.MockTransport).
    """

    def __init__(self, config: Dict[str, Any], client: Optional[httpx.Client] = None):
        super().__init__(config)
        self._client = client
        self._owns_client = client is None

    def connect(self) -> bool:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.config.get("api_key"):
                headers["Authorization"] = f"Bearer {self.config['api_key']}"
            self._client = httpx.Client(
                base_url=self.config["api_url"],
                headers=headers,
                timeout=self.config.get("timeout", 30.0),
            )
        self.connected = True
        return True

    def disconnect(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
        self.connected = False

    def test_connection(self) -> bool:
        try:
            self._request("GET", "/health")
            return True
        except httpx.HTTPError as e:
            logger.warning("Clearinghouse connection test failed", error=str(e))
            return False

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.connected:
            self.connect()
        response = self._client.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json() if response.content else {}

    def submit_claim(self, payload: Dict[str, Any]) -> GatewayResult:
        claim_number = payload.get("claim_number")
        try:
            data = self._request("POST", "/claims/submit", json=payload)
        except httpx.TimeoutException:
            logger.error("Clearinghouse submission timed out", claim_number=claim_number)
            return GatewayResult.failure("Clearinghouse request timed out")
        except httpx.HTTPStatusError as e:
            logger.error(
                "Clearinghouse rejected submission",
                claim_number=claim_number,
                status_code=e.response.status_code,
            )
            return GatewayResult.failure(_error_text(e.response))
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Clearinghouse submission failed", claim_number=claim_number, error=str(e))
            return GatewayResult.failure(str(e))

        logger.info("Claim submitted to clearinghouse", claim_number=claim_number)
        return GatewayResult(
            success=True,
            external_id=_as_str(data.get("claim_id")),
            status=data.get("status"),
            message=data.get("message"),
        )

    def get_claim_status(self, external_id: str) -> GatewayResult:
        try:
            data = self._request("GET", f"/claims/{external_id}/status")
        except httpx.TimeoutException:
            logger.error("Clearinghouse status check timed out", external_id=external_id)
            return GatewayResult.failure("Clearinghouse request timed out")
        except httpx.HTTPStatusError as e:
            return GatewayResult.failure(_error_text(e.response))
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Clearinghouse status check failed", external_id=external_id, error=str(e))
            return GatewayResult.failure(str(e))

        return GatewayResult(
            success=True,
            external_id=external_id,
            status=data.get("status"),
            details=data.get("details") or {},
        )


def _as_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


def get_clearinghouse_adapter() -> ClearinghouseAdapter:
    """Adapter configured from RevenueCycleSettings."""
    settings = get_settings()
    return HttpClearinghouseAdapter(
        {
            "api_url": settings.clearinghouse_api_url,
            "api_key": settings.clearinghouse_api_key,
            "timeout": settings.clearinghouse_timeout_seconds,
        }
    )
