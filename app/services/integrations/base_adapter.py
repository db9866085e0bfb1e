"""Base adapter interface for external system integrations."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    """
    Outcome of a call to an external gateway.

    Failures never raise from the adapter; they come back with
    ``success=False`` and ``error`` set so the caller decides what to do.
    """

    success: bool
    external_id: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "GatewayResult":
        return cls(success=False, error=error)


class BaseAdapter(ABC):
    """
    Base adapter interface for external system integrations.

    Adapters can be used as context managers so connections are always
    released.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize adapter with configuration.

        Args:
            config: Connection details and credentials
        """
        self.config = config
        self.connected = False

    @abstractmethod
    def connect(self) -> bool:
        """Open the connection. Returns True when usable."""

    @abstractmethod
    def disconnect(self) -> None:
        """Release the connection."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Check the remote system is reachable."""

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


class ClearinghouseAdapter(BaseAdapter):
    """
    Base adapter for clearinghouse integrations.

    Submits claim payloads and polls claim status. Calls are bounded by a
    timeout; a timeout is reported as a failed GatewayResult and is not retried.
    """

    name = "Clearinghouse"

    @abstractmethod
    def submit_claim(self, payload: Dict[str, Any]) -> GatewayResult:
        """
        Submit a claim payload.

        Returns:
            GatewayResult with external_id (tracking id), status and message
        """

    @abstractmethod
    def get_claim_status(self, external_id: str) -> GatewayResult:
        """
        Get claim status by clearinghouse tracking id.

        Returns:
            GatewayResult with status and details
        """
