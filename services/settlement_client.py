"""HTTP client for the external settlement service.

The settlement service mints round ids, records winners and optionally acts
as the authority for the winning pot. Transport and decoding failures surface
as ``SettlementError`` internally; every public method turns them into a
failure result, so callers only have to handle the "unsuccessful" branch.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx

from core.exceptions import SettlementError

logger = logging.getLogger(__name__)


class SettlementService(Protocol):
    async def mint_round_id(self, metadata: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
        ...

    async def report_winners(self, round_id: str, winners: List[Dict[str, Any]]) -> bool:
        ...

    async def fetch_winning_pot(self) -> Tuple[Optional[str], bool]:
        ...


class SettlementClient:
    """Async client for the settlement REST API.

    Endpoints (relative to ``base_url``):
    - ``POST /create-game``   -> ``{"game_id": ..., "status": "success"}``
    - ``POST /declare-winner`` with ``{"game_id", "winners": [{"user_id", "amount"}]}``
    - ``GET /winning-pot``    -> ``{"pot": "A", "status": "success"}``
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the settlement client.

        Args:
            base_url: Base address of the settlement API
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
            logger.debug(f"Settlement client started for {self._base_url}")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("Settlement client closed")

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Send a request and decode the JSON body.

        Returns:
            The decoded JSON object

        Raises:
            SettlementError: On any transport, status or decoding error
        """
        if self._client is None:
            await self.start()

        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise SettlementError(
                f"Settlement {method} {path} returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise SettlementError(f"Settlement {method} {path} failed: {e!r}") from e
        except ValueError as e:
            raise SettlementError(f"Settlement {method} {path} returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise SettlementError(f"Settlement {method} {path} returned unexpected body: {body!r}")
        return body

    async def mint_round_id(self, metadata: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
        """Ask the settlement service for a new round id.

        Returns:
            ``(round_id, status)``; round_id is None on failure
        """
        try:
            body = await self._request("POST", "/create-game", json=metadata)
        except SettlementError as e:
            logger.warning(str(e))
            return None, None

        round_id = body.get("game_id")
        status = body.get("status")
        return (str(round_id) if round_id is not None else None), status

    async def report_winners(self, round_id: str, winners: List[Dict[str, Any]]) -> bool:
        try:
            body = await self._request(
                "POST",
                "/declare-winner",
                json={"game_id": round_id, "winners": winners},
            )
        except SettlementError as e:
            logger.warning(str(e))
            return False
        logger.info(f"Winners for round {round_id} stored: {body}")
        return True

    async def fetch_winning_pot(self) -> Tuple[Optional[str], bool]:
        try:
            body = await self._request("GET", "/winning-pot")
        except SettlementError as e:
            logger.warning(str(e))
            return None, False
        return body.get("pot"), body.get("status") == "success"
