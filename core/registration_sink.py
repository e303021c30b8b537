from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import httpx
import logging
from config.settings import settings
from model.lookup import RegisteredCltPage
from util.constants import ExternalURIs, REGISTERED_STATUS
from util.errors import RegistrationFailed

logger = logging.getLogger(__name__)


class RegistrationSink(ABC):
    """Records resolved lookups in the downstream CLT registry."""

    @abstractmethod
    async def register(
        self, key: str, label: str, has_amount: bool, amount: Optional[float] = None
    ) -> None: ...


class HttpRegistrationSink(RegistrationSink):
    def __init__(
        self,
        base_url: str = settings.REGISTRATION_API_URL,
        token: str = settings.UPSTREAM_API_TOKEN,
        timeout: float = settings.REGISTRATION_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = base_url.rstrip("/") + ExternalURIs.REGISTER_CLT
        self._token = token
        self._timeout = httpx.Timeout(timeout, connect=min(5.0, timeout))
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"content-type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(
                method, self._url, headers=self._headers(), timeout=self._timeout, **kwargs
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, self._url, headers=self._headers(), **kwargs)

    async def register(
        self, key: str, label: str, has_amount: bool, amount: Optional[float] = None
    ) -> None:
        payload: Dict[str, Any] = {"nome": label, "cpf": key, "status": REGISTERED_STATUS}
        if has_amount and amount is not None:
            payload["valorLiberado"] = amount

        try:
            res = await self._request("POST", json=payload)
        except httpx.RequestError as e:
            raise RegistrationFailed(f"request error: {type(e).__name__}") from e

        if res.status_code // 100 != 2:
            raise RegistrationFailed(f"registration API returned {res.status_code}")
        logger.info("registration.ok key=%s with_amount=%s", key[-4:], has_amount)

    async def list_registered(self, page: int = 1, limit: int = 20) -> RegisteredCltPage:
        try:
            res = await self._request("GET", params={"page": page, "limit": limit})
            res.raise_for_status()
            return RegisteredCltPage.model_validate(res.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error("registration.list.error err=%s", type(e).__name__)
            raise RegistrationFailed("could not list registered CLTs") from e
