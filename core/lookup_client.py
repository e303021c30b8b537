from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import httpx
import logging
from config.settings import settings
from model.lookup import LookupResult, Offer
from util.constants import ExternalURIs
from util.errors import LookupFailed
from util.functions import parse_amount, parse_int
from util.timing import timed

logger = logging.getLogger(__name__)


class LookupClient(ABC):
    """One consultation per key. Raises LookupFailed when no result can be produced."""

    @abstractmethod
    async def lookup(self, key: str) -> LookupResult: ...


def _parse_offer(node: Dict[str, Any]) -> Offer:
    oferta = node.get("oferta") or {}
    resposta = node.get("resposta") or {}
    return Offer(
        request_id=resposta.get("idSolicitacao") or oferta.get("idSolicitacao"),
        worker_name=oferta.get("nomeTrabalhador"),
        amount=parse_amount(resposta.get("valorLiberado") or oferta.get("valorLiberado")),
        installments=parse_int(resposta.get("numeroParcelas") or oferta.get("nroParcelas")),
        installment_value=parse_amount(resposta.get("valorParcela")),
        raw=node,
    )


def parse_lookup_payload(key: str, body: Any) -> LookupResult:
    """
    Unwrap the `{message, cpf, data, timestamp}` envelope and normalize
    `data = {erro, mensagem, total, dados[]}` into a LookupResult.
    """
    if not isinstance(body, dict):
        raise LookupFailed("Malformed lookup response")
    data = body.get("data", body)
    if not isinstance(data, dict):
        raise LookupFailed("Malformed lookup response")

    dados = data.get("dados") or []
    if not isinstance(dados, list):
        raise LookupFailed("Malformed lookup response")

    offers = [_parse_offer(d) for d in dados if isinstance(d, dict)]
    return LookupResult(
        key=key,
        error=bool(data.get("erro", False)),
        message=str(data.get("mensagem") or ""),
        offers=offers,
        raw=data,
    )


class HttpLookupClient(LookupClient):
    def __init__(
        self,
        base_url: str = settings.LOOKUP_API_URL,
        token: str = settings.UPSTREAM_API_TOKEN,
        timeout: float = settings.LOOKUP_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = base_url.rstrip("/") + ExternalURIs.LOOKUP_OFFERS
        self._token = token
        self._timeout = httpx.Timeout(timeout, connect=min(5.0, timeout))
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"content-type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _post(self, key: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                self._url, headers=self._headers(), json={"cpf": key}, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._url, headers=self._headers(), json={"cpf": key})

    async def lookup(self, key: str) -> LookupResult:
        try:
            with timed(logger, "lookup.call", key=key[-4:]):
                res = await self._post(key)
        except httpx.RequestError as e:
            logger.error("lookup.request_error err=%s", type(e).__name__)
            raise LookupFailed("Lookup request failed") from e

        if res.status_code // 100 != 2:
            logger.error("lookup.bad_status status=%d", res.status_code)
            raise LookupFailed(f"Lookup API returned {res.status_code}")

        try:
            body = res.json()
        except ValueError as e:
            raise LookupFailed("Malformed lookup response") from e

        result = parse_lookup_payload(key, body)
        logger.info(
            "lookup.ok key=%s offers=%d upstream_error=%s",
            key[-4:],
            len(result.offers),
            result.error,
        )
        return result
