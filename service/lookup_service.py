import logging
from core.lookup_client import LookupClient
from core.registration_sink import HttpRegistrationSink
from model.lookup import LookupResult, RegisteredCltPage
from util.enums import ErrorMessage
from util.errors import AppError, LookupFailed, RegistrationFailed

logger = logging.getLogger(__name__)


class LookupService:
    """
    One-off consultations and the registered-CLT listing, outside any job.
    """

    def __init__(self, lookup: LookupClient, registry: HttpRegistrationSink) -> None:
        self._lookup = lookup
        self._registry = registry

    async def lookup(self, key: str) -> LookupResult:
        try:
            return await self._lookup.lookup(key.strip())
        except LookupFailed as e:
            logger.warning("lookup.single.failed err=%s", e.message)
            raise AppError(e.message, ErrorMessage.UPSTREAM_ERROR.value.http_status)

    async def registered(self, page: int, limit: int) -> RegisteredCltPage:
        try:
            return await self._registry.list_registered(page=page, limit=limit)
        except RegistrationFailed:
            raise AppError.of(ErrorMessage.UPSTREAM_ERROR)
