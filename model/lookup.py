from typing import Any, Optional
from pydantic import BaseModel, Field
from util.constants import NO_OFFER_MESSAGE


class Offer(BaseModel):
    request_id: Optional[str] = None
    worker_name: Optional[str] = None
    amount: float = 0.0
    installments: int = 0
    installment_value: float = 0.0
    raw: dict[str, Any] = Field(default_factory=dict)


class LookupResult(BaseModel):
    """
    One consultation outcome. `error`/`message` mirror the upstream flags;
    an upstream "no offers" answer arrives with error=True and no offers,
    which is still a valid (empty) result rather than a failed lookup.
    """

    key: str
    error: bool = False
    message: str = ""
    offers: list[Offer] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_offers(self) -> bool:
        return len(self.offers) > 0

    @property
    def amount(self) -> float:
        return self.offers[0].amount if self.offers else 0.0

    @property
    def is_no_offer(self) -> bool:
        # The only empty answer that still counts as a registrable worker
        return self.error and not self.offers and self.message.strip() == NO_OFFER_MESSAGE


class RegisteredClt(BaseModel):
    id: int
    nome: str
    cpf: str
    status: str
    valorLiberado: Optional[float] = None
    createdAt: str
    updatedAt: str


class RegisteredCltPage(BaseModel):
    cadClts: list[RegisteredClt]
    pagination: dict[str, int]
