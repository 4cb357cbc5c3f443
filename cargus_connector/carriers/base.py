"""Abstrakt basklass för transportörklienter."""

from abc import ABC, abstractmethod
from ..models import ApiResult, CargusSession


class CarrierClient(ABC):
    """Basklass som alla transportörklienter implementerar.

    Sessionen (CargusSession) skickas in i varje anrop och en eventuellt uppdaterad
    session returneras i ApiResult.session.
    """

    @abstractmethod
    def login(self, cargus_session: CargusSession, username: str,
              password: str) -> ApiResult:
        """Loggar in och returnerar en session med token."""

    @abstractmethod
    def create_waybill(self, cargus_session: CargusSession,
                       waybill_data: dict) -> ApiResult:
        """Skapar en fraktsedel (AWB) hos transportören."""

    @abstractmethod
    def get_label_document(self, cargus_session: CargusSession) -> ApiResult:
        """Hämtar etikett för senast skapade fraktsedel och sparar den."""
