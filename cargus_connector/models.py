"""Datamodeller för Cargus-sessioner och API-resultat."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    HAS_WAYBILL = "has_waybill"


class ErrorKind(Enum):
    """Feltyper som klienten skiljer på.

    UNAUTHENTICATED och MISSING_WAYBILL upptäcks innan något nätverksanrop görs.
    """
    UNAUTHENTICATED = "unauthenticated"
    MISSING_WAYBILL = "missing_waybill"
    TRANSPORT = "transport"
    RESPONSE = "response"
    LOCAL = "local"


@dataclass(frozen=True)
class CargusSession:
    """Sessionstillstånd mot Cargus API.

    Oföränderligt: operationerna returnerar en ny session i ApiResult
    i stället för att ändra klientens tillstånd.
    """
    token: Optional[str] = None
    last_waybill_id: Optional[str] = None

    @property
    def state(self) -> SessionState:
        if not self.token:
            return SessionState.UNAUTHENTICATED
        if not self.last_waybill_id:
            return SessionState.AUTHENTICATED
        return SessionState.HAS_WAYBILL

    def with_token(self, token: str) -> CargusSession:
        return replace(self, token=token)

    def with_waybill(self, waybill_id: str) -> CargusSession:
        return replace(self, last_waybill_id=waybill_id)

    def __repr__(self) -> str:
        # Token får aldrig hamna i loggar
        masked = "***" if self.token else None
        return (
            f"CargusSession(token={masked!r}, "
            f"last_waybill_id={self.last_waybill_id!r})"
        )


@dataclass
class ApiError:
    kind: ErrorKind
    message: str
    status_code: Optional[int] = None
    body: Any = None


@dataclass
class ApiResult:
    """Resultat från en klientoperation.

    Vid fel är value None och session är samma session som skickades in.
    """
    value: Any = None
    session: CargusSession = CargusSession()
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok
