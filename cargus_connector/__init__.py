"""Cargus Connector: klient för Cargus (Urgent Cargus) REST API."""

from .carriers.cargus import CargusClient
from .models import ApiError, ApiResult, CargusSession, ErrorKind, SessionState

__all__ = [
    "CargusClient",
    "ApiError",
    "ApiResult",
    "CargusSession",
    "ErrorKind",
    "SessionState",
]
