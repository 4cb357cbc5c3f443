"""Cargus (Urgent Cargus) API-klient.

Använder Cargus REST API (urgentcargus.azure-api.net):
- LoginUser: hämta token
- Counties / Localities: geografisk referensdata (län och orter)
- Awbs: skapa fraktsedel (AWB)
- AwbDocuments: hämta etikett (base64-kodad PDF)

API-autentisering: Header 'Ocp-Apim-Subscription-Key' på alla anrop,
plus 'Authorization: Bearer <token>' efter inloggning.

Klienten håller inget sessionstillstånd själv. Varje operation tar en
CargusSession och returnerar ett ApiResult med ev. uppdaterad session.
Inga undantag når anroparen: fel loggas och returneras som ApiError.
"""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from typing import Any, Optional

import requests

from .base import CarrierClient
from ..models import ApiError, ApiResult, CargusSession, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://urgentcargus.azure-api.net/api"
DEFAULT_TIMEOUT_SECONDS = 120
DEFAULT_COUNTRY_ID = 1  # Rumänien

# API-sökvägar (relativa till base_url)
API_PATHS = {
    "login": "/LoginUser",
    "counties": "/Counties",
    "localities": "/Localities",
    "awbs": "/Awbs",
    "awb_documents": "/AwbDocuments",
}

LABEL_TYPE = "PDF"
LABEL_FORMAT = 0  # En etikett per sida


class CargusRequestError(Exception):
    """Internt fel från ett enskilt API-anrop. Når aldrig anroparen."""

    def __init__(self, error: ApiError):
        super().__init__(error.message)
        self.error = error


def _response_body(response: requests.Response) -> Any:
    """JSON om svaret går att parsa, annars rå text."""
    try:
        return response.json()
    except ValueError:
        return response.text


def _unquote(value: str) -> str:
    return value.strip().strip('"')


def _token_from_body(body: Any) -> str:
    """Token som sträng. En numerisk text-token parsas som JSON-tal."""
    if isinstance(body, str):
        return _unquote(body)
    if isinstance(body, (int, float)) and not isinstance(body, bool):
        return str(body)
    return ""


def label_file_name(waybill_id: str) -> str:
    """Filnamn för etiketten, <awb>.pdf.

    Raises:
        ValueError: om AWB-numret innehåller sökvägsdelar.
    """
    file_name = f"{waybill_id}.pdf"
    if "/" in file_name or "\\" in file_name or Path(file_name).name != file_name:
        raise ValueError(f"Ogiltigt AWB-nummer för filnamn: {waybill_id!r}")
    return file_name


def extract_waybill_id(payload: Any) -> Optional[str]:
    """Plockar ut AWB-numret ur svaret från POST /Awbs.

    Cargus returnerar normalt streckkoden direkt, men svaret kan också
    vara ett objekt ({"id": ...} / {"BarCode": ...}) eller en lista.
    """
    if isinstance(payload, list):
        return extract_waybill_id(payload[0]) if payload else None
    if isinstance(payload, dict):
        for key in ("id", "BarCode"):
            value = payload.get(key)
            if value not in (None, ""):
                return str(value)
        return None
    if payload is None or isinstance(payload, bool):
        return None
    waybill_id = _unquote(str(payload))
    return waybill_id or None


class CargusClient(CarrierClient):
    """Klient för Cargus REST API.

    Flöde (styrs helt av anroparen):
      1. login() → session med token
      2. get_counties() / get_localities() → referensdata (valfritt)
      3. create_waybill() → session med last_waybill_id
      4. get_label_document() → sparar <awb>.pdf i label_dir
    """

    def __init__(self, config: dict):
        self.base_url = config.get("base_url", DEFAULT_BASE_URL).rstrip("/")
        self.timeout = config.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
        self.country_id = config.get("country_id", DEFAULT_COUNTRY_ID)
        self.label_dir = Path(config.get("label_dir", "."))
        self.session = self._create_session(config)

    def _create_session(self, config: dict) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "Accept": "application/json",
            "Ocp-Apim-Subscription-Key": config["subscription_key"],
        })
        if config.get("trace", True):
            session.headers["Ocp-Apim-Trace"] = "true"
        return session

    def close(self):
        self.session.close()

    def __enter__(self) -> CargusClient:
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ------------------------------------------------------------------
    # Gemensamt
    # ------------------------------------------------------------------

    def _request(self, method: str, path_key: str,
                 cargus_session: Optional[CargusSession] = None,
                 **kwargs) -> Any:
        """Gör ett anrop och returnerar svarskroppen vid status 200.

        Med cargus_session skickas Bearer-token med. JSON-body skickas via
        json= så att requests sätter Content-Type: application/json.

        Raises:
            CargusRequestError: vid transportfel eller status != 200.
        """
        url = f"{self.base_url}{API_PATHS[path_key]}"
        headers = {}
        if cargus_session is not None:
            headers["Authorization"] = f"Bearer {cargus_session.token}"

        send = self.session.post if method == "POST" else self.session.get
        try:
            response = send(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise CargusRequestError(ApiError(
                kind=ErrorKind.TRANSPORT,
                message=f"{method} {API_PATHS[path_key]} misslyckades: {e}",
            )) from e

        if response.status_code != 200:
            body = _response_body(response)
            raise CargusRequestError(ApiError(
                kind=ErrorKind.RESPONSE,
                message=(
                    f"{method} {API_PATHS[path_key]} gav HTTP "
                    f"{response.status_code}"
                ),
                status_code=response.status_code,
                body=body,
            ))

        return _response_body(response)

    def _fail(self, cargus_session: CargusSession, operation: str,
              error: ApiError) -> ApiResult:
        """Loggar felet (en post) och returnerar ett tomt resultat."""
        if error.body not in (None, ""):
            logger.error(f"Cargus {operation}: {error.message}. Svar: {error.body}")
        else:
            logger.error(f"Cargus {operation}: {error.message}")
        return ApiResult(value=None, session=cargus_session, error=error)

    def _require_token(self, cargus_session: CargusSession,
                       operation: str) -> Optional[ApiResult]:
        if cargus_session.token:
            return None
        return self._fail(cargus_session, operation, ApiError(
            kind=ErrorKind.UNAUTHENTICATED,
            message="Token saknas. Logga in först.",
        ))

    # ------------------------------------------------------------------
    # LoginUser
    # ------------------------------------------------------------------

    def login(self, cargus_session: CargusSession, username: str,
              password: str) -> ApiResult:
        """Loggar in och hämtar token.

        POST /LoginUser med {"UserName": ..., "Password": ...}

        Svaret är själva token-strängen (JSON-sträng). Vid fel behålls
        sessionens tidigare token.

        Returns:
            ApiResult med value=True och session med ny token.
        """
        logger.info(f"Cargus: Loggar in som {username}")
        try:
            body = self._request(
                "POST", "login",
                json={"UserName": username, "Password": password},
            )
        except CargusRequestError as e:
            return self._fail(cargus_session, "LoginUser", e.error)

        token = _token_from_body(body)
        if not token:
            return self._fail(cargus_session, "LoginUser", ApiError(
                kind=ErrorKind.RESPONSE,
                message="Svar 200 men inget token i svaret",
                status_code=200,
            ))

        logger.info("Cargus: Inloggning lyckades, token erhållen")
        return ApiResult(value=True, session=cargus_session.with_token(token))

    # ------------------------------------------------------------------
    # Referensdata
    # ------------------------------------------------------------------

    def get_counties(self, cargus_session: CargusSession) -> ApiResult:
        """Hämtar län (județe) för landet.

        GET /Counties?countryId=1
        """
        failed = self._require_token(cargus_session, "Counties")
        if failed is not None:
            return failed

        try:
            counties = self._request(
                "GET", "counties", cargus_session,
                params={"countryId": self.country_id},
            )
        except CargusRequestError as e:
            return self._fail(cargus_session, "Counties", e.error)

        logger.info(f"Cargus: Hämtade {_count(counties)} län")
        return ApiResult(value=counties, session=cargus_session)

    def get_localities(self, cargus_session: CargusSession,
                       county_id) -> ApiResult:
        """Hämtar orter inom ett län.

        GET /Localities?countryId=1&countyId=<county_id>
        """
        failed = self._require_token(cargus_session, "Localities")
        if failed is not None:
            return failed

        try:
            localities = self._request(
                "GET", "localities", cargus_session,
                params={"countryId": self.country_id, "countyId": county_id},
            )
        except CargusRequestError as e:
            return self._fail(cargus_session, "Localities", e.error)

        logger.info(
            f"Cargus: Hämtade {_count(localities)} orter för län {county_id}"
        )
        return ApiResult(value=localities, session=cargus_session)

    # ------------------------------------------------------------------
    # Awbs
    # ------------------------------------------------------------------

    def create_waybill(self, cargus_session: CargusSession,
                       waybill_data: dict) -> ApiResult:
        """Skapar fraktsedel via POST /Awbs.

        waybill_data skickas oförändrat. Strukturen definieras av Cargus
        dokumentation och valideras inte här.

        Returns:
            ApiResult med hela svaret som value och session med
            last_waybill_id satt till AWB-numret.
        """
        failed = self._require_token(cargus_session, "Awbs")
        if failed is not None:
            return failed

        try:
            payload = self._request(
                "POST", "awbs", cargus_session, json=waybill_data,
            )
        except CargusRequestError as e:
            return self._fail(cargus_session, "Awbs", e.error)

        waybill_id = extract_waybill_id(payload)
        if not waybill_id:
            return self._fail(cargus_session, "Awbs", ApiError(
                kind=ErrorKind.RESPONSE,
                message="Svar 200 men inget AWB-nummer i svaret",
                status_code=200,
                body=payload,
            ))

        logger.info(f"Cargus: AWB skapad: {waybill_id}")
        return ApiResult(
            value=payload,
            session=cargus_session.with_waybill(waybill_id),
        )

    # ------------------------------------------------------------------
    # AwbDocuments
    # ------------------------------------------------------------------

    def get_label_document(self, cargus_session: CargusSession) -> ApiResult:
        """Hämtar etikett (PDF) för senast skapade AWB och sparar den.

        GET /AwbDocuments?barCodes=<awb>&type=PDF&format=0

        Svaret är en base64-kodad PDF. Filen skrivs som <awb>.pdf i
        label_dir och skriver över en befintlig fil med samma namn.

        Returns:
            ApiResult med filnamnet som value.
        """
        failed = self._require_token(cargus_session, "AwbDocuments")
        if failed is not None:
            return failed
        waybill_id = cargus_session.last_waybill_id
        if not waybill_id:
            return self._fail(cargus_session, "AwbDocuments", ApiError(
                kind=ErrorKind.MISSING_WAYBILL,
                message="Ingen AWB i sessionen. Skapa en fraktsedel först.",
            ))
        try:
            file_name = label_file_name(waybill_id)
        except ValueError as e:
            return self._fail(cargus_session, "AwbDocuments", ApiError(
                kind=ErrorKind.LOCAL,
                message=str(e),
            ))

        logger.info(f"Cargus: Hämtar etikett för {waybill_id}")
        try:
            body = self._request(
                "GET", "awb_documents", cargus_session,
                params={
                    "barCodes": waybill_id,
                    "type": LABEL_TYPE,
                    "format": LABEL_FORMAT,
                },
            )
        except CargusRequestError as e:
            return self._fail(cargus_session, "AwbDocuments", e.error)

        try:
            pdf_data = _decode_label(body)
            self.label_dir.mkdir(parents=True, exist_ok=True)
            (self.label_dir / file_name).write_bytes(pdf_data)
        except (binascii.Error, ValueError, OSError) as e:
            return self._fail(cargus_session, "AwbDocuments", ApiError(
                kind=ErrorKind.LOCAL,
                message=f"Kunde inte skapa PDF-filen {file_name}: {e}",
            ))

        logger.info(f"Cargus: Etikett sparad: {file_name} ({len(pdf_data)} bytes)")
        return ApiResult(value=file_name, session=cargus_session)


def _decode_label(body: Any) -> bytes:
    """Avkodar base64-etiketten strikt.

    Raises:
        ValueError (binascii.Error): om innehållet inte är giltig base64.
    """
    if not isinstance(body, str):
        raise ValueError(f"Oväntat svar, förväntade base64-sträng: {type(body).__name__}")
    encoded = _unquote(body)
    if not encoded:
        raise ValueError("Tomt etikettsvar")
    return base64.b64decode(encoded, validate=True)


def _count(data: Any) -> Any:
    return len(data) if isinstance(data, (list, dict)) else "?"
