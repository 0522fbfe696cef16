"""Receipt and voice recognition through the Gemini generateContent API.

The model output is untrusted: every response goes through a strict decode
step that either yields validated records or raises a typed error.
"""

import base64
import json
import math
import mimetypes
import re
from datetime import date
from pathlib import Path
from typing import Any

import httpx

from .config import RecognitionConfig
from .data_store import StorageError
from .logging_config import get_logger
from .models import RejectedRecord, ScannedPrice, ScanResult, VoiceItem
from .price_ledger import REASON_EMPTY_NAME, REASON_NON_POSITIVE_PRICE

log = get_logger(__name__)

REASON_INVALID_PRICE = "invalid_price"

SCAN_PROMPT = """Analiza este ticket de compra. Responde SOLO con JSON:
{"store":"nombre","date":"AAAA-MM-DD","products":[{"name":"producto","price":1.23}]}
Sin markdown, sin explicaciones. Precios con punto decimal."""

VOICE_PROMPT = """Analiza el siguiente texto dictado por un usuario para añadir productos a su lista de la compra.
Identifica cada producto mencionado y su cantidad.
Si no se especifica cantidad, asume 1.
Limpia los nombres para que sean genéricos y correctos (ej: "3 kilos de patatas" -> name: "Patatas", quantity: 3).

Texto dictado: "{transcript}"

Responde SOLO con un objeto JSON con este formato exacto y NADA más:
{{"items": [{{"name": "Nombre producto", "quantity": numero}}]}}
Sin markdown, sin explicaciones."""

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class RecognitionError(Exception):
    """Base class for recognition service failures."""


class RecognitionNotConfiguredError(RecognitionError):
    """No API key is configured."""


class RateLimitedError(RecognitionError):
    """The service rejected the call because of rate limits or quota."""


class InvalidCredentialsError(RecognitionError):
    """The API key is invalid or lacks access."""


class NoDetectionError(RecognitionError):
    """The response contained no usable products."""

    def __init__(self, message: str, rejected: list[RejectedRecord] | None = None):
        self.rejected = rejected or []
        super().__init__(message)


class RecognitionParseError(RecognitionError):
    """The response contained JSON of the wrong shape."""


class RecognitionUpstreamError(RecognitionError):
    """Transport failure or unexpected HTTP status."""


def user_message(error: Exception) -> str:
    """Human-readable message for errors users are expected to hit."""
    if isinstance(error, RecognitionNotConfiguredError):
        return "Falta configurar GEMINI_API_KEY."
    if isinstance(error, RateLimitedError):
        return "Límite de API alcanzado. Espera 1 minuto."
    if isinstance(error, InvalidCredentialsError):
        return "API Key inválida o sin acceso. Genera una nueva en aistudio.google.com/apikey"
    if isinstance(error, NoDetectionError):
        return str(error)
    if isinstance(error, RecognitionUpstreamError):
        return "No se pudo contactar con el servicio de reconocimiento."
    if isinstance(error, StorageError):
        return "No se pudo acceder a los datos guardados."
    return "Error inesperado. Inténtalo de nuevo."


def _extract_json_object(text: str) -> dict[str, Any] | None:
    """Strip code fences and parse the outermost JSON object, if any."""
    cleaned = _FENCE.sub("", text or "").strip()
    match = _JSON_OBJECT.search(cleaned)
    if not match:
        return None
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise RecognitionParseError(f"Malformed JSON in response: {e}") from e
    if not isinstance(payload, dict):
        raise RecognitionParseError("Response JSON is not an object")
    return payload


def _coerce_price(value: Any) -> float | None:
    """Parse prices such as 1.23, "1,23" or "1,23 €".

    Returns None when the value is unparseable or not finite.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace("€", "").replace(",", ".").strip()
    elif not isinstance(value, int | float):
        return None
    try:
        price = float(value)
    except (ValueError, OverflowError):
        return None
    return price if math.isfinite(price) else None


def _coerce_date(value: Any) -> date | None:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def decode_scan_payload(text: str) -> ScanResult:
    """Validate a receipt response into accepted and rejected price records.

    Raises:
        NoDetectionError: No JSON object, or no product with a valid price
        RecognitionParseError: JSON present but malformed or wrongly shaped
    """
    payload = _extract_json_object(text)
    if payload is None:
        raise NoDetectionError("No se detectaron productos. Intenta con mejor iluminación.")

    products = payload.get("products") or []
    if not isinstance(products, list):
        raise RecognitionParseError("'products' must be a list")

    store = payload.get("store")
    store = store.strip() if isinstance(store, str) and store.strip() else None

    result = ScanResult(store=store, receipt_date=_coerce_date(payload.get("date")))
    for raw in products:
        if not isinstance(raw, dict):
            raise RecognitionParseError("Every product must be an object")
        name = str(raw.get("name") or "").strip()
        price = _coerce_price(raw.get("price"))

        if not name:
            result.rejected.append(RejectedRecord(name="", reason=REASON_EMPTY_NAME, price=price))
        elif price is None:
            result.rejected.append(RejectedRecord(name=name, reason=REASON_INVALID_PRICE))
        elif price <= 0:
            result.rejected.append(
                RejectedRecord(name=name, reason=REASON_NON_POSITIVE_PRICE, price=price)
            )
        else:
            result.items.append(
                ScannedPrice(
                    name=name,
                    price=price,
                    unit_price=_coerce_price(raw.get("unit_price")),
                    store=store,
                )
            )

    if not result.items:
        raise NoDetectionError(
            "No se encontraron productos con precios válidos.", rejected=result.rejected
        )
    if result.rejected:
        log.warning("Dropped %d scanned records", len(result.rejected))
    return result


def decode_voice_payload(text: str) -> list[VoiceItem]:
    """Validate a dictation response into (name, quantity) items.

    Items without a name are skipped; missing or invalid quantities become 1.

    Raises:
        RecognitionParseError: JSON present but malformed or wrongly shaped
    """
    payload = _extract_json_object(text)
    if payload is None:
        return []

    raw_items = payload.get("items") or []
    if not isinstance(raw_items, list):
        raise RecognitionParseError("'items' must be a list")

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise RecognitionParseError("Every item must be an object")
        name = str(raw.get("name") or "").strip()
        if not name:
            continue
        try:
            quantity = int(float(raw.get("quantity", 1)))
        except (TypeError, ValueError, OverflowError):
            quantity = 1
        items.append(VoiceItem(name=name, quantity=max(quantity, 1)))
    return items


class GeminiClient:
    """Minimal generateContent client built on httpx."""

    def __init__(self, config: RecognitionConfig, client: httpx.Client | None = None):
        self.config = config
        self._client = client

    def generate(self, parts: list[dict[str, Any]]) -> str:
        """Send content parts and return the concatenated text of the first candidate.

        Raises:
            RecognitionError: One of its subclasses, by failure kind
        """
        if not self.config.is_configured:
            raise RecognitionNotConfiguredError("GEMINI_API_KEY is not configured")

        url = f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"
        body = {"contents": [{"parts": parts}]}
        headers = {"x-goog-api-key": self.config.api_key or ""}

        try:
            if self._client is not None:
                response = self._client.post(url, json=body, headers=headers)
            else:
                with httpx.Client(timeout=self.config.timeout) as client:
                    response = client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            log.error("Recognition request failed: %s", e)
            raise RecognitionUpstreamError(str(e)) from e

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise RecognitionUpstreamError("Response body is not JSON") from e

        try:
            parts_out = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts_out)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise NoDetectionError(
                "No se detectaron productos. Intenta con mejor iluminación."
            ) from e
        log.debug("Recognition response: %s", text)
        return text

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        detail = response.text[:300]
        log.error("Recognition service returned %s: %s", response.status_code, detail)

        if response.status_code == 429 or "RESOURCE_EXHAUSTED" in detail or "quota" in detail:
            raise RateLimitedError(detail)
        if response.status_code in (401, 403):
            raise InvalidCredentialsError(detail)
        if "API_KEY_INVALID" in detail or "API key not valid" in detail:
            raise InvalidCredentialsError(detail)
        raise RecognitionUpstreamError(f"HTTP {response.status_code}: {detail}")


class ReceiptRecognizer:
    """Turns a receipt photo into validated (name, price) records."""

    def __init__(self, config: RecognitionConfig, client: httpx.Client | None = None):
        self.gemini = GeminiClient(config, client)

    def scan(self, image: bytes, mime_type: str = "image/jpeg") -> ScanResult:
        """Recognize prices on a receipt image."""
        parts = [
            {"text": SCAN_PROMPT},
            {
                "inline_data": {
                    "mime_type": mime_type,
                    "data": base64.b64encode(image).decode("ascii"),
                }
            },
        ]
        return decode_scan_payload(self.gemini.generate(parts))

    def scan_file(self, path: Path) -> ScanResult:
        """Recognize prices on a receipt image file."""
        mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        return self.scan(path.read_bytes(), mime_type)


class VoiceListParser:
    """Turns dictated text into shopping list items."""

    def __init__(self, config: RecognitionConfig, client: httpx.Client | None = None):
        self.gemini = GeminiClient(config, client)

    def parse(self, transcript: str) -> list[VoiceItem]:
        """Extract (name, quantity) pairs from a transcript."""
        transcript = transcript.strip()
        if not transcript:
            return []
        prompt = VOICE_PROMPT.format(transcript=transcript)
        return decode_voice_payload(self.gemini.generate([{"text": prompt}]))
