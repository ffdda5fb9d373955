"""
Slip extraction - turn a transfer slip image into a SlipRecord.

The vision model is not deterministic, so its output is treated as
untrusted: the reply must be one JSON object with exactly the slip keys,
and every field is re-validated. Unknown or garbled fields become None.
Anything that cannot be parsed at all becomes an error record.
"""

import asyncio
import io
import json
import logging
import math
import re
from datetime import datetime
from typing import Any, Optional, Protocol

from fastapi.concurrency import run_in_threadpool
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.ocr.gemini import GeminiClient, GeminiError, image_part
from app.ocr.instructions import SLIP_EXTRACTION_PROMPT
from app.schemas.slip import SLIP_FIELDS, SlipRecord

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
_AMOUNT_NOISE = re.compile(r"(?i)thb|baht|บาท|฿|,|\s")


class SlipExtractionError(Exception):
    """Model output could not be turned into a SlipRecord."""
    pass


class SlipExtractor(Protocol):
    async def extract(self, image_bytes: bytes, mime_type: Optional[str] = None) -> SlipRecord:
        ...


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def coerce_amount(value: Any) -> Optional[float]:
    """Numeric amount or None. Never raises."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        cleaned = _AMOUNT_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            amount = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(amount) or amount < 0:
        return None
    return amount


def _coerce_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _coerce_date(value: Any) -> Optional[str]:
    text = _coerce_text(value)
    if text is None or not _DATE_RE.match(text):
        return None
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return None
    return text


def _coerce_time(value: Any) -> Optional[str]:
    text = _coerce_text(value)
    match = _TIME_RE.match(text) if text else None
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def parse_slip_response(text: str) -> SlipRecord:
    """
    Parse raw model output into a SlipRecord.

    Raises SlipExtractionError when the output is not exactly one JSON
    object with the slip keys.
    """
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        raise SlipExtractionError("Model returned an empty response")

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise SlipExtractionError(f"Model output is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise SlipExtractionError("Model output is not a JSON object")

    missing = set(SLIP_FIELDS) - parsed.keys()
    extra = parsed.keys() - set(SLIP_FIELDS)
    if missing:
        raise SlipExtractionError(f"Model output is missing keys: {', '.join(sorted(missing))}")
    if extra:
        raise SlipExtractionError(f"Model output has unexpected keys: {', '.join(sorted(extra))}")

    return SlipRecord(
        bank_name=_coerce_text(parsed["bank_name"]),
        amount=coerce_amount(parsed["amount"]),
        transaction_date=_coerce_date(parsed["transaction_date"]),
        transaction_time=_coerce_time(parsed["transaction_time"]),
        sender=_coerce_text(parsed["sender"]),
        receiver=_coerce_text(parsed["receiver"]),
        reference_id=_coerce_text(parsed["reference_id"]),
        channel=_coerce_text(parsed["channel"]),
    )


def guess_mime_type(image_bytes: bytes) -> str:
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return Image.MIME.get(img.format, "image/jpeg")
    except (UnidentifiedImageError, OSError, ValueError):
        return "image/jpeg"


class GeminiSlipExtractor:
    """SlipExtractor backed by Gemini vision."""

    def __init__(self, client: Optional[GeminiClient] = None, timeout: Optional[float] = None):
        self.client = client or GeminiClient()
        self.timeout = timeout or settings.EXTRACTION_TIMEOUT_SECONDS

    async def extract(self, image_bytes: bytes, mime_type: Optional[str] = None) -> SlipRecord:
        parts = [
            {"text": SLIP_EXTRACTION_PROMPT},
            image_part(image_bytes, mime_type or guess_mime_type(image_bytes)),
        ]
        try:
            text = await asyncio.wait_for(
                run_in_threadpool(
                    self.client.generate_content,
                    parts,
                    temperature=0.0,
                    response_mime_type="application/json",
                ),
                timeout=self.timeout,
            )
            return parse_slip_response(text)
        except asyncio.TimeoutError:
            logger.warning("Slip extraction timed out after %ss", self.timeout)
            return SlipRecord.failed(f"Slip extraction timed out after {self.timeout}s")
        except (GeminiError, SlipExtractionError) as e:
            logger.warning("Slip extraction failed: %s", e)
            return SlipRecord.failed(str(e))
