"""
Payment slip pipeline.

One image event goes through:

    received -> decoding_qr -> extracting -> resolving_obligation
             -> reconciling -> confirmed

and may stop early in any of the other terminal states. Extraction and
obligation lookup run concurrently; their results are checked in the order
above so the reply is the same whichever finishes first.

Every terminal state produces exactly one reply. This is the only place
that replies to image messages.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from pydantic import BaseModel
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.line import messages
from app.line.client import LineClient, LineApiError
from app.models.bill import Obligation
from app.schemas.events import ImageEvent
from app.schemas.slip import SlipRecord
from app.services.bill_service import BillService
from app.services.obligation_service import ObligationService
from app.services.qr_service import decode_qr_async
from app.services.reconciliation import Decision, ReconciliationResult, reconcile
from app.services.settlement_service import SettlementService, SettlementStatus
from app.services.slip_service import SlipExtractor

logger = logging.getLogger(__name__)

QrDecoder = Callable[[bytes], Awaitable[Optional[str]]]


class PipelineState(str, Enum):
    RECEIVED = "received"
    DECODING_QR = "decoding_qr"
    EXTRACTING = "extracting"
    RESOLVING_OBLIGATION = "resolving_obligation"
    RECONCILING = "reconciling"

    NOT_IN_GROUP = "not_in_group"
    NO_QR_DETECTED = "no_qr_detected"
    EXTRACTION_FAILED = "extraction_failed"
    AMOUNT_MISSING = "amount_missing"
    NO_PENDING_OBLIGATION = "no_pending_obligation"
    MISMATCH = "mismatch"
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({
    PipelineState.NOT_IN_GROUP,
    PipelineState.NO_QR_DETECTED,
    PipelineState.EXTRACTION_FAILED,
    PipelineState.AMOUNT_MISSING,
    PipelineState.NO_PENDING_OBLIGATION,
    PipelineState.MISMATCH,
    PipelineState.CONFIRMED,
    PipelineState.ALREADY_CONFIRMED,
    PipelineState.FAILED,
})


class PipelineOutcome(BaseModel):
    state: PipelineState
    reply: Dict
    qr_payload: Optional[str] = None
    slip: Optional[SlipRecord] = None
    obligation: Optional[Obligation] = None
    reconciliation: Optional[ReconciliationResult] = None


class SlipPipeline:
    def __init__(
        self,
        extractor: SlipExtractor,
        resolver: ObligationService,
        settlement: SettlementService,
        line: LineClient,
        bill_service: Optional[BillService] = None,
        qr_decoder: QrDecoder = decode_qr_async,
        require_qr: Optional[bool] = None,
        tolerance: Optional[float] = None,
    ):
        self.extractor = extractor
        self.resolver = resolver
        self.settlement = settlement
        self.line = line
        self.bill_service = bill_service
        self.qr_decoder = qr_decoder
        self.require_qr = settings.REQUIRE_QR_CODE if require_qr is None else require_qr
        self.tolerance = tolerance

    async def handle(self, event: ImageEvent) -> PipelineOutcome:
        """Run the pipeline for an image event and send its single reply."""
        source = event.source
        logger.debug("%s: message %s", PipelineState.RECEIVED.value, event.message_id)
        if not source.is_group or not source.user_id:
            outcome = PipelineOutcome(
                state=PipelineState.NOT_IN_GROUP,
                reply=messages.text_message("Slip verification only works in groups"),
            )
        else:
            try:
                image_bytes = await self.line.get_message_content(event.message_id)
                if len(image_bytes) > settings.MAX_IMAGE_SIZE:
                    raise ValueError(f"Image too large: {len(image_bytes)} bytes")
                outcome = await self.run(source.group_id, source.user_id, image_bytes)
            except (LineApiError, PyMongoError, ValueError):
                logger.exception("Slip pipeline failed for message %s", event.message_id)
                outcome = PipelineOutcome(state=PipelineState.FAILED, reply=messages.generic_failure())
            except Exception:
                logger.exception("Unexpected error in slip pipeline for message %s", event.message_id)
                outcome = PipelineOutcome(state=PipelineState.FAILED, reply=messages.generic_failure())

        logger.info(
            "Slip %s from %s in %s -> %s",
            event.message_id, source.user_id, source.group_id, outcome.state.value,
        )

        if event.reply_token:
            await self.line.reply_message(event.reply_token, [outcome.reply])

        if outcome.state == PipelineState.CONFIRMED and self.bill_service is not None:
            await self.bill_service.push_status(self.line, source.group_id)

        return outcome

    async def run(self, group_id: str, user_id: str, image_bytes: bytes) -> PipelineOutcome:
        """Decide the outcome for one slip image. Sends nothing to the chat."""
        logger.debug("%s: %s", PipelineState.DECODING_QR.value, user_id)
        qr_payload = await self.qr_decoder(image_bytes)
        if qr_payload is None:
            if self.require_qr:
                return PipelineOutcome(state=PipelineState.NO_QR_DETECTED, reply=messages.no_qr_detected())
            logger.info("No QR code in image from %s, extracting anyway", user_id)

        logger.debug("%s + %s: %s", PipelineState.EXTRACTING.value, PipelineState.RESOLVING_OBLIGATION.value, user_id)
        extract_task = asyncio.ensure_future(self.extractor.extract(image_bytes))
        resolve_task = asyncio.ensure_future(self.resolver.resolve(group_id, user_id))
        try:
            slip, obligation = await asyncio.gather(extract_task, resolve_task)
        except Exception:
            # gather does not cancel the sibling when one side fails
            extract_task.cancel()
            resolve_task.cancel()
            raise
        details = dict(qr_payload=qr_payload, slip=slip, obligation=obligation)

        if not slip.ok:
            return PipelineOutcome(
                state=PipelineState.EXTRACTION_FAILED, reply=messages.extraction_failed(), **details
            )

        logger.debug("%s: %s", PipelineState.RECONCILING.value, user_id)
        result = reconcile(slip.amount, obligation, self.tolerance)
        details["reconciliation"] = result

        if result.decision == Decision.AMOUNT_MISSING:
            return PipelineOutcome(
                state=PipelineState.AMOUNT_MISSING, reply=messages.amount_not_detected(), **details
            )

        if result.decision == Decision.NO_OBLIGATION:
            return PipelineOutcome(
                state=PipelineState.NO_PENDING_OBLIGATION,
                reply=messages.no_pending_obligation(result.received),
                **details,
            )

        if result.decision == Decision.MISMATCH:
            return PipelineOutcome(
                state=PipelineState.MISMATCH,
                reply=messages.amount_mismatch(result.bill_title, result.expected, result.received),
                **details,
            )

        status = await self.settlement.mark_paid(obligation, slip)
        if status == SettlementStatus.ALREADY_PAID:
            return PipelineOutcome(
                state=PipelineState.ALREADY_CONFIRMED,
                reply=messages.payment_already_confirmed(result.bill_title, result.expected),
                **details,
            )

        return PipelineOutcome(
            state=PipelineState.CONFIRMED,
            reply=messages.payment_confirmed(
                result.bill_title, result.expected, result.received, slip.reference_id
            ),
            **details,
        )
