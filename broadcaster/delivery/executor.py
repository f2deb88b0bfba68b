"""
Delivery executor: claim, render, externalize, send, finalize.

The claim is the only way into ``sending`` and ``SendingLease`` is the
only way out of it. Whatever happens between the two, including
cancellation, the lease settles the record as ``sent`` or ``failed``
before ``execute`` returns.
"""
import asyncio
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ..errors import NotFoundError, TransportError
from ..logging_config import delivery_logger, timed
from ..richtext import content_digest, render_content
from ..timeutil import utcnow
from .externalizer import ImageExternalizer, count_inline_images
from .lifecycle import BroadcastEvent, BroadcastStatus, check_transition, source_statuses
from .store import BroadcastStore
from .transport import EmailTransport, OutboundEmail


@dataclass
class DeliveryOutcome:
    broadcast_id: str
    status: str  # sent, failed, skipped
    provider_reference: Optional[str] = None
    error: Optional[str] = None
    images_externalized: int = 0
    image_failures: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _is_due(scheduled_for: Optional[datetime], due_by: datetime) -> bool:
    return scheduled_for is not None and scheduled_for <= due_by


class SendingLease:
    """Guarantees a claimed broadcast leaves ``sending``."""

    def __init__(self, store: BroadcastStore, broadcast_id: str, clock: Callable):
        self.store = store
        self.broadcast_id = broadcast_id
        self.clock = clock
        self.settled = False
        self.cache = {}
        self.provider_reference = None

    def mark_sent(self, provider_reference: str) -> None:
        self.provider_reference = provider_reference
        self.store.finalize_sent(self.broadcast_id, provider_reference, self.clock(), **self.cache)
        self.settled = True

    def mark_failed(self, reason: str) -> None:
        self.store.finalize_failed(self.broadcast_id, reason, self.clock(), **self.cache)
        self.settled = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.settled:
            return False
        if self.provider_reference:
            self._settle_delivered(exc_type)
        else:
            reason = f"Delivery interrupted: {exc_type.__name__}" if exc_type else "Delivery interrupted"
            delivery_logger.error(
                "Releasing unsettled sending claim as failed",
                broadcast_id=self.broadcast_id,
                reason=reason,
            )
            self.store.finalize_failed(self.broadcast_id, reason, self.clock())
        self.settled = True
        return False

    def _settle_delivered(self, exc_type) -> None:
        """The transport accepted the message but recording it did not complete."""
        delivery_logger.error(
            "Recording accepted delivery failed",
            broadcast_id=self.broadcast_id,
            provider_reference=self.provider_reference,
            error_type=exc_type.__name__ if exc_type else None,
        )
        try:
            if self.store.finalize_sent(self.broadcast_id, self.provider_reference, self.clock()):
                return
        except Exception as e:
            delivery_logger.error("Retrying sent finalize failed", error=e, broadcast_id=self.broadcast_id)

        # Keep the reference so the broadcast is never claimed for a second send.
        self.store.finalize_failed(
            self.broadcast_id,
            f"Delivered as {self.provider_reference} but the result was not recorded",
            self.clock(),
            provider_reference=self.provider_reference,
        )


class DeliveryExecutor:
    def __init__(
        self,
        store: BroadcastStore,
        transport: EmailTransport,
        externalizer: ImageExternalizer,
        sender: str,
        transport_timeout: float = 30.0,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.transport = transport
        self.externalizer = externalizer
        self.sender = sender
        self.transport_timeout = transport_timeout
        self.clock = clock

    @timed(delivery_logger)
    async def execute(
        self,
        broadcast_id: str,
        eligible: Optional[Sequence[BroadcastStatus]] = None,
        recipients: Optional[Sequence[str]] = None,
        due_by: Optional[datetime] = None,
    ) -> DeliveryOutcome:
        """Send one broadcast.

        Args:
            broadcast_id: Broadcast to deliver
            eligible: Statuses the claim may start from (defaults to every
                source of the send event)
            recipients: Freshly resolved addresses to persist with the claim;
                when omitted the stored snapshot is used
            due_by: Only claim if ``scheduled_for`` is at or before this time

        Returns:
            DeliveryOutcome; ``skipped`` when the broadcast is not in an
            eligible status, is no longer due, or another execution won
            the claim

        Raises:
            NotFoundError, NoRecipientsError before anything is claimed
        """
        broadcast = self.store.get(broadcast_id)
        if broadcast is None:
            raise NotFoundError(f"Broadcast {broadcast_id} not found")

        eligible = tuple(eligible) if eligible else source_statuses(BroadcastEvent.SEND)
        if broadcast.status not in {BroadcastStatus(s).value for s in eligible}:
            return self._skipped(broadcast_id, f"Broadcast is already {broadcast.status}")
        if due_by is not None and not _is_due(broadcast.scheduled_for, due_by):
            return self._skipped(broadcast_id, "Broadcast is no longer due")
        if broadcast.provider_reference:
            return self._skipped(broadcast_id, f"Broadcast was already delivered as {broadcast.provider_reference}")

        check_transition(
            broadcast.status,
            BroadcastEvent.SEND,
            recipients=recipients if recipients is not None else broadcast.recipients,
        )

        if not self.store.claim(broadcast_id, eligible, self.clock(), recipients=recipients, due_by=due_by):
            current = self.store.get(broadcast_id)
            if current is not None and due_by is not None and current.status == BroadcastStatus.SCHEDULED.value:
                return self._skipped(broadcast_id, "Broadcast is no longer due")
            return self._skipped(broadcast_id, f"Broadcast is already {current.status if current else 'deleted'}")

        with SendingLease(self.store, broadcast_id, self.clock) as lease:
            delivery_logger.info("Claimed broadcast for sending", broadcast_id=broadcast_id)
            # Re-read what was claimed; recipients may have been written by the claim.
            broadcast = self.store.get(broadcast_id)

            outcome = DeliveryOutcome(broadcast_id=broadcast_id, status=BroadcastStatus.SENDING.value)
            try:
                html = await self._prepare_html(broadcast, lease, outcome)
                message = OutboundEmail(
                    sender=self.sender,
                    to=list(broadcast.recipients),
                    subject=broadcast.subject,
                    html=html,
                    tags={"broadcast_id": broadcast.id},
                )
                provider_reference = await asyncio.wait_for(
                    self.transport.send(message),
                    timeout=self.transport_timeout,
                )
            except asyncio.TimeoutError:
                outcome.error = f"Transport timed out after {self.transport_timeout:g}s"
            except TransportError as e:
                outcome.error = e.message
            except Exception as e:
                delivery_logger.error("Unexpected delivery error", error=e, broadcast_id=broadcast_id)
                outcome.error = f"Unexpected error: {e}"
            else:
                lease.mark_sent(provider_reference)
                outcome.status = BroadcastStatus.SENT.value
                outcome.provider_reference = provider_reference
                delivery_logger.info(
                    "Broadcast sent",
                    broadcast_id=broadcast_id,
                    provider_reference=provider_reference,
                    recipients=len(broadcast.recipients),
                )
                return outcome

            lease.mark_failed(outcome.error)
            outcome.status = BroadcastStatus.FAILED.value
            delivery_logger.warning("Broadcast failed", broadcast_id=broadcast_id, reason=outcome.error)
            return outcome

    def _skipped(self, broadcast_id: str, reason: str) -> DeliveryOutcome:
        delivery_logger.info("Claim not taken, skipping", broadcast_id=broadcast_id, reason=reason)
        return DeliveryOutcome(broadcast_id=broadcast_id, status="skipped", error=reason)

    async def _prepare_html(self, broadcast, lease: SendingLease, outcome: DeliveryOutcome) -> str:
        digest = content_digest(broadcast.content)
        if broadcast.content_html and broadcast.content_digest == digest:
            html = broadcast.content_html
        else:
            html = render_content(broadcast.content)

        inline = count_inline_images(html)
        if inline:
            delivery_logger.info("Externalizing inline images", broadcast_id=broadcast.id, images=inline)
            result = await self.externalizer.externalize(html, broadcast.owner_id)
            outcome.images_externalized = len(result.replacements)
            outcome.image_failures = [f.reason for f in result.failures]
            html = result.html

        lease.cache = {"content_html": html, "content_digest": digest}
        return html
