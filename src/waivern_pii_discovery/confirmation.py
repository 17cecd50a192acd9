"""Confidence-gated confirmation workflow.

STATE MACHINE
=============

    PENDING --YES--> CONFIRMED --override(NO)--> OVERRIDDEN + new REJECTED row
    PENDING --NO---> REJECTED  --override(YES)-> OVERRIDDEN + new CONFIRMED row
    PENDING --NOT_SURE--> SKIPPED (no side effects, may be resolved later)

Rows are never deleted. An override flags the original row OVERRIDDEN and
appends a new row whose ``previous_decision_id`` points back at it, forming an
append-only decision chain. The new row can itself be overridden later.

This workflow is the single writer of confirmed truth: every CONFIRMED or
REJECTED decision updates the learned rule for the field in the same
relational transaction as the status change. The provenance graph is a
mirror written after that transaction commits. A failed graph write is
logged and left to the next classification pass, which reapplies the
learned rule to the graph.

The transaction takes the database write lock before reading the request, so
concurrent resolutions of one request are serialised and the second one sees
the first one's result.
"""

from __future__ import annotations

import logging
import uuid

from waivern_pii_discovery.database import SQLiteDatabase
from waivern_pii_discovery.errors import (
    ConfirmationNotFoundError,
    ConfirmationValidationError,
    GraphStoreError,
)
from waivern_pii_discovery.graph.writer import ProvenanceGraphWriter
from waivern_pii_discovery.rule_store import LearnedRuleStore
from waivern_pii_discovery.types import (
    CONFIRMATION_THRESHOLD,
    ClassificationOutcome,
    ClassificationStatus,
    ConfirmationRequest,
    ConfirmationStatus,
    Decision,
    utc_now,
)

logger = logging.getLogger(__name__)

RESOLVABLE_STATUSES = (ConfirmationStatus.PENDING, ConfirmationStatus.SKIPPED)
OVERRIDABLE_STATUSES = (ConfirmationStatus.CONFIRMED, ConfirmationStatus.REJECTED)
HISTORY_STATUSES = (
    ConfirmationStatus.CONFIRMED,
    ConfirmationStatus.REJECTED,
    ConfirmationStatus.OVERRIDDEN,
)

_STATUS_FOR_DECISION = {
    Decision.YES: ConfirmationStatus.CONFIRMED,
    Decision.NO: ConfirmationStatus.REJECTED,
    Decision.NOT_SURE: ConfirmationStatus.SKIPPED,
}


def parse_decision(decision: Decision | str) -> Decision:
    """Parse a decision value.

    Raises:
        ConfirmationValidationError: If the value is not YES, NO or NOT_SURE

    """
    if isinstance(decision, Decision):
        return decision
    try:
        return Decision(str(decision).strip().upper())
    except ValueError as e:
        allowed = ", ".join(d.value for d in Decision)
        raise ConfirmationValidationError(
            f"Invalid decision '{decision}'. Expected one of: {allowed}"
        ) from e


class ConfirmationService:
    """Durable review requests and their resolve/override transitions."""

    def __init__(self, database: SQLiteDatabase, graph_writer: ProvenanceGraphWriter) -> None:
        """Initialise the workflow.

        Args:
            database: Relational store holding requests and learned rules
            graph_writer: Writer for confirmed classifications

        """
        self._database = database
        self._graph_writer = graph_writer

    async def create_request(
        self, outcome: ClassificationOutcome, pass_id: str
    ) -> ConfirmationRequest | None:
        """Persist a ``needs_confirmation`` outcome as a PENDING request.

        Args:
            outcome: Outcome awaiting human review
            pass_id: Identifier of the pipeline pass producing it

        Returns:
            The new request, or None when the field already has a PENDING
            request

        Raises:
            ConfirmationValidationError: If the outcome does not need confirmation

        """
        if outcome.status is not ClassificationStatus.NEEDS_CONFIRMATION:
            raise ConfirmationValidationError(
                f"Only needs_confirmation outcomes create requests, got {outcome.status}"
            )

        async with self._database.transaction() as tx:
            existing = tx.find_pending(outcome.field)
            if existing is not None:
                logger.debug(
                    f"Pending request {existing.id} already exists for {outcome.field}"
                )
                return None

            request = ConfirmationRequest(
                id=str(uuid.uuid4()),
                pass_id=pass_id,
                field=outcome.field,
                suggested_type=outcome.type,
                category=outcome.category,
                risk=outcome.risk,
                source=outcome.source,
                confidence=outcome.confidence,
                reason=outcome.reason,
            )
            tx.insert_request(request)

        logger.info(
            f"Confirmation requested for {outcome.field}: {outcome.type} "
            f"(confidence {outcome.confidence:.2f})"
        )
        return request

    async def get_request(self, request_id: str) -> ConfirmationRequest:
        """Fetch a request by id.

        Raises:
            ConfirmationNotFoundError: If no such request exists

        """
        async with self._database.transaction() as tx:
            request = tx.get_request(request_id)
        if request is None:
            raise ConfirmationNotFoundError(f"Confirmation request '{request_id}' not found")
        return request

    async def get_pending_confirmations(self) -> list[ConfirmationRequest]:
        """Return PENDING requests worth reviewing, most confident first."""
        async with self._database.transaction() as tx:
            return tx.list_requests(
                [ConfirmationStatus.PENDING], min_confidence=CONFIRMATION_THRESHOLD
            )

    async def get_resolved_confirmations(self) -> list[ConfirmationRequest]:
        """Return CONFIRMED, REJECTED and OVERRIDDEN requests, newest first."""
        async with self._database.transaction() as tx:
            return tx.list_requests(HISTORY_STATUSES, order_by="recent")

    async def get_decision_chain(self, request_id: str) -> list[ConfirmationRequest]:
        """Return a request followed by every earlier decision it overrode.

        Raises:
            ConfirmationNotFoundError: If the request does not exist

        """
        chain: list[ConfirmationRequest] = []
        async with self._database.transaction() as tx:
            current = tx.get_request(request_id)
            if current is None:
                raise ConfirmationNotFoundError(
                    f"Confirmation request '{request_id}' not found"
                )
            seen: set[str] = set()
            while current is not None and current.id not in seen:
                chain.append(current)
                seen.add(current.id)
                current = (
                    tx.get_request(current.previous_decision_id)
                    if current.previous_decision_id
                    else None
                )
        return chain

    async def resolve(
        self, request_id: str, decision: Decision | str, actor: str = "system"
    ) -> ConfirmationRequest:
        """Record the first human decision on a request.

        - NOT_SURE marks the request SKIPPED with no other effect.
        - YES confirms the suggested type, teaches the rule store and, once
          committed, writes the confirmed classification into the graph.
        - NO rejects it and teaches the rule store that the field is not PII.

        Args:
            request_id: Request to resolve
            decision: YES, NO or NOT_SURE
            actor: Who made the decision

        Returns:
            The updated request

        Raises:
            ConfirmationValidationError: If the decision is invalid or the
                request was already decided
            ConfirmationNotFoundError: If the request does not exist
            StoreError: If the relational update fails (nothing is applied)

        """
        parsed = parse_decision(decision)
        new_status = _STATUS_FOR_DECISION[parsed]
        resolved_at = utc_now()

        async with self._database.transaction() as tx:
            request = tx.get_request(request_id)
            if request is None:
                raise ConfirmationNotFoundError(
                    f"Confirmation request '{request_id}' not found"
                )
            if request.status not in RESOLVABLE_STATUSES:
                raise ConfirmationValidationError(
                    f"Request '{request_id}' is already {request.status}; "
                    "use override to change the decision"
                )

            if parsed is Decision.NOT_SURE:
                tx.update_request_status(request_id, ConfirmationStatus.SKIPPED)
                updated = request.model_copy(update={"status": ConfirmationStatus.SKIPPED})
            else:
                tx.update_request_status(request_id, new_status, resolved_at, actor)
                LearnedRuleStore.upsert_in(
                    tx,
                    request.field.rule_key,
                    is_pii=parsed is Decision.YES,
                    pii_type=request.suggested_type,
                )
                updated = request.model_copy(
                    update={
                        "status": new_status,
                        "resolved_at": resolved_at,
                        "resolved_by": actor,
                    }
                )

        logger.info(f"Request {request_id} resolved {parsed} by {actor} -> {new_status}")
        if new_status is ConfirmationStatus.CONFIRMED:
            await self._mirror_to_graph(updated, is_pii=True)
        return updated

    async def override(
        self, request_id: str, decision: Decision | str, reason: str, actor: str
    ) -> ConfirmationRequest:
        """Reverse a CONFIRMED or REJECTED decision, preserving history.

        Atomically flags the original row OVERRIDDEN, appends a new row with
        the reversed decision and updates the learned rule. After the commit
        the graph classification is written for YES and removed for NO.

        Args:
            request_id: Request holding the decision to reverse
            decision: New decision, YES or NO
            reason: Why the decision is reversed
            actor: Who reverses it

        Returns:
            The newly appended request row

        Raises:
            ConfirmationValidationError: If the override is not allowed
            ConfirmationNotFoundError: If the request does not exist
            StoreError: If the relational update fails (nothing is applied)

        """
        parsed = parse_decision(decision)
        if parsed is Decision.NOT_SURE:
            raise ConfirmationValidationError("Override decision must be YES or NO")
        if not reason or not reason.strip():
            raise ConfirmationValidationError("Override reason is required")
        if not actor or not actor.strip():
            raise ConfirmationValidationError("Override actor is required")

        now = utc_now()

        async with self._database.transaction() as tx:
            original = tx.get_request(request_id)
            if original is None:
                raise ConfirmationNotFoundError(
                    f"Confirmation request '{request_id}' not found"
                )
            if original.status is ConfirmationStatus.PENDING:
                raise ConfirmationValidationError("Cannot override a pending request")
            if original.status not in OVERRIDABLE_STATUSES:
                raise ConfirmationValidationError(
                    f"Cannot override a request in status {original.status}"
                )
            if original.decision is parsed:
                raise ConfirmationValidationError(
                    f"Request '{request_id}' already records decision {parsed}"
                )

            tx.update_request_status(request_id, ConfirmationStatus.OVERRIDDEN)

            new_status = _STATUS_FOR_DECISION[parsed]
            replacement = original.model_copy(
                update={
                    "id": str(uuid.uuid4()),
                    "confidence": 1.0,
                    "reason": f"Override: {reason.strip()}",
                    "status": new_status,
                    "created_at": now,
                    "resolved_at": now,
                    "resolved_by": actor.strip(),
                    "override_reason": reason.strip(),
                    "overridden_by": actor.strip(),
                    "previous_decision_id": original.id,
                }
            )
            tx.insert_request(replacement)

            LearnedRuleStore.upsert_in(
                tx,
                original.field.rule_key,
                is_pii=parsed is Decision.YES,
                pii_type=original.suggested_type,
            )

        logger.info(
            f"Request {request_id} overridden to {parsed} by {actor}: {reason.strip()} "
            f"(new request {replacement.id})"
        )
        await self._mirror_to_graph(replacement, is_pii=parsed is Decision.YES)
        return replacement

    async def _mirror_to_graph(self, request: ConfirmationRequest, is_pii: bool) -> None:
        """Apply a committed decision to the provenance graph.

        The relational decision is already durable here, so a graph failure is
        logged rather than raised.
        """
        try:
            if is_pii:
                await self._graph_writer.upsert_classification(
                    request.to_outcome(ClassificationStatus.CONFIRMED)
                )
            else:
                await self._graph_writer.remove_classification(request.field)
        except GraphStoreError as e:
            logger.error(
                f"Decision {request.id} is recorded but the graph update for "
                f"{request.field} failed: {e}. The next classification pass "
                "reapplies it from the learned rule."
            )
