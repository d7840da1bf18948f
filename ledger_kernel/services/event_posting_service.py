"""
EventPostingService -- turn business events into journal entries.

Flow:
    event -> GeneratorRegistry -> EntryGenerator.generate()
          -> JournalService.create_entry() [-> post_entry()]

Idempotency:
    One live entry per (source_type, source_id).  If a draft or approved
    entry already exists for the event's source it is returned; with
    auto_post a waiting draft is posted first.
    Rejected entries and reversed pairs do not count as live, so an event
    whose entry was rejected or reversed can be recorded again.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import JournalEntryRecord
from ledger_kernel.generators import GeneratorRegistry, default_registry
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService

logger = get_logger("services.event_posting")

LIVE_STATUSES = (JournalEntryStatus.DRAFT, JournalEntryStatus.APPROVED)


class EventPostingService(BaseService):
    """Records business events in the ledger, at most once per source."""

    def __init__(
        self,
        session: Session,
        journal: JournalService | None = None,
        registry: GeneratorRegistry | None = None,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock or (journal.clock if journal else None))
        self.journal = journal or JournalService(session, policy=policy, clock=self.clock)
        self.policy = policy or self.journal.policy
        self.registry = registry or default_registry(self.policy)

    def live_entry(self, source_type: str, source_id: str) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.source_type == source_type,
                JournalEntry.source_id == source_id,
                JournalEntry.status.in_(LIVE_STATUSES),
                JournalEntry.reversal_of_id.is_(None),
            )
            .order_by(JournalEntry.entry_number)
            .limit(1)
        ).scalar_one_or_none()

    def record_event(
        self,
        event: Any,
        creator: UUID,
        auto_post: bool = False,
    ) -> JournalEntryRecord:
        """
        Generate and create the entry for ``event``.

        Args:
            event: Any registered event instance.
            creator: Actor recorded as creator (and approver with auto_post).
            auto_post: Post the draft in the same savepoint.

        Raises:
            GeneratorNotFoundError: no generator for the event's type.
            AccountMappingError: a required account is missing; nothing is
                written.
            ValidationError: the entry failed ledger validation.
        """
        generator = self.registry.for_event(event)
        with LogContext.bind(actor_id=creator):
            proposed = generator.generate(event, self.journal.directory)

            with LogContext.bind(source_id=proposed.source_id):
                existing = self.live_entry(proposed.source_type, proposed.source_id)
                if existing is not None:
                    logger.info(
                        "event_already_recorded",
                        extra={
                            "source_type": proposed.source_type,
                            "entry_number": existing.entry_number,
                            "status": existing.status.value,
                        },
                    )
                    if auto_post and existing.status == JournalEntryStatus.DRAFT:
                        return self.journal.post_entry(existing.id, creator)
                    return JournalEntryRecord.from_model(existing)

                with self.session.begin_nested():
                    record = self.journal.create_entry(
                        creator=creator, **proposed.as_create_kwargs()
                    )
                    if auto_post:
                        record = self.journal.post_entry(record.id, creator)

                logger.info(
                    "event_recorded",
                    extra={
                        "source_type": proposed.source_type,
                        "entry_number": record.entry_number,
                        "status": record.status,
                    },
                )
                return record
