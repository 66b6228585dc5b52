import logging
import time
from collections.abc import Callable
from datetime import date

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.audit import AuditAction, create_audit_log
from codema.core.config import settings
from codema.core.exceptions import NotFoundError, ValidationError
from codema.core.protocols.models import ProtocolSequence
from codema.core.protocols.numbering import (
    format_protocol,
    format_provisional,
    parse_protocol,
    split_provisional,
)
from codema.core.protocols.registry import protocol_columns
from codema.core.protocols.schemas import (
    GeneratedProtocol,
    ProtocolStatistics,
    ProvisionalReference,
    ReconciliationResult,
)
from codema.core.protocols.types import ProtocolType

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50

# Session.info key for provisional numbers handed out but not yet stored
_RESERVED_KEY = "provisional_protocols"

# Dialects with INSERT ... ON CONFLICT DO UPDATE ... RETURNING
_UPSERT_INSERT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class ProtocolGenerator:
    """
    Issues protocol numbers in format: TYPE-NNN/YYYY

    Examples:
        PROC-001/2025
        RES-042/2025
        OUV-1000/2025 (past 999 the sequence widens)

    The counter row for (type, year) is incremented in a single statement,
    so concurrent callers never receive the same number. When the counter
    cannot be reached the generator degrades to a provisional number
    (PROC-417/2025-P) that must later be reconciled.
    """

    def __init__(
        self,
        session: AsyncSession,
        today: Callable[[], date] = date.today,
        clock_ms: Callable[[], int] | None = None,
    ):
        self.session = session
        self._today = today
        self._clock_ms = clock_ms or _epoch_millis

    @staticmethod
    def _coerce_type(protocol_type: str | ProtocolType) -> ProtocolType:
        try:
            return ProtocolType(protocol_type)
        except ValueError:
            raise ValidationError(
                f"Unknown protocol type: {protocol_type}", field="protocol_type"
            ) from None

    # --- Issuing ---

    async def generate(self, protocol_type: str | ProtocolType) -> GeneratedProtocol:
        """Issue the next protocol number for the type in the current year."""
        ptype = self._coerce_type(protocol_type)
        year = self._today().year

        # Savepoint keeps a failed counter statement from aborting the caller's transaction
        try:
            async with self.session.begin_nested():
                sequence = await self._increment(ptype, year)
        except SQLAlchemyError as e:
            logger.warning(
                "Protocol counter unavailable for %s/%s, issuing provisional number: %s",
                ptype.value,
                year,
                e,
            )
            return await self._provisional(ptype, year, reserve=True)

        return GeneratedProtocol(
            number=format_protocol(ptype.value, sequence, year),
            protocol_type=ptype,
            year=year,
            sequence=sequence,
        )

    async def generate_many(
        self, protocol_type: str | ProtocolType, quantity: int
    ) -> list[GeneratedProtocol]:
        """Issue several numbers of one type, in issuance order."""
        if quantity < 1 or quantity > MAX_BATCH_SIZE:
            raise ValidationError(
                f"Quantity must be between 1 and {MAX_BATCH_SIZE}", field="quantity"
            )
        ptype = self._coerce_type(protocol_type)
        return [await self.generate(ptype) for _ in range(quantity)]

    async def peek_next(self, protocol_type: str | ProtocolType) -> GeneratedProtocol:
        """Number the next generate() would issue. Never advances the counter."""
        ptype = self._coerce_type(protocol_type)
        year = self._today().year

        try:
            async with self.session.begin_nested():
                sequence_row = await self.get_sequence(ptype, year)
        except SQLAlchemyError as e:
            logger.warning(
                "Protocol counter unavailable for %s/%s, previewing provisional number: %s",
                ptype.value,
                year,
                e,
            )
            return await self._provisional(ptype, year, reserve=False)

        sequence = (sequence_row.last_sequence if sequence_row else 0) + 1
        return GeneratedProtocol(
            number=format_protocol(ptype.value, sequence, year),
            protocol_type=ptype,
            year=year,
            sequence=sequence,
        )

    async def _increment(self, ptype: ProtocolType, year: int) -> int:
        """Increment the (type, year) counter and return the new value."""
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_INSERT.get(dialect)
        if insert is None:
            return await self._increment_locked(ptype, year)

        stmt = (
            insert(ProtocolSequence)
            .values(protocol_type=ptype.value, year=year, last_sequence=1, total_issued=1)
            .on_conflict_do_update(
                index_elements=["protocol_type", "year"],
                set_={
                    "last_sequence": ProtocolSequence.last_sequence + 1,
                    "total_issued": ProtocolSequence.total_issued + 1,
                    "updated_at": func.now(),
                },
            )
            .returning(ProtocolSequence.last_sequence)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def _increment_locked(self, ptype: ProtocolType, year: int) -> int:
        """Row-lock variant for dialects without ON CONFLICT."""
        stmt = (
            select(ProtocolSequence)
            .where(ProtocolSequence.protocol_type == ptype.value, ProtocolSequence.year == year)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sequence_row = (await self.session.execute(stmt)).scalar_one_or_none()

        if sequence_row is None:
            sequence_row = ProtocolSequence(
                protocol_type=ptype.value, year=year, last_sequence=0, total_issued=0
            )
            self.session.add(sequence_row)
            await self.session.flush()

        sequence_row.last_sequence += 1
        sequence_row.total_issued += 1
        await self.session.flush()
        return sequence_row.last_sequence

    async def _provisional(
        self, ptype: ProtocolType, year: int, *, reserve: bool
    ) -> GeneratedProtocol:
        """
        Provisional number for a type and year.

        Starts from the clock (milliseconds mod 1000) and steps forward past
        any provisional number already stored in a registered protocol column
        or already handed out on this session, widening past 999 if needed.
        """
        taken = await self._taken_provisional(ptype, year)
        reserved: set[str] = self.session.info.setdefault(_RESERVED_KEY, set())

        sequence = self._clock_ms() % 1000
        while self._provisional_number(ptype, sequence, year) in reserved or sequence in taken:
            sequence += 1
        if reserve:
            reserved.add(self._provisional_number(ptype, sequence, year))

        return GeneratedProtocol(
            number=self._provisional_number(ptype, sequence, year),
            protocol_type=ptype,
            year=year,
            sequence=sequence,
            degraded=True,
        )

    @staticmethod
    def _provisional_number(ptype: ProtocolType, sequence: int, year: int) -> str:
        return format_provisional(ptype.value, sequence, year, settings.protocol_provisional_suffix)

    async def _taken_provisional(self, ptype: ProtocolType, year: int) -> set[int]:
        """Sequences of provisional numbers of this type and year already stored."""
        suffix = settings.protocol_provisional_suffix
        taken: set[int] = set()
        for column in protocol_columns():
            stmt = select(column).where(column.like(f"{ptype.value}-%/{year}-{suffix}"))
            try:
                async with self.session.begin_nested():
                    numbers = (await self.session.execute(stmt)).scalars().all()
            except SQLAlchemyError as e:
                logger.warning(
                    "Could not read provisional numbers from %s.%s: %s",
                    column.class_.__tablename__,
                    column.key,
                    e,
                )
                continue
            for number in numbers:
                parts = split_provisional(number)
                parsed = parse_protocol(parts[0]) if parts and parts[1] == suffix else None
                if parsed is not None and parsed.protocol_type == ptype and parsed.year == year:
                    taken.add(parsed.sequence)
        return taken

    # --- Reading ---

    async def get_sequence(
        self, protocol_type: str | ProtocolType, year: int
    ) -> ProtocolSequence | None:
        """Counter row for a type and year, or None if nothing was issued yet."""
        ptype = self._coerce_type(protocol_type)
        stmt = (
            select(ProtocolSequence)
            .where(ProtocolSequence.protocol_type == ptype.value, ProtocolSequence.year == year)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_statistics(self, year: int | None = None) -> list[ProtocolStatistics]:
        """Issued totals per type for a year (default: current year)."""
        if year is None:
            year = self._today().year
        stmt = (
            select(ProtocolSequence)
            .where(ProtocolSequence.year == year)
            .order_by(ProtocolSequence.protocol_type)
            .execution_options(populate_existing=True)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [
            ProtocolStatistics(
                protocol_type=row.protocol_type,
                year=row.year,
                total_issued=row.total_issued,
                last_sequence=row.last_sequence,
                last_updated=row.updated_at,
            )
            for row in rows
        ]

    # --- Administration ---

    async def reset_sequence(
        self,
        protocol_type: str | ProtocolType,
        year: int | None = None,
        *,
        reset_by_id: int,
        reason: str,
    ) -> ProtocolSequence:
        """
        Put the (type, year) counter back to zero.

        The next generate() for that year issues 001 again. Audited with the
        previous value and the reason given.
        """
        ptype = self._coerce_type(protocol_type)
        if year is None:
            year = self._today().year
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reset a protocol sequence", field="reason")

        stmt = (
            select(ProtocolSequence)
            .where(ProtocolSequence.protocol_type == ptype.value, ProtocolSequence.year == year)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sequence_row = (await self.session.execute(stmt)).scalar_one_or_none()
        if sequence_row is None:
            raise NotFoundError("Protocol sequence", f"{ptype.value}/{year}")

        old_values = sequence_row.snapshot("protocol_type", "year", "last_sequence")
        sequence_row.last_sequence = 0
        await self.session.flush()

        await create_audit_log(
            session=self.session,
            action=AuditAction.RESET_PROTOCOL_SEQUENCE,
            entity_type="ProtocolSequence",
            entity_id=sequence_row.id,
            user_id=reset_by_id,
            entity_identifier=f"{ptype.value}/{year}",
            old_values=old_values,
            new_values=sequence_row.snapshot("protocol_type", "year", "last_sequence"),
            comment=reason.strip(),
        )
        logger.info(
            "Protocol sequence %s/%s reset from %s by user %s",
            ptype.value,
            year,
            old_values["last_sequence"],
            reset_by_id,
        )
        await self.session.refresh(sequence_row)
        return sequence_row

    async def find_provisional(self) -> list[ProvisionalReference]:
        """Records still carrying a provisional protocol number (review queue)."""
        suffix = settings.protocol_provisional_suffix
        references: list[ProvisionalReference] = []
        for column in protocol_columns():
            model = column.class_
            stmt = select(model.id, column).where(column.like(f"%-{suffix}")).order_by(model.id)
            for entity_id, number in (await self.session.execute(stmt)).all():
                if split_provisional(number) is None:
                    continue
                references.append(
                    ProvisionalReference(
                        table=model.__tablename__,
                        column=column.key,
                        entity_id=entity_id,
                        number=number,
                    )
                )
        return references

    async def reconcile(self, provisional_number: str, *, reconciled_by_id: int) -> ReconciliationResult:
        """
        Replace a provisional number with a freshly issued one.

        Every registered protocol column holding the provisional number is
        rewritten. Requires the counter to be reachable: errors propagate.
        """
        parts = split_provisional(provisional_number)
        if parts is None or parts[1] != settings.protocol_provisional_suffix:
            raise ValidationError(
                f"{provisional_number} is not a provisional protocol number",
                field="provisional_number",
            )
        parsed = parse_protocol(parts[0])
        if parsed is None:
            raise ValidationError(
                f"Unknown protocol type in {provisional_number}", field="provisional_number"
            )

        sequence = await self._increment(parsed.protocol_type, parsed.year)
        new_number = format_protocol(parsed.protocol_type.value, sequence, parsed.year)

        updated = 0
        for column in protocol_columns():
            model = column.class_
            ids = (
                await self.session.execute(select(model.id).where(column == provisional_number))
            ).scalars().all()
            if not ids:
                continue
            await self.session.execute(
                update(model).where(model.id.in_(ids)).values({column.key: new_number})
            )
            updated += len(ids)

        sequence_row = await self.get_sequence(parsed.protocol_type, parsed.year)
        await create_audit_log(
            session=self.session,
            action=AuditAction.RECONCILE_PROTOCOL,
            entity_type="ProtocolSequence",
            entity_id=sequence_row.id,
            user_id=reconciled_by_id,
            entity_identifier=new_number,
            old_values={"number": provisional_number},
            new_values={"number": new_number, "updated_references": updated},
        )
        logger.info(
            "Provisional protocol %s reconciled to %s (%s records updated)",
            provisional_number,
            new_number,
            updated,
        )
        return ReconciliationResult(
            provisional_number=provisional_number,
            number=new_number,
            updated_references=updated,
        )


async def generate_protocol(
    session: AsyncSession, protocol_type: str | ProtocolType
) -> GeneratedProtocol:
    """Convenience function to issue a protocol number."""
    return await ProtocolGenerator(session).generate(protocol_type)
