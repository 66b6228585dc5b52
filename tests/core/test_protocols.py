"""Tests for protocol numbering: format helpers and ProtocolGenerator."""

import asyncio
from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from codema.core.audit.models import AuditLog
from codema.core.audit.service import AuditAction
from codema.core.auth.models import User
from codema.core.database.base import Base
from codema.core.exceptions import NotFoundError, ValidationError
from codema.core.protocols.generator import MAX_BATCH_SIZE, ProtocolGenerator
from codema.core.protocols.models import ProtocolSequence
from codema.core.protocols.numbering import (
    format_protocol,
    is_provisional,
    parse_protocol,
    split_provisional,
    validate_format,
)
from codema.core.protocols.types import ProtocolType
from codema.modules.complaints.models import Complaint
from codema.modules.complaints.schemas import ComplaintCreate
from codema.modules.complaints.service import ComplaintService
from codema.modules.notifications.models import Notification


def _fixed_day(day: date):
    return lambda: day


class TestProtocolFormat:
    """Pure helpers for TYPE-NNN/YYYY numbers."""

    def test_format_pads_to_three_digits(self):
        assert format_protocol("PROC", 1, 2025) == "PROC-001/2025"
        assert format_protocol("RES", 42, 2025) == "RES-042/2025"

    def test_format_widens_past_999(self):
        assert format_protocol("OUV", 1000, 2025) == "OUV-1000/2025"

    def test_validate_format_ignores_type_recognition(self):
        assert validate_format("PROC-001/2025") is True
        assert validate_format("XYZ-001/2025") is True
        assert validate_format("PROC-01/2025") is False
        assert validate_format("proc-001/2025") is False
        assert validate_format("PROC-001/25") is False
        assert validate_format("PROC-001/2025-P") is False

    def test_parse_recognized_number(self):
        parsed = parse_protocol("ATA-015/2024")
        assert parsed is not None
        assert parsed.protocol_type == ProtocolType.ATA
        assert parsed.sequence == 15
        assert parsed.year == 2024
        assert parsed.formatted == "ATA-015/2024"
        assert parsed.description

    def test_parse_unknown_type_returns_none(self):
        assert parse_protocol("XYZ-001/2025") is None

    def test_parse_malformed_returns_none(self):
        assert parse_protocol("") is None
        assert parse_protocol("PROC 001/2025") is None
        assert parse_protocol(None) is None

    def test_parse_roundtrips_formatted_value(self):
        number = format_protocol("CONV", 7, 2026)
        parsed = parse_protocol(number)
        assert parsed.formatted == number

    def test_provisional_split(self):
        assert split_provisional("PROC-417/2025-P") == ("PROC-417/2025", "P")
        assert split_provisional("PROC-417/2025") is None
        assert is_provisional("PROC-417/2025-P", "P") is True
        assert is_provisional("PROC-417/2025-X", "P") is False


class TestProtocolGenerator:
    """Issuing numbers from the sequence table."""

    async def test_first_number_of_year_is_001(self, db_session: AsyncSession):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 3, 10)))
        generated = await generator.generate(ProtocolType.PROC)

        assert generated.number == "PROC-001/2025"
        assert generated.sequence == 1
        assert generated.year == 2025
        assert generated.degraded is False

    async def test_numbers_increase_by_one(self, db_session: AsyncSession):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 3, 10)))
        numbers = [(await generator.generate("RES")).number for _ in range(3)]

        assert numbers == ["RES-001/2025", "RES-002/2025", "RES-003/2025"]

    async def test_types_have_independent_counters(self, db_session: AsyncSession):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 3, 10)))
        await generator.generate(ProtocolType.OUV)
        await generator.generate(ProtocolType.OUV)
        meeting = await generator.generate(ProtocolType.REU)

        assert meeting.number == "REU-001/2025"

        sequence = await generator.get_sequence(ProtocolType.OUV, 2025)
        assert (sequence.last_sequence, sequence.total_issued) == (2, 2)
        assert await generator.get_sequence(ProtocolType.OUV, 2024) is None

    async def test_new_year_restarts_sequence(self, db_session: AsyncSession):
        await ProtocolGenerator(db_session, today=_fixed_day(date(2025, 12, 31))).generate("ATA")
        await ProtocolGenerator(db_session, today=_fixed_day(date(2025, 12, 31))).generate("ATA")
        generated = await ProtocolGenerator(db_session, today=_fixed_day(date(2026, 1, 1))).generate("ATA")

        assert generated.number == "ATA-001/2026"

    async def test_sequence_widens_past_999(self, db_session: AsyncSession):
        db_session.add(
            ProtocolSequence(protocol_type="DOC", year=2025, last_sequence=999, total_issued=999)
        )
        await db_session.flush()

        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 6, 1)))
        generated = await generator.generate(ProtocolType.DOC)

        assert generated.number == "DOC-1000/2025"
        assert validate_format(generated.number)
        assert parse_protocol(generated.number).sequence == 1000

    async def test_unknown_type_rejected(self, db_session: AsyncSession):
        with pytest.raises(ValidationError):
            await ProtocolGenerator(db_session).generate("XYZ")

    async def test_generated_number_parses_back(self, db_session: AsyncSession):
        generated = await ProtocolGenerator(db_session).generate(ProtocolType.CONV)
        parsed = parse_protocol(generated.number)

        assert parsed.protocol_type == ProtocolType.CONV
        assert parsed.sequence == generated.sequence
        assert parsed.year == generated.year

    async def test_generate_many_in_order(self, db_session: AsyncSession):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 1, 2)))
        batch = await generator.generate_many(ProtocolType.NOT, 4)

        assert [item.sequence for item in batch] == [1, 2, 3, 4]

    async def test_generate_many_bounds(self, db_session: AsyncSession):
        generator = ProtocolGenerator(db_session)
        with pytest.raises(ValidationError):
            await generator.generate_many(ProtocolType.NOT, 0)
        with pytest.raises(ValidationError):
            await generator.generate_many(ProtocolType.NOT, MAX_BATCH_SIZE + 1)

    async def test_peek_does_not_consume(self, db_session: AsyncSession):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 5, 5)))
        await generator.generate(ProtocolType.REL)

        preview = await generator.peek_next(ProtocolType.REL)
        again = await generator.peek_next(ProtocolType.REL)
        issued = await generator.generate(ProtocolType.REL)

        assert preview.number == again.number == issued.number == "REL-002/2025"

    async def test_statistics_per_year(self, db_session: AsyncSession):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 5, 5)))
        await generator.generate_many(ProtocolType.PROC, 3)
        await generator.generate(ProtocolType.RES)

        stats = {row.protocol_type: row for row in await generator.get_statistics()}
        assert stats["PROC"].total_issued == 3
        assert stats["RES"].last_sequence == 1
        assert await generator.get_statistics(2024) == []


class TestProtocolFallback:
    """Counter unreachable: provisional numbers."""

    async def test_provisional_number_when_counter_fails(self, db_session: AsyncSession):
        generator = ProtocolGenerator(
            db_session, today=_fixed_day(date(2025, 8, 1)), clock_ms=lambda: 1_700_000_123_417
        )
        failure = OperationalError("UPDATE protocol_sequences", {}, Exception("connection lost"))
        with patch.object(ProtocolGenerator, "_increment", side_effect=failure):
            generated = await generator.generate(ProtocolType.PROC)

        assert generated.degraded is True
        assert generated.number == "PROC-417/2025-P"
        assert generated.sequence == 417
        assert validate_format(generated.number) is False
        assert parse_protocol(generated.number) is None

    async def test_failed_counter_statement_keeps_transaction_usable(
        self, db_session: AsyncSession, citizen: User
    ):
        db_session.add(
            Notification(user_id=citizen.id, kind="system", title="Aviso", message="Pendente")
        )
        await db_session.execute(text("DROP TABLE protocol_sequences"))

        with patch("codema.core.protocols.generator._epoch_millis", return_value=1_700_000_123_417):
            complaint = await ComplaintService(db_session).create_complaint(
                ComplaintCreate(
                    complaint_type="Poluição hídrica",
                    description="Efluente escuro despejado no córrego",
                    location="Ponte da Rua Sete",
                )
            )
        await db_session.commit()

        assert complaint.protocol_degraded is True
        assert complaint.protocol_number == f"OUV-417/{date.today().year}-P"
        assert is_provisional(complaint.protocol_number, "P")
        pending = (
            await db_session.execute(select(Notification).where(Notification.user_id == citizen.id))
        ).scalar_one()
        assert pending.title == "Aviso"
        stored = (await db_session.execute(select(Complaint))).scalars().all()
        assert [c.protocol_number for c in stored] == [complaint.protocol_number]

    async def test_preview_survives_missing_counter_table(self, db_session: AsyncSession):
        await db_session.execute(text("DROP TABLE protocol_sequences"))
        generator = ProtocolGenerator(
            db_session, today=_fixed_day(date(2025, 8, 1)), clock_ms=lambda: 1_700_000_123_005
        )

        preview = await generator.peek_next(ProtocolType.RES)

        assert preview.degraded is True
        assert preview.number == "RES-005/2025-P"
        assert (await db_session.execute(select(Complaint))).scalars().all() == []

    async def test_provisional_numbers_do_not_collide(
        self, db_session: AsyncSession, test_engine: AsyncEngine
    ):
        failure = OperationalError("UPDATE protocol_sequences", {}, Exception("connection lost"))
        year = date.today().year
        factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        with (
            patch.object(ProtocolGenerator, "_increment", side_effect=failure),
            patch("codema.core.protocols.generator._epoch_millis", return_value=1_700_000_123_417),
        ):
            first = await ComplaintService(db_session).create_complaint(
                ComplaintCreate(complaint_type="Ruído", description="Som alto", location="Centro")
            )
            await db_session.commit()
            # Another request on its own session sees the stored number, not the reservation
            async with factory() as other_session:
                second = await ComplaintService(other_session).create_complaint(
                    ComplaintCreate(complaint_type="Ruído", description="Som alto", location="Centro")
                )
                await other_session.commit()

        assert first.protocol_number == f"OUV-417/{year}-P"
        assert second.protocol_number == f"OUV-418/{year}-P"
        assert second.protocol_degraded is True

    async def test_degraded_batch_is_distinct(self, db_session: AsyncSession):
        generator = ProtocolGenerator(
            db_session, today=_fixed_day(date(2025, 8, 1)), clock_ms=lambda: 1_700_000_123_998
        )
        failure = OperationalError("UPDATE protocol_sequences", {}, Exception("connection lost"))
        with (
            patch.object(ProtocolGenerator, "_increment", side_effect=failure),
            patch.object(ProtocolGenerator, "get_sequence", side_effect=failure),
        ):
            batch = await generator.generate_many(ProtocolType.DOC, 3)
            preview = await generator.peek_next(ProtocolType.DOC)
            again = await generator.peek_next(ProtocolType.DOC)

        assert [g.number for g in batch] == ["DOC-998/2025-P", "DOC-999/2025-P", "DOC-1000/2025-P"]
        assert all(split_provisional(g.number) for g in batch)
        # Preview skips reserved numbers but does not reserve one itself
        assert preview.number == "DOC-1001/2025-P"
        assert again.number == "DOC-1001/2025-P"

    async def test_validation_errors_are_not_degraded(self, db_session: AsyncSession):
        failure = OperationalError("stmt", {}, Exception("down"))
        with patch.object(ProtocolGenerator, "_increment", side_effect=failure):
            with pytest.raises(ValidationError):
                await ProtocolGenerator(db_session).generate("NOPE")


class TestProtocolAdministration:
    """Reset, provisional review queue and reconciliation."""

    async def test_reset_sequence_restarts_at_001(
        self, db_session: AsyncSession, super_admin: User
    ):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 2, 2)))
        await generator.generate_many(ProtocolType.PROC, 5)

        row = await generator.reset_sequence(
            ProtocolType.PROC, reset_by_id=super_admin.id, reason="Ano administrativo reaberto"
        )
        assert row.last_sequence == 0
        assert row.total_issued == 5

        generated = await generator.generate(ProtocolType.PROC)
        assert generated.number == "PROC-001/2025"

        entry = (
            await db_session.execute(
                select(AuditLog).where(AuditLog.action == AuditAction.RESET_PROTOCOL_SEQUENCE)
            )
        ).scalar_one()
        assert entry.user_id == super_admin.id
        assert entry.old_values["last_sequence"] == 5
        assert entry.new_values["last_sequence"] == 0
        assert entry.comment == "Ano administrativo reaberto"

    async def test_reset_missing_sequence(self, db_session: AsyncSession, super_admin: User):
        with pytest.raises(NotFoundError):
            await ProtocolGenerator(db_session).reset_sequence(
                ProtocolType.RES, 2020, reset_by_id=super_admin.id, reason="Correção manual"
            )

    async def test_reset_requires_reason(self, db_session: AsyncSession, super_admin: User):
        with pytest.raises(ValidationError):
            await ProtocolGenerator(db_session).reset_sequence(
                ProtocolType.RES, reset_by_id=super_admin.id, reason="  "
            )

    async def test_reconcile_rewrites_provisional_reference(
        self, db_session: AsyncSession, admin: User
    ):
        generator = ProtocolGenerator(db_session, today=_fixed_day(date(2025, 4, 4)))
        await generator.generate(ProtocolType.OUV)

        complaint = Complaint(
            protocol_number="OUV-417/2025-P",
            protocol_degraded=True,
            complaint_type="Desmatamento",
            description="Corte de árvores em área de preservação",
            location="Rua das Flores, 100",
        )
        db_session.add(complaint)
        await db_session.flush()

        pending = await generator.find_provisional()
        assert [(ref.table, ref.entity_id, ref.number) for ref in pending] == [
            ("complaints", complaint.id, "OUV-417/2025-P")
        ]

        result = await generator.reconcile("OUV-417/2025-P", reconciled_by_id=admin.id)
        assert result.number == "OUV-002/2025"
        assert result.updated_references == 1

        refreshed = (
            await db_session.execute(
                select(Complaint)
                .where(Complaint.id == complaint.id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert refreshed.protocol_number == "OUV-002/2025"
        assert await generator.find_provisional() == []

    async def test_reconcile_rejects_canonical_number(self, db_session: AsyncSession, admin: User):
        with pytest.raises(ValidationError):
            await ProtocolGenerator(db_session).reconcile("OUV-001/2025", reconciled_by_id=admin.id)


class TestProtocolConcurrency:
    """Concurrent sessions never receive the same number."""

    async def test_concurrent_generation_is_unique(self, tmp_path):
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'protocols.db'}",
            connect_args={"timeout": 30},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        async def issue() -> str:
            async with factory() as session:
                generated = await ProtocolGenerator(session).generate(ProtocolType.PROC)
                await session.commit()
                assert generated.degraded is False
                return generated.number

        try:
            numbers = await asyncio.gather(*(issue() for _ in range(20)))
        finally:
            await engine.dispose()

        assert len(set(numbers)) == 20
        assert sorted(parse_protocol(n).sequence for n in numbers) == list(range(1, 21))
