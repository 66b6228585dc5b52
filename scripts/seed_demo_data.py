#!/usr/bin/env python3
"""
Seed the database with realistic demo data for a municipal environmental council.

Data is not random: councillors, represented entities, meetings, complaints
and resolutions are chosen so the dashboard and lists look meaningful.
Everything goes through the services, so every record gets a real protocol.

Usage:
    python scripts/seed_demo_data.py --dry-run   # nothing written
    python scripts/seed_demo_data.py --confirm   # write to the database

Requires: migrations applied (alembic upgrade head), database reachable.
"""

import argparse
import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codema.core.auth.models import User, UserRole
from codema.core.auth.service import AuthService
from codema.core.config import settings
from codema.core.database.session import async_session
from codema.modules.complaints.schemas import ComplaintActionRequest, ComplaintCreate
from codema.modules.complaints.service import ComplaintService
from codema.modules.meetings.schemas import AttendanceEntry, MeetingCreate
from codema.modules.meetings.service import MeetingService
from codema.modules.resolutions.schemas import ResolutionCreate, VoteResultRequest
from codema.modules.resolutions.service import ResolutionService

DEMO_PASSWORD = "demo12345"

STAFF = [
    ("admin@codema.demo", "Administração CODEMA", UserRole.SUPER_ADMIN),
    ("secretaria@codema.demo", "Marta Secretária Executiva", UserRole.SECRETARY),
    ("fiscal@codema.demo", "Rafael Fiscal Ambiental", UserRole.INSPECTOR),
]

# Name, represented entity
COUNCILLORS = [
    ("Helena Duarte", "Secretaria Municipal de Meio Ambiente"),
    ("Carlos Menezes", "Câmara Municipal"),
    ("Patrícia Rocha", "OAB - Subseção local"),
    ("Joaquim Prado", "Sindicato Rural"),
    ("Luana Ferreira", "Universidade Federal"),
    ("Otávio Lima", "Associação de Moradores do Centro"),
    ("Beatriz Nunes", "ONG Rio Vivo"),
]

COMPLAINTS = [
    ("Desmatamento", "Corte de vegetação nativa em área de preservação permanente", "Margem do Córrego Fundo"),
    ("Poluição hídrica", "Lançamento de efluente sem tratamento no rio", "Ponte da Av. Beira Rio"),
    ("Queimada", "Queimada recorrente em terreno baldio próximo à escola", "Bairro Jardim América"),
    ("Ruído", "Serraria operando durante a madrugada", "Rua das Acácias, 120"),
]


def _slug(name: str) -> str:
    return name.lower().replace(" ", ".")


async def seed_users(session: AsyncSession) -> dict[str, User]:
    """Create staff and councillors. Returns users keyed by email."""
    existing = await session.execute(select(User).where(User.email == STAFF[0][0]))
    if existing.scalar_one_or_none():
        print("  Users already exist, skip.")
        return {u.email: u for u in (await session.execute(select(User))).scalars().all()}

    auth = AuthService(session)
    users: dict[str, User] = {}
    for email, full_name, role in STAFF:
        users[email] = await auth.create_user(
            email=email, password=DEMO_PASSWORD, full_name=full_name, role=role
        )
    for full_name, entity in COUNCILLORS:
        email = f"{_slug(full_name)}@codema.demo"
        users[email] = await auth.create_user(
            email=email,
            password=DEMO_PASSWORD,
            full_name=full_name,
            role=UserRole.COUNCILLOR,
            represented_entity=entity,
        )
    print(f"  Created {len(users)} users.")
    return users


async def seed_meetings(session: AsyncSession, secretary: User, councillors: list[User]) -> int:
    """One held meeting with approved minutes and one upcoming. Returns the held meeting id."""
    service = MeetingService(session)
    now = datetime.now(timezone.utc)

    held = await service.create_meeting(
        MeetingCreate(
            title="1ª Reunião Ordinária",
            scheduled_at=now - timedelta(days=14),
            location="Auditório da Prefeitura",
            agenda="1. Abertura\n2. Licenciamento da pedreira\n3. Assuntos gerais",
        ),
        secretary.id,
    )
    await service.send_convocation(held.id, secretary.id)
    await service.record_attendance(
        held.id, [AttendanceEntry(user_id=c.id) for c in councillors[:5]], secretary.id
    )
    await service.mark_held(held.id, secretary.id)
    await service.create_minutes(
        held.id,
        "Aberta a sessão com quórum, o conselho deliberou sobre o licenciamento da pedreira.",
        secretary.id,
    )
    await service.submit_minutes_for_review(held.id, secretary.id)
    await service.approve_minutes(held.id, secretary.id)

    upcoming = await service.create_meeting(
        MeetingCreate(
            title="2ª Reunião Ordinária",
            scheduled_at=now + timedelta(days=16),
            location="Auditório da Prefeitura",
            agenda="1. Leitura da ata anterior\n2. Plano de arborização",
        ),
        secretary.id,
    )
    await service.send_convocation(upcoming.id, secretary.id)
    print("  Created 2 meetings.")
    return held.id


async def seed_resolutions(session: AsyncSession, secretary: User, meeting_id: int) -> None:
    service = ResolutionService(session)
    published = await service.create_resolution(
        ResolutionCreate(
            title="Licenciamento da Pedreira São Bento",
            summary="Aprova com condicionantes a licença de operação da pedreira",
            legal_basis="Resolução CONAMA 237/1997",
            body="Art. 1º Fica aprovada, com condicionantes, a licença de operação.",
            meeting_id=meeting_id,
        ),
        secretary.id,
    )
    await service.start_voting(published.id, secretary.id)
    await service.record_vote_result(
        published.id, VoteResultRequest(votes_for=4, votes_against=1), secretary.id
    )
    await service.publish(published.id, secretary.id)

    await service.create_resolution(
        ResolutionCreate(
            title="Plano Municipal de Arborização",
            summary="Institui o plano de arborização urbana",
            body="Art. 1º Fica instituído o Plano Municipal de Arborização Urbana.",
        ),
        secretary.id,
    )
    print("  Created 2 resolutions.")


async def seed_complaints(session: AsyncSession, secretary: User, inspector: User) -> None:
    service = ComplaintService(session)
    created = []
    for complaint_type, description, location in COMPLAINTS:
        created.append(
            await service.create_complaint(
                ComplaintCreate(
                    complaint_type=complaint_type,
                    description=description,
                    location=location,
                    occurred_on=date.today() - timedelta(days=10),
                    is_anonymous=complaint_type == "Queimada",
                )
            )
        )

    first = created[0]
    await service.apply_action(
        first.id,
        ComplaintActionRequest(action="start_investigation", inspector_id=inspector.id),
        secretary.id,
    )
    await service.apply_action(
        first.id,
        ComplaintActionRequest(action="schedule_inspection", inspection_date=date.today() + timedelta(days=3)),
        secretary.id,
    )
    print(f"  Created {len(created)} complaints.")


async def run_seed(session: AsyncSession, dry_run: bool) -> None:
    users = await seed_users(session)
    secretary = users["secretaria@codema.demo"]
    inspector = users["fiscal@codema.demo"]
    councillors = [u for u in users.values() if u.is_councillor]

    meeting_id = await seed_meetings(session, secretary, councillors)
    await seed_resolutions(session, secretary, meeting_id)
    await seed_complaints(session, secretary, inspector)

    if dry_run:
        await session.rollback()
        print("\n[DRY-RUN] Rolled back, no data written.")
    else:
        await session.commit()
        print("\nSeed completed successfully.")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Seed database with council demo data")
    parser.add_argument("--dry-run", action="store_true", help="Do not commit")
    parser.add_argument("--confirm", action="store_true", help="Commit changes")
    args = parser.parse_args()
    if not args.dry_run and not args.confirm:
        print("Use --dry-run or --confirm")
        sys.exit(1)

    print("Database:", settings.database_url.split("@")[-1] if "@" in settings.database_url else "?")
    print("Mode:", "DRY-RUN" if args.dry_run else "CONFIRM")
    async with async_session() as session:
        await run_seed(session, dry_run=args.dry_run)
    print("Done.")


if __name__ == "__main__":
    asyncio.run(main())
