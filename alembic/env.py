import asyncio
from logging.config import fileConfig

# ruff: noqa: F401

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from codema.core.config import settings
from codema.core.database.base import Base

# Import all models here so they are registered with Base.metadata
from codema.core.auth.models import User
from codema.core.attachments.models import Attachment
from codema.core.audit.models import AuditLog
from codema.core.protocols.models import ProtocolSequence
from codema.modules.meetings.models import Meeting, MeetingAttendance, MeetingMinutes
from codema.modules.resolutions.models import Resolution
from codema.modules.complaints.models import Complaint, ComplaintEvent
from codema.modules.archive.models import ArchiveDocument
from codema.modules.notifications.models import Notification, NotificationPreference
from codema.modules.processes.models import EnvironmentalProcess
from codema.modules.reports.models import CitizenReport, ReportCategory
from codema.modules.fma.models import FundProject, FundRevenue, ProjectExpense

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    return settings.database_url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = get_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with async engine."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
