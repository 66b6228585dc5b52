#!/usr/bin/env python3
"""
Reset a protocol counter (type + year) back to zero.

The next number issued for that type and year starts at 001 again. The reset
is written to the audit log under the user given with --user-email.

WARNING: numbers issued before the reset will be issued again. Make sure the
old documents were renumbered or archived first.

Usage:
    python scripts/reset_protocol_sequence.py OUV --year 2026 --user-email admin@codema.org.br \
        --reason "Ano iniciado com numeração de teste" --dry-run
    python scripts/reset_protocol_sequence.py OUV --year 2026 --user-email admin@codema.org.br \
        --reason "Ano iniciado com numeração de teste" --confirm
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from codema.core.auth.models import User, UserRole
from codema.core.config import settings
from codema.core.database.session import async_session
from codema.core.exceptions import AppException
from codema.core.protocols.generator import ProtocolGenerator
from codema.core.protocols.types import ProtocolType


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reset a protocol sequence counter")
    parser.add_argument("protocol_type", choices=[t.value for t in ProtocolType])
    parser.add_argument("--year", type=int, default=date.today().year)
    parser.add_argument("--user-email", required=True, help="SuperAdmin recorded as the author")
    parser.add_argument("--reason", required=True)
    parser.add_argument("--dry-run", action="store_true", help="Show the counter without changes")
    parser.add_argument("--confirm", action="store_true", help="Apply the reset")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    if not args.dry_run and not args.confirm:
        print("ERROR: pass --dry-run or --confirm")
        sys.exit(1)

    label = f"{args.protocol_type}/{args.year}"
    print("Environment:", settings.app_env)
    print("Database:", settings.database_url.split("@")[-1] if "@" in settings.database_url else "?")
    print("Mode:", "DRY-RUN" if args.dry_run else "CONFIRM")

    async with async_session() as session:
        result = await session.execute(select(User).where(User.email == args.user_email.lower()))
        user = result.scalar_one_or_none()
        if user is None or not user.is_active or not user.has_role(UserRole.SUPER_ADMIN):
            print(f"ERROR: {args.user_email} is not an active SuperAdmin")
            sys.exit(1)

        generator = ProtocolGenerator(session)
        sequence = await generator.get_sequence(args.protocol_type, args.year)
        if sequence is None:
            print(f"No counter for {label}; nothing was issued yet.")
            return

        print(f"\n{label}: last_sequence={sequence.last_sequence}, total_issued={sequence.total_issued}")
        if args.dry_run:
            print("[DRY-RUN] Counter would go back to 0. Use --confirm to apply.")
            return

        response = input(f"\nType 'RESET {label}' to continue: ")
        if response != f"RESET {label}":
            print("Cancelled.")
            sys.exit(0)

        try:
            sequence = await generator.reset_sequence(
                args.protocol_type, args.year, reset_by_id=user.id, reason=args.reason
            )
            await session.commit()
        except AppException as e:
            await session.rollback()
            print(f"ERROR: {e.message}")
            sys.exit(1)

        print(f"Done. {label} last_sequence={sequence.last_sequence}, total_issued={sequence.total_issued}")


if __name__ == "__main__":
    asyncio.run(main())
