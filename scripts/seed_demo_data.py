"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookindoor.core.config import get_settings
from bookindoor.core.database import SessionLocal, close_engine
from bookindoor.core.enums import RoleEnum
from bookindoor.core.security import create_access_token
from bookindoor.modules.grounds.models import Ground, GroundSport
from bookindoor.modules.identity.models import Role, User
from bookindoor.modules.identity.repository import IdentityRepository
from bookindoor.modules.identity.service import IdentityService

DEMO_SUPER_ADMIN_EMAIL = "demo-superadmin@bookindoor.dev"
DEMO_OWNER_EMAIL = "demo-owner@bookindoor.dev"
DEMO_CUSTOMER_EMAIL = "demo-customer@bookindoor.dev"

DEMO_GROUND_NAME = "Court A"
DEMO_GROUND_HOURS = ("09:00", "22:00")
DEMO_SPORTS = {
    "Futsal": Decimal("500.00"),
    "Cricket": Decimal("1500.00"),
}


@dataclass(slots=True)
class SeedStats:
    users_created: int = 0
    users_updated: int = 0
    ground_created: bool = False
    sports_created: int = 0
    ground_id: str | None = None
    tokens: dict[str, str] = field(default_factory=dict)


async def _ensure_user(
    session: AsyncSession,
    *,
    email: str,
    name: str,
    role_name: RoleEnum,
) -> tuple[User, bool]:
    role = await session.scalar(select(Role).where(Role.name == role_name))
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_default_roles")

    user = await session.scalar(
        select(User).options(selectinload(User.role)).where(User.email == email),
    )
    created = False
    if user is None:
        user = User(email=email, name=name, is_active=True, role_id=role.id)
        session.add(user)
        created = True
    else:
        user.name = name
        user.role_id = role.id
        user.is_active = True

    await session.flush()
    await session.refresh(user, attribute_names=["role"])
    return user, created


async def _ensure_ground(session: AsyncSession, owner: User) -> tuple[Ground, bool, int]:
    ground = await session.scalar(
        select(Ground)
        .options(selectinload(Ground.sports))
        .where(Ground.name == DEMO_GROUND_NAME, Ground.owner_id == owner.id),
    )
    created = False
    if ground is None:
        ground = Ground(
            name=DEMO_GROUND_NAME,
            address="12 Stadium Road, Colombo 07",
            contact_number="+94 11 234 5678",
            ground_type="Indoor",
            description="Covered multi-sport court used for demos.",
            open_from=DEMO_GROUND_HOURS[0],
            open_to=DEMO_GROUND_HOURS[1],
            owner_id=owner.id,
            sports=[],
        )
        session.add(ground)
        created = True
    else:
        ground.open_from, ground.open_to = DEMO_GROUND_HOURS

    existing = {sport.name: sport for sport in ground.sports}
    sports_created = 0
    for name, price_per_hour in DEMO_SPORTS.items():
        if name in existing:
            existing[name].price_per_hour = price_per_hour
            continue
        ground.sports.append(GroundSport(name=name, price_per_hour=price_per_hour))
        sports_created += 1

    await session.flush()
    return ground, created, sports_created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            await IdentityService(IdentityRepository(session)).ensure_default_roles()
            await session.flush()

            users = [
                await _ensure_user(
                    session,
                    email=DEMO_SUPER_ADMIN_EMAIL,
                    name="Demo Super Admin",
                    role_name=RoleEnum.SUPER_ADMIN,
                ),
                await _ensure_user(session, email=DEMO_OWNER_EMAIL, name="Demo Owner", role_name=RoleEnum.ADMIN),
                await _ensure_user(
                    session,
                    email=DEMO_CUSTOMER_EMAIL,
                    name="Demo Customer",
                    role_name=RoleEnum.CUSTOMER,
                ),
            ]
            stats.users_created = sum(created for _, created in users)
            stats.users_updated = len(users) - stats.users_created

            owner = users[1][0]
            ground, stats.ground_created, stats.sports_created = await _ensure_ground(session, owner)
            stats.ground_id = str(ground.id)
            for user, _ in users:
                stats.tokens[user.email] = create_access_token(str(user.id), role=str(user.role.name))

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Seed idempotent demo data for BookIndoor (operators, a customer and a ground with sports).",
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Ground created: {stats.ground_created} ({stats.ground_id})")
    print(f"- Sports created: {stats.sports_created}")
    print("")
    print("Demo bearer tokens (non-production only):")
    for email, token in stats.tokens.items():
        print(f"- {email}: {token}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
