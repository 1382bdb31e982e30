import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import datetime  # noqa: E402

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from dental_clinic.core.db import build_engine, build_session_maker, init_db  # noqa: E402
from dental_clinic.models.provider import Provider, Specialty  # noqa: E402
from dental_clinic.models.user import Role, User  # noqa: E402
from dental_clinic.services.policy import Actor  # noqa: E402

SLOT = datetime(2025, 3, 1, 10, 0, 0)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as s:
        yield s


class Factory:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._n = 0

    async def user(self, role: Role = Role.USER, name: str | None = None) -> User:
        self._n += 1
        user = User(email=f"{role.value}{self._n}@clinic.test", full_name=name or f"{role.value} {self._n}", role=role)
        self.session.add(user)
        await self.session.flush()
        return user

    async def provider(self, user: User | None = None, name: str | None = None) -> Provider:
        user = user or await self.user(Role.DENTIST)
        provider = Provider(
            user_id=user.id,
            name=name or f"Dr. {user.id}",
            years_of_experience=5,
            area_of_expertise=[Specialty.GENERAL_DENTISTRY.value],
        )
        self.session.add(provider)
        await self.session.flush()
        return provider


@pytest_asyncio.fixture
async def factory(session) -> Factory:
    return Factory(session)


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role)


@pytest_asyncio.fixture
async def admin(factory) -> Actor:
    return actor_for(await factory.user(Role.ADMIN))


@pytest_asyncio.fixture
async def dentist_x(factory) -> tuple[Actor, Provider]:
    """Provider X and the actor for the dentist account behind it."""
    user = await factory.user(Role.DENTIST, name="Dr. X")
    provider = await factory.provider(user, name="Dr. X")
    return actor_for(user), provider


@pytest_asyncio.fixture
async def patient_a(factory) -> Actor:
    return actor_for(await factory.user(Role.USER, name="Patient A"))


@pytest_asyncio.fixture
async def patient_b(factory) -> Actor:
    return actor_for(await factory.user(Role.USER, name="Patient B"))
