"""Persistence of requester identity and export preferences."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..db_models import Profile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_ID = "default"


@dataclass(slots=True)
class ProfileState:
    """Plain snapshot of a stored profile."""

    id: str
    anonymous_id: str
    customer_name: str | None
    customer_email: str | None
    mode: str
    concurrency_limit: int
    last_export_at: datetime | None = None

    @classmethod
    def from_model(cls, profile: Profile) -> "ProfileState":
        return cls(
            id=profile.id,
            anonymous_id=profile.anonymous_id,
            customer_name=profile.customer_name,
            customer_email=profile.customer_email,
            mode=profile.mode,
            concurrency_limit=profile.concurrency_limit,
            last_export_at=profile.last_export_at,
        )


class ProfileRepository:
    """Loads and stores the profile a run draws its defaults from."""

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory

    async def load(self, profile_id: str = DEFAULT_PROFILE_ID) -> ProfileState:
        """Return the stored profile, creating it with a fresh anonymous id."""

        async with self._session_factory() as session:
            profile = await session.get(Profile, profile_id)
            if profile is None:
                profile = Profile(
                    id=profile_id,
                    anonymous_id=secrets.token_hex(4),
                    customer_name=self._settings.customer_name or None,
                    customer_email=self._settings.customer_email,
                    mode=self._settings.export_mode,
                    concurrency_limit=self._settings.concurrency_limit,
                )
                session.add(profile)
                await session.commit()
                logger.info("Created profile %s", profile_id)
            return ProfileState.from_model(profile)

    async def save(
        self,
        profile_id: str = DEFAULT_PROFILE_ID,
        *,
        customer_name: str | None = None,
        customer_email: str | None = None,
        mode: str | None = None,
        concurrency_limit: int | None = None,
    ) -> ProfileState:
        """Update the provided preferences; ``None`` leaves a value unchanged."""

        await self.load(profile_id)
        async with self._session_factory() as session:
            profile = await session.get(Profile, profile_id)
            if profile is None:
                raise RuntimeError(f"Profile {profile_id} disappeared during update")
            if customer_name is not None:
                profile.customer_name = customer_name
            if customer_email is not None:
                profile.customer_email = customer_email
            if mode is not None:
                profile.mode = mode
            if concurrency_limit is not None:
                profile.concurrency_limit = concurrency_limit
            await session.commit()
            return ProfileState.from_model(profile)

    async def mark_exported(self, profile_id: str = DEFAULT_PROFILE_ID) -> None:
        async with self._session_factory() as session:
            profile = await session.get(Profile, profile_id)
            if profile is None:
                return
            profile.last_export_at = datetime.utcnow()
            await session.commit()
