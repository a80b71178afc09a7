"""User store — lookups and protected writes for UserRecord.

Learn: This is the only place that writes users. save() always runs the
record's protect() hook first, so a record can't reach the database with
plaintext in it. If protection fails the exception propagates before the
record is even added to the session; nothing partially protected is written.

Lookups can exclude columns. Excluded columns are deferred with
raiseload, so touching them on the returned record raises instead of
quietly loading hash material.
"""

import uuid
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer

from keyguard.auth.cipher import SecretCipher
from keyguard.auth.password import PasswordHasher
from keyguard.db.models import UserRecord


class UserStore:
    """Keyed access to user records."""

    def __init__(self, db: AsyncSession, cipher: SecretCipher, hasher: PasswordHasher):
        self.db = db
        self.cipher = cipher
        self.hasher = hasher

    async def find_by_id(
        self, identity_id: str, *, exclude: Iterable[str] = ()
    ) -> Optional[UserRecord]:
        """Return the user with this id, or None (also for non-UUID ids)."""
        try:
            user_id = uuid.UUID(str(identity_id))
        except ValueError:
            return None

        q = (
            select(UserRecord)
            .where(UserRecord.id == user_id)
            .options(*self._exclusions(exclude))
        )
        result = await self.db.execute(q)
        return result.scalars().first()

    async def find_by_email(
        self, email: str, *, exclude: Iterable[str] = ()
    ) -> Optional[UserRecord]:
        q = (
            select(UserRecord)
            .where(UserRecord.email == email)
            .options(*self._exclusions(exclude))
        )
        result = await self.db.execute(q)
        return result.scalars().first()

    async def load_password_hash(self, user: UserRecord) -> UserRecord:
        """Explicitly load the hash on a record fetched without it."""
        await self.db.refresh(user, attribute_names=["password_hash"])
        return user

    async def save(self, user: UserRecord) -> UserRecord:
        """Protect pending secrets, then write the record."""
        await user.protect(self.cipher, self.hasher)
        self.db.add(user)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return user

    @staticmethod
    def _exclusions(exclude: Iterable[str]) -> list:
        return [defer(getattr(UserRecord, name), raiseload=True) for name in exclude]
