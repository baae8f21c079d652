from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import VersionConflictError
from tender_ai.database.models import ResponseDraft
from tender_ai.repositories.base_repository import BaseRepository

MAX_VERSION_ATTEMPTS = 5


class ResponseDraftRepository(BaseRepository[ResponseDraft]):
    """Append-only version history for draft groups.

    Version numbers are allocated as max + 1 and protected by the
    (draft_group_id, version) unique constraint; a concurrent writer that
    loses the race re-reads the max and tries again.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, ResponseDraft)

    async def latest_version(self, draft_group_id: UUID) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.max(ResponseDraft.version), 0))
            .where(ResponseDraft.draft_group_id == draft_group_id)
        )
        return result.scalar_one()

    async def append_version(
        self,
        draft_group_id: UUID,
        content: str,
        model_used: str,
        prompt_used: Optional[str] = None,
        max_attempts: int = MAX_VERSION_ATTEMPTS,
    ) -> ResponseDraft:
        """Insert the next version snapshot, retrying on version collisions.

        Raises:
            VersionConflictError: If no version could be allocated within max_attempts
        """
        last_error: Optional[Exception] = None
        for attempt in range(max_attempts):
            version = await self.latest_version(draft_group_id) + 1
            snapshot = ResponseDraft(
                draft_group_id=draft_group_id,
                version=version,
                content=content,
                model_used=model_used,
                prompt_used=prompt_used,
            )
            try:
                async with self.session.begin_nested():
                    self.session.add(snapshot)
                await self.session.commit()
                return snapshot
            except IntegrityError as e:
                last_error = e
                self.logger.warning(
                    f"Version {version} already taken for draft group {draft_group_id}, retrying",
                    extra={"attempt": attempt + 1, "max_attempts": max_attempts},
                )
            except SQLAlchemyError as e:
                self.logger.error(f"Error saving draft version for {draft_group_id}: {e}", exc_info=True)
                raise

        raise VersionConflictError(
            f"Could not allocate a draft version for {draft_group_id} after {max_attempts} attempts",
            last_error,
        )

    async def list_versions(self, draft_group_id: UUID) -> List[ResponseDraft]:
        result = await self.session.execute(
            select(ResponseDraft)
            .where(ResponseDraft.draft_group_id == draft_group_id)
            .order_by(ResponseDraft.version.desc())
        )
        return list(result.scalars().all())
