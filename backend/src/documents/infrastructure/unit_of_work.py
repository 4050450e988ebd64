import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.infrastructure.user_repository import DbUserRepository
from comments.infrastructure.comment_repository import DbCommentRepository
from documents.infrastructure.document_repository import DbDocumentRepository
from documents.infrastructure.history_repository import DbHistoryRepository
from documents.infrastructure.share_repository import DbSharedDocumentRepository
from shared.exceptions import StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)


class DbUnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = DbUserRepository(session)
        self.documents = DbDocumentRepository(session)
        self.shares = DbSharedDocumentRepository(session)
        self.history = DbHistoryRepository(session)
        self.comments = DbCommentRepository(session)

    async def __aenter__(self) -> "DbUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            await self.session.rollback()
            if _is_driver_error(exc):
                raise _translate(exc) from exc
            return False

        try:
            await self.session.commit()
        except (SQLAlchemyError, TimeoutError) as e:
            await self.session.rollback()
            raise _translate(e) from e
        return False


def _is_driver_error(exc: BaseException) -> bool:
    return isinstance(exc, (SQLAlchemyError, TimeoutError))


def _translate(exc: BaseException) -> StoreError:
    if isinstance(exc, (TimeoutError, PoolTimeoutError)) or isinstance(
        getattr(exc, "orig", None), TimeoutError
    ):
        logger.error("Database operation timed out: %s", exc)
        return StoreTimeoutError(f"Database operation timed out: {exc}")
    logger.error("Database operation failed: %s", exc)
    return StoreError(f"Database operation failed: {exc}")
