"""
SQLAlchemy implementation of the store interface.
"""

import logging
from uuid import UUID

from sqlalchemy import create_engine, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ..config.settings import get_settings
from ..core import models as schema
from .base import BaseStore, DuplicateUserError, NotFoundError, StoreError
from .encryption import EncryptionManager
from .models import Base, Conversation, Message, Summary, User

logger = logging.getLogger(__name__)

ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
}


def to_async_url(database_url: str) -> str:
    """Swap a plain database URL's driver for its asyncio counterpart."""
    scheme, sep, rest = database_url.partition("://")
    if not sep:
        raise ValueError(f"Invalid database URL: {database_url}")
    if "+" in scheme:
        return database_url
    return f"{ASYNC_DRIVERS.get(scheme, scheme)}://{rest}"


def to_sync_url(database_url: str) -> str:
    """Drop an asyncio driver so the URL works with a blocking engine."""
    scheme, sep, rest = database_url.partition("://")
    if scheme == "postgres":
        # SQLAlchemy only knows the postgresql dialect name
        return f"postgresql://{rest}"
    if scheme in ("sqlite+aiosqlite", "postgresql+asyncpg"):
        return f"{scheme.split('+', 1)[0]}://{rest}"
    return database_url


class ConversationStore(BaseStore):
    """Stores users, conversations, messages and summaries in a SQL database."""

    def __init__(
        self,
        database_url: str | None = None,
        echo: bool | None = None,
        encryption_manager: EncryptionManager | None = None,
    ):
        settings = get_settings()

        self.database_url = database_url or settings.database.url
        echo = settings.database.echo if echo is None else echo

        if encryption_manager is None and settings.database.encryption_enabled:
            encryption_manager = EncryptionManager(
                settings.database_encryption_key,
                key_id=settings.database.encryption_key_id,
            )
        self.encryption_manager = encryption_manager

        # Create engines
        self.engine = create_engine(to_sync_url(self.database_url), echo=echo)
        self.async_engine = create_async_engine(
            to_async_url(self.database_url), echo=echo
        )

        # Create session makers
        self.AsyncSessionLocal = async_sessionmaker(
            self.async_engine, expire_on_commit=False
        )

        self._initialize_database()

    def _initialize_database(self) -> None:
        """Create tables if they don't exist."""
        Base.metadata.create_all(bind=self.engine)

    def _seal(self, content: str) -> tuple[str, str | None]:
        if self.encryption_manager is None:
            return content, None
        return self.encryption_manager.encrypt(content)

    def _open(self, content: str, key_id: str | None) -> str:
        if key_id is None:
            return content
        if self.encryption_manager is None:
            raise StoreError(
                "Stored content is encrypted but no encryption key is configured"
            )
        try:
            return self.encryption_manager.decrypt(content, key_id)
        except ValueError as e:
            raise StoreError(f"Failed to decrypt stored content: {e}") from e

    def _to_message(self, row: Message) -> schema.Message:
        return schema.Message(
            id=row.id,
            con_id=row.con_id,
            sender=row.sender,
            content=self._open(row.content, row.encryption_key_id),
            created_at=row.created_at,
        )

    async def create_user(self, params: schema.CreateUserParams) -> schema.User:
        try:
            async with self.AsyncSessionLocal() as session:
                user = User(
                    email=params.email,
                    username=params.username,
                    role=params.role,
                )
                session.add(user)
                await session.commit()
                logger.info(f"Created user {user.id}")
                return schema.User.model_validate(user)
        except IntegrityError as e:
            raise DuplicateUserError(
                "A user with this email already exists", details={"email": params.email}
            ) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create user: {e}") from e

    async def get_user(self, user_id: UUID) -> schema.User:
        try:
            async with self.AsyncSessionLocal() as session:
                user = await session.get(User, user_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch user: {e}") from e

        if user is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return schema.User.model_validate(user)

    async def get_user_by_email(self, email: str) -> schema.User:
        try:
            async with self.AsyncSessionLocal() as session:
                result = await session.execute(
                    select(User).where(User.email == email.strip().lower())
                )
                user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch user: {e}") from e

        if user is None:
            raise NotFoundError("User not found", details={"email": email})
        return schema.User.model_validate(user)

    async def create_conversation(self, user_id: UUID) -> UUID:
        try:
            async with self.AsyncSessionLocal() as session:
                conversation = Conversation(user_id=user_id)
                session.add(conversation)
                await session.commit()
                logger.debug(f"Created conversation {conversation.id} for user {user_id}")
                return conversation.id
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create conversation: {e}") from e

    async def get_conversation(
        self, conversation_id: UUID, user_id: UUID
    ) -> schema.Conversation:
        try:
            async with self.AsyncSessionLocal() as session:
                result = await session.execute(
                    select(Conversation).where(
                        Conversation.id == conversation_id,
                        Conversation.user_id == user_id,
                    )
                )
                conversation = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch conversation: {e}") from e

        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                details={"conversation_id": str(conversation_id)},
            )
        return schema.Conversation.model_validate(conversation)

    async def delete_conversation(self, conversation_id: UUID) -> None:
        try:
            async with self.AsyncSessionLocal() as session:
                await session.execute(
                    delete(Message).where(Message.con_id == conversation_id)
                )
                await session.execute(
                    delete(Summary).where(Summary.con_id == conversation_id)
                )
                await session.execute(
                    delete(Conversation).where(Conversation.id == conversation_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete conversation: {e}") from e

    async def create_message(
        self, con_id: UUID, sender: str, content: str
    ) -> schema.Message:
        stored_content, key_id = self._seal(content)
        try:
            async with self.AsyncSessionLocal() as session:
                message = Message(
                    con_id=con_id,
                    sender=sender,
                    content=stored_content,
                    encryption_key_id=key_id,
                )
                session.add(message)
                await session.commit()

                return schema.Message(
                    id=message.id,
                    con_id=con_id,
                    sender=sender,
                    content=content,
                    created_at=message.created_at,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create message: {e}") from e

    async def get_con_messages(self, con_id: UUID) -> list[schema.Message]:
        try:
            async with self.AsyncSessionLocal() as session:
                result = await session.execute(
                    select(Message)
                    .where(Message.con_id == con_id)
                    .order_by(Message.seq)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch messages: {e}") from e

        return [self._to_message(row) for row in rows]

    async def list_full_conversations_by_user_id(
        self, user_id: UUID
    ) -> list[schema.ConversationRow]:
        try:
            async with self.AsyncSessionLocal() as session:
                result = await session.execute(
                    select(
                        Conversation.id,
                        Conversation.created_at,
                        Message.id,
                        Message.sender,
                        Message.content,
                        Message.encryption_key_id,
                        Message.created_at,
                    )
                    .outerjoin(Message, Message.con_id == Conversation.id)
                    .where(Conversation.user_id == user_id)
                    .order_by(Conversation.created_at.desc(), Message.seq)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list conversations: {e}") from e

        return [
            schema.ConversationRow(
                conversation_id=con_id,
                conversation_created_at=con_created_at,
                message_id=message_id,
                message_sender=sender or "",
                message_content=(
                    self._open(content, key_id) if message_id is not None else ""
                ),
                message_created_at=message_created_at,
            )
            for (
                con_id,
                con_created_at,
                message_id,
                sender,
                content,
                key_id,
                message_created_at,
            ) in rows
        ]

    async def create_summary(self, con_id: UUID, content: str) -> schema.Summary:
        stored_content, key_id = self._seal(content)
        try:
            async with self.AsyncSessionLocal() as session:
                summary = Summary(
                    con_id=con_id, content=stored_content, encryption_key_id=key_id
                )
                session.add(summary)
                await session.commit()
                return schema.Summary(
                    id=summary.id,
                    con_id=con_id,
                    content=content,
                    created_at=summary.created_at,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create summary: {e}") from e

    async def get_summary(self, summary_id: UUID) -> schema.Summary:
        try:
            async with self.AsyncSessionLocal() as session:
                summary = await session.get(Summary, summary_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch summary: {e}") from e

        if summary is None:
            raise NotFoundError("Summary not found", details={"summary_id": str(summary_id)})
        return schema.Summary(
            id=summary.id,
            con_id=summary.con_id,
            content=self._open(summary.content, summary.encryption_key_id),
            created_at=summary.created_at,
        )

    async def close(self) -> None:
        """Close database connections."""
        await self.async_engine.dispose()
        self.engine.dispose()


# Global store instance
_conversation_store: ConversationStore | None = None


def get_conversation_store() -> ConversationStore:
    """Get the global conversation store instance."""
    global _conversation_store
    if _conversation_store is None:
        _conversation_store = ConversationStore()
    return _conversation_store


def reset_conversation_store() -> None:
    """Forget the global store instance (used by tests)."""
    global _conversation_store
    _conversation_store = None
