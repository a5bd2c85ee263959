"""Service wiring and the FastAPI dependency for the transfer service."""

import logging
from datetime import timedelta
from pathlib import Path

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine

from codedrop.config import Settings
from codedrop.db.session import build_engine, build_session_factory, create_tables
from codedrop.services.registry import FileRegistry, SqlFileRegistry
from codedrop.services.transfer_service import TransferService
from codedrop.utils.codes import CodeGenerator
from codedrop.utils.storage import LocalStorage

logger = logging.getLogger(__name__)


async def build_registry(
    settings: Settings,
    storage: LocalStorage,
    code_generator: CodeGenerator | None = None,
) -> tuple[FileRegistry, AsyncEngine]:
    """Try Redis when configured; fall back to the SQL registry if unavailable."""
    code_generator = code_generator or CodeGenerator(settings.CODE_LENGTH)

    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    engine = build_engine(settings.DATABASE_URL)

    if settings.REGISTRY_BACKEND == "redis" and settings.REDIS_URL:
        from codedrop.services.redis_registry import RedisFileRegistry, connect_redis

        try:
            client = await connect_redis(settings.REDIS_URL)
            logger.info("File registry: using Redis at %s", settings.REDIS_URL)
            return (
                RedisFileRegistry(client, storage, code_generator, key_prefix=settings.REDIS_KEY_PREFIX),
                engine,
            )
        except Exception as e:
            logger.warning("Redis unavailable (%s), falling back to SQL registry", e)

    await create_tables(engine)
    logger.info("File registry: using SQL at %s", engine.url.render_as_string(hide_password=True))
    return SqlFileRegistry(build_session_factory(engine), storage, code_generator), engine


def build_transfer_service(settings: Settings, registry: FileRegistry, storage: LocalStorage) -> TransferService:
    return TransferService(
        registry=registry,
        storage=storage,
        ttl=timedelta(seconds=settings.FILE_TTL_SECONDS),
        base_url=settings.BASE_URL,
        max_attempts=settings.CODE_MAX_ATTEMPTS,
        max_file_bytes=settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024,
        max_files=settings.MAX_FILES_PER_UPLOAD,
    )


def get_transfer_service(request: Request) -> TransferService:
    return request.app.state.transfer_service
