"""
Redis-backed file registry.

Each group is a single JSON value; a sorted set scored by expiry timestamp
lets the reaper find expired codes without scanning the keyspace. Both are
written by one server-side script, so a group is never visible without its
expiry index entry. Keys carry no Redis TTL: an entry must outlive its
blobs until it is purged.
"""

import json
import logging
from datetime import datetime

from codedrop.exceptions import DuplicateCodeError
from codedrop.services.registry import Clock, FileRegistry
from codedrop.services.types import FileGroup, StoredFile, utcnow
from codedrop.utils.codes import CodeGenerator
from codedrop.utils.storage import LocalStorage

logger = logging.getLogger(__name__)

# KEYS: group key, expiry index. ARGV: group JSON, expiry timestamp, code.
INSERT_GROUP_SCRIPT = """
if redis.call("SET", KEYS[1], ARGV[1], "NX") then
    redis.call("ZADD", KEYS[2], ARGV[2], ARGV[3])
    return 1
end
return 0
"""


class RedisFileRegistry(FileRegistry):
    def __init__(
        self,
        redis,
        storage: LocalStorage,
        code_generator: CodeGenerator | None = None,
        clock: Clock = utcnow,
        key_prefix: str = "codedrop:",
    ):
        super().__init__(storage, code_generator, clock)
        self._redis = redis
        self._prefix = key_prefix

    def _group_key(self, code: str) -> str:
        return f"{self._prefix}group:{code}"

    @property
    def _expiry_key(self) -> str:
        return f"{self._prefix}expiry"

    async def _insert(self, group: FileGroup) -> None:
        created = await self._redis.eval(
            INSERT_GROUP_SCRIPT,
            2,
            self._group_key(group.code),
            self._expiry_key,
            _dump(group),
            group.expires_at.timestamp(),
            group.code,
        )
        if not created:
            raise DuplicateCodeError(f"Code {group.code} is already registered")

    async def get(self, code: str) -> FileGroup | None:
        raw = await self._redis.get(self._group_key(code))
        return _load(raw) if raw else None

    async def delete(self, code: str) -> bool:
        removed = await self._redis.delete(self._group_key(code))
        await self._redis.zrem(self._expiry_key, code)
        return bool(removed)

    async def list_expired(self, cutoff: datetime) -> list[FileGroup]:
        codes = await self._redis.zrangebyscore(self._expiry_key, "-inf", f"({cutoff.timestamp()}")
        groups = []
        for code in codes:
            if isinstance(code, bytes):
                code = code.decode()
            group = await self.get(code)
            if group is None:
                # Entry already gone; drop the stale index member
                await self._redis.zrem(self._expiry_key, code)
                continue
            groups.append(group)
        return groups

    async def storage_names(self) -> set[str]:
        names = set()
        for code in await self._redis.zrange(self._expiry_key, 0, -1):
            if isinstance(code, bytes):
                code = code.decode()
            group = await self.get(code)
            if group is not None:
                names.update(f.storage_name for f in group.files)
        return names

    async def close(self) -> None:
        await self._redis.aclose()


def _dump(group: FileGroup) -> str:
    return json.dumps({
        "code": group.code,
        "created_at": group.created_at.isoformat(),
        "expires_at": group.expires_at.isoformat(),
        "files": [
            {
                "storage_name": f.storage_name,
                "original_name": f.original_name,
                "size_bytes": f.size_bytes,
                "mime_type": f.mime_type,
            }
            for f in group.files
        ],
    })


def _load(raw: str | bytes) -> FileGroup:
    data = json.loads(raw)
    return FileGroup(
        code=data["code"],
        files=tuple(StoredFile(**f) for f in data["files"]),
        created_at=datetime.fromisoformat(data["created_at"]),
        expires_at=datetime.fromisoformat(data["expires_at"]),
    )


async def connect_redis(redis_url: str):
    """Open an asyncio Redis client and verify it answers a ping."""
    import redis.asyncio as aioredis

    client = aioredis.from_url(redis_url, decode_responses=True, socket_connect_timeout=2)
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    return client
