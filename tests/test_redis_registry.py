"""Redis file registry against an in-memory stand-in for the redis.asyncio client."""

from datetime import timedelta

import pytest

from codedrop.exceptions import DuplicateCodeError, ExpiredError
from codedrop.services.redis_registry import INSERT_GROUP_SCRIPT, RedisFileRegistry

from conftest import SequenceCodes

TTL = timedelta(hours=1)


class FakeRedis:
    def __init__(self):
        self.values: dict[str, str] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.down = False

    async def eval(self, script, numkeys, *args):
        # Scripts run atomically: either every write lands or none does
        assert script == INSERT_GROUP_SCRIPT and numkeys == 2
        if self.down:
            raise ConnectionError("Connection closed by server.")
        group_key, expiry_key, value, score, code = args
        if group_key in self.values:
            return 0
        self.values[group_key] = value
        self.zsets.setdefault(expiry_key, {})[code] = float(score)
        return 1

    async def get(self, name):
        return self.values.get(name)

    async def delete(self, *names):
        return sum(1 for n in names if self.values.pop(n, None) is not None)

    async def zrem(self, name, *values):
        zset = self.zsets.get(name, {})
        return sum(1 for v in values if zset.pop(v, None) is not None)

    async def zrangebyscore(self, name, min, max):
        exclusive = max.startswith("(")
        bound = float(max.lstrip("("))
        items = sorted(self.zsets.get(name, {}).items(), key=lambda item: item[1])
        return [m for m, score in items if (score < bound if exclusive else score <= bound)]

    async def zrange(self, name, start, end):
        items = sorted(self.zsets.get(name, {}).items(), key=lambda item: item[1])
        return [m for m, _ in items][start : None if end == -1 else end + 1]

    async def aclose(self):
        pass


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def redis_registry(fake_redis, storage, clock) -> RedisFileRegistry:
    return RedisFileRegistry(fake_redis, storage, SequenceCodes(["AAAAAA", "AAAAAA"]), clock=clock, key_prefix="t:")


async def test_group_is_stored_as_single_key(redis_registry, fake_redis, storage, clock):
    files = [await storage.put(b"hello", "a.txt", "text/plain"), await storage.put(b"bin", "b.bin")]

    group = await redis_registry.create_group(files, TTL)
    found = await redis_registry.lookup("aaaaaa")

    assert list(fake_redis.values) == ["t:group:AAAAAA"]
    assert fake_redis.zsets["t:expiry"] == {"AAAAAA": (clock.now + TTL).timestamp()}
    assert found == group


async def test_set_nx_collision_raises_duplicate(redis_registry, storage):
    await redis_registry.create_group([await storage.put(b"1", "a.txt")], TTL)
    with pytest.raises(DuplicateCodeError):
        await redis_registry.create_group([await storage.put(b"2", "b.txt")], TTL)


async def test_expired_lookup_purges(redis_registry, fake_redis, storage, clock):
    stored = await storage.put(b"1", "a.txt")
    group = await redis_registry.create_group([stored], TTL)
    clock.advance(hours=2)

    with pytest.raises(ExpiredError):
        await redis_registry.lookup(group.code)

    assert fake_redis.values == {}
    assert fake_redis.zsets["t:expiry"] == {}
    assert not storage.exists(stored.storage_name)


async def test_list_expired_drops_stale_index_members(redis_registry, fake_redis, storage, clock):
    group = await redis_registry.create_group([await storage.put(b"1", "a.txt")], TTL)
    fake_redis.zsets["t:expiry"]["GHOST1"] = 0.0
    clock.advance(hours=2)

    expired = await redis_registry.list_expired(clock())

    assert [g.code for g in expired] == [group.code]
    assert "GHOST1" not in fake_redis.zsets["t:expiry"]


async def test_delete_reports_only_first_removal(redis_registry, storage):
    group = await redis_registry.create_group([await storage.put(b"1", "a.txt")], TTL)
    assert await redis_registry.delete(group.code) is True
    assert await redis_registry.delete(group.code) is False


async def test_failed_insert_leaves_neither_key_nor_index_entry(redis_registry, fake_redis, storage):
    fake_redis.down = True

    with pytest.raises(ConnectionError):
        await redis_registry.create_group([await storage.put(b"1", "a.txt")], TTL)

    assert fake_redis.values == {}
    assert fake_redis.zsets.get("t:expiry", {}) == {}


async def test_storage_names_follow_the_expiry_index(redis_registry, fake_redis, storage):
    files = [await storage.put(b"1", "a.txt"), await storage.put(b"2", "b.txt")]
    await redis_registry.create_group(files, TTL)
    fake_redis.zsets["t:expiry"]["GHOST1"] = 0.0

    assert await redis_registry.storage_names() == {f.storage_name for f in files}
