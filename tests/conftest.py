"""
Pytest configuration and fixtures for the job queue tests.
"""
import pytest
from unittest.mock import MagicMock

from compliance_queue.core.queue_config import QueueConfig
from compliance_queue.core.redis_client import RedisClient
from compliance_queue.services.queue_store import CLAIM_SCRIPT, RECLAIM_STALE_SCRIPT, QueueStore
from compliance_queue.workers.queue_processor import QueueProcessor


class FakeClock:
    """Settable wall clock, in seconds since the epoch."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakePipeline:
    """Buffers commands and replays them against the fake on execute()."""

    def __init__(self, redis: "FakeRedis", transaction: bool):
        self.redis = redis
        self.transaction = transaction
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.commands = []

    def __getattr__(self, name):
        def buffer(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self
        return buffer

    async def execute(self):
        if self.redis.fail_with:
            raise self.redis.fail_with
        self.redis.pipelines.append([name for name, _, _ in self.commands])
        results = []
        for name, args, kwargs in self.commands:
            results.append(await getattr(self.redis, name)(*args, **kwargs))
        self.commands = []
        return results


class FakeRedis:
    """
    In-memory stand-in for the subset of redis.asyncio.Redis the queue uses.

    Keys with a TTL expire against the shared FakeClock, like Redis does.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.strings = {}
        self.zsets = {}
        self.expires_at = {}
        self.pipelines = []
        self.fail_with = None

    def _purge(self, key):
        deadline = self.expires_at.get(key)
        if deadline is not None and deadline <= self.clock():
            self.strings.pop(key, None)
            self.expires_at.pop(key, None)

    def expire_now(self, key):
        """Drop a key as if its TTL had run out."""
        self.strings.pop(key, None)
        self.expires_at.pop(key, None)

    def pipeline(self, transaction: bool = True):
        return FakePipeline(self, transaction)

    async def ping(self):
        return True

    async def eval(self, script, numkeys, *keys_and_args):
        """Runs the queue's Lua scripts as Python; each call is atomic here."""
        if self.fail_with:
            raise self.fail_with
        keys, args = keys_and_args[:numkeys], keys_and_args[numkeys:]
        if script == CLAIM_SCRIPT:
            pending, processing = keys
            job_id, now_ms = args
            if not await self.zrem(pending, job_id):
                return 0
            await self.zadd(processing, {job_id: now_ms})
            return 1
        if script == RECLAIM_STALE_SCRIPT:
            (processing,) = keys
            job_id, threshold_ms, now_ms = args
            score = self.score(processing, job_id)
            if score is None or score > float(threshold_ms):
                return 0
            await self.zadd(processing, {job_id: now_ms})
            return 1
        raise NotImplementedError("unknown script")

    async def get(self, key):
        self._purge(key)
        return self.strings.get(key)

    async def mget(self, keys):
        return [await self.get(key) for key in keys]

    async def set(self, key, value, ex=None):
        self.strings[key] = value
        if ex is None:
            self.expires_at.pop(key, None)
        else:
            self.expires_at[key] = self.clock() + ex
        return True

    async def ttl(self, key):
        self._purge(key)
        if key not in self.strings:
            return -2
        if key not in self.expires_at:
            return -1
        return int(self.expires_at[key] - self.clock())

    async def exists(self, *keys):
        count = 0
        for key in keys:
            self._purge(key)
            count += key in self.strings or key in self.zsets
        return count

    async def incr(self, key):
        value = int(self.strings.get(key, 0)) + 1
        self.strings[key] = str(value)
        return value

    async def zadd(self, key, mapping):
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrem(self, key, *members):
        zset = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if member in zset:
                del zset[member]
                removed += 1
        return removed

    async def zcard(self, key):
        return len(self.zsets.get(key, {}))

    def _sorted(self, key):
        return sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))

    async def zrangebyscore(self, key, min, max, start=None, num=None):
        low = float(min)
        high = float(max)
        members = [m for m, score in self._sorted(key) if low <= score <= high]
        if start is not None and num is not None:
            members = members[start:start + num]
        return members

    async def zrange(self, key, start, end):
        members = [m for m, _ in self._sorted(key)]
        return members[start:] if end == -1 else members[start:end + 1]

    async def zrevrange(self, key, start, end):
        members = [m for m, _ in reversed(self._sorted(key))]
        return members[start:] if end == -1 else members[start:end + 1]

    def score(self, key, member):
        return self.zsets.get(key, {}).get(member)

    def members(self, key):
        return set(self.zsets.get(key, {}))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest.fixture
def mock_redis(fake_redis):
    """RedisClient wrapper whose connection is the in-memory fake."""
    redis_mock = MagicMock(spec=RedisClient)
    redis_mock.client = fake_redis
    return redis_mock


@pytest.fixture
def disconnected_redis():
    """RedisClient that never connected."""
    redis_mock = MagicMock(spec=RedisClient)
    redis_mock.client = None
    return redis_mock


@pytest.fixture
def queue_config():
    return QueueConfig(
        batch_size=10,
        max_attempts=3,
        base_backoff_ms=1000,
        job_ttl_seconds=7 * 24 * 60 * 60,
        processing_timeout_seconds=300,
        key_prefix="queue",
    )


@pytest.fixture
def store(mock_redis, queue_config, clock):
    return QueueStore(mock_redis, config=queue_config, clock=clock)


@pytest.fixture
def processor(store):
    return QueueProcessor(store)


@pytest.fixture
def email_payload():
    return {
        "to": "a@b.com",
        "subject": "Welcome",
        "template_id": "welcome",
        "template_data": {"name": "Alice"},
    }
