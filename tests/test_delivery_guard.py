"""Tests for the Redis delivery guard."""

import pytest
import redis.asyncio as redis

from fairway.config import Config
from fairway.data_models.pipeline import DeliveryStatus
from fairway.services.delivery_guard import DeliveryGuard
from fairway.services.outing_pipeline import OutingPipeline
from fairway.utils.redis_utils import RedisUtils


class FakeRedis:
    """In-memory stand-in for the two commands the guard uses."""

    def __init__(self, fail=False):
        self.store = {}
        self.expiry = {}
        self.fail = fail
        self.closed = False

    async def exists(self, key):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        return int(key in self.store)

    async def set(self, key, value, ex=None):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        self.store[key] = value
        self.expiry[key] = ex

    async def aclose(self):
        self.closed = True


class TestDeliveryGuard:

    def test_delivery_key(self):
        assert DeliveryGuard.delivery_key("round", 42) == "fairway:delivery:round:42"

    @pytest.mark.asyncio
    async def test_disabled_guard_never_short_circuits(self):
        guard = DeliveryGuard()
        await guard.remember("fairway:delivery:round:1")
        assert not guard.enabled
        assert not await guard.seen("fairway:delivery:round:1")

    @pytest.mark.asyncio
    async def test_remember_then_seen(self):
        client = FakeRedis()
        guard = DeliveryGuard(client, ttl=60)

        assert not await guard.seen("k")
        await guard.remember("k")

        assert await guard.seen("k")
        assert client.expiry["k"] == 60

    @pytest.mark.asyncio
    async def test_zero_ttl_keeps_key_without_expiry(self):
        client = FakeRedis()
        guard = DeliveryGuard(client, ttl=0)

        await guard.remember("k")

        assert guard.ttl == 0
        assert client.expiry["k"] is None
        assert DeliveryGuard(client).ttl == Config.DELIVERY_GUARD_TTL

    @pytest.mark.asyncio
    async def test_redis_errors_degrade_to_miss(self):
        guard = DeliveryGuard(FakeRedis(fail=True))
        await guard.remember("k")
        assert not await guard.seen("k")

    @pytest.mark.asyncio
    async def test_close(self):
        client = FakeRedis()
        await DeliveryGuard(client).close()
        assert client.closed

    @pytest.mark.asyncio
    async def test_connect_disabled_without_configuration(self, monkeypatch):
        monkeypatch.setattr(Config, "DELIVERY_GUARD_ENABLED", False)
        guard = await DeliveryGuard.connect()
        assert not guard.enabled


class TestRedisSecurity:

    def test_production_requires_tls_and_credentials(self, monkeypatch):
        monkeypatch.setattr(Config, "DEBUG", False)
        assert RedisUtils.get_secure_redis_url("redis://cache:6379") is None
        assert RedisUtils.get_secure_redis_url("rediss://cache:6380") is None
        assert RedisUtils.get_secure_redis_url("rediss://user:pw@cache:6380") == "rediss://user:pw@cache:6380"

    def test_development_falls_back_to_localhost(self, monkeypatch):
        monkeypatch.setattr(Config, "DEBUG", True)
        monkeypatch.setattr(Config, "REDIS_URL", "")
        assert RedisUtils.get_secure_redis_url() == "redis://localhost:6379"


class TestPipelineWithGuard:

    @pytest.mark.asyncio
    async def test_processed_delivery_short_circuits(self, db, sink, outing_ops, make_slot):
        client = FakeRedis()
        pipeline = OutingPipeline(db, sink=sink, guard=DeliveryGuard(client))
        outing = await outing_ops.create_outing("Twilight", "Links", [make_slot("amy", 70), make_slot("bob", 72)])
        round_id = outing.groups[0].round_id
        await outing_ops.complete_round(round_id)

        first = await pipeline.handle_round_completed(round_id)
        second = await pipeline.handle_round_completed(round_id)

        assert first.status == DeliveryStatus.FINALIZED
        assert second.status == DeliveryStatus.DUPLICATE
        assert second.reason == "delivery already processed"
        assert DeliveryGuard.delivery_key("round", round_id) in client.store

    @pytest.mark.asyncio
    async def test_discarded_delivery_is_not_remembered(self, db, sink):
        client = FakeRedis()
        pipeline = OutingPipeline(db, sink=sink, guard=DeliveryGuard(client))

        outcome = await pipeline.handle_round_completed(404)

        assert outcome.status == DeliveryStatus.DISCARDED
        assert client.store == {}
