# chat_relay/infrastructure/redis_client.py
import json
import logging
from typing import Any

import redis.asyncio as redis


class RedisClient:
    """Publish-only Redis connection used for push notifications."""

    def __init__(self, host: str, port: int, logger: logging.Logger):
        self.host = host
        self.port = port
        self.client: redis.Redis | None = None
        self.logger = logger

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    async def connect(self) -> None:
        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            decode_responses=True,
            health_check_interval=30,
        )
        try:
            await self.client.ping()
        except redis.ConnectionError as e:
            self.logger.error(f"Redis at {self.address} is unreachable: {e!s}")
            raise
        self.logger.info(f"Connected to Redis at {self.address}")

    async def disconnect(self) -> None:
        if self.client is None:
            return
        await self.client.aclose()
        self.client = None
        self.logger.info(f"Disconnected from Redis at {self.address}")

    async def publish(self, channel: str, message: str) -> int:
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        receivers = await self.client.publish(channel, message)
        self.logger.debug(f"Published to {channel} ({receivers} subscribers)")
        return receivers

    async def publish_json(self, channel: str, payload: dict[str, Any]) -> int:
        return await self.publish(channel, json.dumps(payload, default=str))

    async def is_healthy(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except redis.RedisError as e:
            self.logger.warning(f"Redis health check failed: {e!s}")
            return False
