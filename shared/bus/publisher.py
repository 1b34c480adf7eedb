"""Navigation command publisher for the message bus.

Hands stamped navigation messages to Redis pub/sub, where the robot-side
bridge relays them onto ROS topics. Falls back gracefully if Redis is
unavailable (logs a warning, does not crash); the console keeps working
and simply reports the command as undelivered.

Usage:
    from shared.bus import NavCommandPublisher

    pub = NavCommandPublisher()
    await pub.connect()
    await pub.publish("/goal_pose", pose_stamped)

    # From synchronous callbacks running on the event loop:
    pub.submit("/clicked_point", point_stamped)

    await pub.close()
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import Optional

from pydantic import BaseModel

from shared.config.console_config import ConsoleConfig

logger = logging.getLogger(__name__)

# Recent deliveries kept for the status endpoint
HISTORY_SIZE = 20


class NavCommandPublisher:
    """Publishes navigation commands to the Redis message bus.

    Designed for async usage with FastAPI/asyncio services. Every message is
    recorded in ``history`` when it is handed over; the record's
    ``delivered`` flag flips once Redis accepts it.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self._redis_url = redis_url or ConsoleConfig.REDIS_URL
        self._redis = None
        self._connected = False
        self._pending: set[asyncio.Task] = set()
        self.published_count = 0
        self.failed_count = 0
        self.history: deque[dict] = deque(maxlen=HISTORY_SIZE)

    async def connect(self) -> bool:
        """Connect to Redis. Returns True if successful."""
        try:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=2.0,
            )
            await self._redis.ping()
            self._connected = True
            logger.info("NavCommandPublisher connected to Redis at %s", self._redis_url)
            return True
        except ImportError:
            logger.warning("redis package not installed — commands will not be delivered")
            return False
        except Exception as e:
            logger.warning("Failed to connect to Redis: %s — commands will not be delivered", e)
            self._connected = False
            return False

    def _record(self, topic: str, message: BaseModel | dict) -> tuple[str, dict]:
        payload = message.model_dump_json() if isinstance(message, BaseModel) else json.dumps(message)
        record = {"topic": topic, "payload": json.loads(payload), "delivered": False}
        self.history.append(record)
        return payload, record

    def _offline(self, topic: str) -> bool:
        if self._connected and self._redis is not None:
            return False
        self.failed_count += 1
        logger.warning("Bus offline, dropped message for %s", topic)
        return True

    async def _deliver(self, topic: str, payload: str, record: dict) -> bool:
        try:
            await self._redis.publish(topic, payload)
        except Exception as e:
            self.failed_count += 1
            logger.warning("Failed to publish to %s: %s", topic, e)
            return False

        record["delivered"] = True
        self.published_count += 1
        return True

    async def publish(self, topic: str, message: BaseModel | dict) -> bool:
        """Publish a message on *topic*.

        Returns:
            True if handed to the bus, False otherwise.
        """
        payload, record = self._record(topic, message)
        if self._offline(topic):
            return False
        return await self._deliver(topic, payload, record)

    def submit(self, topic: str, message: BaseModel | dict) -> Optional[asyncio.Task]:
        """Record *message* now and deliver it in the background.

        Must be called from code running on the event loop. Returns the
        delivery task, or None when the bus is offline.
        """
        payload, record = self._record(topic, message)
        if self._offline(topic):
            return None
        task = asyncio.get_running_loop().create_task(self._deliver(topic, payload, record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def flush(self) -> None:
        """Wait for every submitted delivery to finish."""
        if self._pending:
            await asyncio.gather(*self._pending)

    async def close(self):
        """Finish pending deliveries and close the Redis connection."""
        await self.flush()
        if self._redis:
            await self._redis.close()
            self._redis = None
            self._connected = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def is_connected(self) -> bool:
        return self._connected
