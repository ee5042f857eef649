# -*- coding: utf-8 -*-
"""
KV Store Module (Redis)

JSON get/set/delete with TTL on top of Redis. Used for the per-chat
conversation state and the per-chat processing lock.
"""

import json
import logging
from typing import Any, Dict, Optional

from redis import Redis

from chatledger.config import REDIS_URL

logger = logging.getLogger(__name__)


class KVStore:
    """
    KV Store wrapper for Redis operations

    Provides simple get/set interface for caching data with TTL support.
    """

    def __init__(self, client: Optional[Redis] = None):
        """
        Initialize KV store

        Args:
            client: Redis client instance (if None, will try to create one)
        """
        self.client = client or get_kv_client()

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from KV store

        Args:
            key: Cache key

        Returns:
            Cached value (dict) or None if not found
        """
        if not self.client:
            return None

        try:
            value = self.client.get(key)
            if not value:
                return None

            return json.loads(value)

        except Exception as e:
            logger.error(f"Failed to get key {key}: {e}")
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: int = 3600) -> bool:
        """
        Set value in KV store with TTL

        Args:
            key: Cache key
            value: Value to cache (dict)
            ttl: Time to live in seconds (default: 3600 = 1 hour)

        Returns:
            bool: True if successful, False otherwise
        """
        if not self.client:
            return False

        try:
            json_value = json.dumps(value, ensure_ascii=False)
            self.client.setex(key, ttl, json_value)
            return True

        except Exception as e:
            logger.error(f"Failed to set key {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self.client:
            return False

        try:
            self.client.delete(key)
            return True
        except Exception as e:
            logger.error(f"Failed to delete key {key}: {e}")
            return False


_client: Optional[Redis] = None


def get_kv_client() -> Optional[Redis]:
    """
    Get the shared Redis client

    Returns:
        Redis client instance, or None when it cannot be created
    """
    global _client
    if _client is not None:
        return _client

    try:
        _client = Redis.from_url(REDIS_URL, decode_responses=True)
        return _client
    except Exception as e:
        logger.error(f"Failed to create Redis client: {e}")
        return None
