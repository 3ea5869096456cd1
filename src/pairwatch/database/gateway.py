"""
Durable snapshot save/restore for crash recovery.
"""

import logging
from typing import Dict, Mapping, Optional

import msgpack
from pydantic import ValidationError

from pairwatch.database.async_session import AsyncDatabaseManager
from pairwatch.models import Pair

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "pairwatch:pairs"


def encode_pairs(pairs: Mapping[str, Pair]) -> bytes:
    return msgpack.packb(
        {address: pair.model_dump(mode="json") for address, pair in pairs.items()},
        use_bin_type=True,
    )


def decode_pairs(payload: bytes) -> Dict[str, Pair]:
    """
    Decode a stored snapshot, skipping entries that no longer validate.

    Raises:
        ValueError: If the payload is not a msgpack map
    """
    raw = msgpack.unpackb(payload, raw=False)
    if not isinstance(raw, dict):
        raise ValueError(f"Snapshot payload is {type(raw).__name__}, expected map")

    pairs: Dict[str, Pair] = {}
    for address, data in raw.items():
        try:
            pairs[address] = Pair.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Skipping invalid stored pair {address}: {e}")
    return pairs


class PersistenceGateway:
    """
    Save/load/clear of the full pair map under one fixed key.

    ## Failure Semantics
    Persistence never breaks live operation: every database error is
    logged and swallowed. `load()` degrades to an empty map (cold start),
    `save()` and `clear()` report `False`.

    ## Parameters
    - `db_manager`: Database manager, or `None` when the database could not
      be initialized (every operation then degrades immediately)
    - `key`: Logical key of the snapshot row
    """

    def __init__(
        self,
        db_manager: Optional[AsyncDatabaseManager],
        key: str = DEFAULT_SNAPSHOT_KEY,
    ):
        self.db_manager = db_manager
        self.key = key

    async def save(self, pairs: Mapping[str, Pair]) -> bool:
        if self.db_manager is None:
            logger.warning("Persistence unavailable, skipping save")
            return False
        try:
            await self.db_manager.save_snapshot(self.key, encode_pairs(pairs), len(pairs))
        except Exception as e:
            logger.error(f"Persist error: {e}")
            return False
        logger.info(f"Persisted {len(pairs)} pairs")
        return True

    async def load(self) -> Dict[str, Pair]:
        if self.db_manager is None:
            logger.warning("Persistence unavailable, starting cold")
            return {}
        try:
            payload = await self.db_manager.load_snapshot(self.key)
            if not payload:
                logger.info("No stored snapshot, starting cold")
                return {}
            pairs = decode_pairs(payload)
        except Exception as e:
            logger.error(f"Restore error: {e}")
            return {}
        logger.info(f"Restored {len(pairs)} pairs from storage")
        return pairs

    async def clear(self) -> bool:
        if self.db_manager is None:
            return False
        try:
            deleted = await self.db_manager.delete_snapshot(self.key)
        except Exception as e:
            logger.error(f"Clear error: {e}")
            return False
        logger.info(f"Cleared stored snapshot ({deleted} rows)")
        return True
