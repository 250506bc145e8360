"""ObjectId helpers shared by the repositories."""

from __future__ import annotations

import logging

from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)


def to_object_id(value: str) -> ObjectId | None:
    """Parse a string id, returning None for ids MongoDB could never hold."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        logger.debug("Invalid ObjectId: %s", value)
        return None
