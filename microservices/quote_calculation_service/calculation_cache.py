"""
Calculation Cache

In-process LRU memo of breakdowns keyed by an input fingerprint.

The fingerprint is a SHA-256 of a canonical JSON rendering of the
calculation inputs, so logically identical inputs hash the same regardless
of object identity, key order or item order.
"""

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from .models import Breakdown, CacheEntry, CacheStats, CalculationParams

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 200
DEFAULT_TTL_SECONDS = 600

# Not part of the calculation input
_EXCLUDED_PARAM_FIELDS = {"items", "force_recalculate"}


# =============================================================================
# Fingerprint
# =============================================================================


def _normalize(value: Any) -> Any:
    if isinstance(value, Decimal):
        # 10, 10.0 and 1E+1 are the same amount
        return format(value.normalize(), "f")
    if isinstance(value, dict):
        return {key: _normalize(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(val) for val in value]
    return value


def _canonical_item(item) -> Dict[str, Any]:
    return _normalize({
        "unit_price": {"amount": item.unit_price.amount, "currency": item.unit_price.currency},
        "weight_kg": item.weight_kg,
        "quantity": item.quantity,
        "product_name": item.product_name,
    })


def compute_fingerprint(params: CalculationParams) -> str:
    """Stable SHA-256 fingerprint of a calculation input"""
    items = sorted(
        (_canonical_item(item) for item in params.items),
        key=lambda entry: json.dumps(entry, sort_keys=True),
    )
    payload = _normalize(
        {
            name: getattr(params, name)
            for name in type(params).model_fields
            if name not in _EXCLUDED_PARAM_FIELDS
        }
    )
    payload["items"] = items
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# =============================================================================
# Cache
# =============================================================================


class CalculationCache:
    """
    Bounded LRU cache of breakdowns.

    All access goes through one lock; concurrent misses on the same
    fingerprint may both compute, and the later put wins.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, fingerprint: str) -> Optional[Breakdown]:
        now = datetime.now(timezone.utc)
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[fingerprint]
                self._misses += 1
                logger.debug(f"Cache entry expired: {fingerprint[:12]}")
                return None

            self._entries[fingerprint] = entry.model_copy(
                update={"last_accessed": now, "hit_count": entry.hit_count + 1}
            )
            self._entries.move_to_end(fingerprint)
            self._hits += 1
            return entry.breakdown

    def put(self, fingerprint: str, breakdown: Breakdown) -> None:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=self.ttl_seconds) if self.ttl_seconds > 0 else None
        entry = CacheEntry(
            fingerprint=fingerprint,
            breakdown=breakdown,
            created_at=now,
            last_accessed=now,
            expires_at=expires_at,
        )
        with self._lock:
            self._entries[fingerprint] = entry
            self._entries.move_to_end(fingerprint)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted cache entry: {evicted[:12]}")

    def contains(self, fingerprint: str) -> bool:
        """Membership check without touching LRU order or counters"""
        with self._lock:
            entry = self._entries.get(fingerprint)
            return entry is not None and not entry.is_expired()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Calculation cache cleared")

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_entries=self.max_entries,
                ttl_seconds=self.ttl_seconds,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )


__all__ = ["CalculationCache", "compute_fingerprint", "DEFAULT_MAX_ENTRIES", "DEFAULT_TTL_SECONDS"]
