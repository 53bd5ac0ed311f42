"""
discovery/registry.py - Asset registry.

Tracks which assets may appear in a cycle:
- UNVERIFIED: seen in a token list, not yet confirmed
- VERIFIED: quoted successfully, listed by the canonical source, or a known-good seed
- BLACKLISTED: refused by the quote provider, configured out, or dropped by a refresh

Classification is persisted through a SnapshotStore and reloaded at start
while younger than the cache TTL. Writes are batched: mutations only mark
the registry dirty and flush() writes once.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from core.backoff import BackoffPolicy
from core.constants import AssetStatus, DEFAULT_REGISTRY_CACHE_TTL_SECONDS
from core.exceptions import StorageError, TokenListError
from core.logging import get_logger
from core.models import TokenInfo
from core.time import age_seconds, now_timestamp
from discovery.storage import SnapshotStore

logger = get_logger(__name__)

SNAPSHOT_SCHEMA = 1
REASON_CONFIGURED = "configured"
REASON_NOT_CANONICAL = "absent_from_canonical_list"


@dataclass
class AssetRecord:
    """Registry entry: metadata plus classification."""
    token: TokenInfo
    status: AssetStatus = AssetStatus.UNVERIFIED
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = self.token.to_dict()
        data["status"] = self.status.value
        if self.reason:
            data["reason"] = self.reason
        return data


class AssetRegistry:
    """
    In-memory asset classification with batched snapshot persistence.

    `version` increases on every change that can alter the candidate set,
    so consumers can detect when cycles must be regenerated.
    """

    def __init__(
        self,
        source_asset: str,
        store: SnapshotStore,
        base_assets: Iterable[str] = (),
        blacklist: Iterable[str] = (),
        cache_ttl_seconds: float = DEFAULT_REGISTRY_CACHE_TTL_SECONDS,
        snapshot_name: str = "tradable-tokens",
        clock: Callable[[], float] = now_timestamp,
    ):
        self.source_asset = source_asset
        self.store = store
        self.cache_ttl_seconds = cache_ttl_seconds
        self.snapshot_name = snapshot_name
        self._clock = clock

        self._assets: dict[str, AssetRecord] = {}
        seeds = list(dict.fromkeys([source_asset, *base_assets]))
        self._known_good: set[str] = set(seeds)
        self._configured_blacklist: set[str] = set(blacklist)
        self._last_refresh: float | None = None
        self._dirty = False
        self.version = 0

        for address in seeds:
            self._assets[address] = AssetRecord(
                token=TokenInfo.unknown(address), status=AssetStatus.VERIFIED
            )
        self._apply_configured_blacklist()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def __contains__(self, address: str) -> bool:
        return address in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def classify(self, address: str) -> AssetStatus:
        record = self._assets.get(address)
        return record.status if record else AssetStatus.UNVERIFIED

    def is_blacklisted(self, address: str) -> bool:
        return self.classify(address) == AssetStatus.BLACKLISTED

    def is_known_good(self, address: str) -> bool:
        return address in self._known_good

    def blacklist_reason(self, address: str) -> str:
        record = self._assets.get(address)
        return record.reason if record else ""

    def get_token(self, address: str) -> TokenInfo:
        record = self._assets.get(address)
        return record.token if record else TokenInfo.unknown(address)

    def symbol(self, address: str) -> str:
        token = self.get_token(address)
        return token.symbol if not token.is_unknown else address[:6]

    def blacklisted(self) -> list[str]:
        return [a for a, r in self._assets.items() if r.status == AssetStatus.BLACKLISTED]

    def candidates(self, ranking: Iterable[str] | None = None) -> list[str]:
        """
        Non-source assets eligible as cycle members.

        Ranked assets come first in ranking order, then the rest in
        registration order.
        """
        def eligible(address: str) -> bool:
            record = self._assets.get(address)
            return (
                address != self.source_asset
                and record is not None
                and record.status == AssetStatus.VERIFIED
            )

        ordered: list[str] = []
        seen: set[str] = set()
        for address in list(ranking or []) + list(self._assets):
            if address in seen:
                continue
            seen.add(address)
            if eligible(address):
                ordered.append(address)
        return ordered

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in AssetStatus}
        for record in self._assets.values():
            counts[record.status.value] += 1
        return counts

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def register(self, token: TokenInfo) -> bool:
        """
        Add an asset first observed in a token list.

        Existing records keep their classification; placeholder metadata is
        replaced. Returns True if the asset was new.
        """
        record = self._assets.get(token.address)
        if record is not None:
            if record.token.is_unknown and not token.is_unknown:
                record.token = token
                self._dirty = True
            return False

        status = AssetStatus.UNVERIFIED
        reason = ""
        if token.address in self._configured_blacklist:
            status, reason = AssetStatus.BLACKLISTED, REASON_CONFIGURED
        self._assets[token.address] = AssetRecord(token=token, status=status, reason=reason)
        self._changed()
        return True

    def register_many(self, tokens: Iterable[TokenInfo]) -> int:
        return sum(1 for token in tokens if self.register(token))

    def mark_verified(self, address: str) -> bool:
        """Promote UNVERIFIED to VERIFIED. No-op for VERIFIED or BLACKLISTED."""
        record = self._assets.get(address)
        if record is None:
            record = AssetRecord(token=TokenInfo.unknown(address))
            self._assets[address] = record
        if record.status != AssetStatus.UNVERIFIED:
            return False
        record.status = AssetStatus.VERIFIED
        self._changed()
        return True

    def mark_blacklisted(self, address: str, reason: str) -> bool:
        """Demote any state to BLACKLISTED. Idempotent; returns True on change."""
        record = self._assets.get(address)
        if record is None:
            record = AssetRecord(token=TokenInfo.unknown(address))
            self._assets[address] = record
        if record.status == AssetStatus.BLACKLISTED:
            return False

        record.status = AssetStatus.BLACKLISTED
        record.reason = reason
        self._changed()
        logger.info(
            f"Blacklisted {record.token.symbol} ({address})",
            extra={"context": {"asset": address, "reason": reason}},
        )
        return True

    def refresh(self, canonical_tokens: Iterable[TokenInfo]) -> dict[str, int]:
        """
        Reconcile with the canonical tradable list.

        Listed assets become VERIFIED whatever their prior state (configured
        blacklist excepted). Unlisted assets that were never verified become
        BLACKLISTED. Known-good seeds are verified and never demoted here.
        """
        canonical = {token.address: token for token in canonical_tokens}
        verified = 0
        blacklisted = 0

        for address, token in canonical.items():
            record = self._assets.get(address)
            if record is None:
                record = AssetRecord(token=token)
                self._assets[address] = record
            elif record.token.is_unknown:
                record.token = token
            if address in self._configured_blacklist:
                continue
            if record.status != AssetStatus.VERIFIED:
                record.status = AssetStatus.VERIFIED
                record.reason = ""
                verified += 1

        for address, record in self._assets.items():
            if address in canonical or record.status != AssetStatus.UNVERIFIED:
                continue
            record.status = AssetStatus.BLACKLISTED
            record.reason = REASON_NOT_CANONICAL
            blacklisted += 1

        self._last_refresh = self._clock()
        self._changed()
        summary = {
            "canonical": len(canonical),
            "verified": verified,
            "blacklisted": blacklisted,
        }
        logger.info(
            f"Registry refreshed: +{verified} verified, +{blacklisted} blacklisted",
            extra={"context": summary},
        )
        return summary

    def _apply_configured_blacklist(self) -> None:
        for address in sorted(self._configured_blacklist):
            self.mark_blacklisted(address, REASON_CONFIGURED)

    def _changed(self) -> None:
        self._dirty = True
        self.version += 1

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def last_refresh(self) -> float | None:
        return self._last_refresh

    def is_stale(self) -> bool:
        """True when no canonical refresh happened within the cache TTL."""
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh > self.cache_ttl_seconds

    def snapshot(self) -> dict[str, Any]:
        return {
            "schema": SNAPSHOT_SCHEMA,
            "timestamp": self._clock(),
            "refreshed_at": self._last_refresh,
            "assets": [record.to_dict() for record in self._assets.values()],
        }

    def flush(self) -> bool:
        """Write the snapshot if anything changed. Write failures are logged, not raised."""
        if not self._dirty:
            return False
        try:
            self.store.write(self.snapshot_name, self.snapshot())
        except StorageError as e:
            logger.error(f"Registry flush failed: {e}", extra={"context": e.details})
            return False
        self._dirty = False
        return True

    def load(self) -> bool:
        """
        Apply the persisted snapshot if it is younger than the TTL.

        Returns:
            True if applied

        Raises:
            StorageError: snapshot exists but cannot be parsed
        """
        data = self.store.read(self.snapshot_name)
        if data is None:
            logger.info("No registry snapshot found, starting empty")
            return False

        try:
            written_at = float(data["timestamp"])
            entries = [
                (TokenInfo.from_dict(entry), AssetStatus(entry["status"]), entry.get("reason", ""))
                for entry in data.get("assets", [])
            ]
            refreshed_at = data.get("refreshed_at")
            refreshed_at = float(refreshed_at) if refreshed_at is not None else None
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(
                f"Registry snapshot is malformed: {e}",
                details={"snapshot": self.snapshot_name},
            ) from e

        age = age_seconds(written_at, self._clock())
        if age > self.cache_ttl_seconds:
            logger.info(
                f"Registry snapshot is stale ({age:.0f}s old), ignoring",
                extra={"context": {"ttl_seconds": self.cache_ttl_seconds}},
            )
            return False

        for token, status, reason in entries:
            if token.address in self._known_good and status != AssetStatus.BLACKLISTED:
                status = AssetStatus.VERIFIED
            self._assets[token.address] = AssetRecord(token=token, status=status, reason=reason)
        self._last_refresh = refreshed_at
        self._apply_configured_blacklist()
        self.version += 1

        counts = self.counts()
        logger.info(
            f"Loaded registry snapshot: {counts[AssetStatus.VERIFIED.value]} verified, "
            f"{counts[AssetStatus.BLACKLISTED.value]} blacklisted",
            extra={"context": {"age_seconds": round(age, 1)}},
        )
        return True


class RegistryRefresher:
    """
    Fetches the canonical list and reconciles the registry, retrying with
    backoff. A failed refresh leaves the current classification untouched.
    """

    def __init__(
        self,
        registry: AssetRegistry,
        fetch_canonical: Callable[[], Awaitable[list[TokenInfo]]],
        backoff: BackoffPolicy,
        max_attempts: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.registry = registry
        self.fetch_canonical = fetch_canonical
        self.backoff = backoff
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def run(self) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                tokens = await self.fetch_canonical()
            except TokenListError as e:
                delay = self.backoff.record_failure()
                logger.warning(
                    f"Canonical list fetch failed (attempt {attempt}/{self.max_attempts}): {e}",
                    extra={"context": {"retry_in": round(delay, 2)}},
                )
                if attempt < self.max_attempts:
                    await self._sleep(delay)
                continue

            self.backoff.record_success()
            self.registry.refresh(tokens)
            self.registry.flush()
            return True

        logger.error(
            "Giving up on registry refresh, keeping cached classification",
            extra={"context": {"attempts": self.max_attempts}},
        )
        return False
