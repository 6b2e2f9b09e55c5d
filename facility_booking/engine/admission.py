"""
Admission decision for a new reservation.

Rules, first applicable wins:

1. any requested resource inactive or under maintenance -> REJECT_INACTIVE
2. any blocking reservation on the requested resources   -> REJECT_CONFLICT
3. restricted resource, external requester or a policy trigger -> manual review
4. otherwise, for each requested type, if every bookable instance of that type
   is already reserved for the interval (reserved >= pool size) -> manual review
5. manual review -> REQUIRES_ADMIN_APPROVAL, else AUTO_APPROVE

The engine reads through the injected catalog and store and never writes.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Sequence

from facility_booking.engine.overlap import has_conflict, reserved_resource_ids
from facility_booking.engine.repositories import ResourceCatalog, ReservationStore
from facility_booking.utils.timeutil import as_utc

logger = logging.getLogger(__name__)


class Decision(str, enum.Enum):
    REJECT_CONFLICT         = "REJECT_CONFLICT"
    REJECT_INACTIVE         = "REJECT_INACTIVE"
    AUTO_APPROVE            = "AUTO_APPROVE"
    REQUIRES_ADMIN_APPROVAL = "REQUIRES_ADMIN_APPROVAL"

    @property
    def is_rejection(self) -> bool:
        return self in (Decision.REJECT_CONFLICT, Decision.REJECT_INACTIVE)


@dataclass(frozen=True)
class AdmissionPolicy:
    auto_approval_enabled: bool = True
    restricted_types: frozenset = frozenset()
    enforce_buffer: bool = False


@dataclass
class Verdict:
    decision: Decision
    reasons: list[str] = field(default_factory=list)


def _type_key(resource_type: Any) -> str:
    return getattr(resource_type, "value", resource_type)


class AdmissionEngine:

    def __init__(
        self,
        catalog: ResourceCatalog,
        store: ReservationStore,
        policy: AdmissionPolicy | None = None,
    ):
        self.catalog = catalog
        self.store   = store
        self.policy  = policy or AdmissionPolicy()

    def decide(
        self, resources: Sequence[Any], start: datetime, end: datetime, is_external: bool = False,
    ) -> Decision:
        return self.evaluate(resources, start, end, is_external).decision

    def evaluate(
        self, resources: Sequence[Any], start: datetime, end: datetime, is_external: bool = False,
    ) -> Verdict:
        """Same as decide(), keeping the reasons behind a manual-review verdict."""
        if not resources:
            raise ValueError("resources must not be empty")
        start, end = as_utc(start), as_utc(end)
        ids = [r.id for r in resources]

        unavailable = [r.id for r in resources if not r.active or r.maintenanceMode]
        if unavailable:
            logger.info(f"Rejecting request on {ids}: resources {unavailable} not bookable")
            return Verdict(Decision.REJECT_INACTIVE, [f"resource {i} is not bookable" for i in unavailable])

        check_start, check_end = self._conflict_window(resources, start, end)
        if has_conflict(self.store, ids, check_start, check_end):
            logger.info(f"Rejecting request on {ids}: overlaps an existing reservation")
            return Verdict(Decision.REJECT_CONFLICT, ["requested time overlaps an existing reservation"])

        reasons = self._manual_triggers(resources, is_external)
        if not reasons:
            for resource_type in self._distinct_types(resources):
                if self.is_type_saturated(resource_type, start, end):
                    reasons.append(f"no spare {_type_key(resource_type)} left for this interval")
                    break

        if reasons:
            logger.info(f"Request on {ids} requires admin approval: {'; '.join(reasons)}")
            return Verdict(Decision.REQUIRES_ADMIN_APPROVAL, reasons)
        return Verdict(Decision.AUTO_APPROVE)

    def is_type_saturated(self, resource_type: Any, start: datetime, end: datetime) -> bool:
        """Every bookable instance of resource_type is reserved for part of [start, end)."""
        pool_ids = {r.id for r in self.catalog.bookable_pool(resource_type)}
        if not pool_ids:
            return False
        reserved = reserved_resource_ids(self.store, pool_ids, start, end)
        return len(reserved) >= len(pool_ids)

    # ─── helpers ─────────────────────────────────────────────────────────────
    def _conflict_window(self, resources, start: datetime, end: datetime) -> tuple[datetime, datetime]:
        if not self.policy.enforce_buffer:
            return start, end
        buffer = max((r.bufferMinutesBetween or 0) for r in resources)
        pad = timedelta(minutes=buffer)
        return start - pad, end + pad

    def _manual_triggers(self, resources, is_external: bool) -> list[str]:
        reasons = []
        restricted = [r.id for r in resources if r.isRestricted]
        if restricted:
            reasons.append(f"restricted resources {restricted}")
        if is_external:
            reasons.append("external requester")
        policy_types = {_type_key(t) for t in self.policy.restricted_types}
        flagged = sorted({_type_key(r.type) for r in resources} & policy_types)
        if flagged:
            reasons.append(f"types {flagged} always need review")
        if not self.policy.auto_approval_enabled:
            reasons.append("auto-approval disabled")
        return reasons

    @staticmethod
    def _distinct_types(resources) -> list[Any]:
        seen, types = set(), []
        for r in resources:
            key = _type_key(r.type)
            if key not in seen:
                seen.add(key)
                types.append(r.type)
        return types
