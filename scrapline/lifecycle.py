"""Listing lifecycle engine: validates and computes every listing transition.

Listing lifecycle:
    ACTIVE → RESERVED → COLLECTED
    RESERVED → ACTIVE (dispute)
    ACTIVE → removed (withdraw)

State semantics:
- ACTIVE: on the map, any collector other than the seller may claim it.
- RESERVED: one collector holds it with an agreed pickup time.
- COLLECTED: terminal, settlement recorded.

Pure computation: the engine reads a listing snapshot and returns a
``Transition`` describing the next state. Persisting it is the
coordinator's job.
"""

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Type

from scrapline.config import settings
from scrapline.exceptions import (
    AuthorizationError,
    InvalidStateError,
    PickupError,
    ValidationError,
)
from scrapline.models import Listing, ListingStatus, WasteType
from scrapline.settlement import compute_total, require_positive

# Valid status changes: {from_status: {allowed_to_statuses}}
_TRANSITIONS: Dict[ListingStatus, set] = {
    ListingStatus.ACTIVE: {ListingStatus.RESERVED},
    ListingStatus.RESERVED: {ListingStatus.ACTIVE, ListingStatus.COLLECTED},
    # Terminal
    ListingStatus.COLLECTED: set(),
}

EDITABLE_FIELDS = (
    "title",
    "description",
    "waste_type",
    "estimated_weight",
    "address",
    "image_url",
)


class Action(str, enum.Enum):
    UPDATE = "update"
    CLAIM = "claim"
    DISPUTE = "dispute"
    FINALIZE = "finalize"
    WITHDRAW = "withdraw"


class Party(str, enum.Enum):
    """How an actor relates to a particular listing."""

    SELLER = "seller"
    COLLECTOR = "collector"
    OTHER = "other"


@dataclass(frozen=True)
class Rule:
    source: ListingStatus
    # None means the listing is removed.
    target: Optional[ListingStatus]
    parties: FrozenSet[Party]
    state_error: Type[PickupError] = InvalidStateError


_RULES: Dict[Action, Rule] = {
    Action.UPDATE: Rule(
        ListingStatus.ACTIVE, ListingStatus.ACTIVE, frozenset({Party.SELLER})
    ),
    Action.CLAIM: Rule(
        ListingStatus.ACTIVE, ListingStatus.RESERVED, frozenset({Party.OTHER})
    ),
    Action.DISPUTE: Rule(
        ListingStatus.RESERVED, ListingStatus.ACTIVE, frozenset({Party.SELLER})
    ),
    Action.FINALIZE: Rule(
        ListingStatus.RESERVED, ListingStatus.COLLECTED, frozenset({Party.COLLECTOR})
    ),
    Action.WITHDRAW: Rule(
        ListingStatus.ACTIVE,
        None,
        frozenset({Party.SELLER}),
        state_error=AuthorizationError,
    ),
}


@dataclass(frozen=True)
class Transition:
    """The next state of one listing, ready for a conditional write."""

    action: Action
    listing_id: str
    expected_status: ListingStatus
    expected_version: int
    changes: Dict[str, Any] = field(default_factory=dict)
    removes: bool = False


def relationship(listing: Listing, actor: Optional[str]) -> Party:
    if actor is not None and actor == listing.seller_id:
        return Party.SELLER
    if actor is not None and actor == listing.collector_id:
        return Party.COLLECTOR
    return Party.OTHER


def valid_transitions(status: ListingStatus) -> set:
    """Return the set of statuses reachable from the given one."""
    return set(_TRANSITIONS.get(status, set()))


def is_terminal(status: ListingStatus) -> bool:
    return not _TRANSITIONS.get(status)


def invariant_violations(listing) -> list[str]:
    """Check the status/field invariants. Returns errors (empty = OK)."""
    data = listing if isinstance(listing, Mapping) else listing.model_dump()
    status = data.get("status")
    has_collector = data.get("collector_id") is not None
    has_pickup = data.get("pickup_time") is not None
    errors = []

    if not data.get("seller_id"):
        errors.append("seller must be set")
    if (status == ListingStatus.RESERVED) != (has_collector and has_pickup):
        errors.append(
            f"{getattr(status, 'value', status)}: reserved iff collector and pickup "
            f"time are set (collector={has_collector}, pickup_time={has_pickup})"
        )
    if status == ListingStatus.ACTIVE and (has_collector or has_pickup):
        errors.append("ACTIVE listing must not hold a collector or pickup time")
    if status == ListingStatus.COLLECTED:
        missing = [
            name
            for name in ("collector_id", "completed_at", "unit_price", "actual_weight", "total_amount")
            if data.get(name) is None
        ]
        if missing:
            errors.append(f"COLLECTED listing is missing {', '.join(missing)}")

    weight = data.get("estimated_weight")
    if weight is None or not weight > 0:
        errors.append(f"estimated_weight must be > 0, got {weight!r}")
    for name in ("unit_price", "actual_weight"):
        value = data.get(name)
        if value is not None and not value > 0:
            errors.append(f"{name} must be > 0, got {value!r}")
    return errors


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleEngine:
    """Validates listing transitions and computes their results.

    Every mutating operation runs the same gate: caller is authenticated, the
    listing is in the rule's source status, and the caller's relationship to
    the listing is one the rule permits.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        image_path_prefix: str = settings.IMAGE_PATH_PREFIX,
    ):
        self.clock = clock
        self.image_path_prefix = image_path_prefix

    def create(self, seller: Optional[str], fields: Mapping[str, Any]) -> Listing:
        if seller is None:
            raise AuthorizationError("Sign in to post a listing")

        latitude = self._coordinate("latitude", fields.get("latitude"), 90)
        longitude = self._coordinate("longitude", fields.get("longitude"), 180)

        listing = Listing(
            title=self._required_text("title", fields.get("title")),
            description=self._optional_text(fields.get("description")),
            waste_type=self._waste_type(fields.get("waste_type", WasteType.MIXED)),
            estimated_weight=require_positive(
                "estimated_weight", fields.get("estimated_weight")
            ),
            latitude=latitude,
            longitude=longitude,
            address=self._required_text("address", fields.get("address")),
            image_url=self._image_url(fields.get("image_url")),
            status=ListingStatus.ACTIVE,
            created_at=self.clock(),
            seller_id=seller,
            version=1,
        )
        return listing

    def update(
        self, listing: Listing, actor: Optional[str], fields: Mapping[str, Any]
    ) -> Transition:
        self._authorize(Action.UPDATE, listing, actor)

        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        validators = {
            "title": lambda value: self._required_text("title", value),
            "description": self._optional_text,
            "waste_type": self._waste_type,
            "estimated_weight": lambda value: require_positive("estimated_weight", value),
            "address": lambda value: self._required_text("address", value),
            "image_url": self._image_url,
        }
        changes = {name: validators[name](value) for name, value in fields.items()}
        return self._transition(Action.UPDATE, listing, changes)

    def claim(self, listing: Listing, collector: Optional[str], pickup_time) -> Transition:
        self._authorize(Action.CLAIM, listing, collector)
        return self._transition(
            Action.CLAIM,
            listing,
            {
                "collector_id": collector,
                "pickup_time": self._pickup_time(pickup_time),
            },
        )

    def dispute(self, listing: Listing, actor: Optional[str]) -> Transition:
        self._authorize(Action.DISPUTE, listing, actor)
        return self._transition(
            Action.DISPUTE, listing, {"collector_id": None, "pickup_time": None}
        )

    def finalize(
        self, listing: Listing, actor: Optional[str], unit_price, actual_weight
    ) -> Transition:
        self._authorize(Action.FINALIZE, listing, actor)
        total_amount = compute_total(unit_price, actual_weight)
        return self._transition(
            Action.FINALIZE,
            listing,
            {
                "unit_price": float(unit_price),
                "actual_weight": float(actual_weight),
                "total_amount": total_amount,
                "completed_at": self.clock(),
                # pickup_time only describes an open reservation
                "pickup_time": None,
            },
        )

    def withdraw(self, listing: Listing, actor: Optional[str]) -> Transition:
        self._authorize(Action.WITHDRAW, listing, actor)
        return Transition(
            action=Action.WITHDRAW,
            listing_id=listing.listing_id,
            expected_status=listing.status,
            expected_version=listing.version,
            removes=True,
        )

    def _authorize(self, action: Action, listing: Listing, actor: Optional[str]) -> Rule:
        rule = _RULES[action]
        if actor is None:
            raise AuthorizationError(f"Sign in to {action.value} a listing")

        if listing.status != rule.source:
            raise rule.state_error(
                f"Cannot {action.value} listing {listing.listing_id}: "
                f"it is {listing.status.value}, expected {rule.source.value}"
            )

        party = relationship(listing, actor)
        if party not in rule.parties:
            if action == Action.CLAIM:
                raise AuthorizationError("Sellers cannot claim their own listing")
            allowed = " or ".join(sorted(p.value for p in rule.parties))
            raise AuthorizationError(
                f"Only the listing's {allowed} may {action.value} listing {listing.listing_id}"
            )
        return rule

    def _transition(
        self, action: Action, listing: Listing, changes: Dict[str, Any]
    ) -> Transition:
        rule = _RULES[action]
        if rule.target != rule.source:
            if rule.target not in _TRANSITIONS.get(rule.source, set()):
                raise InvalidStateError(
                    f"Invalid listing transition: {rule.source.value} → {rule.target.value}"
                )
            changes = {**changes, "status": rule.target}

        errors = invariant_violations({**listing.model_dump(), **changes})
        if errors:
            raise InvalidStateError(f"Cannot {action.value}: {'; '.join(errors)}")

        return Transition(
            action=action,
            listing_id=listing.listing_id,
            expected_status=listing.status,
            expected_version=listing.version,
            changes=changes,
        )

    @staticmethod
    def _required_text(name: str, value) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{name} is required")
        return value.strip()

    @staticmethod
    def _optional_text(value) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(f"Expected text, got {value!r}")
        return value.strip() or None

    @staticmethod
    def _waste_type(value) -> WasteType:
        try:
            return WasteType(value)
        except ValueError as e:
            allowed = ", ".join(w.value for w in WasteType)
            raise ValidationError(
                f"Unknown waste type {value!r}; expected one of {allowed}", original_error=e
            )

    @staticmethod
    def _coordinate(name: str, value, bound: float) -> float:
        if value is None or isinstance(value, bool):
            raise ValidationError(f"{name} is required")
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{name} must be a number, got {value!r}", original_error=e)
        if not math.isfinite(number) or not -bound <= number <= bound:
            raise ValidationError(f"{name} must be between {-bound} and {bound}, got {value!r}")
        return number

    def _image_url(self, value) -> Optional[str]:
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise ValidationError(f"image_url must be text, got {value!r}")
        if value.startswith(("http://", "https://")) or value.startswith(self.image_path_prefix):
            return value
        raise ValidationError(
            f"image_url must be an http(s) URL or start with {self.image_path_prefix}"
        )

    @staticmethod
    def _pickup_time(value) -> datetime:
        # Any time is accepted as chosen; lead-time rules live in the client.
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError as e:
                raise ValidationError(
                    f"pickup_time is not an ISO-8601 timestamp: {value!r}", original_error=e
                )
        raise ValidationError("pickup_time is required to claim a listing")
