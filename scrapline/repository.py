"""
Storage boundary for listings and user contact profiles.

Every state change goes through ``conditional_update`` or ``delete``, both of
which only touch the row when its status and version still match what the
caller read. The SQL implementation is the production store; the in-memory one
backs tests and local runs.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Engine, delete, update
from sqlmodel import col, select

from scrapline.database import get_db_session
from scrapline.exceptions import ConflictError, NotFoundError
from scrapline.models import Listing, ListingStatus, User


class ListingRepository(ABC):
    """Abstract interface for listing storage"""

    @abstractmethod
    def get(self, listing_id: str) -> Listing:
        """Return the listing or raise NotFoundError"""

    @abstractmethod
    def find_by_status(self, status: ListingStatus) -> List[Listing]:
        """Listings with the given status, newest first"""

    @abstractmethod
    def find_by_seller(self, seller_id: str) -> List[Listing]:
        """Listings owned by a seller, newest first"""

    @abstractmethod
    def find_by_collector(self, collector_id: str) -> List[Listing]:
        """Listings currently or formerly held by a collector, newest first"""

    @abstractmethod
    def create(self, listing: Listing) -> Listing:
        """Persist a new listing and return it"""

    @abstractmethod
    def conditional_update(
        self,
        listing_id: str,
        expected_status: ListingStatus,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> Listing:
        """Apply changes only if status and version still match.

        Raises ConflictError when the row moved on or disappeared.
        """

    @abstractmethod
    def delete(
        self,
        listing_id: str,
        expected_status: ListingStatus,
        expected_version: int,
    ) -> None:
        """Remove a listing if status and version still match.

        Raises NotFoundError if it is already gone, ConflictError if it moved on.
        """


class UserRepository(ABC):
    """Abstract interface for contact profiles"""

    @abstractmethod
    def get(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def upsert(self, user: User) -> User:
        pass

    @abstractmethod
    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Profiles keyed by user id; unknown ids are omitted"""


class SqlListingRepository(ListingRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, listing_id: str) -> Listing:
        with get_db_session(self.engine) as session:
            listing = session.get(Listing, listing_id)
        if listing is None:
            raise NotFoundError(f"Listing {listing_id} not found")
        return listing

    def _find(self, *conditions) -> List[Listing]:
        with get_db_session(self.engine) as session:
            statement = (
                select(Listing)
                .where(*conditions)
                .order_by(col(Listing.created_at).desc())
            )
            return list(session.exec(statement).all())

    def find_by_status(self, status: ListingStatus) -> List[Listing]:
        return self._find(Listing.status == status)

    def find_by_seller(self, seller_id: str) -> List[Listing]:
        return self._find(Listing.seller_id == seller_id)

    def find_by_collector(self, collector_id: str) -> List[Listing]:
        return self._find(Listing.collector_id == collector_id)

    def create(self, listing: Listing) -> Listing:
        with get_db_session(self.engine) as session:
            session.add(listing)
            session.flush()
            session.refresh(listing)
        return listing

    def conditional_update(
        self,
        listing_id: str,
        expected_status: ListingStatus,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> Listing:
        with get_db_session(self.engine) as session:
            statement = (
                update(Listing)
                .where(
                    Listing.listing_id == listing_id,
                    Listing.status == expected_status,
                    Listing.version == expected_version,
                )
                .values(**changes, version=expected_version + 1)
            )
            result = session.exec(statement)
            if result.rowcount != 1:
                raise ConflictError(
                    f"Listing {listing_id} changed since it was read "
                    f"(expected {expected_status.value} v{expected_version})"
                )
            listing = session.get(Listing, listing_id)
        return listing

    def delete(
        self,
        listing_id: str,
        expected_status: ListingStatus,
        expected_version: int,
    ) -> None:
        with get_db_session(self.engine) as session:
            statement = delete(Listing).where(
                Listing.listing_id == listing_id,
                Listing.status == expected_status,
                Listing.version == expected_version,
            )
            result = session.exec(statement)
            if result.rowcount == 1:
                return
            if session.get(Listing, listing_id) is None:
                raise NotFoundError(f"Listing {listing_id} not found")
            raise ConflictError(f"Listing {listing_id} changed since it was read")


class SqlUserRepository(UserRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, user_id: str) -> Optional[User]:
        with get_db_session(self.engine) as session:
            return session.get(User, user_id)

    def upsert(self, user: User) -> User:
        with get_db_session(self.engine) as session:
            existing_user = session.get(User, user.user_id)
            if existing_user:
                existing_user.full_name = user.full_name
                existing_user.phone = user.phone
                existing_user.email = user.email
                session.add(existing_user)
                user_obj = existing_user
            else:
                session.add(user)
                user_obj = user
        return user_obj

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        with get_db_session(self.engine) as session:
            users = session.exec(select(User).where(col(User.user_id).in_(ids))).all()
        return {user.user_id: user for user in users}


class InMemoryListingRepository(ListingRepository):
    """In-memory implementation of ListingRepository.

    Rows are stored as plain dicts and copied in and out, so callers never
    share mutable state with the store. A lock makes each compare-and-swap
    atomic across threads.
    """

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, listing_id: str) -> Listing:
        with self._lock:
            row = self._rows.get(listing_id)
        if row is None:
            raise NotFoundError(f"Listing {listing_id} not found")
        return Listing(**row)

    def _find(self, predicate) -> List[Listing]:
        with self._lock:
            rows = [dict(row) for row in self._rows.values() if predicate(row)]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [Listing(**row) for row in rows]

    def find_by_status(self, status: ListingStatus) -> List[Listing]:
        return self._find(lambda row: row["status"] == status)

    def find_by_seller(self, seller_id: str) -> List[Listing]:
        return self._find(lambda row: row["seller_id"] == seller_id)

    def find_by_collector(self, collector_id: str) -> List[Listing]:
        return self._find(lambda row: row["collector_id"] == collector_id)

    def create(self, listing: Listing) -> Listing:
        row = listing.model_dump()
        with self._lock:
            if row["listing_id"] in self._rows:
                raise ConflictError(f"Listing {row['listing_id']} already exists")
            self._rows[row["listing_id"]] = row
        return Listing(**row)

    def conditional_update(
        self,
        listing_id: str,
        expected_status: ListingStatus,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> Listing:
        with self._lock:
            row = self._rows.get(listing_id)
            if (
                row is None
                or row["status"] != expected_status
                or row["version"] != expected_version
            ):
                raise ConflictError(
                    f"Listing {listing_id} changed since it was read "
                    f"(expected {expected_status.value} v{expected_version})"
                )
            updated = {**row, **changes, "version": expected_version + 1}
            self._rows[listing_id] = updated
        return Listing(**updated)

    def delete(
        self,
        listing_id: str,
        expected_status: ListingStatus,
        expected_version: int,
    ) -> None:
        with self._lock:
            row = self._rows.get(listing_id)
            if row is None:
                raise NotFoundError(f"Listing {listing_id} not found")
            if row["status"] != expected_status or row["version"] != expected_version:
                raise ConflictError(f"Listing {listing_id} changed since it was read")
            del self._rows[listing_id]


class InMemoryUserRepository(UserRepository):
    def __init__(self):
        self._users: Dict[str, Dict[str, Any]] = {}

    def get(self, user_id: str) -> Optional[User]:
        row = self._users.get(user_id)
        return User(**row) if row else None

    def upsert(self, user: User) -> User:
        self._users[user.user_id] = user.model_dump()
        return User(**self._users[user.user_id])

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        return {
            user_id: User(**self._users[user_id])
            for user_id in set(user_ids)
            if user_id in self._users
        }
