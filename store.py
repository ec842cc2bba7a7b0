import itertools
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from models import DonationKind, DonationRequest, DonationStatus


class DonationStore(Protocol):
    """
    What the lifecycle needs from persistence. `conditional_update` is the
    only way records change after insert, and it must be atomic per id.
    """

    def insert(self, donation: DonationRequest) -> DonationRequest: ...

    def get(self, donation_id: int) -> Optional[DonationRequest]: ...

    def list_pending(self, kind: Optional[DonationKind] = None) -> List[DonationRequest]: ...

    def list_by_requester(self, requester_id: int) -> List[DonationRequest]: ...

    def list_by_claimant(self, claimant_id: int) -> List[DonationRequest]: ...

    def conditional_update(
        self,
        donation_id: int,
        expected: Iterable[DonationStatus],
        values: Mapping[str, Any],
        match: Optional[Mapping[str, Any]] = None,
    ) -> Optional[DonationRequest]:
        """
        Apply `values` only if the record's status is in `expected` and every
        field in `match` equals the given value. Returns the updated record,
        or None when the condition did not hold (or the id is unknown).
        """
        ...


class SqlDonationStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def insert(self, donation: DonationRequest) -> DonationRequest:
        with self._session() as session:
            session.add(donation)
            session.commit()
            session.refresh(donation)
            return donation

    def get(self, donation_id: int) -> Optional[DonationRequest]:
        with self._session() as session:
            return session.get(DonationRequest, donation_id)

    def _list(self, *conditions) -> List[DonationRequest]:
        stmt = (
            select(DonationRequest)
            .where(*conditions)
            .order_by(DonationRequest.created_at.desc(), DonationRequest.id.desc())
        )
        with self._session() as session:
            return list(session.exec(stmt).all())

    def list_pending(self, kind: Optional[DonationKind] = None) -> List[DonationRequest]:
        conditions = [DonationRequest.status == DonationStatus.pending]
        if kind is not None:
            conditions.append(DonationRequest.kind == kind)
        return self._list(*conditions)

    def list_by_requester(self, requester_id: int) -> List[DonationRequest]:
        return self._list(DonationRequest.requester_id == requester_id)

    def list_by_claimant(self, claimant_id: int) -> List[DonationRequest]:
        return self._list(DonationRequest.claimant_id == claimant_id)

    def conditional_update(
        self,
        donation_id: int,
        expected: Iterable[DonationStatus],
        values: Mapping[str, Any],
        match: Optional[Mapping[str, Any]] = None,
    ) -> Optional[DonationRequest]:
        # A single UPDATE ... WHERE status IN (...): the database decides
        # which of several concurrent writers sees the expected status.
        stmt = update(DonationRequest).where(
            DonationRequest.id == donation_id,
            DonationRequest.status.in_(list(expected)),
        )
        for field, value in (match or {}).items():
            stmt = stmt.where(getattr(DonationRequest, field) == value)
        stmt = stmt.values(**values)

        with self._session() as session:
            result = session.execute(stmt)
            if result.rowcount != 1:
                session.rollback()
                return None
            updated = session.get(DonationRequest, donation_id, populate_existing=True)
            session.commit()
            return updated


class InMemoryDonationStore:
    """Dict-backed store. The lock plays the part of the database's row lock."""

    def __init__(self) -> None:
        self._rows: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @staticmethod
    def _load(row: Mapping[str, Any]) -> DonationRequest:
        return DonationRequest(**row)

    def insert(self, donation: DonationRequest) -> DonationRequest:
        with self._lock:
            row = donation.model_dump()
            row["id"] = next(self._ids)
            self._rows[row["id"]] = row
            return self._load(row)

    def get(self, donation_id: int) -> Optional[DonationRequest]:
        with self._lock:
            row = self._rows.get(donation_id)
            return self._load(row) if row is not None else None

    def _list(self, predicate) -> List[DonationRequest]:
        with self._lock:
            rows = [row for row in self._rows.values() if predicate(row)]
        rows.sort(key=lambda row: (row["created_at"], row["id"]), reverse=True)
        return [self._load(row) for row in rows]

    def list_pending(self, kind: Optional[DonationKind] = None) -> List[DonationRequest]:
        return self._list(
            lambda row: row["status"] == DonationStatus.pending
            and (kind is None or row["kind"] == kind)
        )

    def list_by_requester(self, requester_id: int) -> List[DonationRequest]:
        return self._list(lambda row: row["requester_id"] == requester_id)

    def list_by_claimant(self, claimant_id: int) -> List[DonationRequest]:
        return self._list(lambda row: row["claimant_id"] == claimant_id)

    def conditional_update(
        self,
        donation_id: int,
        expected: Iterable[DonationStatus],
        values: Mapping[str, Any],
        match: Optional[Mapping[str, Any]] = None,
    ) -> Optional[DonationRequest]:
        expected = set(expected)
        with self._lock:
            row = self._rows.get(donation_id)
            if row is None or row["status"] not in expected:
                return None
            for field, value in (match or {}).items():
                if row[field] != value:
                    return None
            row.update(values)
            return self._load(row)
