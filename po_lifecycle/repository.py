"""
Purchase Order repository.

Stores PO documents in a JSON file, keyed by the unique `header.poNumber`,
with in-memory secondary indexes on status, order date and location. Every
write replaces the file atomically.
"""

import copy
import json
import math
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from rapidfuzz import fuzz

from po_lifecycle.errors import DuplicatePOError, RepositoryError, TransitionError, ValidationFailedError
from po_lifecycle.schemas.po import RepositoryResult
from po_lifecycle.utils import as_document, buyer_name, finite_or_zero, get_path, parse_date, serialize_for_json, utcnow_iso
from po_lifecycle.utils.logging import setup_logging
from po_lifecycle.config import get_config


logger = setup_logging(__name__)
config = get_config()

INDEXED_FIELDS = ("header.status", "header.orderDate", "header.syscoLocation.name")


def _value_at(document: Any, path: str) -> Any:
    value = get_path(document, *path.split("."))
    return getattr(value, "value", value)


def _field_value(document: Any, field: str) -> Any:
    """Filter value for field; `buyer` matches the buyer's display name."""
    if field == "buyer":
        return buyer_name(document, default="")
    return _value_at(document, field)


class PORepository:
    """
    JSON-file document store for purchase orders.

    Args:
        path: JSON file holding a list of PO documents
        fuzzy_threshold: minimum rapidfuzz similarity (0-1) for a fuzzy search hit
    """

    def __init__(self, path: Optional[str] = None, fuzzy_threshold: Optional[float] = None):
        self.path = Path(path or config.PO_DATABASE_PATH)
        self.fuzzy_threshold = config.SEARCH_FUZZY_THRESHOLD if fuzzy_threshold is None else fuzzy_threshold
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._indexes: Dict[str, Dict[Any, Set[str]]] = {field: {} for field in INDEXED_FIELDS}
        self._lock = threading.RLock()

    def initialize(self) -> None:
        """Load the store from disk and build the indexes."""
        with self._lock:
            self._documents.clear()
            for index in self._indexes.values():
                index.clear()

            if self.path.exists():
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        documents = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    logger.error(f"Error loading PO database {self.path}: {e}")
                    raise RepositoryError(f"Could not load PO database: {e}", {"path": str(self.path)}) from e

                if not isinstance(documents, list):
                    raise RepositoryError("PO database must contain a list of documents", {"path": str(self.path)})

                for document in documents:
                    po_number = _value_at(document, "header.poNumber")
                    if po_number is None:
                        logger.warning("Skipping stored document without header.poNumber")
                        continue
                    if str(po_number) in self._documents:
                        raise RepositoryError(
                            f"Duplicate PO number in database: {po_number}",
                            {"poNumber": str(po_number)},
                        )
                    self._documents[str(po_number)] = document
                    self._index(str(po_number), document)
            else:
                logger.warning(f"PO database not found: {self.path}. Starting empty.")

        logger.info(f"PORepository initialized with {len(self._documents)} POs from {self.path}")

    # Queries

    def find_all(self, filters: Optional[Mapping[str, Any]] = None, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """Documents matching filters, newest first."""
        with self._lock:
            matches = self._filter(filters)
            matches.sort(key=lambda doc: doc.get("createdAt") or "", reverse=True)
            return [copy.deepcopy(doc) for doc in matches[offset:offset + limit]]

    def find_by_number(self, po_number: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._documents.get(str(po_number))
            return copy.deepcopy(document) if document is not None else None

    def find_by_date_range(
        self,
        start_date: Any = None,
        end_date: Any = None,
        filters: Optional[Mapping[str, Any]] = None,
        batch_size: Optional[int] = None,
    ) -> RepositoryResult:
        """
        Documents whose orderDate falls within [start_date, end_date], oldest first.

        Either bound may be omitted. Without bounds, documents lacking a
        parseable orderDate are still returned; the aggregator decides what to
        do with them.
        """
        batch_size = batch_size or config.DEFAULT_BATCH_SIZE
        start, end = parse_date(start_date), parse_date(end_date)
        if (start_date and start is None) or (end_date and end is None):
            raise ValidationFailedError("Invalid date range", [{"startDate": str(start_date), "endDate": str(end_date)}])

        with self._lock:
            candidates = self._filter(filters)

        results = []
        for batch_start in range(0, len(candidates), batch_size):
            for document in candidates[batch_start:batch_start + batch_size]:
                order_date = parse_date(_value_at(document, "header.orderDate"))
                if start is None and end is None:
                    results.append(document)
                elif order_date is not None and (start is None or order_date >= start) and (end is None or order_date <= end):
                    results.append(document)

        results.sort(key=lambda doc: parse_date(_value_at(doc, "header.orderDate")) or parse_date("9999-12-31"))
        logger.info(f"Retrieved {len(results)} POs for date range {start_date} - {end_date}")

        return RepositoryResult(
            data=[copy.deepcopy(doc) for doc in results],
            metadata={
                "total": len(results),
                "dateRange": {"startDate": start_date, "endDate": end_date},
                "filters": dict(filters or {}),
            },
        )

    def search(
        self,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> RepositoryResult:
        """
        Match query against PO number, buyer and location.

        A field matches on a case-insensitive substring or when its rapidfuzz
        partial ratio reaches the fuzzy threshold.
        """
        with self._lock:
            candidates = self._filter(filters)

        if query:
            needle = query.strip().lower()
            candidates = [doc for doc in candidates if self._search_hit(needle, doc)]

        candidates.sort(key=lambda doc: doc.get("createdAt") or "", reverse=True)
        total = len(candidates)
        limit = max(limit, 1)

        return RepositoryResult(
            data=[copy.deepcopy(doc) for doc in candidates[offset:offset + limit]],
            metadata={
                "total": total,
                "page": offset // limit + 1,
                "pages": math.ceil(total / limit),
            },
        )

    def _search_hit(self, needle: str, document: Mapping[str, Any]) -> bool:
        fields = (
            _value_at(document, "header.poNumber"),
            buyer_name(document, default=""),
            _value_at(document, "header.syscoLocation.name"),
        )
        for field in fields:
            if not field:
                continue
            haystack = str(field).lower()
            if needle in haystack:
                return True
            if fuzz.partial_ratio(needle, haystack) / 100.0 >= self.fuzzy_threshold:
                return True
        return False

    def distinct_buyers(self) -> List[str]:
        with self._lock:
            return sorted({buyer_name(doc, default="") for doc in self._documents.values()} - {""})

    def distinct_locations(self) -> List[str]:
        with self._lock:
            return sorted(self._indexes["header.syscoLocation.name"].keys())

    def status_distribution(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {"status": status, "count": len(numbers), "pos": sorted(numbers)}
                for status, numbers in sorted(self._indexes["header.status"].items())
            ]

    def geographic_distribution(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = []
            for location, numbers in sorted(self._indexes["header.syscoLocation.name"].items()):
                total = sum(finite_or_zero(self._documents[n].get("totalCost")) for n in numbers)
                rows.append({"location": location, "count": len(numbers), "total": total})
            return rows

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    # Writes. Each one persists the new document map before it replaces the in-memory state.

    def create(self, po_data: Any) -> Dict[str, Any]:
        """
        Insert a new PO document.

        Raises:
            ValidationFailedError: document has no header.poNumber
            DuplicatePOError: the PO number is already stored
            RepositoryError: the store could not be written
        """
        document = copy.deepcopy(as_document(po_data))
        po_number = _value_at(document, "header.poNumber")
        if po_number is None:
            raise ValidationFailedError("PO number is required", [{"field": "header.poNumber"}])

        po_number = str(po_number)
        now = utcnow_iso()
        document.setdefault("createdAt", now)
        document["lastUpdated"] = now

        with self._lock:
            if po_number in self._documents:
                raise DuplicatePOError(f"PO {po_number} already exists", {"poNumber": po_number})
            self._commit({**self._documents, po_number: document})

        logger.info(f"Created PO {po_number}")
        return copy.deepcopy(document)

    def update(self, po_number: str, update_data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace the given top-level fields. Returns None when the PO does not exist."""
        po_number = str(po_number)
        changes = {key: copy.deepcopy(value) for key, value in update_data.items() if key != "_id"}

        with self._lock:
            current = self._documents.get(po_number)
            if current is None:
                return None

            updated = {**current, **changes, "lastUpdated": utcnow_iso()}
            new_number = _value_at(updated, "header.poNumber")
            if new_number is None:
                raise ValidationFailedError("PO number is required", [{"field": "header.poNumber"}])
            new_number = str(new_number)
            if new_number != po_number and new_number in self._documents:
                raise DuplicatePOError(f"PO {new_number} already exists", {"poNumber": new_number})

            documents = {n: doc for n, doc in self._documents.items() if n != po_number}
            documents[new_number] = updated
            self._commit(documents)

        logger.info(f"Updated PO {po_number}")
        return copy.deepcopy(updated)

    def update_status(
        self,
        po_number: str,
        status: Any,
        history_entry: Optional[Mapping[str, Any]] = None,
        changes: Optional[Mapping[str, Any]] = None,
        expected_status: Any = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Set header.status in one write, appending history_entry to statusHistory.

        Args:
            changes: other top-level fields stored with the status change
            expected_status: the status the change was validated from; the
                write is refused when the stored status no longer matches

        Raises:
            TransitionError: the stored status differs from expected_status
        """
        po_number = str(po_number)
        status = getattr(status, "value", status)
        expected_status = getattr(expected_status, "value", expected_status)

        with self._lock:
            current = self._documents.get(po_number)
            if current is None:
                return None

            stored_status = _value_at(current, "header.status")
            if expected_status is not None and stored_status != expected_status:
                raise TransitionError(
                    f"PO {po_number} changed status from {expected_status} to {stored_status} during the transition",
                    {"poNumber": po_number, "expectedStatus": expected_status, "currentStatus": stored_status},
                )

            updated = copy.deepcopy(current)
            updated.update({key: copy.deepcopy(value) for key, value in (changes or {}).items() if key != "_id"})
            if not isinstance(updated.get("header"), dict):
                updated["header"] = {}
            updated["header"]["status"] = status
            if history_entry is not None:
                updated.setdefault("statusHistory", []).append(dict(history_entry))
            updated["lastUpdated"] = utcnow_iso()

            self._commit({**self._documents, po_number: updated})

        logger.info(f"PO {po_number} status set to {status}")
        return copy.deepcopy(updated)

    def delete(self, po_number: str) -> Optional[Dict[str, Any]]:
        po_number = str(po_number)
        with self._lock:
            document = self._documents.get(po_number)
            if document is None:
                return None
            self._commit({n: doc for n, doc in self._documents.items() if n != po_number})
        logger.info(f"Deleted PO {po_number}")
        return document

    # Internals

    def _filter(self, filters: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Documents matching every `dotted.path: value` filter. Caller holds the lock."""
        if not filters:
            return list(self._documents.values())

        numbers: Optional[Set[str]] = None
        remaining = {}
        for field, value in filters.items():
            value = getattr(value, "value", value)
            if field in self._indexes:
                hits = self._indexes[field].get(value, set())
                numbers = set(hits) if numbers is None else numbers & hits
            else:
                remaining[field] = value

        pool: Iterable[str] = self._documents.keys() if numbers is None else numbers
        return [
            self._documents[n]
            for n in self._documents
            if n in pool and all(_field_value(self._documents[n], f) == v for f, v in remaining.items())
        ]

    def _index(self, po_number: str, document: Mapping[str, Any]) -> None:
        for field, index in self._indexes.items():
            value = _value_at(document, field)
            if isinstance(value, (str, int, float)):
                index.setdefault(value, set()).add(po_number)

    def _reindex(self) -> None:
        for index in self._indexes.values():
            index.clear()
        for po_number, document in self._documents.items():
            self._index(po_number, document)

    def _commit(self, documents: Dict[str, Dict[str, Any]]) -> None:
        """Persist documents, then make them the in-memory state. Caller holds the lock."""
        self._save(documents)
        self._documents = documents
        self._reindex()

    def _save(self, documents: Mapping[str, Any]) -> None:
        """Write documents to disk through a temp file and an atomic rename."""
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(list(documents.values()), f, indent=2, default=serialize_for_json)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, ValueError) as e:
            logger.error(f"Error writing PO database {self.path}: {e}")
            raise RepositoryError(f"Could not write PO database: {e}", {"path": str(self.path)}) from e
        finally:
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)
