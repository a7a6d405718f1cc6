"""
Purchase Order service.

Business operations over the repository: creation with schema validation,
updates, and status changes that always go through the transition validator.
"""

import copy
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from po_lifecycle.errors import NotFoundError, TransitionError, ValidationFailedError
from po_lifecycle.extraction import PDFExtractor
from po_lifecycle.metrics.aggregator import MetricsAggregator
from po_lifecycle.repository import PORepository
from po_lifecycle.schemas.metrics import MetricsSnapshot
from po_lifecycle.schemas.po import RepositoryResult
from po_lifecycle.schemas.validation import ValidationErrorType, create_validation_error
from po_lifecycle.status.definitions import INITIAL_STATUS
from po_lifecycle.status.transitions import TransitionValidator
from po_lifecycle.validation import create_time_range, validate_schema, validate_time_range
from po_lifecycle.utils import as_document, buyer_name, get_path, utcnow_iso
from po_lifecycle.utils.logging import setup_logging


logger = setup_logging(__name__)

# Metrics queries may span any length of time
_UNBOUNDED = timedelta.max


def _error_dicts(errors) -> List[Dict[str, Any]]:
    return [error.model_dump(mode="json") for error in errors]


def build_query_filters(
    status: Optional[str] = None,
    buyer: Optional[str] = None,
    location: Optional[str] = None,
) -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    if status:
        filters["header.status"] = status
    if buyer:
        filters["buyer"] = buyer
    if location:
        filters["header.syscoLocation.name"] = location
    return filters


class POService:
    """
    Purchase Order operations.

    Args:
        repository: document store
        validator: transition validator every status change goes through
        aggregator: metrics aggregator
        extractor: PDF extractor used by `upload_po`
    """

    def __init__(
        self,
        repository: PORepository,
        validator: TransitionValidator,
        aggregator: MetricsAggregator,
        extractor: Optional[PDFExtractor] = None,
    ):
        self.repository = repository
        self.validator = validator
        self.aggregator = aggregator
        self.extractor = extractor

    def initialize(self) -> None:
        self.repository.initialize()
        logger.info("POService initialized")

    # Create

    def create_po(self, data: Any, user: str = "system") -> Dict[str, Any]:
        """
        Create a PO in the initial status.

        Returns the stored document, or the existing one flagged `isExisting`
        when the PO number is already stored.

        Raises:
            ValidationFailedError: schema, business-rule or initial-status failure
        """
        document = copy.deepcopy(as_document(data))
        if not isinstance(document, dict):
            raise ValidationFailedError("Invalid PO data: expected object")

        header = document.get("header")
        if isinstance(header, dict):
            status = getattr(header.get("status"), "value", header.get("status"))
            if status is None:
                header["status"] = INITIAL_STATUS.value
            elif status != INITIAL_STATUS.value:
                raise ValidationFailedError(
                    f"New purchase orders must start in {INITIAL_STATUS.value}",
                    _error_dicts([create_validation_error(
                        ValidationErrorType.STATUS_ERROR,
                        f"New purchase orders must start in {INITIAL_STATUS.value}",
                        {"status": status},
                    )]),
                )

        validation = validate_schema(document)
        if not validation.valid:
            logger.warning(f"PO failed validation: {validation.messages}")
            raise ValidationFailedError("PO validation failed", _error_dicts(validation.errors))

        requirements = self.validator.validate_status_requirements(INITIAL_STATUS, document)
        if not requirements.valid:
            raise ValidationFailedError("PO does not meet initial status requirements", _error_dicts(requirements.errors))

        po_number = str(document["header"]["poNumber"])
        existing = self.repository.find_by_number(po_number)
        if existing is not None:
            logger.info(f"PO already exists: {po_number}")
            return {**existing, "isExisting": True}

        if not document.get("statusHistory"):
            document["statusHistory"] = [{
                "status": INITIAL_STATUS.value,
                "timestamp": utcnow_iso(),
                "user": user,
                "notes": "Created",
            }]
        document.setdefault("revision", 1)
        document.setdefault("revisionInfo", "Initial version")

        created = self.repository.create(document)
        logger.info(f"PO created successfully: {po_number} ({buyer_name(created)}, {get_path(created, 'header', 'syscoLocation', 'name')})")
        return created

    async def upload_po(self, pdf_path: str, user: str = "system") -> Dict[str, Any]:
        """Extract a PO from a PDF and create it."""
        if self.extractor is None:
            raise ValidationFailedError("PDF upload is not configured")

        result = await self.extractor.process(pdf_path)
        document = result.data
        document["processingTime"] = result.processing_time
        return self.create_po(document, user=user)

    # Read

    def get_po(self, po_number: str) -> Dict[str, Any]:
        po = self.repository.find_by_number(po_number)
        if po is None:
            raise NotFoundError(f"PO not found: {po_number}", {"poNumber": po_number})
        return po

    def find_pos(
        self,
        status: Optional[str] = None,
        buyer: Optional[str] = None,
        location: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        return self.repository.find_all(build_query_filters(status, buyer, location), limit, offset)

    def search_pos(
        self,
        query: Optional[str] = None,
        status: Optional[str] = None,
        buyer: Optional[str] = None,
        location: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> RepositoryResult:
        filters = build_query_filters(status, buyer, location)
        result = self.repository.search(query, filters, limit, offset)
        logger.info(f"Search '{query}' returned {len(result.data)} of {result.metadata['total']} POs")
        return result

    def get_buyers(self) -> List[str]:
        return self.repository.distinct_buyers()

    def get_locations(self) -> List[str]:
        return self.repository.distinct_locations()

    def get_status_board(self) -> List[Dict[str, Any]]:
        """PO numbers grouped by status."""
        return self.repository.status_distribution()

    def get_location_summary(self) -> List[Dict[str, Any]]:
        """Order count and value per location."""
        return self.repository.geographic_distribution()

    # Update

    def update_po(self, po_number: str, update_data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Update PO fields other than its status.

        Raises:
            NotFoundError: unknown PO
            ValidationFailedError: missing buyer or location, or an attempted status change
        """
        current = self.get_po(po_number)
        changes = {k: copy.deepcopy(v) for k, v in update_data.items() if k not in ("statusHistory", "createdAt")}

        header = changes.get("header")
        if not isinstance(header, dict) or not buyer_name({"header": header}, default=""):
            raise ValidationFailedError("Buyer name is required", [{"field": "header.buyerInfo"}])
        if not get_path(header, "syscoLocation", "name"):
            raise ValidationFailedError("Sysco location is required", [{"field": "header.syscoLocation.name"}])

        current_status = current["header"].get("status")
        requested = getattr(header.get("status"), "value", header.get("status"))
        if requested is not None and requested != current_status:
            raise ValidationFailedError(
                "Status changes must use the status transition endpoint",
                [{"field": "header.status", "current": current_status, "requested": requested}],
            )
        header["status"] = current_status

        merged = {**current, **changes}
        validation = validate_schema(merged)
        if not validation.valid:
            raise ValidationFailedError("PO validation failed", _error_dicts(validation.errors))

        changes["revision"] = int(current.get("revision") or 1) + 1
        changes.setdefault("revisionInfo", f"Revision {changes['revision']}")

        updated = self.repository.update(po_number, changes)
        logger.info(f"PO updated successfully: {po_number}")
        return updated

    def update_status(
        self,
        po_number: str,
        new_status: Any,
        data: Optional[Mapping[str, Any]] = None,
        user: str = "system",
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move a PO to new_status.

        `data` carries fields the target status requires (invoice number,
        delivery confirmation, ...); they are stored with the PO in the same
        write as the status. The write only lands if the PO is still in the
        status the transition was validated from.

        Raises:
            NotFoundError: unknown PO
            TransitionError: the validator refused the transition, or the
                status changed while it was being validated
        """
        po = self.get_po(po_number)
        old_status = po["header"].get("status")

        changes = {k: copy.deepcopy(v) for k, v in (data or {}).items() if k not in ("statusHistory", "createdAt")}
        if isinstance(changes.get("header"), dict):
            changes["header"] = {**po["header"], **changes["header"], "status": old_status}
        candidate = {**po, **changes}

        result = self.validator.transition(
            old_status,
            new_status,
            data=candidate,
            reason=notes or "",
            user=user,
            notes=notes,
        )

        if notes:
            changes["notes"] = notes
        updated = self.repository.update_status(
            po_number,
            result.to_status.value,
            result.history_entry.model_dump(by_alias=True, exclude_none=True, mode="json"),
            changes=changes,
            expected_status=old_status,
        )
        if updated is None:
            raise NotFoundError(f"PO not found: {po_number}", {"poNumber": po_number})
        logger.info(f"Status updated successfully: {po_number} {result.from_status.value} -> {result.to_status.value} ({result.type.value})")
        return updated

    def bulk_update_status(
        self,
        po_numbers: Sequence[str],
        new_status: Any,
        data: Optional[Mapping[str, Any]] = None,
        user: str = "system",
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Apply one status change to several POs.

        Every PO goes through `update_status` on its own. A refused transition
        or unknown PO is reported in that PO's result and the rest carry on;
        storage failures still raise.

        Raises:
            ValidationFailedError: no PO numbers given
        """
        if not po_numbers:
            raise ValidationFailedError("At least one PO number is required", [{"field": "poNumbers"}])

        target = getattr(new_status, "value", new_status)
        results = []
        for po_number in dict.fromkeys(str(number) for number in po_numbers):
            try:
                po = self.update_status(po_number, new_status, data=data, user=user, notes=notes)
            except (NotFoundError, TransitionError, ValidationFailedError) as e:
                logger.warning(f"Bulk status change to {target} refused for {po_number}: {e.message}")
                results.append({"poNumber": po_number, "success": False, "error": e.to_dict()})
            else:
                results.append({"poNumber": po_number, "success": True, "status": po["header"]["status"]})

        succeeded = sum(1 for result in results if result["success"])
        logger.info(f"Bulk status change to {target}: {succeeded} of {len(results)} POs updated")
        return {
            "status": target,
            "total": len(results),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": results,
        }

    # Delete

    def delete_po(self, po_number: str) -> Dict[str, Any]:
        self.get_po(po_number)
        self.repository.delete(po_number)
        logger.info(f"PO deleted successfully: {po_number}")
        return {"success": True, "message": f"PO {po_number} deleted successfully"}

    # Metrics

    def get_metrics(
        self,
        start_date: Any = None,
        end_date: Any = None,
        status: Optional[str] = None,
        buyer: Optional[str] = None,
        location: Optional[str] = None,
    ) -> MetricsSnapshot:
        """
        Metrics snapshot for POs ordered within [start_date, end_date].

        Raises:
            ValidationFailedError: a malformed or inverted date range
        """
        snapshot, _ = self._calculate_metrics(start_date, end_date, build_query_filters(status, buyer, location))
        return snapshot

    def get_detailed_metrics(
        self,
        start_date: Any = None,
        end_date: Any = None,
        period: Optional[str] = None,
        status: Optional[str] = None,
        buyer: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Metrics snapshot with the time range, filters and PO count it covers.

        `period` ("30d", "2w", "1y", ...) selects the range ending at end_date,
        or now, when start_date is not given.

        Raises:
            ValidationFailedError: a malformed period or date range
        """
        if period and not start_date:
            time_range = create_time_range(period, end_date)
            start_date, end_date = time_range["start"], time_range["end"]

        filters = {"status": status, "buyer": buyer, "location": location}
        snapshot, count = self._calculate_metrics(start_date, end_date, build_query_filters(**filters))
        return {
            "data": snapshot,
            "metadata": {
                "timeRange": {"startDate": start_date, "endDate": end_date},
                "filters": {name: value for name, value in filters.items() if value},
                "count": count,
            },
        }

    def _calculate_metrics(self, start_date: Any, end_date: Any, filters: Dict[str, Any]) -> Tuple[MetricsSnapshot, int]:
        if start_date and end_date:
            time_check = validate_time_range(start_date, end_date, allow_future=True, max_range=_UNBOUNDED)
            if not time_check.valid:
                raise ValidationFailedError("Invalid metrics date range", _error_dicts(time_check.errors))

        result = self.repository.find_by_date_range(start_date, end_date, filters)

        options = {}
        if start_date:
            options["startDate"] = start_date
        if end_date:
            options["endDate"] = end_date
        return self.aggregator.calculate_metrics(result.data, options), len(result.data)
