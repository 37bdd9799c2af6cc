import logging

from django.utils import timezone

from ..exceptions import InvalidArgument, InvalidState, NotFound, StaleWrite
from ..models import BloodRequest
from ..transactions import atomic_with_retry
from .inventory import validate_blood_group, validate_units

logger = logging.getLogger(__name__)

STATUSES = [value for value, _ in BloodRequest.STATUS_CHOICES]
URGENCIES = [value for value, _ in BloodRequest.URGENCY_CHOICES]


class RequestFulfillment:
    """
    Blood requests and their status machine.

    Approving a request takes its units out of stock in the same transaction
    as the status change, so a failed debit leaves the request untouched.
    """

    def __init__(self, stock):
        self.stock = stock

    def create(self, *, patient_name, requester_ref, blood_group, units, urgency,
               request_date=None, requested_by=None):
        if not patient_name or not requester_ref:
            raise InvalidArgument("patient_name and requester_ref are required.")
        validate_blood_group(blood_group)
        validate_units(units)
        if urgency not in URGENCIES:
            raise InvalidArgument(f"Urgency must be one of {', '.join(URGENCIES)}.")

        blood_request = BloodRequest.objects.create(
            patient_name=patient_name,
            requester_ref=requester_ref,
            requested_by=requested_by,
            blood_group=blood_group,
            units=units,
            urgency=urgency,
            status=BloodRequest.PENDING,
            request_date=request_date or timezone.now(),
        )
        logger.info(
            "Request %s opened: %d unit(s) of %s (%s)",
            blood_request.pk, units, blood_group, urgency,
        )
        return blood_request

    def get(self, request_id):
        try:
            return BloodRequest.objects.get(pk=request_id)
        except (BloodRequest.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Request {request_id} not found.")

    def list(self):
        return BloodRequest.objects.newest_first()

    def set_status(self, request_id, new_status):
        if new_status not in STATUSES:
            raise InvalidArgument(f"Status must be one of {', '.join(STATUSES)}.")
        return self._set_status(request_id, new_status)

    def delete(self, request_id):
        self._delete(request_id)

    def _lock(self, request_id):
        try:
            blood_request = BloodRequest.objects.select_for_update().filter(pk=request_id).first()
        except (ValueError, TypeError):
            blood_request = None
        if blood_request is None:
            raise NotFound(f"Request {request_id} not found.")
        return blood_request

    @atomic_with_retry
    def _set_status(self, request_id, new_status):
        blood_request = self._lock(request_id)

        previous = blood_request.status
        if new_status == BloodRequest.APPROVED:
            if previous == BloodRequest.APPROVED:
                logger.info("Request %s is already approved", request_id)
                return blood_request
            self.stock.decrement(blood_request.blood_group, blood_request.units)

        updated = BloodRequest.objects.filter(pk=blood_request.pk, status=previous).update(status=new_status)
        if not updated:
            raise StaleWrite(f"Request {request_id} changed while updating its status.")

        blood_request.status = new_status
        logger.info("Request %s: %s -> %s", request_id, previous, new_status)
        return blood_request

    @atomic_with_retry
    def _delete(self, request_id):
        blood_request = self._lock(request_id)
        if blood_request.status not in BloodRequest.DELETABLE_STATUSES:
            raise InvalidState("Only approved or rejected requests can be deleted.")
        blood_request.delete()
        logger.info("Request %s deleted", request_id)
