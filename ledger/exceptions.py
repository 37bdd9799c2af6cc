from rest_framework import status
from rest_framework.exceptions import APIException


class LedgerError(APIException):
    """Base class for every error the ledger services raise."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Ledger operation failed.'
    default_code = 'ledger_error'


class InvalidArgument(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid data provided.'
    default_code = 'invalid_argument'


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class Conflict(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'A record with this identity already exists.'
    default_code = 'conflict'


class InsufficientStock(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Not enough stock available.'
    default_code = 'insufficient_stock'


class InvalidState(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Operation not allowed in the current state.'
    default_code = 'invalid_state'


class Transient(LedgerError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The store is busy, please retry.'
    default_code = 'transient'


class StaleWrite(Exception):
    """A compare-and-swap update matched no row; the caller should retry."""
