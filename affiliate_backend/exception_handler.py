"""
Project-wide DRF exception handler.
Renders engine errors with the standard error envelope.
"""
from rest_framework.response import Response
from rest_framework.views import exception_handler


def engine_exception_handler(exc, context):
    """
    Custom exception handler that returns the standard error envelope
    for engine errors and DRF validation errors.
    """
    from hierarchy.exceptions import HierarchyError
    from commissions.exceptions import CommissionError
    from wallets.exceptions import WalletError

    if isinstance(exc, (HierarchyError, CommissionError, WalletError)):
        return Response(exc.to_dict(), status=exc.status_code)

    response = exception_handler(exc, context)

    # Wrap DRF validation errors in standard envelope
    if response is not None and response.status_code == 400:
        original_data = response.data
        response.data = {
            'error': 'validation_error',
            'message': 'Invalid request parameters',
            'details': original_data
        }

    return response
