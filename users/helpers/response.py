from django.http import JsonResponse
from rest_framework.views import exception_handler
from users.services.errors import ErrorCode


class APIResponse:

    ERROR_STATUS = {
        ErrorCode.VALIDATION: 400,
        ErrorCode.UNAUTHORIZED: 401,
        ErrorCode.FORBIDDEN: 403,
        ErrorCode.NOT_FOUND: 404,
        ErrorCode.INVALID_STATE: 409,
        ErrorCode.CONFLICT: 409,
        ErrorCode.SERVER_ERROR: 500,
    }

    @staticmethod
    def success(data=None, message="Success", status_code=200, meta=None):
        response = {
            "success": True,
            "message": message,
            "data": data
        }
        if meta:
            response["meta"] = meta
        return JsonResponse(response, status=status_code)

    @staticmethod
    def error(message="Error occurred", errors=None, status_code=400, data=None):
        response = {
            "success": False,
            "message": message
        }
        if errors:
            response["errors"] = errors
        if data:
            response["data"] = data
        return JsonResponse(response, status=status_code)

    @staticmethod
    def created(data=None, message="Created successfully", status_code=201):
        return APIResponse.success(data=data, message=message, status_code=status_code)

    @staticmethod
    def unauthorized(message="Unauthorized access"):
        return APIResponse.error(message=message, status_code=401)

    @staticmethod
    def forbidden(message="Access forbidden"):
        return APIResponse.error(message=message, status_code=403)

    @staticmethod
    def validation_error(errors, message="Validation failed"):
        return APIResponse.error(message=message, errors=errors, status_code=422)

    @staticmethod
    def failure(result):
        """Render a failed service result with the status code of its error."""
        status_code = APIResponse.ERROR_STATUS.get(result.get('error'), 400)
        return APIResponse.error(message=result['message'], status_code=status_code)

    @staticmethod
    def missing_fields(missing):
        return APIResponse.validation_error(
            errors={field: f'{field} is required' for field in missing},
            message=f'Missing required fields: {", ".join(missing)}'
        )


def api_exception_handler(exc, context):
    """DRF exception handler that keeps the ``APIResponse`` envelope."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = getattr(exc, 'detail', None)
    message = str(detail) if isinstance(detail, str) else 'Request failed'

    error_response = APIResponse.error(message=message, status_code=response.status_code)
    for header in ('WWW-Authenticate', 'Retry-After'):
        if header in response:
            error_response[header] = response[header]
    return error_response
