import json
import logging
from datetime import datetime, timezone
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin


logger = logging.getLogger(__name__)


class JSONErrorMiddleware(MiddlewareMixin):
    """Render non-JSON error responses and uncaught exceptions under /api/ as JSON."""

    API_PREFIX = '/api/'

    STATUS_MESSAGES = {
        400: "Bad request, check your input",
        401: "Authentication required",
        403: "Access forbidden",
        404: "Not found",
        405: "Method not allowed",
        409: "Conflict detected",
        415: "Unsupported media type",
        422: "Unprocessable entity",
        500: "Internal server error",
    }

    def _is_api(self, request):
        return request.path.startswith(self.API_PREFIX)

    def process_response(self, request, response):
        if not self._is_api(request) or isinstance(response, JsonResponse):
            return response

        status_code = response.status_code
        if status_code < 400:
            return response

        if response.get('Content-Type', '').startswith('application/json'):
            return response

        content = None
        if getattr(response, 'content', None):
            try:
                content = json.loads(response.content)
            except (json.JSONDecodeError, ValueError):
                content = None

        message = self.STATUS_MESSAGES.get(status_code, f"Request failed ({status_code})")
        if isinstance(content, dict) and content.get('detail'):
            message = str(content['detail'])

        return JsonResponse({
            "success": False,
            "message": message,
            "meta": {
                "path": request.path,
                "method": request.method,
                "timestamp": self._get_timestamp()
            }
        }, status=status_code)

    def process_exception(self, request, exception):
        if not self._is_api(request):
            return None

        logger.exception('Unhandled error on %s %s', request.method, request.path)
        return JsonResponse({
            "success": False,
            "message": "Internal server error",
            "error": {
                "type": exception.__class__.__name__,
            },
            "meta": {
                "path": request.path,
                "method": request.method,
                "timestamp": self._get_timestamp()
            }
        }, status=500)

    def _get_timestamp(self):
        return datetime.now(timezone.utc).isoformat()
