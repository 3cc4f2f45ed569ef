import json
from django.conf import settings
from .response import APIResponse


def get_client_ip(request):
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    return x_forwarded_for.split(',')[0] if x_forwarded_for else request.META.get('REMOTE_ADDR')


def get_user_agent(request):
    return request.META.get('HTTP_USER_AGENT', 'Unknown')[:30]


def get_token_from_request(request):
    token = request.COOKIES.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    auth_header = request.META.get('HTTP_AUTHORIZATION', '')
    return auth_header[7:] if auth_header.startswith('Bearer ') else None


def parse_json_body(request):
    if not request.body:
        return {}, None
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, APIResponse.error(message='Invalid JSON', status_code=400)
    if not isinstance(data, dict):
        return None, APIResponse.error(message='JSON body must be an object', status_code=400)
    return data, None


def set_auth_cookie(response, token):
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        token,
        max_age=settings.JWT_EXPIRY_SECONDS,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite='Lax'
    )
    return response


def clear_auth_cookie(response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME, samesite='Lax')
    return response
