from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from ..services.auth_service import AuthService
from ..services.serializers import serialize_user
from ..helpers.response import APIResponse
from ..helpers.permissions import user_required
from ..helpers.request import (
    get_client_ip, get_user_agent, get_token_from_request, parse_json_body,
    set_auth_cookie, clear_auth_cookie
)


@csrf_exempt
@require_http_methods(["POST"])
def register(request):
    data, error = parse_json_body(request)
    if error:
        return error

    required = ['first_name', 'last_name', 'email', 'password']
    missing = [field for field in required if not isinstance(data.get(field), str) or not data[field].strip()]

    if missing:
        return APIResponse.missing_fields(missing)

    result = AuthService.register(
        first_name=data['first_name'],
        last_name=data['last_name'],
        email=data['email'],
        password=data['password'],
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request)
    )

    if not result['success']:
        return APIResponse.failure(result)

    response = APIResponse.created(
        data={'user': serialize_user(result['user'])},
        message=result['message']
    )
    return set_auth_cookie(response, result['token'])


@csrf_exempt
@require_http_methods(["POST"])
def login(request):
    data, error = parse_json_body(request)
    if error:
        return error

    missing = [field for field in ('email', 'password') if not isinstance(data.get(field), str) or not data[field]]
    if missing:
        return APIResponse.missing_fields(missing)

    result = AuthService.login(
        email=data['email'],
        password=data['password'],
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request)
    )

    if not result['success']:
        return APIResponse.failure(result)

    user = result['user']
    response = APIResponse.success(
        data={'user_id': user.id, 'role': user.role, 'user': serialize_user(user)},
        message=result['message']
    )
    return set_auth_cookie(response, result['token'])


@csrf_exempt
@require_http_methods(["POST"])
def logout(request):
    token = get_token_from_request(request)
    if token:
        AuthService.logout(token)

    response = APIResponse.success(message='Logged out successfully')
    return clear_auth_cookie(response)


@csrf_exempt
@require_http_methods(["GET"])
@user_required
def validate_token(request):
    return APIResponse.success(
        data={'user_id': request.user.id, 'role': request.user.role},
        message='Token is valid'
    )
