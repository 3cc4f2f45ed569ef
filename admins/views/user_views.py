from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from ..services.user_service import UserService
from users.helpers.response import APIResponse
from users.helpers.request import parse_json_body
from users.helpers.permissions import role_required
from .paging import get_paging


@csrf_exempt
@require_http_methods(["GET"])
@role_required('user', 'list')
def list_users(request):
    page, per_page = get_paging(request)

    result = UserService.get_all_users(
        page=page,
        per_page=per_page,
        search=request.GET.get('search'),
        role=request.GET.get('role')
    )

    if result['success']:
        return APIResponse.success(data=result['users'], meta={'pagination': result['pagination']})

    return APIResponse.failure(result)


@csrf_exempt
@require_http_methods(["GET"])
@role_required('user', 'view')
def get_user(request, user_id):
    result = UserService.get_user_by_id(user_id)

    if result['success']:
        return APIResponse.success(data=result['user'])

    return APIResponse.failure(result)


@csrf_exempt
@require_http_methods(["PATCH"])
@role_required('user', 'change_role')
def update_user_role(request, user_id):
    data, error = parse_json_body(request)
    if error:
        return error

    role = data.get('role')
    if not role:
        return APIResponse.validation_error(
            errors={'role': 'role is required'},
            message='Missing role field'
        )

    result = UserService.update_user_role(request.user, user_id, role)

    if result['success']:
        return APIResponse.success(
            data={'user': result['user'], 'released_tickets': result['released_tickets']},
            message=result['message']
        )

    return APIResponse.failure(result)


@csrf_exempt
@require_http_methods(["DELETE"])
@role_required('user', 'delete')
def delete_user(request, user_id):
    result = UserService.delete_user(request.user, user_id)

    if result['success']:
        return APIResponse.success(message=result['message'])

    return APIResponse.failure(result)
