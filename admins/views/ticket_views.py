from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from users.helpers.response import APIResponse
from users.helpers.request import parse_json_body
from users.helpers.permissions import role_required
from users.services.ticket_service import ticket_service
from .paging import get_paging


@csrf_exempt
@require_http_methods(["GET"])
@role_required('ticket', 'list_all')
def list_tickets(request):
    page, per_page = get_paging(request)
    agent_id = request.GET.get('agent_id', '')

    result = ticket_service.list_all_tickets(
        page=page,
        per_page=per_page,
        status=request.GET.get('status'),
        agent_id=agent_id if agent_id.isdigit() else None,
        unassigned=request.GET.get('unassigned') in ('1', 'true', 'True')
    )

    if result['success']:
        return APIResponse.success(data=result['tickets'], meta={'pagination': result['pagination']})

    return APIResponse.failure(result)


@csrf_exempt
@require_http_methods(["PATCH"])
@role_required('ticket', 'assign')
def assign_ticket(request, ticket_id):
    data, error = parse_json_body(request)
    if error:
        return error

    agent_id = data.get('agent_id')
    if isinstance(agent_id, str) and agent_id.isdigit():
        agent_id = int(agent_id)

    if not isinstance(agent_id, int) or isinstance(agent_id, bool):
        return APIResponse.validation_error(
            errors={'agent_id': 'agent_id is required'},
            message='Missing agent_id field'
        )

    result = ticket_service.assign_ticket(request.user, ticket_id, agent_id)

    if result['success']:
        return APIResponse.success(data=result['ticket'], message=result['message'])

    return APIResponse.failure(result)


@csrf_exempt
@require_http_methods(["PATCH"])
@role_required('ticket', 'unassign')
def unassign_ticket(request, ticket_id):
    result = ticket_service.unassign_ticket(request.user, ticket_id)

    if result['success']:
        return APIResponse.success(data=result['ticket'], message=result['message'])

    return APIResponse.failure(result)


@csrf_exempt
@require_http_methods(["DELETE"])
@role_required('ticket', 'delete_any')
def delete_ticket(request, ticket_id):
    result = ticket_service.delete_ticket(request.user, ticket_id)

    if result['success']:
        return APIResponse.success(message=result['message'])

    return APIResponse.failure(result)
