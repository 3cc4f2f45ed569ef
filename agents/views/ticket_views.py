from rest_framework.decorators import api_view
from users.helpers.permissions import role_required
from users.helpers.response import APIResponse
from users.services.ticket_service import ticket_service
from users.services.message_service import MessageService


def _payload(request):
    return request.data if isinstance(request.data, dict) else {}


@api_view(['GET'])
@role_required('ticket', 'list_assigned')
def get_assigned_tickets(request):
    """
    Tickets assigned to the calling agent, newest first

    GET /api/agent/tickets?status=ASSIGNED
    """
    result = ticket_service.list_agent_tickets(
        agent=request.user,
        status=request.GET.get('status')
    )

    if result['success']:
        return APIResponse.success(data=result['tickets'])

    return APIResponse.failure(result)


@api_view(['PATCH'])
@role_required('ticket', 'solve')
def update_ticket_status(request, ticket_id):
    """
    PATCH /api/agent/tickets/{ticket_id}/status
    {
        "status": "SOLVED"
    }
    """
    result = ticket_service.update_status_by_agent(
        agent=request.user,
        ticket_id=ticket_id,
        new_status=_payload(request).get('status')
    )

    if result['success']:
        return APIResponse.success(data=result['ticket'], message=result['message'])

    return APIResponse.failure(result)


@api_view(['GET', 'POST'])
@role_required('message', 'agent_thread')
def ticket_messages(request, ticket_id):
    if request.method == 'GET':
        result = MessageService.list_messages(request.user, ticket_id)
        if result['success']:
            return APIResponse.success(data=result['messages'])
        return APIResponse.failure(result)

    result = MessageService.add_message(
        user=request.user,
        ticket_id=ticket_id,
        content=_payload(request).get('content')
    )

    if result['success']:
        return APIResponse.created(data=result['message_data'], message=result['message'])

    return APIResponse.failure(result)
