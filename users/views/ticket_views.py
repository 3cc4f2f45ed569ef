# views/ticket_views.py
from rest_framework.decorators import api_view
from users.helpers.permissions import role_required
from users.helpers.response import APIResponse
from users.services.ticket_service import ticket_service
from users.services.message_service import MessageService


@api_view(['GET'])
@role_required('ticket', 'list_own')
def get_my_tickets(request):
    """
    Current user's tickets, newest first, each with its message thread

    GET /api/tickets?status=PENDING
    """
    result = ticket_service.list_user_tickets(
        user=request.user,
        status=request.GET.get('status')
    )

    if result['success']:
        return APIResponse.success(data=result['tickets'])

    return APIResponse.failure(result)


@api_view(['POST'])
@role_required('ticket', 'create')
def create_ticket(request):
    """
    Open a new ticket

    POST /api/tickets/create
    {
        "title": "Printer on fire",
        "description": "Third floor, next to the kitchen"
    }
    """
    data = request.data if isinstance(request.data, dict) else {}

    result = ticket_service.create_ticket(
        user=request.user,
        title=data.get('title'),
        description=data.get('description')
    )

    if result['success']:
        return APIResponse.created(data=result['ticket'], message=result['message'])

    return APIResponse.failure(result)


@api_view(['GET'])
@role_required('ticket', 'view')
def get_ticket_details(request, ticket_id):
    result = ticket_service.get_ticket(request.user, ticket_id)

    if result['success']:
        return APIResponse.success(data=result['ticket'])

    return APIResponse.failure(result)


@api_view(['PATCH'])
@role_required('ticket', 'approve')
def approve_ticket(request, ticket_id):
    """
    Owner confirms a SOLVED ticket; it closes on its own after the auto-close delay

    PATCH /api/tickets/{ticket_id}/approve
    """
    result = ticket_service.approve_ticket(request.user, ticket_id)

    if result['success']:
        return APIResponse.success(
            data=result['ticket'],
            message=result['message'],
            meta={'auto_close_at': result['auto_close_at']}
        )

    return APIResponse.failure(result)


@api_view(['DELETE'])
@role_required('ticket', 'delete_own')
def delete_ticket(request, ticket_id):
    result = ticket_service.delete_ticket(request.user, ticket_id)

    if result['success']:
        return APIResponse.success(message=result['message'])

    return APIResponse.failure(result)


@api_view(['GET', 'POST'])
@role_required('message', 'list')
def ticket_messages(request, ticket_id):
    """
    Ticket thread, oldest first, or append a message

    GET  /api/tickets/{ticket_id}/messages
    POST /api/tickets/{ticket_id}/messages
    {
        "content": "Any update?"
    }
    """
    if request.method == 'GET':
        result = MessageService.list_messages(request.user, ticket_id)
        if result['success']:
            return APIResponse.success(data=result['messages'])
        return APIResponse.failure(result)

    result = MessageService.add_message(
        user=request.user,
        ticket_id=ticket_id,
        content=request.data.get('content') if isinstance(request.data, dict) else None
    )

    if result['success']:
        return APIResponse.created(data=result['message_data'], message=result['message'])

    return APIResponse.failure(result)
