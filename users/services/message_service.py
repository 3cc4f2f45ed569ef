import logging

from django.db import transaction, DatabaseError
from django.utils import timezone
from users.models import Ticket, Message, User
from users.helpers.permissions import AccessPolicy
from .errors import ErrorCode, failure
from .serializers import serialize_message
from .ticket_service import clean_text


logger = logging.getLogger(__name__)


class MessageService:
    """Append-only conversation thread on a ticket."""

    @staticmethod
    def _denied(user, message_if_agent='Ticket not found or not assigned to you'):
        if user.role == User.RoleChoices.AGENT:
            return failure(ErrorCode.NOT_FOUND, message_if_agent)
        return failure(ErrorCode.FORBIDDEN, 'Not authorized')

    @classmethod
    def add_message(cls, user, ticket_id, content):
        content = clean_text(content)
        if not content:
            return failure(ErrorCode.VALIDATION, 'Message content is required')

        if not AccessPolicy.permits_role(user, 'message', 'create'):
            return failure(ErrorCode.FORBIDDEN, 'Only the ticket owner or its agent can post messages')

        try:
            with transaction.atomic():
                ticket = Ticket.objects.select_for_update().filter(id=ticket_id).first()
                if ticket is None:
                    return failure(ErrorCode.NOT_FOUND, 'Ticket not found')

                if not AccessPolicy.permits(user, 'message', 'create', ticket):
                    return cls._denied(user)

                message = Message.objects.create(
                    ticket=ticket,
                    author=user,
                    content=content
                )
                Ticket.objects.filter(id=ticket.id).update(updated_at=timezone.now())
        except DatabaseError:
            logger.exception('Failed to add message to ticket %s', ticket_id)
            return failure(ErrorCode.SERVER_ERROR, 'Failed to add message')

        logger.info('Message %s added to ticket %s by user %s', message.id, ticket_id, user.id)
        return {
            'success': True,
            'message': 'Message sent successfully',
            'message_data': serialize_message(message)
        }

    @classmethod
    def list_messages(cls, user, ticket_id):
        ticket = Ticket.objects.filter(id=ticket_id).first()
        if ticket is None:
            return failure(ErrorCode.NOT_FOUND, 'Ticket not found')

        if not AccessPolicy.permits(user, 'message', 'list', ticket):
            return cls._denied(user)

        messages = ticket.messages.select_related('author').order_by('created_at', 'id')
        return {
            'success': True,
            'messages': [serialize_message(m) for m in messages]
        }
