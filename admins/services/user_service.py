import logging

from django.db import transaction, DatabaseError
from django.db.models import Q
from django.core.paginator import Paginator
from users.models import User, Ticket
from users.services.errors import ErrorCode, failure
from users.services.serializers import serialize_user
from users.services.ticket_service import ticket_service


logger = logging.getLogger(__name__)


class UserService:

    @staticmethod
    def get_all_users(page=1, per_page=20, search=None, role=None, order_by='-created_at'):
        if role and role not in User.RoleChoices.values:
            return failure(ErrorCode.VALIDATION, f'Unknown role: {role}')

        queryset = User.objects.only(
            'id', 'first_name', 'last_name', 'email', 'role', 'created_at', 'last_login_at'
        )

        if search:
            queryset = queryset.filter(
                Q(email__icontains=search) |
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search)
            )

        if role:
            queryset = queryset.filter(role=role)

        queryset = queryset.order_by(order_by, '-id')

        paginator = Paginator(queryset, per_page)
        page_obj = paginator.get_page(page)

        return {
            'success': True,
            'users': [serialize_user(u) for u in page_obj.object_list],
            'pagination': {
                'current_page': page_obj.number,
                'total_pages': paginator.num_pages,
                'total_users': paginator.count,
                'per_page': per_page,
                'has_next': page_obj.has_next(),
                'has_previous': page_obj.has_previous()
            }
        }

    @staticmethod
    def get_user_by_id(user_id):
        user = User.objects.filter(id=user_id).first()
        if user is None:
            return failure(ErrorCode.NOT_FOUND, 'User not found')
        return {'success': True, 'user': serialize_user(user)}

    @staticmethod
    def update_user_role(admin_user, user_id, role):
        if role not in User.RoleChoices.values:
            return failure(ErrorCode.VALIDATION, 'Invalid role')

        try:
            with transaction.atomic():
                user = User.objects.select_for_update().filter(id=user_id).first()
                if user is None:
                    return failure(ErrorCode.NOT_FOUND, 'User not found')

                released = []
                if user.role == User.RoleChoices.AGENT and role != User.RoleChoices.AGENT:
                    released = ticket_service.release_agent_tickets(user, changed_by=admin_user)

                user.role = role
                user.save(update_fields=['role'])
        except DatabaseError:
            logger.exception('Failed to update role of user %s', user_id)
            return failure(ErrorCode.SERVER_ERROR, 'Something went wrong')

        logger.info('User %s role set to %s by admin %s', user_id, role, admin_user.id)
        return {
            'success': True,
            'user': serialize_user(user),
            'released_tickets': released,
            'message': f'User role updated to {role}'
        }

    @staticmethod
    def delete_user(admin_user, user_id):
        try:
            with transaction.atomic():
                user = User.objects.select_for_update().filter(id=user_id).first()
                if user is None:
                    return failure(ErrorCode.NOT_FOUND, 'User not found')

                owned_approved = list(
                    Ticket.objects.filter(owner=user, status=Ticket.TicketStatus.APPROVED).values_list('id', flat=True)
                )
                ticket_service.release_agent_tickets(user, changed_by=admin_user)
                user.delete()
        except DatabaseError:
            logger.exception('Failed to delete user %s', user_id)
            return failure(ErrorCode.SERVER_ERROR, 'Something went wrong')

        for ticket_id in owned_approved:
            ticket_service.auto_close.cancel(ticket_id)

        logger.info('User %s deleted by admin %s', user_id, admin_user.id)
        return {'success': True, 'message': 'User deleted successfully'}
