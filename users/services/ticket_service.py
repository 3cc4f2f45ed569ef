import logging

from django.core.paginator import Paginator
from django.db import transaction, DatabaseError
from django.db.models import Prefetch
from django.utils import timezone
from users.models import Ticket, Message, TicketStatusHistory, User
from users.helpers.permissions import AccessPolicy
from .auto_close import AutoCloseScheduler
from .errors import ErrorCode, failure
from .serializers import serialize_ticket


logger = logging.getLogger(__name__)

Status = Ticket.TicketStatus


def clean_text(value):
    return value.strip() if isinstance(value, str) else ''


class TicketService:
    """Ticket lifecycle: PENDING -> ASSIGNED -> SOLVED -> APPROVED -> CLOSED."""

    def __init__(self):
        self.auto_close = AutoCloseScheduler(job=self.close_approved_ticket)

    def create_ticket(self, user, title, description):
        title = clean_text(title)
        description = clean_text(description)

        if not title or not description:
            return failure(ErrorCode.VALIDATION, 'Title and description are required')

        if not AccessPolicy.permits_role(user, 'ticket', 'create'):
            return failure(ErrorCode.FORBIDDEN, 'Only users can create tickets')

        try:
            with transaction.atomic():
                ticket = Ticket.objects.create(
                    title=title,
                    description=description,
                    owner=user,
                    status=Status.PENDING
                )
                self._record_status(ticket, '', Status.PENDING, user)
        except DatabaseError:
            logger.exception('Could not create ticket for user %s', user.id)
            return failure(ErrorCode.SERVER_ERROR, 'Could not create ticket')

        logger.info('Ticket %s created by user %s', ticket.id, user.id)
        return {
            'success': True,
            'message': 'Ticket created successfully',
            'ticket': serialize_ticket(ticket, messages=[])
        }

    def list_user_tickets(self, user, status=None):
        if status and status not in Status.values:
            return failure(ErrorCode.VALIDATION, f'Unknown status: {status}')

        queryset = self._with_thread(Ticket.objects.filter(owner=user))
        if status:
            queryset = queryset.filter(status=status)

        return {
            'success': True,
            'tickets': [serialize_ticket(t, messages=t.messages.all()) for t in queryset]
        }

    def list_agent_tickets(self, agent, status=None):
        if status and status not in Status.values:
            return failure(ErrorCode.VALIDATION, f'Unknown status: {status}')

        queryset = self._with_thread(Ticket.objects.filter(agent=agent))
        if status:
            queryset = queryset.filter(status=status)

        return {
            'success': True,
            'tickets': [serialize_ticket(t, messages=t.messages.all()) for t in queryset]
        }

    def list_all_tickets(self, page=1, per_page=20, status=None, agent_id=None, unassigned=False):
        if status and status not in Status.values:
            return failure(ErrorCode.VALIDATION, f'Unknown status: {status}')

        queryset = Ticket.objects.select_related('owner', 'agent')

        if status:
            queryset = queryset.filter(status=status)
        if agent_id:
            queryset = queryset.filter(agent_id=agent_id)
        if unassigned:
            queryset = queryset.filter(agent__isnull=True)

        paginator = Paginator(queryset.order_by('-created_at', '-id'), per_page)
        page_obj = paginator.get_page(page)

        return {
            'success': True,
            'tickets': [serialize_ticket(t) for t in page_obj.object_list],
            'pagination': {
                'current_page': page_obj.number,
                'total_pages': paginator.num_pages,
                'total_tickets': paginator.count,
                'per_page': per_page,
                'has_next': page_obj.has_next(),
                'has_previous': page_obj.has_previous()
            }
        }

    def get_ticket(self, user, ticket_id):
        ticket = self._with_thread(Ticket.objects.filter(id=ticket_id)).first()
        if ticket is None:
            return failure(ErrorCode.NOT_FOUND, 'Ticket not found')

        if not AccessPolicy.permits(user, 'ticket', 'view', ticket):
            return failure(ErrorCode.FORBIDDEN, 'You do not have permission to view this ticket')

        return {
            'success': True,
            'ticket': serialize_ticket(ticket, messages=ticket.messages.all())
        }

    def assign_ticket(self, admin_user, ticket_id, agent_id):
        try:
            with transaction.atomic():
                ticket = self._locked(ticket_id)
                if ticket is None:
                    return failure(ErrorCode.NOT_FOUND, 'Ticket not found')

                if not AccessPolicy.permits(admin_user, 'ticket', 'assign', ticket):
                    return failure(ErrorCode.FORBIDDEN, 'Admin access required')

                agent = User.objects.filter(id=agent_id).first()
                if agent is None:
                    return failure(ErrorCode.NOT_FOUND, 'Agent not found')

                if agent.role != User.RoleChoices.AGENT:
                    return failure(ErrorCode.VALIDATION, 'Tickets can only be assigned to agents')

                if ticket.status != Status.PENDING:
                    return failure(ErrorCode.INVALID_STATE, 'Only PENDING tickets can be assigned')

                ticket.agent = agent
                ticket.status = Status.ASSIGNED
                ticket.save(update_fields=['agent', 'status', 'updated_at'])
                self._record_status(ticket, Status.PENDING, Status.ASSIGNED, admin_user)
        except DatabaseError:
            logger.exception('Could not assign ticket %s', ticket_id)
            return failure(ErrorCode.SERVER_ERROR, 'Could not assign ticket')

        logger.info('Ticket %s assigned to agent %s by admin %s', ticket.id, agent.id, admin_user.id)
        return {
            'success': True,
            'message': f'Ticket assigned to {agent.full_name}',
            'ticket': serialize_ticket(ticket)
        }

    def unassign_ticket(self, admin_user, ticket_id):
        try:
            with transaction.atomic():
                ticket = self._locked(ticket_id)
                if ticket is None:
                    return failure(ErrorCode.NOT_FOUND, 'Ticket not found')

                if not AccessPolicy.permits(admin_user, 'ticket', 'unassign', ticket):
                    return failure(ErrorCode.FORBIDDEN, 'Admin access required')

                if ticket.status != Status.ASSIGNED:
                    return failure(ErrorCode.INVALID_STATE, 'Only ASSIGNED tickets can be unassigned')

                ticket.agent = None
                ticket.status = Status.PENDING
                ticket.save(update_fields=['agent', 'status', 'updated_at'])
                self._record_status(ticket, Status.ASSIGNED, Status.PENDING, admin_user)
        except DatabaseError:
            logger.exception('Could not unassign ticket %s', ticket_id)
            return failure(ErrorCode.SERVER_ERROR, 'Could not unassign ticket')

        logger.info('Ticket %s unassigned by admin %s', ticket.id, admin_user.id)
        return {
            'success': True,
            'message': 'Ticket unassigned',
            'ticket': serialize_ticket(ticket)
        }

    def update_status_by_agent(self, agent, ticket_id, new_status):
        if not AccessPolicy.permits_role(agent, 'ticket', 'solve'):
            return failure(ErrorCode.FORBIDDEN, 'Only agents can update ticket status')

        try:
            with transaction.atomic():
                ticket = self._locked(ticket_id)
                if ticket is None or not AccessPolicy.permits(agent, 'ticket', 'solve', ticket):
                    return failure(ErrorCode.NOT_FOUND, 'Ticket not found or not assigned to you')

                if ticket.status != Status.ASSIGNED:
                    return failure(ErrorCode.INVALID_STATE, 'Only ASSIGNED tickets can be updated')

                if new_status != Status.SOLVED:
                    return failure(ErrorCode.VALIDATION, 'Agents can only change status to SOLVED')

                ticket.status = Status.SOLVED
                ticket.solved_at = timezone.now()
                ticket.save(update_fields=['status', 'solved_at', 'updated_at'])
                self._record_status(ticket, Status.ASSIGNED, Status.SOLVED, agent)
        except DatabaseError:
            logger.exception('Failed to update ticket status %s', ticket_id)
            return failure(ErrorCode.SERVER_ERROR, 'Failed to update ticket status')

        logger.info('Ticket %s solved by agent %s', ticket.id, agent.id)
        return {
            'success': True,
            'message': 'Ticket marked as solved',
            'ticket': serialize_ticket(ticket)
        }

    def approve_ticket(self, user, ticket_id):
        try:
            with transaction.atomic():
                ticket = self._locked(ticket_id)
                if ticket is None:
                    return failure(ErrorCode.NOT_FOUND, 'Ticket not found')

                if not AccessPolicy.permits(user, 'ticket', 'approve', ticket):
                    return failure(ErrorCode.FORBIDDEN, 'Not authorized')

                if ticket.status != Status.SOLVED:
                    return failure(ErrorCode.INVALID_STATE, 'Only SOLVED tickets can be approved')

                ticket.status = Status.APPROVED
                ticket.approved_at = timezone.now()
                ticket.save(update_fields=['status', 'approved_at', 'updated_at'])
                self._record_status(ticket, Status.SOLVED, Status.APPROVED, user)

                close_at = self.auto_close.next_run_date()
                transaction.on_commit(lambda: self.auto_close.schedule(ticket.id, run_date=close_at))
        except DatabaseError:
            logger.exception('Could not approve ticket %s', ticket_id)
            return failure(ErrorCode.SERVER_ERROR, 'Could not update ticket')

        logger.info('Ticket %s approved by user %s', ticket.id, user.id)
        return {
            'success': True,
            'message': 'Ticket approved',
            'ticket': serialize_ticket(ticket),
            'auto_close_at': close_at.isoformat()
        }

    def delete_ticket(self, user, ticket_id):
        try:
            with transaction.atomic():
                ticket = self._locked(ticket_id)
                if ticket is None:
                    return failure(ErrorCode.NOT_FOUND, 'Ticket not found')

                if not AccessPolicy.permits(user, 'ticket', 'delete', ticket):
                    return failure(ErrorCode.FORBIDDEN, 'Not authorized')

                if user.role == User.RoleChoices.USER and ticket.status != Status.PENDING:
                    return failure(ErrorCode.INVALID_STATE, 'Only PENDING tickets can be deleted')

                ticket.delete()
        except DatabaseError:
            logger.exception('Could not delete ticket %s', ticket_id)
            return failure(ErrorCode.SERVER_ERROR, 'Could not delete ticket')

        self.auto_close.cancel(ticket_id)

        logger.info('Ticket %s deleted by user %s', ticket_id, user.id)
        return {'success': True, 'message': 'Ticket deleted successfully'}

    def close_approved_ticket(self, ticket_id):
        """Auto-close job. Only an APPROVED ticket that still exists is closed."""
        try:
            with transaction.atomic():
                ticket = self._locked(ticket_id)
                if ticket is None:
                    logger.info('Auto-close skipped, ticket %s no longer exists', ticket_id)
                    return False

                if ticket.status != Status.APPROVED:
                    logger.info('Auto-close skipped, ticket %s is %s', ticket_id, ticket.status)
                    return False

                ticket.status = Status.CLOSED
                ticket.closed_at = timezone.now()
                ticket.save(update_fields=['status', 'closed_at', 'updated_at'])
                self._record_status(ticket, Status.APPROVED, Status.CLOSED, None)
        except DatabaseError:
            logger.exception('Failed to auto-close ticket %s', ticket_id)
            return False

        logger.info('Ticket %s automatically closed', ticket_id)
        return True

    def release_agent_tickets(self, agent, changed_by):
        """Return every ASSIGNED ticket of ``agent`` to PENDING. Caller owns the transaction."""
        released = []
        for ticket in Ticket.objects.select_for_update().filter(agent=agent, status=Status.ASSIGNED):
            ticket.agent = None
            ticket.status = Status.PENDING
            ticket.save(update_fields=['agent', 'status', 'updated_at'])
            self._record_status(ticket, Status.ASSIGNED, Status.PENDING, changed_by)
            released.append(ticket.id)
        return released

    @staticmethod
    def _locked(ticket_id):
        return Ticket.objects.select_for_update().filter(id=ticket_id).first()

    @staticmethod
    def _with_thread(queryset):
        return queryset.select_related('owner', 'agent').prefetch_related(
            Prefetch('messages', queryset=Message.objects.select_related('author').order_by('created_at', 'id'))
        ).order_by('-created_at', '-id')

    @staticmethod
    def _record_status(ticket, from_status, to_status, changed_by):
        TicketStatusHistory.objects.create(
            ticket=ticket,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by
        )


ticket_service = TicketService()
