from datetime import timedelta

import pytest
from django.utils import timezone
from users.models import Ticket, Message, TicketStatusHistory
from users.services.errors import ErrorCode
from users.services.message_service import MessageService
from users.services.ticket_service import ticket_service


Status = Ticket.TicketStatus

pytestmark = pytest.mark.django_db


def refreshed(ticket):
    ticket.refresh_from_db()
    return ticket


class TestCreate:

    def test_new_ticket_is_pending_without_agent(self, owner):
        result = ticket_service.create_ticket(owner, 'X', 'Y')

        assert result['success']
        ticket = Ticket.objects.get(id=result['ticket']['id'])
        assert ticket.status == Status.PENDING
        assert ticket.agent is None
        assert ticket.owner == owner
        assert result['ticket']['messages'] == []

    def test_title_and_description_are_trimmed_and_required(self, owner):
        result = ticket_service.create_ticket(owner, '   ', 'Y')

        assert result['error'] == ErrorCode.VALIDATION
        assert not Ticket.objects.exists()

        result = ticket_service.create_ticket(owner, '  X  ', '  Y ')
        assert result['ticket']['title'] == 'X'
        assert result['ticket']['description'] == 'Y'

    def test_non_string_input_is_rejected(self, owner):
        result = ticket_service.create_ticket(owner, 42, None)

        assert result['error'] == ErrorCode.VALIDATION

    @pytest.mark.parametrize('creator', ['agent', 'site_admin'])
    def test_only_users_create_tickets(self, request, creator):
        user = request.getfixturevalue(creator)

        result = ticket_service.create_ticket(user, 'X', 'Y')

        assert result['error'] == ErrorCode.FORBIDDEN

    def test_creation_is_recorded_in_history(self, owner):
        result = ticket_service.create_ticket(owner, 'X', 'Y')

        history = TicketStatusHistory.objects.get(ticket_id=result['ticket']['id'])
        assert history.from_status == ''
        assert history.to_status == Status.PENDING
        assert history.changed_by == owner


class TestAssign:

    def test_admin_assigns_pending_ticket_to_agent(self, site_admin, agent, owner, make_ticket):
        ticket = make_ticket(owner)

        result = ticket_service.assign_ticket(site_admin, ticket.id, agent.id)

        assert result['success']
        ticket = refreshed(ticket)
        assert ticket.status == Status.ASSIGNED
        assert ticket.agent == agent

    def test_assignment_to_non_agent_is_rejected(self, site_admin, other_user, owner, make_ticket):
        ticket = make_ticket(owner)

        result = ticket_service.assign_ticket(site_admin, ticket.id, other_user.id)

        assert result['error'] == ErrorCode.VALIDATION
        ticket = refreshed(ticket)
        assert ticket.status == Status.PENDING
        assert ticket.agent is None

    def test_assignment_to_admin_is_rejected(self, site_admin, owner, make_ticket):
        ticket = make_ticket(owner)

        result = ticket_service.assign_ticket(site_admin, ticket.id, site_admin.id)

        assert result['error'] == ErrorCode.VALIDATION

    def test_unknown_agent(self, site_admin, owner, make_ticket):
        ticket = make_ticket(owner)

        result = ticket_service.assign_ticket(site_admin, ticket.id, 987654)

        assert result['error'] == ErrorCode.NOT_FOUND

    def test_unknown_ticket(self, site_admin, agent):
        result = ticket_service.assign_ticket(site_admin, 987654, agent.id)

        assert result['error'] == ErrorCode.NOT_FOUND

    @pytest.mark.parametrize('status', [Status.ASSIGNED, Status.SOLVED, Status.APPROVED, Status.CLOSED])
    def test_only_pending_tickets_can_be_assigned(self, site_admin, agent, other_agent, owner, make_ticket, status):
        ticket = make_ticket(owner, status=status, agent=agent)

        result = ticket_service.assign_ticket(site_admin, ticket.id, other_agent.id)

        assert result['error'] == ErrorCode.INVALID_STATE
        assert refreshed(ticket).agent == agent

    def test_non_admin_cannot_assign(self, agent, owner, make_ticket):
        ticket = make_ticket(owner)

        result = ticket_service.assign_ticket(agent, ticket.id, agent.id)

        assert result['error'] == ErrorCode.FORBIDDEN
        assert refreshed(ticket).status == Status.PENDING


class TestUnassign:

    def test_unassign_clears_agent_and_returns_to_pending(self, site_admin, agent, owner, make_ticket):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        result = ticket_service.unassign_ticket(site_admin, ticket.id)

        assert result['success']
        ticket = refreshed(ticket)
        assert ticket.status == Status.PENDING
        assert ticket.agent is None

    @pytest.mark.parametrize('status', [Status.PENDING, Status.SOLVED, Status.APPROVED])
    def test_only_assigned_tickets_can_be_unassigned(self, site_admin, agent, owner, make_ticket, status):
        ticket = make_ticket(owner, status=status, agent=agent if status != Status.PENDING else None)

        result = ticket_service.unassign_ticket(site_admin, ticket.id)

        assert result['error'] == ErrorCode.INVALID_STATE


class TestSolve:

    def test_assigned_agent_solves(self, agent, owner, make_ticket):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        result = ticket_service.update_status_by_agent(agent, ticket.id, 'SOLVED')

        assert result['success']
        ticket = refreshed(ticket)
        assert ticket.status == Status.SOLVED
        assert ticket.solved_at is not None
        assert ticket.agent == agent

    def test_other_agent_gets_not_found(self, agent, other_agent, owner, make_ticket):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        result = ticket_service.update_status_by_agent(other_agent, ticket.id, 'SOLVED')

        assert result['error'] == ErrorCode.NOT_FOUND
        assert result['message'] == 'Ticket not found or not assigned to you'
        assert refreshed(ticket).status == Status.ASSIGNED

    @pytest.mark.parametrize('caller', ['owner', 'site_admin'])
    def test_non_agents_are_forbidden(self, request, agent, owner, make_ticket, caller):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        result = ticket_service.update_status_by_agent(request.getfixturevalue(caller), ticket.id, 'SOLVED')

        assert result['error'] == ErrorCode.FORBIDDEN
        assert refreshed(ticket).status == Status.ASSIGNED

    def test_agent_can_only_set_solved(self, agent, owner, make_ticket):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        result = ticket_service.update_status_by_agent(agent, ticket.id, 'CLOSED')

        assert result['error'] == ErrorCode.VALIDATION
        assert refreshed(ticket).status == Status.ASSIGNED

    @pytest.mark.parametrize('status', [Status.SOLVED, Status.APPROVED, Status.CLOSED])
    def test_ticket_must_be_assigned(self, agent, owner, make_ticket, status):
        ticket = make_ticket(owner, status=status, agent=agent)

        result = ticket_service.update_status_by_agent(agent, ticket.id, 'SOLVED')

        assert result['error'] == ErrorCode.INVALID_STATE
        assert refreshed(ticket).status == status


class TestApprove:

    def test_owner_approves_solved_ticket(self, agent, owner, make_ticket, django_capture_on_commit_callbacks):
        ticket = make_ticket(owner, status=Status.SOLVED, agent=agent)

        with django_capture_on_commit_callbacks(execute=True):
            result = ticket_service.approve_ticket(owner, ticket.id)

        assert result['success']
        ticket = refreshed(ticket)
        assert ticket.status == Status.APPROVED
        assert ticket.approved_at is not None
        assert ticket_service.auto_close.is_scheduled(ticket.id)
        assert ticket_service.auto_close.run_date(ticket.id).isoformat() == result['auto_close_at']

    def test_auto_close_waits_for_commit(self, agent, owner, make_ticket, django_capture_on_commit_callbacks):
        ticket = make_ticket(owner, status=Status.SOLVED, agent=agent)

        with django_capture_on_commit_callbacks() as callbacks:
            ticket_service.approve_ticket(owner, ticket.id)
            assert not ticket_service.auto_close.is_scheduled(ticket.id)

        assert len(callbacks) == 1
        assert not ticket_service.auto_close.is_scheduled(ticket.id)

        callbacks[0]()
        assert ticket_service.auto_close.is_scheduled(ticket.id)

    def test_non_owner_is_forbidden(self, agent, owner, other_user, make_ticket):
        ticket = make_ticket(owner, status=Status.SOLVED, agent=agent)

        result = ticket_service.approve_ticket(other_user, ticket.id)

        assert result['error'] == ErrorCode.FORBIDDEN
        assert refreshed(ticket).status == Status.SOLVED
        assert not ticket_service.auto_close.is_scheduled(ticket.id)

    def test_agent_cannot_approve(self, agent, owner, make_ticket):
        ticket = make_ticket(owner, status=Status.SOLVED, agent=agent)

        result = ticket_service.approve_ticket(agent, ticket.id)

        assert result['error'] == ErrorCode.FORBIDDEN

    @pytest.mark.parametrize('status', [Status.PENDING, Status.ASSIGNED, Status.APPROVED, Status.CLOSED])
    def test_ticket_must_be_solved(self, agent, owner, make_ticket, status):
        ticket = make_ticket(owner, status=status, agent=None if status == Status.PENDING else agent)

        result = ticket_service.approve_ticket(owner, ticket.id)

        assert result['error'] == ErrorCode.INVALID_STATE
        assert refreshed(ticket).status == status

    def test_missing_ticket(self, owner):
        assert ticket_service.approve_ticket(owner, 987654)['error'] == ErrorCode.NOT_FOUND


class TestDelete:

    def test_owner_deletes_pending_ticket_and_its_messages(self, owner, make_ticket):
        ticket = make_ticket(owner)
        MessageService.add_message(owner, ticket.id, 'hello')

        result = ticket_service.delete_ticket(owner, ticket.id)

        assert result['success']
        assert not Ticket.objects.filter(id=ticket.id).exists()
        assert not Message.objects.filter(ticket_id=ticket.id).exists()
        assert not TicketStatusHistory.objects.filter(ticket_id=ticket.id).exists()

    def test_owner_cannot_delete_after_pending(self, agent, owner, make_ticket):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        result = ticket_service.delete_ticket(owner, ticket.id)

        assert result['error'] == ErrorCode.INVALID_STATE
        assert Ticket.objects.filter(id=ticket.id).exists()

    def test_other_user_cannot_delete(self, owner, other_user, make_ticket):
        ticket = make_ticket(owner)

        result = ticket_service.delete_ticket(other_user, ticket.id)

        assert result['error'] == ErrorCode.FORBIDDEN

    def test_agent_cannot_delete(self, agent, owner, make_ticket):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        assert ticket_service.delete_ticket(agent, ticket.id)['error'] == ErrorCode.FORBIDDEN

    def test_admin_deletes_any_ticket_and_cancels_auto_close(
            self, site_admin, agent, owner, make_ticket, django_capture_on_commit_callbacks):
        ticket = make_ticket(owner, status=Status.SOLVED, agent=agent)
        MessageService.add_message(agent, ticket.id, 'fixed')
        with django_capture_on_commit_callbacks(execute=True):
            ticket_service.approve_ticket(owner, ticket.id)
        assert ticket_service.auto_close.is_scheduled(ticket.id)

        result = ticket_service.delete_ticket(site_admin, ticket.id)

        assert result['success']
        assert not ticket_service.auto_close.is_scheduled(ticket.id)
        assert not Message.objects.filter(ticket_id=ticket.id).exists()


class TestListing:

    def test_user_sees_only_own_tickets_newest_first(self, owner, other_user, make_ticket):
        first = make_ticket(owner, title='first')
        second = make_ticket(owner, title='second')
        make_ticket(other_user, title='not mine')
        Ticket.objects.filter(id=first.id).update(created_at=timezone.now() - timedelta(hours=1))

        result = ticket_service.list_user_tickets(owner)

        assert [t['id'] for t in result['tickets']] == [second.id, first.id]

    def test_agent_sees_assigned_tickets_with_thread(self, agent, other_agent, owner, make_ticket):
        mine = make_ticket(owner, status=Status.ASSIGNED, agent=agent)
        make_ticket(owner, status=Status.ASSIGNED, agent=other_agent)
        MessageService.add_message(owner, mine.id, 'first')
        MessageService.add_message(agent, mine.id, 'second')

        result = ticket_service.list_agent_tickets(agent)

        assert [t['id'] for t in result['tickets']] == [mine.id]
        assert [m['content'] for m in result['tickets'][0]['messages']] == ['first', 'second']

    def test_admin_listing_filters_and_paginates(self, agent, owner, make_ticket):
        for _ in range(3):
            make_ticket(owner)
        make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        result = ticket_service.list_all_tickets(page=1, per_page=2, status='PENDING')

        assert result['pagination']['total_tickets'] == 3
        assert result['pagination']['total_pages'] == 2
        assert len(result['tickets']) == 2

        unassigned = ticket_service.list_all_tickets(unassigned=True)
        assert unassigned['pagination']['total_tickets'] == 3

        by_agent = ticket_service.list_all_tickets(agent_id=agent.id)
        assert by_agent['tickets'][0]['agent']['id'] == agent.id

    def test_unknown_status_filter(self, owner):
        assert ticket_service.list_user_tickets(owner, status='OPEN')['error'] == ErrorCode.VALIDATION

    def test_ticket_detail_visibility(self, site_admin, agent, other_agent, owner, other_user, make_ticket):
        ticket = make_ticket(owner, status=Status.ASSIGNED, agent=agent)

        assert ticket_service.get_ticket(owner, ticket.id)['success']
        assert ticket_service.get_ticket(agent, ticket.id)['success']
        assert ticket_service.get_ticket(site_admin, ticket.id)['success']
        assert ticket_service.get_ticket(other_agent, ticket.id)['error'] == ErrorCode.FORBIDDEN
        assert ticket_service.get_ticket(other_user, ticket.id)['error'] == ErrorCode.FORBIDDEN


def test_full_lifecycle(site_admin, agent, other_agent, owner, django_capture_on_commit_callbacks):
    created = ticket_service.create_ticket(owner, 'X', 'Y')
    ticket_id = created['ticket']['id']
    assert created['ticket']['status'] == 'PENDING'
    assert created['ticket']['agent'] is None

    assigned = ticket_service.assign_ticket(site_admin, ticket_id, agent.id)
    assert assigned['ticket']['status'] == 'ASSIGNED'
    assert assigned['ticket']['agent']['id'] == agent.id

    intruder = ticket_service.update_status_by_agent(other_agent, ticket_id, 'SOLVED')
    assert intruder['error'] == ErrorCode.NOT_FOUND

    solved = ticket_service.update_status_by_agent(agent, ticket_id, 'SOLVED')
    assert solved['ticket']['status'] == 'SOLVED'

    with django_capture_on_commit_callbacks(execute=True):
        approved = ticket_service.approve_ticket(owner, ticket_id)
    assert approved['ticket']['status'] == 'APPROVED'
    assert ticket_service.auto_close.is_scheduled(ticket_id)

    assert ticket_service.close_approved_ticket(ticket_id)
    assert Ticket.objects.get(id=ticket_id).status == Status.CLOSED

    transitions = list(
        TicketStatusHistory.objects.filter(ticket_id=ticket_id).values_list('from_status', 'to_status')
    )
    assert transitions == [
        ('', 'PENDING'),
        ('PENDING', 'ASSIGNED'),
        ('ASSIGNED', 'SOLVED'),
        ('SOLVED', 'APPROVED'),
        ('APPROVED', 'CLOSED'),
    ]
