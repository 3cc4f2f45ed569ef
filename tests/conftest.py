import pytest
from django.conf import settings as django_settings
from django.contrib.auth.hashers import make_password
from django.test import Client
from users.models import User, Ticket
from users.services.auth_service import AuthService
from users.services.ticket_service import ticket_service


PASSWORD = 'secret123'


@pytest.fixture(autouse=True)
def helpdesk_settings(settings):
    settings.TICKET_AUTO_CLOSE_AUTOSTART = False
    settings.TICKET_AUTO_CLOSE_SECONDS = 30
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    yield settings
    ticket_service.auto_close.clear()


@pytest.fixture
def make_user(db):
    def _make(email, role=User.RoleChoices.USER, first_name='Test', last_name='User'):
        return User.objects.create(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password=make_password(PASSWORD),
            role=role
        )
    return _make


@pytest.fixture
def site_admin(make_user):
    return make_user('admin@example.com', role=User.RoleChoices.ADMIN, first_name='Ada')


@pytest.fixture
def agent(make_user):
    return make_user('agent@example.com', role=User.RoleChoices.AGENT, first_name='Bob')


@pytest.fixture
def other_agent(make_user):
    return make_user('agent2@example.com', role=User.RoleChoices.AGENT, first_name='Cleo')


@pytest.fixture
def owner(make_user):
    return make_user('owner@example.com', first_name='Alice')


@pytest.fixture
def other_user(make_user):
    return make_user('someone@example.com', first_name='Dan')


@pytest.fixture
def client_for(db):
    def _client(user):
        client = Client()
        client.cookies[django_settings.AUTH_COOKIE_NAME] = AuthService.issue_token(user)
        return client
    return _client


@pytest.fixture
def make_ticket(db):
    def _make(owner, status=Ticket.TicketStatus.PENDING, agent=None, title='Printer on fire', description='Third floor'):
        return Ticket.objects.create(
            title=title,
            description=description,
            owner=owner,
            agent=agent,
            status=status
        )
    return _make
