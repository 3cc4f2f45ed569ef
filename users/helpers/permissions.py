"""Authorization rules for every state-changing and reading operation.

Each ``(resource, action)`` pair maps the roles allowed to perform it to an
optional ownership predicate. A role missing from the mapping is rejected;
there is no role hierarchy, so ADMIN only gets through where it is listed.
"""
from functools import wraps

from users.models import User
from users.services.auth_service import AuthService
from .request import get_token_from_request
from .response import APIResponse


ADMIN = User.RoleChoices.ADMIN
AGENT = User.RoleChoices.AGENT
USER = User.RoleChoices.USER


def is_ticket_owner(user, ticket):
    return ticket.owner_id == user.id


def is_assigned_agent(user, ticket):
    return ticket.agent_id is not None and ticket.agent_id == user.id


POLICIES = {
    ('user', 'list'): {ADMIN: None},
    ('user', 'view'): {ADMIN: None},
    ('user', 'change_role'): {ADMIN: None},
    ('user', 'delete'): {ADMIN: None},

    ('ticket', 'create'): {USER: None},
    ('ticket', 'list_own'): {USER: None},
    ('ticket', 'list_assigned'): {AGENT: None},
    ('ticket', 'list_all'): {ADMIN: None},
    ('ticket', 'view'): {ADMIN: None, AGENT: is_assigned_agent, USER: is_ticket_owner},
    ('ticket', 'assign'): {ADMIN: None},
    ('ticket', 'unassign'): {ADMIN: None},
    ('ticket', 'solve'): {AGENT: is_assigned_agent},
    ('ticket', 'approve'): {USER: is_ticket_owner},
    ('ticket', 'delete'): {ADMIN: None, USER: is_ticket_owner},

    ('message', 'create'): {AGENT: is_assigned_agent, USER: is_ticket_owner},
    ('message', 'list'): {ADMIN: None, AGENT: is_assigned_agent, USER: is_ticket_owner},

    # Route gates. Services re-check ticket.delete and message.create/list.
    ('ticket', 'delete_own'): {USER: is_ticket_owner},
    ('ticket', 'delete_any'): {ADMIN: None},
    ('message', 'agent_thread'): {AGENT: is_assigned_agent},
}


class RoleGate:

    @staticmethod
    def allows(role, permitted_roles):
        return role in permitted_roles


class AccessPolicy:

    @staticmethod
    def rules_for(resource, action):
        try:
            return POLICIES[(resource, action)]
        except KeyError:
            raise LookupError(f'No access policy for {resource}.{action}')

    @classmethod
    def permitted_roles(cls, resource, action):
        return frozenset(cls.rules_for(resource, action))

    @classmethod
    def permits_role(cls, user, resource, action):
        return RoleGate.allows(user.role, cls.permitted_roles(resource, action))

    @classmethod
    def permits(cls, user, resource, action, obj):
        """Role gate plus the ownership predicate registered for the caller's role."""
        rules = cls.rules_for(resource, action)
        if not RoleGate.allows(user.role, rules):
            return False
        predicate = rules[user.role]
        return predicate is None or predicate(user, obj)


def _authenticate(request):
    token = get_token_from_request(request)
    if not token:
        return None, APIResponse.unauthorized(message='Token not provided')

    user = AuthService.get_user_from_token(token)
    if not user:
        return None, APIResponse.unauthorized(message='Invalid or expired token')

    return user, None


def user_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        user, error = _authenticate(request)
        if error:
            return error

        request.user = user
        return view_func(request, *args, **kwargs)
    return wrapper


def role_required(resource, action):
    AccessPolicy.rules_for(resource, action)

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user, error = _authenticate(request)
            if error:
                return error

            if not AccessPolicy.permits_role(user, resource, action):
                return APIResponse.forbidden(message='Forbidden')

            request.user = user
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
