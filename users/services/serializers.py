def _iso(value):
    return value.isoformat() if value else None


def serialize_user_summary(user, with_role=False):
    if user is None:
        return None
    data = {
        'id': user.id,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
    }
    if with_role:
        data['role'] = user.role
    return data


def serialize_user(user):
    return {
        'id': user.id,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'role': user.role,
        'created_at': _iso(user.created_at),
        'last_login_at': _iso(user.last_login_at),
    }


def serialize_message(message):
    return {
        'id': message.id,
        'ticket_id': message.ticket_id,
        'author': serialize_user_summary(message.author, with_role=True),
        'content': message.content,
        'created_at': _iso(message.created_at),
    }


def serialize_ticket(ticket, messages=None):
    data = {
        'id': ticket.id,
        'title': ticket.title,
        'description': ticket.description,
        'status': ticket.status,
        'owner': serialize_user_summary(ticket.owner),
        'agent': serialize_user_summary(ticket.agent),
        'created_at': _iso(ticket.created_at),
        'updated_at': _iso(ticket.updated_at),
        'solved_at': _iso(ticket.solved_at),
        'approved_at': _iso(ticket.approved_at),
        'closed_at': _iso(ticket.closed_at),
    }
    if messages is not None:
        data['messages'] = [serialize_message(m) for m in messages]
    return data
