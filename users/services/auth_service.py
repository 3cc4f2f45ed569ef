import logging
import secrets
from datetime import datetime, timedelta, timezone as dt_timezone

import jwt
from django.conf import settings
from django.contrib.auth.hashers import make_password, check_password
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction, DatabaseError
from django.utils import timezone
from ..models import User, Session
from .errors import ErrorCode, failure


logger = logging.getLogger(__name__)


class AuthService:
    JWT_ALGORITHM = 'HS256'

    @classmethod
    def _secret(cls):
        return getattr(settings, 'JWT_SECRET_KEY', settings.SECRET_KEY)

    @classmethod
    def _expiry_seconds(cls):
        return getattr(settings, 'JWT_EXPIRY_SECONDS', 3600)

    @classmethod
    def register(cls, first_name, last_name, email, password, ip_address=None, user_agent='Unknown'):
        email = email.strip().lower()
        try:
            validate_email(email)
        except ValidationError:
            return failure(ErrorCode.VALIDATION, 'Invalid email address')

        min_length = getattr(settings, 'PASSWORD_MIN_LENGTH', 6)
        if len(password) < min_length:
            return failure(ErrorCode.VALIDATION, f'Password must be at least {min_length} characters')

        try:
            with transaction.atomic():
                if User.objects.filter(email=email).exists():
                    return failure(ErrorCode.CONFLICT, 'User already exists')

                user = User.objects.create(
                    first_name=first_name.strip(),
                    last_name=last_name.strip(),
                    email=email,
                    password=make_password(password),
                    role=User.RoleChoices.USER,
                    last_login_at=timezone.now()
                )
                token = cls._open_session(user, ip_address, user_agent)
        except DatabaseError:
            logger.exception('Registration failed for %s', email)
            return failure(ErrorCode.SERVER_ERROR, 'Something went wrong')

        logger.info('Registered user %s', user.id)
        return {'success': True, 'user': user, 'token': token, 'message': 'User registered OK'}

    @classmethod
    def login(cls, email, password, ip_address=None, user_agent='Unknown'):
        email = email.strip().lower()
        try:
            with transaction.atomic():
                user = User.objects.filter(email=email).first()

                if user is None or not check_password(password, user.password):
                    logger.warning('Failed login attempt for %s', email)
                    return failure(ErrorCode.UNAUTHORIZED, 'Invalid credentials')

                Session.objects.filter(user=user).delete()
                token = cls._open_session(user, ip_address, user_agent)

                user.last_login_at = timezone.now()
                user.save(update_fields=['last_login_at'])
        except DatabaseError:
            logger.exception('Login failed for %s', email)
            return failure(ErrorCode.SERVER_ERROR, 'Something went wrong')

        return {'success': True, 'token': token, 'user': user, 'message': 'Login successful'}

    @classmethod
    def logout(cls, token):
        user = cls._verify_token(token)
        if not user:
            return failure(ErrorCode.UNAUTHORIZED, 'Invalid token')

        Session.objects.filter(user=user).delete()
        return {'success': True, 'message': 'Logged out successfully'}

    @classmethod
    def issue_token(cls, user, ip_address=None, user_agent='Unknown'):
        """Open a fresh session for ``user`` and return its signed token."""
        with transaction.atomic():
            return cls._open_session(user, ip_address, user_agent)

    @classmethod
    def get_user_from_token(cls, token):
        return cls._verify_token(token)

    @classmethod
    def _open_session(cls, user, ip_address, user_agent):
        token_id = secrets.token_hex(16)
        Session.objects.create(
            user=user,
            token_id=token_id,
            ip_address=ip_address,
            user_agent=user_agent
        )
        return cls._generate_token(user, token_id)

    @classmethod
    def _generate_token(cls, user, token_id):
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': user.id,
            'role': user.role,
            'jti': token_id,
            'exp': now + timedelta(seconds=cls._expiry_seconds()),
            'iat': now
        }
        return jwt.encode(payload, cls._secret(), algorithm=cls.JWT_ALGORITHM)

    @classmethod
    def _verify_token(cls, token):
        if not token:
            return None
        try:
            payload = jwt.decode(token, cls._secret(), algorithms=[cls.JWT_ALGORITHM])
        except jwt.InvalidTokenError:
            return None

        user_id = payload.get('user_id')
        token_id = payload.get('jti')
        if user_id is None or not token_id:
            return None

        if not Session.objects.filter(user_id=user_id, token_id=token_id).exists():
            return None

        return User.objects.only(
            'id', 'email', 'role', 'first_name', 'last_name'
        ).filter(id=user_id).first()
