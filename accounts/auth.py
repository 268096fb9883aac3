"""Bearer tokens and the per-route access gate."""
import logging
from dataclasses import dataclass
from functools import wraps

from django.conf import settings
from django.utils import timezone
from jose import JWTError, jwt

from core.errors import Forbidden, NotFound, Unauthorized

from .models import Role, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Identity attached to an authenticated request."""
    id: int
    role: Role

    @property
    def is_admin(self):
        return self.role == Role.ADMIN


def issue_token(user):
    expire = timezone.now() + settings.JWT_EXPIRES_IN
    claims = {'userId': user.id, 'role': str(user.role), 'exp': expire}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token):
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.info("Token verification failed: %s", exc)
        raise Unauthorized("Invalid or expired token.")
    if 'userId' not in claims:
        raise Unauthorized("Invalid or expired token.")
    return claims


def bearer_token(request):
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    token = token.strip()
    if scheme.lower() != 'bearer' or not token:
        raise Unauthorized("Access denied. No token provided.")
    return token


def is_authorized(role, allowed):
    """Whether ``role`` may reach an endpoint open to the ``allowed`` roles."""
    if role == Role.ADMIN:
        return Role.ADMIN in allowed
    if role == Role.USER:
        return Role.USER in allowed
    raise ValueError(f"Unknown role {role!r}")


def authenticate(request):
    """Resolve the bearer token of ``request`` to a stored user."""
    claims = decode_token(bearer_token(request))
    user = User.objects.filter(pk=claims['userId']).first()
    if user is None:
        raise NotFound("User not found.")
    return user


def require_auth(*roles, message="Access denied."):
    """Gate a view behind a valid token, and behind ``roles`` when given.

    The caller is stored on ``request.caller``. Must sit inside
    ``json_endpoint`` so the raised errors become JSON responses.
    """
    allowed = frozenset(roles) if roles else frozenset(Role)

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            user = authenticate(request)
            role = Role(user.role)
            if not is_authorized(role, allowed):
                raise Forbidden(message)
            request.caller = Caller(id=user.id, role=role)
            return view(request, *args, **kwargs)

        return wrapper

    return decorator
