import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.http import JsonResponse

from core.errors import BadRequest, Forbidden, NotFound
from core.http import json_body, json_endpoint

from .auth import issue_token, require_auth
from .models import Role, User, phonenumber_validator

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('name', 'department', 'phonenumber', 'password')
UPDATABLE_FIELDS = ('name', 'department', 'phonenumber', 'password', 'role')
MIN_PASSWORD_LENGTH = 6


def _clean_text(data, field):
    value = str(data.get(field) or '').strip()
    if not value:
        raise BadRequest(f"{field} cannot be empty.")
    return value


def _clean_phonenumber(value):
    phone = str(value or '').strip()
    try:
        phonenumber_validator(phone)
    except ValidationError:
        raise BadRequest("Phone number must be exactly 10 digits.")
    return phone


def _clean_password(value):
    password = str(value or '')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return password


def _clean_role(value):
    if value in (None, ''):
        return Role.USER
    try:
        return Role(value)
    except ValueError:
        raise BadRequest("Role must be one of: " + ", ".join(Role.values) + ".")


def _save(user):
    # The unique index on phonenumber is the final word on duplicates
    try:
        with transaction.atomic():
            user.save()
    except IntegrityError:
        raise BadRequest("User already exists.")


def _create_user(data, allow_admin):
    missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
    if missing:
        raise BadRequest(
            "Name, department, phonenumber and password are required.",
            missing=missing,
        )

    role = _clean_role(data.get('role'))
    if role == Role.ADMIN and not allow_admin:
        raise Forbidden("Admin accounts can only be created by an admin.")

    phonenumber = _clean_phonenumber(data['phonenumber'])
    password = _clean_password(data['password'])
    if User.objects.filter(phonenumber=phonenumber).exists():
        raise BadRequest("User already exists.")

    user = User(
        name=_clean_text(data, 'name'),
        department=_clean_text(data, 'department'),
        phonenumber=phonenumber,
        role=role,
    )
    user.set_password(password)
    _save(user)
    return user


def _get_user(user_id):
    try:
        pk = int(user_id)
    except (TypeError, ValueError):
        raise BadRequest("Invalid user ID format.")
    user = User.objects.filter(pk=pk).first()
    if user is None:
        raise NotFound("User not found.")
    return user


@json_endpoint('POST')
def signup(request):
    user = _create_user(json_body(request), allow_admin=False)
    logger.info("User %s signed up", user.id)
    return JsonResponse(
        {'message': "User registered successfully.", 'user': user.to_dict()},
        status=201,
    )


@json_endpoint('POST')
def login(request):
    data = json_body(request)
    password = data.get('password')
    phonenumber = data.get('phonenumber')
    name = data.get('name')
    if not password or not (phonenumber or name):
        raise BadRequest("phonenumber (or name) and password are required.")

    if phonenumber:
        user = User.objects.filter(phonenumber=str(phonenumber).strip()).first()
    else:
        user = User.objects.filter(name=str(name).strip()).first()
    if user is None:
        raise BadRequest("User not found.")
    if not user.check_password(password):
        logger.info("Failed login for user %s", user.id)
        raise BadRequest("Invalid password.")

    return JsonResponse({
        'message': "Login successful.",
        'token': issue_token(user),
        'user': user.to_dict(),
    })


@json_endpoint('POST')
@require_auth(Role.ADMIN, message="Access denied. Only admins can create users.")
def create_user(request):
    user = _create_user(json_body(request), allow_admin=True)
    logger.info("Admin %s created user %s", request.caller.id, user.id)
    return JsonResponse(
        {'message': "User created successfully by admin.", 'user': user.to_dict()},
        status=201,
    )


@json_endpoint('GET')
@require_auth(Role.ADMIN, message="Access denied. Only admins can view users.")
def retrieve_users(request):
    users = [user.to_dict() for user in User.objects.all()]
    return JsonResponse({'count': len(users), 'users': users})


@json_endpoint('GET')
@require_auth(Role.ADMIN, message="Access denied. Only admins can view user details.")
def retrieve_user(request, user_id):
    return JsonResponse({'user': _get_user(user_id).to_dict()})


@json_endpoint('PUT')
@require_auth(Role.ADMIN, message="Access denied. Only admins can update users.")
def update_user(request, user_id):
    user = _get_user(user_id)
    data = json_body(request)
    updates = {field: data[field] for field in UPDATABLE_FIELDS if field in data}
    if not updates:
        raise BadRequest("Nothing to update. Allowed fields: " + ", ".join(UPDATABLE_FIELDS) + ".")

    if 'name' in updates:
        user.name = _clean_text(updates, 'name')
    if 'department' in updates:
        user.department = _clean_text(updates, 'department')
    if 'role' in updates:
        user.role = _clean_role(updates['role'])
    if 'password' in updates:
        user.set_password(_clean_password(updates['password']))
    if 'phonenumber' in updates:
        phonenumber = _clean_phonenumber(updates['phonenumber'])
        if User.objects.filter(phonenumber=phonenumber).exclude(pk=user.pk).exists():
            raise BadRequest("User already exists.")
        user.phonenumber = phonenumber

    _save(user)
    logger.info("Admin %s updated user %s (%s)", request.caller.id, user.id, ", ".join(updates))
    return JsonResponse({'message': "User updated successfully.", 'user': user.to_dict()})


@json_endpoint('DELETE')
@require_auth(Role.ADMIN, message="Access denied. Only admins can delete users.")
def delete_user(request, user_id):
    user = _get_user(user_id)
    deleted = user.to_dict()
    user.delete()
    logger.info("Admin %s deleted user %s", request.caller.id, deleted['id'])
    return JsonResponse({'message': "User deleted successfully.", 'deletedUser': deleted})
