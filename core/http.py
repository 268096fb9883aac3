import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from .errors import ApiError, BadRequest

logger = logging.getLogger(__name__)


def json_body(request):
    """Decoded JSON object from the request body, ``{}`` when empty."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("Request body must be valid JSON.")
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object.")
    return data


def json_number(value):
    """``value`` as an int or float, parsing numeric strings. ``None`` for anything else, bools included."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return None
    return None


def whole_number(value):
    """``value`` as an int when it is a whole number, else ``None``. ``1.0`` counts, ``1.5`` does not."""
    number = json_number(value)
    if isinstance(number, float):
        return int(number) if number.is_integer() else None
    return number


def json_endpoint(*methods):
    """Wrap a view so that it only answers ``methods`` and always answers JSON.

    ``ApiError`` subclasses become their own status code; anything else is
    logged and reported as a 500 with the exception text.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if methods and request.method not in methods:
                response = JsonResponse(
                    {'message': f"Method {request.method} not allowed."}, status=405
                )
                response['Allow'] = ', '.join(methods)
                return response
            try:
                return view(request, *args, **kwargs)
            except ApiError as exc:
                return JsonResponse(exc.as_dict(), status=exc.status)
            except Exception as exc:
                logger.exception("Unhandled error in %s", view.__name__)
                return JsonResponse({'message': 'Server Error', 'error': str(exc)}, status=500)

        return csrf_exempt(wrapper)

    return decorator


def not_found(request, exception=None):
    return JsonResponse({'message': 'Not Found'}, status=404)


def server_error(request):
    return JsonResponse({'message': 'Server Error'}, status=500)
