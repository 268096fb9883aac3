from django.http import JsonResponse

from accounts.auth import require_auth
from accounts.models import Role
from core.errors import BadRequest
from core.http import json_body, json_endpoint

from . import services
from .models import TrailLevel


@json_endpoint('POST')
@require_auth(Role.ADMIN, message="Access denied. Only admins can create trail.")
def trail_create(request):
    """Add one place to a level, creating the level on first use."""
    data = json_body(request)
    level_number = data.get('levelNumber')
    place = data.get('place')
    if not level_number or not place:
        raise BadRequest("levelNumber and place are required.")

    level = services.add_place(level_number, place)
    name = level.places[-1]['name']
    return JsonResponse({
        'message': f"Place '{name}' added to Level {level.level_number}.",
        'level': level.to_dict(),
    })


@json_endpoint('GET')
@require_auth(Role.ADMIN, message="Access denied. Only admins can retrieve trail.")
def trail_list(request):
    levels = [level.to_dict() for level in TrailLevel.objects.all()]
    return JsonResponse({'message': "All levels retrieved", 'levels': levels})


@json_endpoint('GET', 'PUT', 'DELETE')
@require_auth(Role.ADMIN, message="Access denied. Only admins can manage trail.")
def trail_detail(request, level_number):
    level_number = services.parse_level_number(level_number, check_range=False)

    if request.method == 'PUT':
        data = json_body(request)
        index = data.get('index')
        new_place = data.get('newPlace')
        if index is None or not new_place:
            raise BadRequest("You must send index and newPlace.")
        level = services.update_place(level_number, index, new_place)
        return JsonResponse({
            'message': f"Place at index {index} updated successfully",
            'level': level.to_dict(),
        })

    if request.method == 'DELETE':
        services.delete_level(level_number)
        return JsonResponse({'message': f"Level {level_number} deleted successfully"})

    level = services.get_level(level_number)
    return JsonResponse({'message': "Level retrieved successfully", 'level': level.to_dict()})
