from django.http import HttpResponse, JsonResponse

from accounts.auth import require_auth
from accounts.models import Role
from core.errors import BadRequest, Forbidden, NotFound
from core.http import json_body, json_endpoint, whole_number
from trail.models import TrailLevel

from . import qr, services
from .events import get_publisher
from .models import Progress


def _player_id_for(caller, raw_player_id):
    """Players only drive their own game; admins may drive anyone's."""
    player_id = services.parse_player_id(raw_player_id)
    if not caller.is_admin and caller.id != player_id:
        raise Forbidden("Access denied. You can only play your own game.")
    return player_id


@json_endpoint('POST')
@require_auth(Role.ADMIN, message="Access denied. Only admins can generate QR codes.")
def generate_qr(request):
    data = json_body(request)
    level_number = data.get('levelNumber')
    place = data.get('place')
    if not level_number or not place:
        raise BadRequest("levelNumber and place are required.")
    level_number = whole_number(level_number)
    if level_number is None:
        raise BadRequest("levelNumber must be a whole number.")

    level = TrailLevel.objects.filter(level_number=level_number).first()
    if level is None:
        raise NotFound(f"Level {level_number} not found in database.")
    if level.find_place(place) is None:
        raise BadRequest(f"Place '{place}' does NOT exist in Level {level_number}.")

    return JsonResponse({
        'message': "QR generated successfully",
        'levelNumber': level_number,
        'place': place,
        'qrCode': qr.qr_data_url(qr.qr_payload(level_number, place)),
    })


@json_endpoint('GET')
@require_auth(Role.ADMIN, message="Access denied. Only admins can print QR codes.")
def qr_sheet(request):
    """Printable PDF with the QR code of every place of the trail."""
    levels = list(TrailLevel.objects.all())
    if not any(level.places for level in levels):
        raise NotFound("No trail levels found")

    response = HttpResponse(content_type='application/pdf')
    response['Content-Disposition'] = 'attachment; filename="trail_qr_codes.pdf"'
    qr.draw_qr_sheet(response, levels)
    return response


@json_endpoint('POST')
@require_auth()
def start_game(request, player_id):
    player_id = _player_id_for(request.caller, player_id)
    result = services.start_game(player_id, get_publisher())
    progress = result.progress
    return JsonResponse({
        'message': "Resuming your game..." if result.resumed else "Game Started!",
        'nextTarget': result.next_target,
        'progressId': progress.id,
        'placeIndex': progress.place_index,
        'totalLevels': len(progress.path),
    })


@json_endpoint('POST')
@require_auth()
def verify_qr(request, player_id):
    player_id = _player_id_for(request.caller, player_id)
    data = json_body(request)
    result = services.verify_qr(player_id, data.get('levelNumber'), data.get('place'), get_publisher())
    progress = result.progress

    if result.completed:
        return JsonResponse({
            'message': "Congratulations! You finished all levels!",
            'totalLevels': len(progress.path),
            'finalTime': progress.end_time.isoformat(),
            'totalSeconds': progress.total_seconds,
        })

    return JsonResponse({
        'message': "Correct! Go to next location!",
        'nextTarget': result.next_target,
        'placeIndex': progress.place_index,
        'currentLevelNumber': progress.current_level_number,
    })


@json_endpoint('GET')
@require_auth(Role.ADMIN, message="Access denied. Only admins can view player progress.")
def players_progress(request):
    records = (
        Progress.objects.select_related('player')
        .prefetch_related('checkpoints')
        .order_by('start_time')
    )
    players = [services.progress_summary(progress, list(progress.checkpoints.all())) for progress in records]
    return JsonResponse({'message': "All Players Progress", 'count': len(players), 'players': players})


@json_endpoint('GET')
@require_auth(Role.ADMIN, message="Access denied. Only admins can view player progress.")
def player_progress(request, player_id):
    player_id = services.parse_player_id(player_id)
    progress = Progress.objects.select_related('player').filter(player_id=player_id).first()
    if progress is None:
        raise NotFound("Player not found or game not started")
    return JsonResponse({'message': "Player Full Details", 'progress': services.progress_summary(progress)})
