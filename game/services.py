"""Progress engine: start, resume, QR verification and completion.

A player is in one of three states: no game (no ``Progress`` row), in progress,
or completed. Every transition re-reads the ``Progress`` row under
``select_for_update`` so two scans for the same player are applied one after
the other.
"""
import logging
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.models import User
from core.errors import BadRequest, Forbidden, NotFound
from core.http import json_number, whole_number
from trail.models import TrailLevel

from . import events
from .models import Checkpoint, Progress, public_target

logger = logging.getLogger(__name__)


class WrongPlace(BadRequest):
    pass


class GameCompleted(BadRequest):
    pass


@dataclass
class GameStart:
    progress: Progress
    resumed: bool

    @property
    def next_target(self):
        return public_target(self.progress.current_target())


@dataclass
class ScanResult:
    progress: Progress
    checkpoint: Checkpoint

    @property
    def completed(self):
        return self.progress.completed

    @property
    def next_target(self):
        return public_target(self.progress.current_target())


def parse_player_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest("Invalid player ID format.")


def build_path(levels: List[TrailLevel], choose: Optional[Callable] = None) -> List[dict]:
    """Pick one place per level, in level order. Levels without places are skipped."""
    choose = choose or random.choice
    path = []
    for level in sorted(levels, key=lambda lvl: lvl.level_number):
        if not level.places:
            continue
        place = choose(level.places)
        path.append({
            'levelNumber': level.level_number,
            'name': place['name'],
            'answer': place.get('answer') or place['name'],
            'image': place.get('image') or None,
        })
    return path


def start_game(player_id, publisher: events.EventPublisher, choose: Optional[Callable] = None) -> GameStart:
    """Start a game for ``player_id``, or resume the one already running."""
    player = User.objects.filter(pk=player_id).first()
    if player is None:
        raise NotFound("User not found")
    if player.is_admin:
        raise Forbidden("Admins cannot play the game.")

    with transaction.atomic():
        progress = Progress.objects.select_for_update().filter(player=player).first()
        if progress is not None:
            if progress.completed:
                raise GameCompleted("Game already completed.")
            return GameStart(progress=progress, resumed=True)

        path = build_path(list(TrailLevel.objects.all()), choose)
        if not path:
            raise NotFound("No trail levels found")

        try:
            with transaction.atomic():
                progress = Progress.objects.create(
                    player=player,
                    path=path,
                    place_index=0,
                    current_level_number=1,
                    start_time=timezone.now(),
                    end_time=None,
                )
        except IntegrityError:
            # Another request created the game first: resume it
            progress = Progress.objects.select_for_update().get(player=player)
            return GameStart(progress=progress, resumed=True)

    logger.info("Player %s started a game over %s levels", player.id, len(path))
    publisher.publish(events.GAME_STARTED, {
        'playerId': player.id,
        'progressId': progress.id,
        'totalLevels': len(path),
        'startTime': progress.start_time,
    })
    return GameStart(progress=progress, resumed=False)


def _last_scan_time(progress):
    last = progress.checkpoints.order_by('-scanned_at', '-id').first()
    return last.scanned_at if last else progress.start_time


def verify_qr(player_id, level_number, place, publisher: events.EventPublisher) -> ScanResult:
    """Check a scanned ``(level_number, place)`` against the player's current target.

    A match logs a checkpoint and moves the cursor; the last match completes the
    game. A mismatch raises ``WrongPlace`` and changes nothing.
    """
    if level_number in (None, '') or not place:
        raise BadRequest("levelNumber and place are required.")
    if json_number(level_number) is None:
        raise BadRequest("levelNumber must be a number.")
    # A fractional level number is a number but matches no level
    level_number = whole_number(level_number)

    with transaction.atomic():
        progress = Progress.objects.select_for_update().filter(player_id=player_id).first()
        if progress is None:
            raise NotFound("Game not started for this player.")

        target = progress.current_target()
        if progress.completed or target is None:
            raise GameCompleted("Game already completed.")

        if level_number != target['levelNumber'] or place != target['name']:
            raise WrongPlace("Wrong place for this level.")

        now = timezone.now()
        elapsed = (now - _last_scan_time(progress)).total_seconds()
        checkpoint = Checkpoint.objects.create(
            progress=progress,
            level=target['levelNumber'],
            place=target['name'],
            scanned_at=now,
            time_taken_seconds=max(0, int(elapsed)),
        )

        progress.place_index += 1
        progress.current_level_number = progress.place_index + 1
        if progress.place_index >= len(progress.path):
            progress.completed = True
            progress.end_time = now
        progress.save()

    payload = {
        'playerId': progress.player_id,
        'progressId': progress.id,
        'level': checkpoint.level,
        'place': checkpoint.place,
        'scannedAt': checkpoint.scanned_at,
        'placeIndex': progress.place_index,
    }
    if progress.completed:
        logger.info("Player %s completed the trail in %ss", progress.player_id, progress.total_seconds)
        payload['totalSeconds'] = progress.total_seconds
        publisher.publish(events.GAME_COMPLETED, payload)
    else:
        publisher.publish(events.CHECKPOINT_REACHED, payload)
    return ScanResult(progress=progress, checkpoint=checkpoint)


def progress_summary(progress: Progress, checkpoints: Optional[List[Checkpoint]] = None) -> dict:
    """Full record of a run for the admin views, answers included."""
    if checkpoints is None:
        checkpoints = list(progress.checkpoints.all())
    return {
        'id': progress.id,
        'player': progress.player.to_dict(),
        'path': progress.path,
        'placeIndex': progress.place_index,
        'currentLevelNumber': progress.current_level_number,
        'totalLevels': len(progress.path),
        'startTime': progress.start_time.isoformat(),
        'endTime': progress.end_time.isoformat() if progress.end_time else None,
        'totalSeconds': progress.total_seconds,
        'completed': progress.completed,
        'timeLog': [checkpoint.to_dict() for checkpoint in checkpoints],
    }
