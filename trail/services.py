"""Trail catalog operations shared by the HTTP views and the xlsx importer."""
import logging

from django.db import transaction

from core.errors import BadRequest, NotFound
from core.http import whole_number

from .models import MAX_LEVEL, MAX_PLACE_NAME, MAX_PLACES, MIN_LEVEL, TrailLevel

logger = logging.getLogger(__name__)


def parse_level_number(value, check_range=True):
    level_number = whole_number(value)
    if level_number is None:
        raise BadRequest("Level number must be a whole number.")
    if check_range and not MIN_LEVEL <= level_number <= MAX_LEVEL:
        raise BadRequest(f"Level number must be between {MIN_LEVEL} and {MAX_LEVEL}.")
    return level_number


def normalize_place(value):
    """Turn a place name or a ``{name, answer, image}`` object into a stored place.

    A bare name is its own answer.
    """
    if isinstance(value, str):
        value = {'name': value}
    if not isinstance(value, dict):
        raise BadRequest("place must be a name or an object with name, answer and image.")

    name = str(value.get('name') or '').strip()
    if not name:
        raise BadRequest("Place name is required.")
    if len(name) > MAX_PLACE_NAME:
        raise BadRequest(f"Place name must be at most {MAX_PLACE_NAME} characters.")
    answer = str(value.get('answer') or name).strip()
    image = value.get('image') or None
    if image is not None:
        image = str(image).strip() or None
    return {'name': name, 'answer': answer, 'image': image}


def get_level(level_number):
    level = TrailLevel.objects.filter(level_number=level_number).first()
    if level is None:
        raise NotFound("Level not found")
    return level


def add_place(level_number, place):
    level_number = parse_level_number(level_number)
    place = normalize_place(place)

    with transaction.atomic():
        level, _ = TrailLevel.objects.select_for_update().get_or_create(level_number=level_number)
        if len(level.places) >= MAX_PLACES:
            raise BadRequest(
                f"Level {level_number} already has {MAX_PLACES} places.",
                currentPlaces=level.places,
            )
        if level.find_place(place['name']) is not None:
            raise BadRequest(f"Place '{place['name']}' already exists in Level {level_number}.")
        level.places.append(place)
        level.save(update_fields=['places'])

    logger.info("Added place %r to level %s", place['name'], level_number)
    return level


def update_place(level_number, index, new_place):
    index = whole_number(index)
    if index is None:
        raise BadRequest("index must be a whole number.")
    new_place = normalize_place(new_place)

    with transaction.atomic():
        level = TrailLevel.objects.select_for_update().filter(level_number=level_number).first()
        if level is None:
            raise NotFound("Level not found")
        if index < 0 or index >= len(level.places):
            raise BadRequest(
                f"Invalid index. Level {level_number} has {len(level.places)} places."
            )
        for position, place in enumerate(level.places):
            if position != index and place['name'] == new_place['name']:
                raise BadRequest(f"Place '{new_place['name']}' already exists in Level {level_number}.")
        level.places[index] = new_place
        level.save(update_fields=['places'])

    logger.info("Replaced place %s of level %s with %r", index, level_number, new_place['name'])
    return level


def delete_level(level_number):
    deleted, _ = TrailLevel.objects.filter(level_number=level_number).delete()
    if not deleted:
        raise NotFound("Level not found")
    logger.info("Deleted level %s", level_number)
