from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

MIN_LEVEL = 1
MAX_LEVEL = 5
MAX_PLACES = 4
MAX_PLACE_NAME = 200


def validate_places(value):
    if not isinstance(value, list):
        raise ValidationError("Places must be a list.")
    if len(value) > MAX_PLACES:
        raise ValidationError(f"Each level can have max {MAX_PLACES} places")
    for place in value:
        if not isinstance(place, dict) or not place.get('name') or not place.get('answer'):
            raise ValidationError("Each place needs a name and an answer.")


class TrailLevel(models.Model):
    """One stage of the trail and the places a player may be sent to.

    ``places`` holds ``{"name", "answer", "image"}`` dicts in insertion order.
    """
    level_number = models.PositiveSmallIntegerField(
        "Level",
        unique=True,
        validators=[MinValueValidator(MIN_LEVEL), MaxValueValidator(MAX_LEVEL)],
    )
    places = models.JSONField(default=list, blank=True, validators=[validate_places])

    class Meta:
        ordering = ['level_number']

    def __str__(self):
        return f"Level {self.level_number} ({len(self.places)} places)"

    @property
    def is_full(self):
        return len(self.places) >= MAX_PLACES

    def place_names(self):
        return [place['name'] for place in self.places]

    def find_place(self, name):
        for place in self.places:
            if place['name'] == name:
                return place
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'levelNumber': self.level_number,
            'places': list(self.places),
        }
