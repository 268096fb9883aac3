from django.db import models
from django.utils import timezone

from trail.models import MAX_PLACE_NAME


def public_target(entry):
    """Path entry as shown to the player: the answer stays on the server."""
    if entry is None:
        return None
    return {
        'levelNumber': entry['levelNumber'],
        'name': entry['name'],
        'image': entry.get('image') or None,
    }


class Progress(models.Model):
    """A player's run through the trail.

    ``path`` is drawn once at start (one place per level) and never reshuffled;
    ``place_index`` points at the entry the player is looking for.
    """
    player = models.OneToOneField('accounts.User', on_delete=models.CASCADE, related_name='progress')
    path = models.JSONField(default=list)
    place_index = models.PositiveIntegerField(default=0)
    current_level_number = models.PositiveIntegerField(default=1)
    start_time = models.DateTimeField(default=timezone.now)
    end_time = models.DateTimeField(null=True, blank=True)
    completed = models.BooleanField(default=False)

    class Meta:
        ordering = ['start_time']

    def __str__(self):
        state = "completed" if self.completed else f"{self.place_index}/{len(self.path)}"
        return f"{self.player.name} - {state}"

    def current_target(self):
        if self.place_index < len(self.path):
            return self.path[self.place_index]
        return None

    @property
    def total_seconds(self):
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds())


class Checkpoint(models.Model):
    """One successful scan; together they form the run's time log."""
    progress = models.ForeignKey(Progress, on_delete=models.CASCADE, related_name='checkpoints')
    level = models.PositiveSmallIntegerField("Level")
    place = models.CharField("Place", max_length=MAX_PLACE_NAME)
    scanned_at = models.DateTimeField()
    time_taken_seconds = models.PositiveIntegerField(
        "Time taken (s)", help_text="Seconds since the previous checkpoint, or since the start"
    )

    class Meta:
        ordering = ['scanned_at', 'id']

    def __str__(self):
        return f"Level {self.level} - {self.place}"

    def to_dict(self):
        return {
            'level': self.level,
            'place': self.place,
            'scannedAt': self.scanned_at.isoformat(),
            'timeTakenSeconds': self.time_taken_seconds,
        }
