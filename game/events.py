"""Game events pushed to whoever watches the trail (live dashboards, sockets...).

The engine never looks a publisher up by itself: views resolve one with
``get_publisher()`` and hand it over.
"""
import json
import logging

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

GAME_STARTED = 'game.started'
CHECKPOINT_REACHED = 'game.checkpoint'
GAME_COMPLETED = 'game.completed'


class EventPublisher:
    def publish(self, event, payload):
        raise NotImplementedError


class LoggingPublisher(EventPublisher):
    def publish(self, event, payload):
        logger.info("%s %s", event, json.dumps(payload, default=str))


def get_publisher():
    return import_string(settings.TRAIL_EVENT_PUBLISHER)()
