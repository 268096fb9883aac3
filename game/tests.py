import datetime
import json
from unittest.mock import patch

from django.urls import reverse
from django.utils import timezone

from accounts.models import Role
from accounts.tests import ApiTestCase, auth_header, make_user
from core.errors import BadRequest, Forbidden, NotFound
from trail.models import TrailLevel

from . import events, services
from .models import Checkpoint, Progress


class RecordingPublisher(events.EventPublisher):
    def __init__(self):
        self.events = []

    def publish(self, event, payload):
        self.events.append((event, payload))


def first_place(places):
    return places[0]


def last_place(places):
    return places[-1]


def place(name, answer=None, image=None):
    return {'name': name, 'answer': answer or f"answer {name}", 'image': image}


class ProgressEngineTests(ApiTestCase):
    def setUp(self):
        self.player = make_user()
        self.publisher = RecordingPublisher()
        TrailLevel.objects.create(level_number=1, places=[place("A"), place("B")])
        TrailLevel.objects.create(level_number=2, places=[place("C", image="/uploads/c.png")])
        TrailLevel.objects.create(level_number=3, places=[place("D"), place("E"), place("F")])

    def test_start_builds_one_entry_per_level_in_order(self):
        result = services.start_game(self.player.id, self.publisher)

        self.assertFalse(result.resumed)
        progress = result.progress
        self.assertEqual([entry['levelNumber'] for entry in progress.path], [1, 2, 3])
        for entry in progress.path:
            level = TrailLevel.objects.get(level_number=entry['levelNumber'])
            self.assertIn(entry['name'], level.place_names())
        self.assertEqual(progress.place_index, 0)
        self.assertEqual(progress.current_level_number, 1)
        self.assertIsNone(progress.end_time)
        self.assertEqual(self.publisher.events[0][0], events.GAME_STARTED)

    def test_path_uses_random_choice(self):
        with patch("game.services.random.choice", side_effect=last_place):
            progress = services.start_game(self.player.id, self.publisher).progress

        self.assertEqual([entry['name'] for entry in progress.path], ["B", "C", "F"])
        self.assertEqual(progress.path[0]['answer'], "answer B")

    def test_start_twice_resumes_without_reshuffle(self):
        first = services.start_game(self.player.id, self.publisher)
        second = services.start_game(self.player.id, self.publisher)

        self.assertTrue(second.resumed)
        self.assertEqual(first.progress.id, second.progress.id)
        self.assertEqual(first.progress.path, second.progress.path)
        self.assertEqual(first.next_target, second.next_target)
        self.assertEqual(Progress.objects.count(), 1)
        self.assertEqual(len(self.publisher.events), 1)

    def test_target_never_shows_the_answer(self):
        result = services.start_game(self.player.id, self.publisher, choose=first_place)

        self.assertEqual(result.next_target, {'levelNumber': 1, 'name': "A", 'image': None})

    def test_levels_without_places_are_skipped(self):
        TrailLevel.objects.create(level_number=4, places=[])

        progress = services.start_game(self.player.id, self.publisher).progress

        self.assertEqual(len(progress.path), 3)

    def test_admin_cannot_play(self):
        admin = make_user(name="root", phonenumber="9000000000", role=Role.ADMIN)

        with self.assertRaises(Forbidden):
            services.start_game(admin.id, self.publisher)
        self.assertFalse(Progress.objects.exists())

    def test_unknown_player(self):
        with self.assertRaises(NotFound):
            services.start_game(9999, self.publisher)

    def test_no_levels(self):
        TrailLevel.objects.all().delete()

        with self.assertRaises(NotFound):
            services.start_game(self.player.id, self.publisher)
        self.assertFalse(Progress.objects.exists())

    def test_wrong_place_changes_nothing(self):
        services.start_game(self.player.id, self.publisher, choose=first_place)

        for level_number, name in [(1, "B"), (2, "A"), (2, "C"), ("1", "a"), (1.9, "A"), ("1.5", "A")]:
            with self.assertRaises(services.WrongPlace):
                services.verify_qr(self.player.id, level_number, name, self.publisher)

        progress = Progress.objects.get(player=self.player)
        self.assertEqual(progress.place_index, 0)
        self.assertEqual(progress.checkpoints.count(), 0)

    def test_place_must_match_as_text(self):
        TrailLevel.objects.filter(level_number=1).update(places=[place("123")])
        services.start_game(self.player.id, self.publisher, choose=first_place)

        with self.assertRaises(services.WrongPlace):
            services.verify_qr(self.player.id, 1, 123, self.publisher)
        self.assertEqual(Progress.objects.get(player=self.player).place_index, 0)

        result = services.verify_qr(self.player.id, 1.0, "123", self.publisher)
        self.assertEqual(result.progress.place_index, 1)

    def test_correct_scan_advances_and_logs(self):
        services.start_game(self.player.id, self.publisher, choose=first_place)

        result = services.verify_qr(self.player.id, "1", "A", self.publisher)

        self.assertFalse(result.completed)
        self.assertEqual(result.next_target, {'levelNumber': 2, 'name': "C", 'image': "/uploads/c.png"})
        progress = Progress.objects.get(player=self.player)
        self.assertEqual(progress.place_index, 1)
        self.assertEqual(progress.current_level_number, 2)
        self.assertEqual(list(progress.checkpoints.values_list('level', 'place')), [(1, "A")])
        self.assertEqual(self.publisher.events[-1][0], events.CHECKPOINT_REACHED)

    def test_full_run_completes_with_timings(self):
        base_time = timezone.make_aware(datetime.datetime(2025, 1, 1, 12, 0, 0))

        with patch("game.services.timezone.now", return_value=base_time):
            services.start_game(self.player.id, self.publisher, choose=first_place)

        targets = [(1, "A"), (2, "C"), (3, "D")]
        for minutes, (level_number, name) in zip([5, 12, 30], targets):
            with patch("game.services.timezone.now", return_value=base_time + datetime.timedelta(minutes=minutes)):
                result = services.verify_qr(self.player.id, level_number, name, self.publisher)
            progress = Progress.objects.get(player=self.player)
            self.assertEqual(progress.checkpoints.count(), progress.place_index)

        self.assertTrue(result.completed)
        self.assertIsNone(result.next_target)
        progress = Progress.objects.get(player=self.player)
        self.assertTrue(progress.completed)
        self.assertEqual(progress.place_index, 3)
        self.assertEqual(progress.end_time, base_time + datetime.timedelta(minutes=30))
        self.assertGreaterEqual(progress.end_time, progress.start_time)
        self.assertEqual(progress.total_seconds, 1800)
        self.assertEqual(
            list(progress.checkpoints.values_list('time_taken_seconds', flat=True)), [300, 420, 1080]
        )
        self.assertEqual(self.publisher.events[-1][0], events.GAME_COMPLETED)
        self.assertEqual(self.publisher.events[-1][1]['totalSeconds'], 1800)

    def test_completed_game_rejects_further_calls(self):
        TrailLevel.objects.exclude(level_number=1).delete()
        services.start_game(self.player.id, self.publisher, choose=first_place)
        services.verify_qr(self.player.id, 1, "A", self.publisher)

        with self.assertRaises(services.GameCompleted):
            services.verify_qr(self.player.id, 1, "A", self.publisher)
        with self.assertRaises(services.GameCompleted):
            services.start_game(self.player.id, self.publisher)

        progress = Progress.objects.get(player=self.player)
        self.assertEqual(progress.place_index, 1)
        self.assertEqual(progress.checkpoints.count(), 1)

    def test_verify_before_start(self):
        with self.assertRaises(NotFound):
            services.verify_qr(self.player.id, 1, "A", self.publisher)

    def test_verify_requires_level_and_place(self):
        services.start_game(self.player.id, self.publisher)

        for level_number, name in [(None, "A"), (1, ""), ("one", "A"), (True, "A"), ([1], "A")]:
            with self.assertRaises(BadRequest):
                services.verify_qr(self.player.id, level_number, name, self.publisher)

    def test_catalog_changes_do_not_touch_started_paths(self):
        progress = services.start_game(self.player.id, self.publisher, choose=first_place).progress
        TrailLevel.objects.filter(level_number=1).update(places=[place("Z")])

        result = services.verify_qr(self.player.id, 1, "A", self.publisher)

        self.assertEqual(result.progress.id, progress.id)
        self.assertEqual(result.progress.place_index, 1)


class GameApiTests(ApiTestCase):
    def setUp(self):
        self.admin = make_user(name="root", phonenumber="9000000000", role=Role.ADMIN)
        self.player = make_user()
        self.admin_headers = auth_header(self.admin)
        self.player_headers = auth_header(self.player)
        TrailLevel.objects.create(level_number=1, places=[place("A"), place("B")])
        TrailLevel.objects.create(level_number=2, places=[place("C")])

    def start(self, headers=None, player=None):
        player = player or self.player
        return self.post_json(reverse('game:start_game', args=[player.id]), **(headers or self.player_headers))

    def scan(self, level_number, name, headers=None):
        return self.post_json(
            reverse('game:verify_qr', args=[self.player.id]),
            {'levelNumber': level_number, 'place': name},
            **(headers or self.player_headers),
        )

    def test_start_then_resume(self):
        response = self.start()
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['message'], "Game Started!")
        self.assertNotIn('answer', body['nextTarget'])
        self.assertEqual(body['totalLevels'], 2)

        response = self.start()
        self.assertEqual(response.json()['message'], "Resuming your game...")
        self.assertEqual(response.json()['nextTarget'], body['nextTarget'])
        self.assertEqual(response.json()['progressId'], body['progressId'])

    def test_level_one_scenario(self):
        with patch("game.services.random.choice", side_effect=first_place):
            self.start()

        response = self.scan(1, "B")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Wrong place for this level.")
        self.assertEqual(Progress.objects.get(player=self.player).place_index, 0)

        response = self.scan(1, "A")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['message'], "Correct! Go to next location!")
        self.assertEqual(response.json()['nextTarget']['name'], "C")
        self.assertEqual(Progress.objects.get(player=self.player).place_index, 1)

        response = self.scan(2, "C")
        body = response.json()
        self.assertEqual(body['message'], "Congratulations! You finished all levels!")
        self.assertEqual(body['totalLevels'], 2)
        self.assertIsNotNone(body['finalTime'])

        response = self.scan(2, "C")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Game already completed.")

    def test_verify_before_start(self):
        response = self.scan(1, "A")

        self.assertEqual(response.status_code, 404)

    def test_verify_requires_fields(self):
        self.start()

        response = self.post_json(reverse('game:verify_qr', args=[self.player.id]), {'place': "A"}, **self.player_headers)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "levelNumber and place are required.")

    def test_players_only_drive_their_own_game(self):
        other = make_user(name="eve", phonenumber="9000000009")

        response = self.start(headers=auth_header(other))

        self.assertEqual(response.status_code, 403)
        self.assertFalse(Progress.objects.exists())

    def test_admin_may_start_for_player_but_not_play(self):
        self.assertEqual(self.start(headers=self.admin_headers).status_code, 200)

        response = self.start(headers=self.admin_headers, player=self.admin)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['message'], "Admins cannot play the game.")

    def test_start_requires_token(self):
        response = self.post_json(reverse('game:start_game', args=[self.player.id]))

        self.assertEqual(response.status_code, 401)

    def test_generate_qr_encodes_level_and_place(self):
        capture = {}

        class DummyQR:
            def save(self, buffer, format='PNG'):
                buffer.write(b'dummy')

        def fake_make(data):
            capture['data'] = data
            return DummyQR()

        with patch("game.qr.qrcode.make", side_effect=fake_make):
            response = self.post_json(
                reverse('game:generate_qr'), {'levelNumber': 1, 'place': "B"}, **self.admin_headers
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(capture['data']), {'levelNumber': 1, 'place': "B"})
        self.assertEqual(response.json()['qrCode'], "data:image/png;base64,ZHVtbXk=")

    def test_generate_qr_checks_catalog(self):
        response = self.post_json(reverse('game:generate_qr'), {'levelNumber': 1, 'place': "Z"}, **self.admin_headers)
        self.assertEqual(response.status_code, 400)

        response = self.post_json(reverse('game:generate_qr'), {'levelNumber': 5, 'place': "A"}, **self.admin_headers)
        self.assertEqual(response.status_code, 404)

        response = self.post_json(reverse('game:generate_qr'), {'levelNumber': 1.5, 'place': "A"}, **self.admin_headers)
        self.assertEqual(response.status_code, 400)

        response = self.post_json(reverse('game:generate_qr'), {'levelNumber': 1, 'place': "A"}, **self.player_headers)
        self.assertEqual(response.status_code, 403)

    def test_real_qr_code_is_a_png(self):
        response = self.post_json(reverse('game:generate_qr'), {'levelNumber': 1, 'place': "A"}, **self.admin_headers)

        self.assertTrue(response.json()['qrCode'].startswith("data:image/png;base64,iVBORw0KGgo"))

    def test_qr_sheet_pdf(self):
        response = self.client.get(reverse('game:qr_sheet'), **self.admin_headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_qr_sheet_holds_four_cards_a_page(self):
        TrailLevel.objects.create(level_number=3, places=[place("D"), place("E")])

        response = self.client.get(reverse('game:qr_sheet'), **self.admin_headers)

        self.assertEqual(response.status_code, 200)
        self.assertIn(b'/Count 2', response.content)

    def test_admin_progress_views(self):
        with patch("game.services.random.choice", side_effect=first_place):
            self.start()
        self.scan(1, "A")

        response = self.client.get(reverse('game_admin:players'), **self.admin_headers)
        self.assertEqual(response.status_code, 200)
        players = response.json()['players']
        self.assertEqual(len(players), 1)
        self.assertEqual(players[0]['player']['id'], self.player.id)
        self.assertNotIn('password', players[0]['player'])
        self.assertEqual(players[0]['timeLog'][0]['place'], "A")

        response = self.client.get(reverse('game_admin:player', args=[self.player.id]), **self.admin_headers)
        progress = response.json()['progress']
        self.assertEqual(progress['placeIndex'], 1)
        self.assertEqual(progress['path'][0]['answer'], "answer A")

        response = self.client.get(reverse('game_admin:player', args=[self.admin.id]), **self.admin_headers)
        self.assertEqual(response.status_code, 404)

        response = self.client.get(reverse('game_admin:players'), **self.player_headers)
        self.assertEqual(response.status_code, 403)

    def test_checkpoint_str(self):
        self.start()
        progress = Progress.objects.get(player=self.player)
        checkpoint = Checkpoint(progress=progress, level=1, place="A", scanned_at=timezone.now(), time_taken_seconds=0)

        self.assertEqual(str(checkpoint), "Level 1 - A")
