import os
from io import StringIO
from tempfile import TemporaryDirectory

from django.core.management import CommandError, call_command
from django.urls import reverse
from openpyxl import Workbook

from accounts.models import Role
from accounts.tests import ApiTestCase, auth_header, make_user

from .models import TrailLevel


class TrailCatalogTests(ApiTestCase):
    def setUp(self):
        self.admin = make_user(name="root", phonenumber="9000000000", role=Role.ADMIN)
        self.headers = auth_header(self.admin)

    def add_place(self, level_number, place):
        return self.post_json(
            reverse('trail:trail_create'),
            {'levelNumber': level_number, 'place': place},
            **self.headers,
        )

    def test_add_place_creates_level(self):
        response = self.add_place(1, {'name': "Fountain", 'answer': "Water", 'image': "/uploads/f.png"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['message'], "Place 'Fountain' added to Level 1.")
        level = TrailLevel.objects.get(level_number=1)
        self.assertEqual(level.places, [{'name': "Fountain", 'answer': "Water", 'image': "/uploads/f.png"}])

    def test_bare_place_name_is_its_own_answer(self):
        self.add_place(2, "Library")

        level = TrailLevel.objects.get(level_number=2)
        self.assertEqual(level.places, [{'name': "Library", 'answer': "Library", 'image': None}])

    def test_fifth_place_is_rejected(self):
        for name in ["A", "B", "C", "D"]:
            self.assertEqual(self.add_place(1, name).status_code, 200)

        response = self.add_place(1, "E")

        self.assertEqual(response.status_code, 400)
        self.assertIn("already has 4 places", response.json()['message'])
        self.assertEqual(len(response.json()['currentPlaces']), 4)
        self.assertEqual(TrailLevel.objects.get(level_number=1).place_names(), ["A", "B", "C", "D"])

    def test_level_number_out_of_range(self):
        for level_number in (0, 6, "x"):
            response = self.add_place(level_number, "Nowhere")
            self.assertEqual(response.status_code, 400, level_number)
        self.assertFalse(TrailLevel.objects.exists())

    def test_level_number_must_be_whole(self):
        for level_number in (1.5, "2.5", True):
            response = self.add_place(level_number, "X")
            self.assertEqual(response.status_code, 400, level_number)
        self.assertFalse(TrailLevel.objects.exists())

        self.assertEqual(self.add_place(2.0, "X").status_code, 200)
        self.assertEqual(TrailLevel.objects.get().level_number, 2)

    def test_place_name_length_is_capped(self):
        response = self.add_place(1, "x" * 201)

        self.assertEqual(response.status_code, 400)
        self.assertFalse(TrailLevel.objects.exists())
        self.assertEqual(self.add_place(1, "x" * 200).status_code, 200)

    def test_duplicate_place_name_in_level(self):
        self.add_place(1, "A")

        response = self.add_place(1, "A")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(len(TrailLevel.objects.get(level_number=1).places), 1)

    def test_missing_fields(self):
        response = self.post_json(reverse('trail:trail_create'), {'levelNumber': 1}, **self.headers)

        self.assertEqual(response.status_code, 400)

    def test_players_cannot_edit_trail(self):
        player = make_user()
        response = self.post_json(
            reverse('trail:trail_create'), {'levelNumber': 1, 'place': "A"}, **auth_header(player)
        )

        self.assertEqual(response.status_code, 403)
        self.assertFalse(TrailLevel.objects.exists())

    def test_list_levels_in_order(self):
        self.add_place(3, "C")
        self.add_place(1, "A")

        response = self.client.get(reverse('trail:trail_list'), **self.headers)

        self.assertEqual([level['levelNumber'] for level in response.json()['levels']], [1, 3])

    def test_get_level(self):
        self.add_place(1, "A")

        response = self.client.get(reverse('trail:trail_detail', args=[1]), **self.headers)
        self.assertEqual(response.json()['level']['places'][0]['name'], "A")

        response = self.client.get(reverse('trail:trail_detail', args=[4]), **self.headers)
        self.assertEqual(response.status_code, 404)

    def test_update_place_at_index(self):
        self.add_place(1, "A")
        self.add_place(1, "B")

        response = self.put_json(
            reverse('trail:trail_detail', args=[1]),
            {'index': 1, 'newPlace': {'name': "Bridge", 'answer': "Stone"}},
            **self.headers,
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(TrailLevel.objects.get(level_number=1).place_names(), ["A", "Bridge"])

    def test_update_rejects_out_of_range_index(self):
        self.add_place(1, "A")

        for index in (-1, 1):
            response = self.put_json(
                reverse('trail:trail_detail', args=[1]), {'index': index, 'newPlace': "Z"}, **self.headers
            )
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()['message'], "Invalid index. Level 1 has 1 places.")

    def test_update_rejects_fractional_index(self):
        self.add_place(1, "A")
        self.add_place(1, "B")

        for index in (1.7, True, "x"):
            response = self.put_json(
                reverse('trail:trail_detail', args=[1]), {'index': index, 'newPlace': "Z"}, **self.headers
            )
            self.assertEqual(response.status_code, 400, index)
        self.assertEqual(TrailLevel.objects.get(level_number=1).place_names(), ["A", "B"])

    def test_update_missing_level(self):
        response = self.put_json(
            reverse('trail:trail_detail', args=[2]), {'index': 0, 'newPlace': "Z"}, **self.headers
        )

        self.assertEqual(response.status_code, 404)

    def test_delete_level(self):
        self.add_place(1, "A")

        response = self.client.delete(reverse('trail:trail_detail', args=[1]), **self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertFalse(TrailLevel.objects.exists())
        response = self.client.delete(reverse('trail:trail_detail', args=[1]), **self.headers)
        self.assertEqual(response.status_code, 404)


class ImportTrailXlsxTests(ApiTestCase):
    def write_workbook(self, tmp, rows):
        path = os.path.join(tmp, "trail.xlsx")
        wb = Workbook()
        ws = wb.active
        for row in rows:
            ws.append(row)
        wb.save(path)
        return path

    def test_import_trail_from_xlsx(self):
        with TemporaryDirectory() as tmp:
            path = self.write_workbook(tmp, [
                ["level", "name", "answer", "image"],
                [1, "Spot A", "Answer A", None],
                [1, "Spot B", "Answer B", "/uploads/b.png"],
                [2, "Spot C", "Answer C", None],
            ])
            out = StringIO()
            call_command("import_trail_xlsx", path, stdout=out)

        self.assertIn("Imported 3 places", out.getvalue())
        level1 = TrailLevel.objects.get(level_number=1)
        self.assertEqual(level1.place_names(), ["Spot A", "Spot B"])
        self.assertEqual(level1.places[1]['image'], "/uploads/b.png")
        self.assertEqual(TrailLevel.objects.get(level_number=2).places[0]['answer'], "Answer C")

    def test_import_is_all_or_nothing(self):
        with TemporaryDirectory() as tmp:
            path = self.write_workbook(tmp, [
                [1, "Spot A", "A"],
                [9, "Spot Z", "Z"],
            ])
            with self.assertRaises(CommandError):
                call_command("import_trail_xlsx", path, stdout=StringIO())

        self.assertFalse(TrailLevel.objects.exists())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command("import_trail_xlsx", "/nonexistent/trail.xlsx")
