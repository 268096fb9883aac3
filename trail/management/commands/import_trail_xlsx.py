import os

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from openpyxl import load_workbook

from core.errors import ApiError
from core.http import json_number
from trail import services


class Command(BaseCommand):
    help = (
        "Import trail places from an XLSX file.\n"
        "One place per row: level number | place name | answer | image (optional).\n"
        "A first row whose level cell is not a number is treated as a header."
    )

    def add_arguments(self, parser):
        parser.add_argument("xlsx_path", type=str, help="Path to the XLSX file to import")

    def handle(self, *args, **options):
        path = options["xlsx_path"]
        if not os.path.isfile(path):
            raise CommandError(f"File not found: {path}")

        wb = load_workbook(path, read_only=True, data_only=True)
        sheet = wb.active

        def normalized_row(cells):
            values = list(cells)
            values += [None] * (4 - len(values))
            return values[:4]

        imported = 0
        try:
            with transaction.atomic():
                for row_number, row in enumerate(sheet.iter_rows(min_row=1, values_only=True), start=1):
                    if not any(row):
                        continue
                    level_number, name, answer, image = normalized_row(row)
                    if row_number == 1 and json_number(level_number) is None:
                        continue

                    place = {
                        "name": str(name or "").strip(),
                        "answer": str(answer or "").strip(),
                        "image": str(image).strip() if image else None,
                    }
                    try:
                        services.add_place(level_number, place)
                    except ApiError as exc:
                        raise CommandError(f"Row {row_number}: {exc.message}")
                    imported += 1
        finally:
            wb.close()

        self.stdout.write(self.style.SUCCESS(f"Imported {imported} places"))
