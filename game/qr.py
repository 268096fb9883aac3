import base64
import json
import logging
from io import BytesIO

import qrcode
from django.utils import timezone
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)


def qr_payload(level_number, place):
    """Text carried by a place's QR code, read back by the scanning app."""
    return json.dumps({'levelNumber': level_number, 'place': place})


def qr_png(data):
    image = qrcode.make(data)
    buffer = BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


def qr_data_url(data):
    encoded = base64.b64encode(qr_png(data)).decode('ascii')
    return f"data:image/png;base64,{encoded}"


CARDS_PER_PAGE = 4
CARD_WIDTH = 8 * cm
CARD_HEIGHT = 10 * cm
CARD_GAP = 1 * cm


def _draw_header(p, title):
    height = A4[1]
    p.setFont("Helvetica-Bold", 24)
    p.drawString(2 * cm, height - 3 * cm, title)
    p.setFont("Helvetica", 12)
    p.drawString(2 * cm, height - 4 * cm, f"Generated on {timezone.now().strftime('%d/%m/%Y')}")


def _card_origin(slot):
    """Bottom-left corner of card ``slot`` (0..3) in a 2x2 grid below the header."""
    column, row = slot % 2, slot // 2
    x = 2 * cm + column * (CARD_WIDTH + CARD_GAP)
    y = A4[1] - 5 * cm - CARD_HEIGHT - row * (CARD_HEIGHT + CARD_GAP)
    return x, y


def draw_qr_sheet(stream, levels, title="Trail QR codes"):
    """Write a printable PDF to ``stream``: one card per place, four cards a page."""
    p = canvas.Canvas(stream, pagesize=A4)
    cards = [(level.level_number, place['name']) for level in levels for place in level.places]

    for position, (level_number, name) in enumerate(cards):
        slot = position % CARDS_PER_PAGE
        if slot == 0:
            if position:
                p.showPage()
            _draw_header(p, title)

        x, y = _card_origin(slot)
        p.rect(x, y, CARD_WIDTH, CARD_HEIGHT)
        p.setFont("Helvetica-Bold", 16)
        p.drawString(x + 0.5 * cm, y + CARD_HEIGHT - 1 * cm, f"Level {level_number}")
        p.setFont("Helvetica", 12)
        p.drawString(x + 0.5 * cm, y + CARD_HEIGHT - 1.5 * cm, name)

        try:
            image = ImageReader(BytesIO(qr_png(qr_payload(level_number, name))))
            p.drawImage(image, x + 1 * cm, y + 2 * cm, width=6 * cm, height=6 * cm)
        except Exception:
            logger.exception("Could not draw QR code for level %s, place %r", level_number, name)
            p.drawString(x + 1 * cm, y + 5 * cm, "Image error")

    p.showPage()
    p.save()
