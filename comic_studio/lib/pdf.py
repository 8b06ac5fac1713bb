from io import BytesIO
from typing import Iterable, List, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from comic_studio import logger
from comic_studio.lib.imaging import open_data_url
from comic_studio.schemas import PanelRecord, PanelStatus

log = logger.get_logger(__name__)

MARGIN = 36
TEXT_BLOCK = 160   # points reserved under the image for caption and dialogues
FONT = "Helvetica"

def _text_lines(rec: PanelRecord, width: float) -> List[Tuple[str, str]]:
    lines: List[Tuple[str, str]] = []
    if rec.caption:
        italic = FONT + "-Oblique"
        lines.extend((italic, s) for s in simpleSplit(rec.caption, italic, 11, width))
    for d in rec.dialogues:
        lines.extend((FONT, s) for s in simpleSplit(d, FONT, 11, width))
    return lines

def make_pdf(records: Iterable[PanelRecord], title: str = "Comic") -> bytes:
    """
    One A4 page per panel: image scaled into the upper area keeping its ratio,
    then scene number, caption and dialogue lines. Panels without an image get a
    placeholder line instead.
    """
    records = list(records)
    log.info(f"Combining {len(records)} panels into PDF")
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(title)
    w, h = A4
    box_w = w - 2 * MARGIN
    box_h = h - 2 * MARGIN - TEXT_BLOCK

    for rec in records:
        top = h - MARGIN
        img_bottom = top - box_h
        if rec.status == PanelStatus.RESOLVED and rec.image_url:
            try:
                img = open_data_url(rec.image_url)
                img_ratio = img.width / img.height
                if box_w / box_h > img_ratio:
                    ih = box_h
                    iw = ih * img_ratio
                else:
                    iw = box_w
                    ih = iw / img_ratio
                x = (w - iw) / 2
                img_bottom = top - ih
                c.drawImage(ImageReader(img), x, img_bottom, iw, ih)
            except (ValueError, OSError) as e:
                log.warning(f"panel {rec.scene_number}: could not draw image: {e}")
                c.setFont(FONT, 12)
                c.drawCentredString(w / 2, top - box_h / 2, "Image could not be embedded")
        else:
            c.setFont(FONT, 12)
            msg = "Image generation failed" if rec.status == PanelStatus.FAILED else "Image not generated yet"
            c.drawCentredString(w / 2, top - box_h / 2, msg)

        y = img_bottom - 20
        c.setFont(FONT + "-Bold", 12)
        c.drawString(MARGIN, y, f"Panel {rec.scene_number}")
        y -= 16
        for font, line in _text_lines(rec, box_w):
            if y < MARGIN:
                break
            c.setFont(font, 11)
            c.drawString(MARGIN, y, line)
            y -= 14
        c.showPage()
    c.save()
    return buf.getvalue()
