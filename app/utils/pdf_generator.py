import html
import os
import pathlib
import logging

import fitz

logger = logging.getLogger(__name__)

PAGE_RECT = fitz.paper_rect("a4")
MARGIN = 50
FONT_SIZE = 11
LINE_HEIGHT = 15

# MuPDF's HTML layout pulls fallback fonts for glyphs sans-serif lacks (Cyrillic, Greek, CJK)
CSS = f"* {{font-family: sans-serif; font-size: {FONT_SIZE}px;}} p {{margin: 0; line-height: {LINE_HEIGHT}px;}}"


def _to_html(text: str) -> str:
    return "".join(f"<p>{html.escape(line) or '&nbsp;'}</p>" for line in text.splitlines())


def generate_text_pdf(text_content: str, file_name: str, output_dir: str) -> str:
    """
    Renders plain text into an A4 PDF at <output_dir>/<file_name>.pdf and returns the path.
    Long text spills over as many pages as needed.
    """
    pathlib.Path(output_dir).mkdir(parents=True, exist_ok=True)
    file_path = os.path.join(output_dir, f"{file_name}.pdf")

    story = fitz.Story(html=_to_html(text_content or ""), user_css=CSS)
    where = PAGE_RECT + (MARGIN, MARGIN, -MARGIN, -MARGIN)
    writer = fitz.DocumentWriter(file_path)
    pages = 0
    more = 1
    try:
        while more:
            device = writer.begin_page(PAGE_RECT)
            more, _ = story.place(where)
            story.draw(device)
            writer.end_page()
            pages += 1
    finally:
        writer.close()

    logger.info(f"Generated PDF {file_path} with {pages} page(s)")
    return file_path
