"""PDF export module for career-assistant."""
from career_assistant.export.pdf_writer import (
    PageGeometry,
    layout_pages,
    render_pdf,
    save_pdf,
)

__all__ = ["PageGeometry", "layout_pages", "render_pdf", "save_pdf"]
