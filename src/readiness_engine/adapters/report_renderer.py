"""PDF report renderer.

Implements IReportRenderer with reportlab platypus. The report holds the
attempt title and completion date, the overall score, a category score
table and the stored recommendations. Rendering is CPU-bound and writes
to disk, so it runs in a worker thread.
"""

import asyncio
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from readiness_engine.core.domain import AssessmentAttempt, CategoryScore
from readiness_engine.observability import get_logger

logger = get_logger(__name__)

HEADER_BG = HexColor("#1F3A5F")
ROW_ALT_BG = HexColor("#F3F4F6")
GRID = HexColor("#D1D5DB")


def _score_table(category_scores: list[CategoryScore]) -> Table:
    rows: list[list[str]] = [["Category", "Score (0-10)", "Answered"]]
    for score in category_scores:
        rows.append([score.category, f"{score.normalized_score:.1f}", str(score.answered_count)])
    table = Table(rows, colWidths=[95 * mm, 35 * mm, 30 * mm], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_BG),
                ("TEXTCOLOR", (0, 0), (-1, 0), white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [white, ROW_ALT_BG]),
                ("GRID", (0, 0), (-1, -1), 0.5, GRID),
                ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
                ("TOPPADDING", (0, 0), (-1, -1), 5),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
            ]
        )
    )
    return table


class PdfReportRenderer:
    """Write one PDF per attempt into ``output_dir``.

    Args:
        output_dir: Directory for generated reports; created on demand.
    """

    def __init__(self, output_dir: str | Path) -> None:
        self._output_dir = Path(output_dir)

    async def render(
        self,
        attempt: AssessmentAttempt,
        category_scores: list[CategoryScore],
    ) -> str:
        """Render the report and return its file path as the artifact reference."""
        path = self._output_dir / f"{attempt.id}.pdf"
        await asyncio.to_thread(self._build, path, attempt, category_scores)
        logger.info("Report rendered", attempt_id=str(attempt.id), path=str(path))
        return str(path)

    def _build(
        self,
        path: Path,
        attempt: AssessmentAttempt,
        category_scores: list[CategoryScore],
    ) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        base = getSampleStyleSheet()
        body = ParagraphStyle("ReportBody", parent=base["BodyText"], fontSize=10, leading=14)

        doc = SimpleDocTemplate(
            str(path),
            pagesize=A4,
            leftMargin=20 * mm,
            rightMargin=20 * mm,
            topMargin=20 * mm,
            bottomMargin=20 * mm,
            title=attempt.title or "AI Readiness Report",
        )

        completed = attempt.completed_on.strftime("%Y-%m-%d") if attempt.completed_on else "-"
        story = [
            Paragraph(escape(attempt.title or "AI Readiness Report"), base["Title"]),
            Paragraph(f"Completed: {completed}", body),
            Spacer(1, 4 * mm),
            Paragraph(f"Overall readiness score: <b>{attempt.score}</b> / 100", base["Heading2"]),
            Spacer(1, 4 * mm),
            _score_table(category_scores),
            Spacer(1, 8 * mm),
            Paragraph("Recommendations", base["Heading2"]),
        ]
        for block in (attempt.recommendations or "").split("\n\n"):
            if block.strip():
                story.append(Paragraph(escape(block.strip()).replace("\n", "<br/>"), body))
                story.append(Spacer(1, 2 * mm))

        doc.build(story)
