"""Single-page PDF rendering for shared grade reports.

Writes a minimal PDF 1.4 document by hand: one Letter page, Helvetica 11pt,
one text line every 14pt from the top margin down. Long reports are cut at
``MAX_LINES``.
"""

from __future__ import annotations

import re
import unicodedata

from designcoach.models.evaluation import GradeReport

MAX_FILENAME_LENGTH = 120
DEFAULT_FILENAME = "report.pdf"
MAX_LINES = 42

_LINE_HEIGHT = 14
_TOP_Y = 770
_BOTTOM_Y = 40

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def to_safe_attachment_filename(file_name: str | None) -> str:
    """Sanitize a stored file name for a ``Content-Disposition`` header."""
    trimmed = (file_name or "").strip()
    if not trimmed:
        return DEFAULT_FILENAME

    without_controls = "".join(
        ch for ch in trimmed
        if ch not in '\r\n"' and unicodedata.category(ch) != "Cc"
    )
    normalized = _UNDERSCORE_RUNS.sub("_", _UNSAFE_FILENAME_CHARS.sub("_", without_controls))
    normalized = normalized[:MAX_FILENAME_LENGTH]

    if not normalized or normalized.strip("._") == "":
        return DEFAULT_FILENAME
    if normalized.lower().endswith(".pdf"):
        return normalized
    return f"{normalized}.pdf"


def report_lines(report: GradeReport, snapshot: dict | None = None) -> list[str]:
    """Build the text lines printed on the report page."""
    snapshot = snapshot or {}
    lines: list[str] = []
    lines.append("System Design Coach Report")
    lines.append(f"Project: {report.project_id}")
    lines.append(f"Version: {snapshot.get('version_label') or report.version_id}")
    if snapshot.get("generated_at"):
        lines.append(f"Generated: {snapshot['generated_at']}")
    lines.append(f"Status: {report.status.value}")
    lines.append("")

    if report.overall_score is not None:
        lines.append(f"Overall Score: {report.overall_score}/100")
    if report.summary:
        lines.append(report.summary)
    if report.failure_reason:
        lines.append(f"Failure: {report.failure_reason}")
    lines.append("")

    if report.category_scores:
        lines.append("Category Scores:")
        for score in report.category_scores:
            lines.append(f"- {score.category}: {score.score:g}/{score.max_score:g}")
        lines.append("")

    if report.strengths:
        lines.append("Strengths:")
        lines.extend(f"- {entry}" for entry in report.strengths)
        lines.append("")

    if report.risks:
        lines.append("Risks:")
        lines.extend(f"- {entry}" for entry in report.risks)
        lines.append("")

    if report.action_items:
        lines.append("Recommended Actions:")
        lines.extend(
            f"- [{item.priority.value}] {item.title}: {item.description}"
            for item in report.action_items
        )

    return lines[:MAX_LINES]


def _escape(line: str) -> str:
    return line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def render_pdf(lines: list[str]) -> bytes:
    """Lay ``lines`` out on one page and serialize the PDF document."""
    commands = "BT\n/F1 11 Tf\n"
    y = _TOP_Y
    for line in lines:
        commands += f"1 0 0 1 50 {y} Tm ({_escape(line)}) Tj\n"
        y -= _LINE_HEIGHT
        if y < _BOTTOM_Y:
            break
    commands += "ET\n"
    # Standard Type1 fonts only cover Latin-1.
    stream = commands.encode("latin-1", errors="replace")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"endstream",
    ]

    pdf = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for index, body in enumerate(objects, start=1):
        offsets.append(len(pdf))
        pdf += b"%d 0 obj\n" % index + body + b"\nendobj\n"

    xref_start = len(pdf)
    pdf += b"xref\n0 %d\n" % (len(objects) + 1)
    pdf += b"0000000000 65535 f \n"
    for offset in offsets:
        pdf += b"%010d 00000 n \n" % offset
    pdf += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF" % (len(objects) + 1, xref_start)
    return bytes(pdf)


def render_report_pdf(report: GradeReport, snapshot: dict | None = None) -> bytes:
    return render_pdf(report_lines(report, snapshot))
