import io
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
PHASE_FILL = PatternFill(start_color="E5E7EB", end_color="E5E7EB", fill_type="solid")
PHASE_FONT = Font(bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def export_brief_xlsx(document: dict, progress: dict | None = None) -> io.BytesIO:
    """
    Generate a styled Excel workbook from a brief document dict
    (``BriefDocument.to_dict()``).
    Returns a BytesIO buffer ready for Flask send_file.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Brief"

    # Title block
    ws.merge_cells("A1:C1")
    ws["A1"] = f"Project Brief — {document['title']}"
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = document.get("subtitle") or ""
    ws["A2"].font = Font(size=11, color="666666")
    ws["A3"] = f"Generated: {document['generated_at']}"
    ws["A3"].font = Font(size=10, italic=True, color="666666")
    if document.get("questionnaire_name"):
        ws["C2"] = f"{document['questionnaire_name']} (v{document.get('questionnaire_version')})"
        ws["C2"].font = Font(size=10, color="666666")
    if progress is not None:
        ws["C3"] = (f"Completion: {progress['percent']}% "
                    f"({progress['answered_count']}/{progress['total_count']})")
        ws["C3"].font = Font(size=11, bold=True)

    row = 5
    for col, header in enumerate(["Phase", "Question", "Answer"], 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER

    if document.get("notice"):
        row += 1
        ws.cell(row=row, column=1, value=document["notice"])

    for section in document.get("sections", []):
        row += 1
        phase_cell = ws.cell(row=row, column=1, value=section["title"])
        phase_cell.fill = PHASE_FILL
        phase_cell.font = PHASE_FONT
        ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=3)

        for item in section["items"]:
            row += 1
            ws.cell(row=row, column=1, value=section["title"]).border = THIN_BORDER
            q_cell = ws.cell(row=row, column=2, value=item["label"])
            q_cell.border = THIN_BORDER
            q_cell.alignment = Alignment(wrap_text=True, vertical="top")
            a_cell = ws.cell(row=row, column=3, value=item["value"])
            a_cell.border = THIN_BORDER
            a_cell.alignment = Alignment(wrap_text=True, vertical="top")

    for col in range(1, 4):
        ws.column_dimensions[get_column_letter(col)].width = [26, 55, 60][col - 1]

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.debug("Brief workbook built project_id=%s rows=%d", document.get("project_id"), row)
    return buf
