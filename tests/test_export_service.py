"""
Tests for the brief Excel export.

Covers:
  - export_brief_xlsx returns a loadable workbook with a "Brief" sheet
  - title block carries project name and completion
  - one row per question, grouped under phase rows
  - placeholder rows for unanswered questions
  - export endpoint content type and filename

pytest markers: integration
"""

import io

import pytest
from openpyxl import load_workbook

from app.services import brief_service, intake_service
from app.services.export_service import export_brief_xlsx
from app.services.progress_service import compute_progress


def _rows(buf):
    ws = load_workbook(buf)["Brief"]
    return ws, [tuple(c.value for c in row) for row in ws.iter_rows(min_row=6)]


class TestExportBriefXlsx:
    def test_workbook_structure(self, answered_project):
        doc = brief_service.build_document(answered_project.id).to_dict()
        buf = export_brief_xlsx(doc, compute_progress(answered_project.id))

        ws, rows = _rows(buf)
        assert "Acme E-commerce Launch" in ws["A1"].value
        assert ws["A2"].value == "Acme Retail • WEBSITE"
        assert ws["C3"].value == "Completion: 100% (3/3)"
        assert [ws.cell(row=5, column=c).value for c in (1, 2, 3)] == ["Phase", "Question", "Answer"]

        answers = [(r[1], r[2]) for r in rows if r[1]]
        assert answers == [("Q1", "hello"), ("Q2", "A, Other: custom"), ("Q3", "X")]
        phase_rows = [r[0] for r in rows if r[1] is None]
        assert phase_rows == ["Discovery", "Technical Requirements"]

    def test_unanswered_placeholder(self, questionnaire, project):
        intake_service.apply_batch(project.id, {"q_Q1": "only"})
        buf = export_brief_xlsx(brief_service.build_document(project.id).to_dict())

        _, rows = _rows(buf)
        answers = dict((r[1], r[2]) for r in rows if r[1])
        assert answers == {"Q1": "only", "Q2": "—", "Q3": "—"}

    def test_notice_without_questionnaire(self, project):
        buf = export_brief_xlsx(brief_service.build_document(project.id).to_dict())
        _, rows = _rows(buf)
        assert rows[0][0] == brief_service.NO_QUESTIONNAIRE_NOTICE


@pytest.mark.integration
class TestExportEndpoint:
    def test_xlsx_download(self, client, answered_project):
        res = client.get(f"/api/v1/projects/{answered_project.id}/brief?format=xlsx")
        assert res.status_code == 200
        assert res.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert f"brief-project-{answered_project.id}.xlsx" in res.headers["Content-Disposition"]
        ws = load_workbook(io.BytesIO(res.data))["Brief"]
        assert ws["C3"].value == "Completion: 100% (3/3)"
