from docx import Document


def generate_report_docx(report: dict, file_path: str):
    doc = Document()

    # Title
    doc.add_heading(f"Exam Result: {report['exam_title']}", level=1)
    doc.add_paragraph(f"Student: {report['student_id']}")
    doc.add_paragraph(f"Status: {report['status']}")

    # Summary
    doc.add_heading("Summary", level=2)
    for line in report["summary"]:
        doc.add_paragraph(line)

    # Answers
    doc.add_heading("Answers", level=2)
    table = doc.add_table(rows=1, cols=4)
    header = table.rows[0].cells
    header[0].text = "Question"
    header[1].text = "Type"
    header[2].text = "Score"
    header[3].text = "Feedback"

    for item in report["question_breakdown"]:
        cells = table.add_row().cells
        cells[0].text = str(item["question_id"])
        cells[1].text = item["type"] or ""
        cells[2].text = (
            f"{item['score']} / {item['max_score']}"
            if item["score"] is not None
            else "Not evaluated"
        )
        cells[3].text = item["feedback"] or ""

    doc.save(file_path)
