"""Scorecard exports (Excel, PDF, JSON) and bulk-upload templates."""

import csv
import io
import json
import logging
from datetime import datetime, timezone
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.services.scorecard_builder.bands import VariableKind, classify_variable
from app.services.scorecard_builder.record_scoring import field_key

logger = logging.getLogger(__name__)

HEADER_COLOR = "1F4E79"
SAMPLE_ROWS = 5

_SAMPLE_VALUES = {
    VariableKind.AGE: [28, 35, 42, 51, 24],
    VariableKind.INCOME: [65000, 120000, 45000, 250000, 30000],
    VariableKind.CREDIT_SCORE: [780, 720, 650, 590, 810],
    VariableKind.GENERIC: [60, 75, 40, 85, 55],
}


def _variables(config: dict):
    for category_name, category in config.get("categories", {}).items():
        for variable in category.get("variables", []):
            yield category_name, category, variable


def _kind(variable: dict) -> VariableKind:
    kind = variable.get("kind")
    return VariableKind(kind) if kind else classify_variable(variable.get("name", ""))


def _summary_rows(scorecard: dict, config: dict) -> list[tuple[str, str]]:
    metadata = config.get("metadata", {})
    score_range = metadata.get("scoreRange", [0, 1000])
    return [
        ("Name", scorecard.get("name", "")),
        ("Product", scorecard.get("product", "")),
        ("Segment", scorecard.get("segment", "")),
        ("Version", scorecard.get("version", "")),
        ("Status", scorecard.get("status", "")),
        ("Target approval rate", f"{metadata.get('targetApprovalRate', '')}%"),
        ("Achieved approval rate", f"{metadata.get('achievedApprovalRate', '')}%"),
        ("Score range", f"{score_range[0]} - {score_range[1]}"),
    ]


# ---------------------------------------------------------------------------
# Format renderers
# ---------------------------------------------------------------------------

def export_json(scorecard: dict, config: dict) -> bytes:
    document = {
        "id": scorecard.get("id"),
        "name": scorecard.get("name"),
        "product": scorecard.get("product"),
        "segment": scorecard.get("segment"),
        "version": scorecard.get("version"),
        "status": scorecard.get("status"),
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "config": config,
    }
    return json.dumps(document, indent=2, default=str).encode("utf-8")


def export_excel(scorecard: dict, config: dict) -> bytes:
    """Summary, Bands and Buckets sheets."""
    wb = Workbook()
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")

    def write_header(ws, columns: list[str]) -> None:
        for col_idx, name in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col_idx, value=name)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
        ws.freeze_panes = "A2"

    summary = wb.active
    summary.title = "Summary"
    write_header(summary, ["Field", "Value"])
    for row in _summary_rows(scorecard, config):
        summary.append(list(row))
    summary.column_dimensions["A"].width = 26
    summary.column_dimensions["B"].width = 40

    bands = wb.create_sheet("Bands")
    write_header(bands, ["Category", "Weight %", "Variable", "Max Points", "Condition", "Score", "Description"])
    for category_name, category, variable in _variables(config):
        for band in variable.get("bands", []):
            bands.append([
                category_name,
                category.get("weight"),
                variable.get("name"),
                variable.get("totalScore"),
                band.get("condition"),
                band.get("score"),
                band.get("description"),
            ])
    for letter, width in zip("ABCDEFG", (24, 10, 28, 12, 16, 8, 30)):
        bands.column_dimensions[letter].width = width

    buckets = wb.create_sheet("Buckets")
    write_header(buckets, ["Bucket", "Min", "Max", "Description", "Approval Rate %"])
    for label, bucket in config.get("bucketMapping", {}).items():
        buckets.append([label, bucket.get("min"), bucket.get("max"), bucket.get("description"), bucket.get("approvalRate")])

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def export_pdf(scorecard: dict, config: dict) -> bytes:
    output = io.BytesIO()
    doc = SimpleDocTemplate(output, pagesize=A4)
    styles = getSampleStyleSheet()
    table_style = TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(f"#{HEADER_COLOR}")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F5F5F5")]),
    ])

    elements = [
        Paragraph(escape(scorecard.get("name") or "Scorecard"), styles["Title"]),
        Paragraph(
            f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
            styles["Normal"],
        ),
        Spacer(1, 0.2 * inch),
    ]

    summary = Table([["Field", "Value"], *[list(r) for r in _summary_rows(scorecard, config)]], repeatRows=1)
    summary.setStyle(table_style)
    elements += [summary, Spacer(1, 0.3 * inch)]

    for category_name, category in config.get("categories", {}).items():
        elements.append(Paragraph(escape(f"{category_name} ({category.get('weight', 0)}%)"), styles["Heading2"]))
        rows = [["Variable", "Condition", "Score", "Description"]]
        for variable in category.get("variables", []):
            for band in variable.get("bands", []):
                rows.append([variable.get("name"), band.get("condition"), str(band.get("score")), band.get("description")])
        table = Table(rows, repeatRows=1)
        table.setStyle(table_style)
        elements += [table, Spacer(1, 0.2 * inch)]

    buckets = [["Bucket", "Range", "Description", "Approval %"]]
    for label, bucket in config.get("bucketMapping", {}).items():
        buckets.append([label, f"{bucket.get('min')} - {bucket.get('max')}", bucket.get("description"), str(bucket.get("approvalRate"))])
    bucket_table = Table(buckets, repeatRows=1)
    bucket_table.setStyle(table_style)
    elements += [Paragraph("Bucket Mapping", styles["Heading2"]), bucket_table]

    explain = config.get("explainability") or {}
    if explain:
        elements.append(Spacer(1, 0.2 * inch))
        for key in ("scoringLogic", "bucketRationale", "summary"):
            if explain.get(key):
                elements.append(Paragraph(escape(explain[key]), styles["Normal"]))

    doc.build(elements)
    return output.getvalue()


EXPORTERS = {
    "excel": (export_excel, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
    "pdf": (export_pdf, "application/pdf", "pdf"),
    "json": (export_json, "application/json", "json"),
}


def export_scorecard(scorecard: dict, config: dict, fmt: str) -> tuple[bytes, str, str]:
    """Render a scorecard; returns (content, media type, file name)."""
    fmt = fmt.lower()
    if fmt not in EXPORTERS:
        raise ValueError(f"Unsupported format: {fmt}. Supported: {list(EXPORTERS)}")
    renderer, media_type, extension = EXPORTERS[fmt]
    content = renderer(scorecard, config)
    stem = field_key(scorecard.get("name") or "scorecard") or "scorecard"
    logger.info("Exported scorecard %s as %s (%d bytes)", scorecard.get("id"), fmt, len(content))
    return content, media_type, f"{stem}_v{scorecard.get('version', '1.0')}.{extension}"


# ---------------------------------------------------------------------------
# Bulk-upload template
# ---------------------------------------------------------------------------

def build_template(config: dict) -> dict:
    """Headers, sample rows and data types for a scorecard's upload file."""
    variables = [v for _, _, v in _variables(config)]
    headers = ["application_id"] + [field_key(v.get("name", "")) for v in variables]
    data_types = {"application_id": "text"}
    rows = []
    for i in range(SAMPLE_ROWS):
        row = {"application_id": f"APP{i + 1:03d}"}
        for variable in variables:
            key = field_key(variable.get("name", ""))
            if variable.get("type") == "categorical":
                conditions = [b.get("condition") for b in variable.get("bands", [])] or ["Good"]
                row[key] = conditions[(i + 2) % len(conditions)]
                data_types[key] = "text"
            else:
                row[key] = _SAMPLE_VALUES[_kind(variable)][i]
                data_types[key] = "number"
        rows.append(row)
    return {"headers": headers, "sampleData": rows, "dataTypes": data_types}


def template_csv(template: dict) -> bytes:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=template["headers"], extrasaction="ignore")
    writer.writeheader()
    for row in template["sampleData"]:
        writer.writerow(row)
    return output.getvalue().encode("utf-8")
