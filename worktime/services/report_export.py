"""
Rendering von Compliance-Reports (CSV und PDF).
Gibt bytes zurück – Ablage übernimmt report_storage.

Die Ausgabe hängt nur von den übergebenen Daten ab (kein Erstellungsdatum,
keine Report-ID), damit gleiche Daten denselben SHA-256 ergeben.
"""
from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import TYPE_CHECKING, Sequence
from xml.sax.saxutils import escape
from zoneinfo import ZoneInfo

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, HRFlowable

from worktime.compliance.types import ReportFormat

if TYPE_CHECKING:
    from worktime.models.compliance import ComplianceViolation


# ── Farben (wie Lohnzettel, druckfreundlich) ─────────────────────────────────

_NAVY   = colors.HexColor("#1E3A5F")   # Header-Hintergrund
_LIGHT  = colors.HexColor("#F0F4F8")   # Tabellen-Zebrierung
_WHITE  = colors.white
_GRAY   = colors.HexColor("#6B7280")
_AMBER  = colors.HexColor("#D97706")
_RED    = colors.HexColor("#DC2626")
_GRID   = colors.HexColor("#E5E7EB")

CONTENT_TYPES = {
    ReportFormat.CSV: "text/csv; charset=utf-8",
    ReportFormat.PDF: "application/pdf",
}

TYPE_LABELS = {
    "REST_PERIOD_VIOLATION":     "Ruhezeit unterschritten",
    "SHIFT_DURATION_VIOLATION":  "Schichtdauer überschritten",
    "BREAK_MISSING":             "Pause fehlt",
    "WEEKLY_REST_VIOLATION":     "Wöchentliche Ruhezeit unterschritten",
    "MAX_WORKING_TIME_EXCEEDED": "Wöchentliche Höchstarbeitszeit überschritten",
}

SEVERITY_LABELS = {
    "warning": "Warnung",
    "error":   "Fehler",
}

CSV_HEADER = [
    "Erkannt am",
    "User ID",
    "Verstoß-Typ",
    "Severity",
    "Beginn",
    "Ende",
    "Erwartet",
    "Tatsächlich",
    "Beeinträchtigte Einträge",
    "Status",
]

_UTF8_BOM = b"\xef\xbb\xbf"


# ── Hilfsfunktionen ───────────────────────────────────────────────────────────

def _fmt_dt(val: datetime, tz: ZoneInfo) -> str:
    return val.astimezone(tz).strftime("%d.%m.%Y %H:%M")


def _fmt_date(val: datetime, tz: ZoneInfo) -> str:
    return val.astimezone(tz).strftime("%d.%m.%Y")


def _status(violation: "ComplianceViolation") -> str:
    return "Quittiert" if violation.acknowledged_at else "Offen"


def _tbl_style(base: list) -> TableStyle:
    return TableStyle(base)


# ── CSV ───────────────────────────────────────────────────────────────────────

def render_csv(
    violations: Sequence["ComplianceViolation"],
    tz: ZoneInfo,
) -> bytes:
    """CSV mit UTF-8 BOM (Excel), eine Zeile pro Verstoß."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for v in violations:
        details = v.details or {}
        writer.writerow([
            _fmt_date(v.detected_at, tz),
            v.user_id,
            v.violation_type,
            v.severity,
            _fmt_dt(v.period_start, tz),
            _fmt_dt(v.period_end, tz),
            details.get("expected", ""),
            details.get("actual", ""),
            "; ".join(details.get("affected_entries", [])),
            _status(v),
        ])

    return _UTF8_BOM + buf.getvalue().encode("utf-8")


# ── PDF ───────────────────────────────────────────────────────────────────────

def render_pdf(
    violations: Sequence["ComplianceViolation"],
    summary: dict,
    rule_set: str,
    period_start: datetime,
    period_end: datetime,
    tz: ZoneInfo,
) -> bytes:
    """Compliance-Report als PDF. invariant=True hält Datum und Dokument-ID fest."""

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=landscape(A4),
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title="Compliance-Report",
        author="worktime",
        creator="worktime",
        invariant=True,
    )

    styles = getSampleStyleSheet()
    normal = styles["Normal"]
    normal.fontName = "Helvetica"
    normal.fontSize = 8
    normal.leading = 10

    heading = ParagraphStyle(
        "heading",
        parent=normal,
        fontSize=11,
        fontName="Helvetica-Bold",
        textColor=_NAVY,
        spaceAfter=4,
    )
    small_gray = ParagraphStyle(
        "small_gray",
        parent=normal,
        fontSize=7,
        textColor=_GRAY,
    )

    story = []
    page_w = landscape(A4)[0] - 3 * cm  # nutzbare Breite
    period_label = f"{_fmt_date(period_start, tz)} – {_fmt_date(period_end, tz)}"

    # ── Header ────────────────────────────────────────────────────────────────
    header_tbl = Table([[
        Paragraph("<font color='white'><b>Compliance-Report</b></font>", styles["Title"]),
        Paragraph(f"<font color='white'>Zeitraum: {period_label}<br/>"
                  f"Regel-Set: {escape(rule_set.upper())}</font>", normal),
    ]], colWidths=[page_w * 0.6, page_w * 0.4])
    header_tbl.setStyle(_tbl_style([
        ("BACKGROUND",  (0, 0), (-1, -1), _NAVY),
        ("VALIGN",      (0, 0), (-1, -1), "MIDDLE"),
        ("ALIGN",       (1, 0), (1, 0),   "RIGHT"),
        ("TOPPADDING",  (0, 0), (-1, -1), 8),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ("LEFTPADDING", (0, 0), (-1, -1), 10),
        ("RIGHTPADDING", (0, 0), (-1, -1), 10),
    ]))
    story.append(header_tbl)
    story.append(Spacer(1, 0.4 * cm))

    # ── Zusammenfassung ───────────────────────────────────────────────────────
    story.append(Paragraph("Zusammenfassung", heading))

    by_severity = summary.get("violations_by_severity", {})
    summary_rows = [
        ["", "Anzahl"],
        ["Gesamt Verstöße", str(summary.get("total_violations", 0))],
        ["Warnungen", str(by_severity.get("warning", 0))],
        ["Fehler", str(by_severity.get("error", 0))],
    ]
    for vtype, count in sorted(summary.get("violations_by_type", {}).items()):
        summary_rows.append([TYPE_LABELS.get(vtype, vtype), str(count)])

    summary_tbl = Table(summary_rows, colWidths=[page_w * 0.5, page_w * 0.15])
    summary_tbl.setStyle(_tbl_style([
        ("BACKGROUND",    (0, 0), (-1, 0),  _NAVY),
        ("TEXTCOLOR",     (0, 0), (-1, 0),  _WHITE),
        ("FONTNAME",      (0, 0), (-1, 0),  "Helvetica-Bold"),
        ("FONTNAME",      (0, 1), (-1, 1),  "Helvetica-Bold"),
        ("FONTSIZE",      (0, 0), (-1, -1), 9),
        ("ALIGN",         (1, 0), (1, -1),  "RIGHT"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [_WHITE, _LIGHT]),
        ("TOPPADDING",    (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ("GRID",          (0, 0), (-1, -1), 0.25, _GRID),
    ]))
    story.append(summary_tbl)
    story.append(Spacer(1, 0.4 * cm))

    # ── Detailliste ───────────────────────────────────────────────────────────
    story.append(Paragraph("Detailliste", heading))

    if not violations:
        story.append(Paragraph("Keine Verstöße im Zeitraum.", normal))
    else:
        rows = [[
            "Erkannt", "Beginn", "User ID", "Typ", "Severity",
            "Erwartet", "Tatsächlich", "Einträge", "Status",
        ]]
        severity_styles = []
        for idx, v in enumerate(violations, start=1):
            details = v.details or {}
            rows.append([
                _fmt_date(v.detected_at, tz),
                _fmt_dt(v.period_start, tz),
                Paragraph(escape(v.user_id), normal),
                Paragraph(escape(TYPE_LABELS.get(v.violation_type, v.violation_type)), normal),
                SEVERITY_LABELS.get(v.severity, v.severity),
                Paragraph(escape(details.get("expected", "")), normal),
                Paragraph(escape(details.get("actual", "")), normal),
                Paragraph(escape("; ".join(details.get("affected_entries", []))), normal),
                _status(v),
            ])
            color = _RED if v.severity == "error" else _AMBER
            severity_styles.append(("TEXTCOLOR", (4, idx), (4, idx), color))

        detail_tbl = Table(
            rows,
            colWidths=[w * page_w for w in (0.08, 0.11, 0.12, 0.14, 0.07, 0.15, 0.13, 0.12, 0.08)],
            repeatRows=1,
        )
        detail_tbl.setStyle(_tbl_style([
            ("BACKGROUND",    (0, 0), (-1, 0),  _NAVY),
            ("TEXTCOLOR",     (0, 0), (-1, 0),  _WHITE),
            ("FONTNAME",      (0, 0), (-1, 0),  "Helvetica-Bold"),
            ("FONTSIZE",      (0, 0), (-1, -1), 8),
            ("VALIGN",        (0, 0), (-1, -1), "TOP"),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [_WHITE, _LIGHT]),
            ("TOPPADDING",    (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ("GRID",          (0, 0), (-1, -1), 0.25, _GRID),
            *severity_styles,
        ]))
        story.append(detail_tbl)

    # ── Footer ────────────────────────────────────────────────────────────────
    story.append(Spacer(1, 0.5 * cm))
    story.append(HRFlowable(width="100%", thickness=0.5, color=_GRAY))
    story.append(Spacer(1, 0.15 * cm))
    story.append(Paragraph(
        f"Zeitraum {period_label} · Regel-Set {escape(rule_set.upper())} · "
        f"Integrität über SHA-256 der Datei prüfbar",
        small_gray,
    ))

    doc.build(story)
    return buf.getvalue()


def render_report(
    fmt: ReportFormat,
    violations: Sequence["ComplianceViolation"],
    summary: dict,
    rule_set: str,
    period_start: datetime,
    period_end: datetime,
    tz: ZoneInfo,
) -> bytes:
    if ReportFormat(fmt) == ReportFormat.CSV:
        return render_csv(violations, tz)
    return render_pdf(violations, summary, rule_set, period_start, period_end, tz)
