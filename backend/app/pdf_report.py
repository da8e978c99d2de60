"""
PDF report for a paid audit: rendered with reportlab, stored in a public
Supabase Storage bucket.
"""

import asyncio
import io
import time
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.models import Audit

SECTION_LABELS = {
    "headline": "Headline",
    "aboutMe": "About Me",
    "specialties": "Specialties",
    "clientFocus": "Client Focus",
    "treatmentApproach": "Treatment Approach",
    "credentials": "Credentials",
    "photo": "Photo",
}


def _p(text, style):
    return Paragraph(escape(str(text or "")), style)


def render_audit_pdf(audit: Audit) -> bytes:
    data = audit.audit_data
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, title="Psychology Today Profile Audit")
    styles = getSampleStyleSheet()
    story = []

    # Cover
    story.append(Spacer(1, 80))
    story.append(_p("Psychology Today Profile Audit", styles["Title"]))
    story.append(_p(audit.profile_url, styles["Normal"]))
    story.append(Spacer(1, 20))
    story.append(_p(f"Overall Score: {data.get('overallScore')}/100", styles["Heading2"]))
    story.append(_p(f"Performance Level: {data.get('performanceLevel')}", styles["Heading2"]))

    summary = data.get("executiveSummary") or {}
    if summary:
        story.append(Spacer(1, 12))
        story.append(_p("Executive Summary", styles["Heading2"]))
        story.append(_p(summary.get("currentState"), styles["BodyText"]))
        for finding in summary.get("keyFindings") or []:
            story.append(_p(f"• {finding}", styles["BodyText"]))
        story.append(_p(summary.get("potentialImpact"), styles["Italic"]))
    story.append(PageBreak())

    sections = data.get("sectionScores") or {}
    if sections:
        story.append(_p("Section Scores", styles["Heading1"]))
        rows = [["Section", "Score", "Status", "Priority"]]
        for key, label in SECTION_LABELS.items():
            section = sections.get(key) or {}
            rows.append([label, str(section.get("score", "-")), section.get("status", "-"), section.get("priority", "-")])
        table = Table(rows, colWidths=[180, 60, 120, 80])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#10b981")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("PADDING", (0, 0), (-1, -1), 6),
        ]))
        story.append(table)
        story.append(Spacer(1, 16))

    issues = data.get("criticalIssues") or []
    if issues:
        story.append(_p("Critical Issues", styles["Heading1"]))
        for issue in issues:
            story.append(_p(f"{issue.get('title')} ({issue.get('severity')})", styles["Heading3"]))
            story.append(_p(issue.get("impact"), styles["BodyText"]))
            story.append(_p(f"Recommendation: {issue.get('recommendation')}", styles["BodyText"]))
            story.append(_p(f"Expected outcome: {issue.get('expectedOutcome')}", styles["BodyText"]))

    wins = data.get("quickWins") or []
    if wins:
        story.append(_p("Quick Wins", styles["Heading1"]))
        for win in wins:
            story.append(_p(
                f"{win.get('action')} ({win.get('timeRequired')}, {win.get('expectedImpact')} impact)",
                styles["Heading3"],
            ))
            story.append(_p(win.get("instructions"), styles["BodyText"]))

    roadmap = data.get("implementationRoadmap") or {}
    if roadmap:
        story.append(PageBreak())
        story.append(_p("30-Day Implementation Roadmap", styles["Heading1"]))
        for week in sorted(roadmap):
            plan = roadmap[week] or {}
            story.append(_p(f"{week.replace('week', 'Week ')}: {plan.get('focus')}", styles["Heading3"]))
            for task in plan.get("tasks") or []:
                story.append(_p(f"• {task}", styles["BodyText"]))
            story.append(_p(f"Estimated time: {plan.get('estimatedTime')}", styles["Italic"]))

    doc.build(story)
    return buffer.getvalue()


class SupabasePdfStorage:

    def __init__(self, settings):
        self.settings = settings

    def _get_client(self):
        url = self.settings.supabase_url
        key = self.settings.supabase_key
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in .env")
        from supabase import create_client
        return create_client(url, key)

    def _upload_sync(self, filename: str, content: bytes) -> str:
        bucket = self._get_client().storage.from_(self.settings.supabase_pdf_bucket)
        bucket.upload(filename, content, {"content-type": "application/pdf"})
        return bucket.get_public_url(filename)

    async def upload(self, filename: str, content: bytes) -> str:
        return await asyncio.to_thread(self._upload_sync, filename, content)


class PdfService:

    def __init__(self, storage, render=render_audit_pdf):
        self.storage = storage
        self.render = render

    async def generate(self, audit: Audit) -> tuple[str, int]:
        """Render and upload. Returns (public url, size in bytes)."""
        content = await asyncio.to_thread(self.render, audit)
        filename = f"audit-{audit.id}-{int(time.time() * 1000)}.pdf"
        url = await self.storage.upload(filename, content)
        print(f"  [pdf] Uploaded {filename} ({len(content)} bytes)")
        return url, len(content)
