"""
Pre-exam tips: the evening before an assessment, parents receive a short
AI-written email with practical advice.

Runs as part of the daily readiness decay cron. Each sent email is recorded in
``black_contact_logs`` with an ``[assessment:<id>]`` token, so an assessment
is never mailed twice. Operators can trigger a one-off test send with an
arbitrary payload through ``action=test-pre-exam``.
"""

from __future__ import annotations

import html
import json
import logging
import re
import smtplib
import uuid
from datetime import date, datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Protocol

import openai
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.assessment import BlackAssessment
from app.models.brief import BlackStudentBrief
from app.models.contact_log import BlackContactLog
from app.models.student import BlackStudent

logger = logging.getLogger(__name__)

PRE_EXAM_SOURCE = "pre_exam_tip_email"
LOG_WINDOW_DAYS = 30
CONTEXT_LOGS_LIMIT = 8
TEST_SUBJECT_PREFIX = "[TEST]"

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
_TOKEN_RE = re.compile(r"\[assessment:[^\]]+\]")

_WEEKDAYS = ["lunedì", "martedì", "mercoledì", "giovedì", "venerdì", "sabato", "domenica"]
_MONTHS = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]

SYSTEM_PROMPT = """Sei un coach didattico di Theoremz. Analizza le informazioni e produci consigli pratici e rassicuranti per i genitori.
Requisiti:
- linguaggio italiano, tono calmo e incoraggiante;
- non citare il nome dello studente né usare saluti: entra subito nel merito;
- la preparazione è fatta: concentrati su presentazione pulita, gestione del tempo, errori di distrazione e partire dagli esercizi più facili;
- ogni suggerimento è una frase completa con una sola idea chiara;
- restituisci SOLO JSON con i campi: focus_points (array di 1-3 frasi), study_actions (array di 1-3 frasi), motivation (frase breve), reminders (array opzionale di frasi corte)."""


class TipPlan(BaseModel):
    focus_points: list[str | dict[str, Any]] | str | None = None
    study_actions: list[str | dict[str, Any]] | str | None = None
    motivation: str | None = None
    reminders: list[str | dict[str, Any]] | str | None = None


class ComposedEmail(BaseModel):
    subject: str
    text: str
    html: str
    preview: str


class TipGenerator(Protocol):
    def generate(self, *, context: str) -> TipPlan | None: ...


class Mailer(Protocol):
    def send(self, *, to: list[str], cc: str | None, subject: str, text: str, html_body: str) -> None: ...


class OpenAITipGenerator:
    def __init__(self, client: openai.OpenAI, model: str):
        self.client = client
        self.model = model

    def generate(self, *, context: str) -> TipPlan | None:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": context},
                ],
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError:
            logger.exception("Pre-exam tip generation failed")
            return None

        raw = (response.choices[0].message.content or "").strip()
        if not raw:
            return None
        try:
            return TipPlan.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.error("Could not parse pre-exam tip response: %s", raw[:500])
            return None


class SmtpMailer:
    def __init__(self, user: str, password: str, host: str = "smtp.gmail.com", port: int = 465):
        self.user = user
        self.password = password
        self.host = host
        self.port = port

    def send(self, *, to: list[str], cc: str | None, subject: str, text: str, html_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"Team Theoremz <{self.user}>"
        msg["To"] = ", ".join(to)
        if cc:
            msg["Cc"] = cc
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        with smtplib.SMTP_SSL(self.host, self.port) as smtp:
            smtp.login(self.user, self.password)
            smtp.send_message(msg)


def default_tip_generator() -> TipGenerator | None:
    if not settings.OPENAI_API_KEY:
        return None
    return OpenAITipGenerator(openai.OpenAI(api_key=settings.OPENAI_API_KEY), settings.LLM_MODEL_NAME)


def default_mailer() -> Mailer | None:
    if not settings.GMAIL_USER or not settings.GMAIL_APP_PASS:
        return None
    return SmtpMailer(settings.GMAIL_USER, settings.GMAIL_APP_PASS)


def extract_emails(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item for item in re.split(r"[,;\s]+", raw.strip()) if _EMAIL_RE.fullmatch(item)]


def build_assessment_token(assessment_id: uuid.UUID | str) -> str:
    return f"[assessment:{assessment_id}]"


def extract_assessment_token(body: str | None) -> str | None:
    match = _TOKEN_RE.search(body or "")
    return match.group(0) if match else None


def truncate(text: str | None, limit: int = 4000) -> str:
    if not text:
        return ""
    return f"{text[:limit]}…" if len(text) > limit else text


def format_italian_date(value: date | None) -> str:
    if value is None:
        return "domani"
    return f"{_WEEKDAYS[value.weekday()]} {value.day:02d} {_MONTHS[value.month - 1]}"


def extract_student_name(brief_md: str | None) -> str | None:
    for line in (brief_md or "").splitlines():
        if line.strip():
            return line.split("—")[0].strip() or None
    return None


def sanitize_output(text: str | None, brief_md: str | None = None) -> str:
    if not text:
        return ""
    result = text.strip()
    name = extract_student_name(brief_md)
    if name:
        result = re.sub(re.escape(name), "tuo figlio", result, flags=re.IGNORECASE)
    return result


def normalize_section_entries(value: Any, brief_md: str | None = None) -> list[str]:
    if not value:
        return []
    entries = value.split("\n") if isinstance(value, str) else value
    lines = []
    for entry in entries:
        if not entry:
            continue
        if isinstance(entry, dict):
            parts = [sanitize_output(entry.get(key), brief_md) for key in ("title", "detail")]
            entry = ": ".join(part for part in parts if part)
        clean = sanitize_output(str(entry), brief_md)
        if clean:
            lines.append(clean)
    return lines


def build_prompt_context(
    *,
    parent_name: str | None,
    assessment: BlackAssessment,
    brief_md: str | None,
    logs: list[BlackContactLog],
    goal: str | None,
    difficulty: str | None,
) -> str:
    if logs:
        log_lines = []
        for log in logs[:CONTEXT_LOGS_LIMIT]:
            author = f" ({log.author_label})" if log.author_label else ""
            log_lines.append(
                f"- {log.contacted_at:%d/%m %H:%M}{author}: {truncate(log.body or '—', 280)}"
            )
        log_summary = "\n".join(log_lines)
    else:
        log_summary = f"Nessun log negli ultimi {LOG_WINDOW_DAYS} giorni."

    lines = [
        f"Genitore: {parent_name or 'Famiglia studente'}",
        f"Verifica: {assessment.subject or 'materia'} il {format_italian_date(assessment.when_at)}",
        f"Obiettivo: {goal}" if goal else None,
        f"Difficoltà dichiarate: {difficulty}" if difficulty else None,
        "",
        "Scheda riassuntiva:",
        truncate(brief_md or "Nessuna scheda disponibile.", 4000),
        "",
        "Log chat recenti:",
        log_summary,
    ]
    return "\n".join(line for line in lines if line is not None)


def _render_html(intro: str, sections: list[tuple[str, list[str]]], motivation: str, closing: str) -> str:
    blocks = []
    for title, items in sections:
        if not items:
            continue
        inner = "".join(f"<li>{html.escape(item)}</li>" for item in items)
        blocks.append(
            f'<div style="margin:16px 0"><p style="margin:0 0 4px;font-weight:600">'
            f"{html.escape(title)}</p><ul>{inner}</ul></div>"
        )
    closing_html = html.escape(closing).replace("\n", "<br/>")
    return (
        '<div style="background:#f8fafc;padding:24px">'
        '<div style="max-width:680px;margin:0 auto;background:#ffffff;border-radius:20px;'
        'font-family:Inter,system-ui,sans-serif;color:#0f172a">'
        '<div style="background:#0f172a;color:#f8fafc;padding:18px 26px;font-weight:700">'
        "Ci siamo quasi...</div>"
        f'<div style="padding:28px 32px;line-height:1.6"><p>{html.escape(intro)}</p>'
        f"{''.join(blocks)}"
        f'<p style="margin-top:22px">{html.escape(motivation)}</p>'
        f'<p style="margin-top:30px;font-weight:600">{closing_html}</p></div>'
        "</div></div>"
    )


def compose_email(
    *,
    parent_name: str | None,
    assessment: BlackAssessment,
    plan: TipPlan,
    brief_md: str | None,
) -> ComposedEmail | None:
    focus = normalize_section_entries(plan.focus_points, brief_md)
    actions = normalize_section_entries(plan.study_actions, brief_md)
    reminders = normalize_section_entries(plan.reminders, brief_md)
    if not focus and not actions and not reminders:
        return None

    subject_label = assessment.subject or "la verifica di domani"
    date_label = format_italian_date(assessment.when_at)
    recipient = (parent_name or "").strip() or "genitori"
    intro = (
        f"Ciao {recipient}, ti scrivo per la verifica di {subject_label} di domani ({date_label}). "
        "Hai già fatto il grosso: oggi pensa solo a rifinire e a come affrontare la verifica con calma."
    )
    motivation = sanitize_output(
        plan.motivation or "Siamo qui, scrivici se serve un check veloce.", brief_md
    )
    closing = "In bocca al lupo,\nTeam Theoremz"
    sections = [
        ("Priorità da tenere a mente", focus),
        ("Mini-piano per oggi", actions),
        ("Promemoria veloci", reminders),
    ]

    parts = [intro]
    for title, items in sections:
        if items:
            parts.append(title + ":\n" + "\n".join(f"• {item}" for item in items))
    parts += [motivation, closing]

    first_tip = (focus or actions or reminders)[0]
    return ComposedEmail(
        subject=(
            "Ci siamo quasi... Ecco qualche consiglio per la verifica di "
            f"{subject_label} ({date_label})"
        ),
        text="\n\n".join(parts),
        html=_render_html(intro, sections, motivation, closing),
        preview=truncate(f"{subject_label} {date_label} | {first_tip}".strip(), 160),
    )


def _parse_test_date(value: Any) -> date | None:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _parse_test_log(raw: Any) -> BlackContactLog | None:
    if not isinstance(raw, dict):
        return None
    stamp = raw.get("contacted_at") or raw.get("date")
    try:
        contacted_at = datetime.fromisoformat(str(stamp).replace("Z", "+00:00"))
    except ValueError:
        contacted_at = datetime.utcnow()
    body = raw.get("body")
    if not isinstance(body, str) or not body.strip():
        body = raw.get("summary") or "Nota di prova."
    return BlackContactLog(
        contacted_at=contacted_at,
        source=raw.get("source") or "test_payload",
        body=body.strip(),
        author_label=raw.get("author_label") or raw.get("author") or "tester",
    )


def default_test_brief(parent_name: str, today: date) -> str:
    return "\n".join(
        [
            "STUDENTE BLACK — Brief di prova",
            "",
            "Contatti",
            f"Genitore: {parent_name} — famiglia@example.com",
            "Studente: studente@example.com",
            "",
            "Obiettivo",
            "Portare matematica e fisica sopra il 7 entro fine quadrimestre.",
            "",
            "Focus",
            "Algebra, problemi con testi lunghi, gestione del tempo in verifica.",
            "",
            "Stato",
            "Readiness: 58/100",
            "Rischio: yellow",
            "Prossima verifica: Matematica — domani",
            "",
            f"Aggiornato: {today:%d/%m/%Y}",
        ]
    )


class PreExamTipService:
    def __init__(
        self,
        generator: TipGenerator | None,
        mailer: Mailer | None,
        cc: str | None = None,
        test_to: str | None = None,
    ):
        self.generator = generator
        self.mailer = mailer
        self.cc = cc
        self.test_to = test_to

    def run(self, db: Session, *, today: date | None = None) -> dict[str, Any]:
        if self.generator is None:
            return {"skipped": "missing_openai_api_key"}
        if self.mailer is None:
            return {"skipped": "missing_mail_transport"}

        today = today or datetime.utcnow().date()
        target_date = today + timedelta(days=1)
        assessments = (
            db.query(BlackAssessment)
            .filter(BlackAssessment.when_at == target_date)
            .order_by(BlackAssessment.created_at.asc(), BlackAssessment.id.asc())
            .all()
        )
        if not assessments:
            return {"processed": 0, "sent": 0}

        student_ids = {row.student_id for row in assessments}
        students = {
            row.id: row
            for row in db.query(BlackStudent).filter(BlackStudent.id.in_(student_ids)).all()
        }
        briefs = {
            row.student_id: row.brief_md
            for row in db.query(BlackStudentBrief)
            .filter(BlackStudentBrief.student_id.in_(student_ids))
            .all()
        }
        window_start = datetime.utcnow() - timedelta(days=LOG_WINDOW_DAYS)
        logs = (
            db.query(BlackContactLog)
            .filter(
                BlackContactLog.student_id.in_(student_ids),
                BlackContactLog.contacted_at >= window_start,
            )
            .order_by(BlackContactLog.contacted_at.desc())
            .limit(max(50, len(student_ids) * 20))
            .all()
        )

        logs_by_student: dict[uuid.UUID, list[BlackContactLog]] = {}
        sent_tokens: dict[uuid.UUID, set[str]] = {}
        for log in logs:
            if log.source == PRE_EXAM_SOURCE:
                token = extract_assessment_token(log.body)
                if token:
                    sent_tokens.setdefault(log.student_id, set()).add(token)
            else:
                logs_by_student.setdefault(log.student_id, []).append(log)

        sent = 0
        for assessment in assessments:
            student = students.get(assessment.student_id)
            if not student:
                continue
            recipients = extract_emails(student.parent_email)
            if not recipients:
                continue
            token = build_assessment_token(assessment.id)
            tokens = sent_tokens.setdefault(student.id, set())
            if token in tokens:
                continue

            brief_md = briefs.get(student.id)
            plan = self.generator.generate(
                context=build_prompt_context(
                    parent_name=student.parent_name,
                    assessment=assessment,
                    brief_md=brief_md,
                    logs=logs_by_student.get(student.id, []),
                    goal=student.goal,
                    difficulty=student.difficulty_focus,
                )
            )
            if plan is None:
                continue
            email = compose_email(
                parent_name=student.parent_name, assessment=assessment, plan=plan, brief_md=brief_md
            )
            if email is None:
                continue

            try:
                self.mailer.send(
                    to=recipients,
                    cc=self.cc,
                    subject=email.subject,
                    text=email.text,
                    html_body=email.html,
                )
            except (smtplib.SMTPException, OSError):
                logger.exception(
                    "Pre-exam email failed for student %s assessment %s", student.id, assessment.id
                )
                continue
            sent += 1
            tokens.add(token)

            try:
                db.add(
                    BlackContactLog(
                        student_id=student.id,
                        contacted_at=datetime.utcnow(),
                        source=PRE_EXAM_SOURCE,
                        body=f"{token} | {email.preview}",
                        author_label="cron_pre_exam",
                    )
                )
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                logger.exception(
                    "Pre-exam contact log failed for student %s assessment %s",
                    student.id,
                    assessment.id,
                )

        return {"processed": len(assessments), "sent": sent}

    def run_test(self, raw_body: bytes, *, today: date | None = None) -> dict[str, Any]:
        """Send one tip email built from an operator-supplied JSON payload."""
        if self.generator is None:
            return {"error": "missing_openai_api_key"}
        if self.mailer is None:
            return {"error": "missing_mail_transport"}
        try:
            payload = json.loads(raw_body)
        except ValueError:
            return {"error": "invalid_json"}
        if not isinstance(payload, dict):
            return {"error": "invalid_payload"}

        candidates = []
        if isinstance(payload.get("to"), list):
            candidates += [str(item) for item in payload["to"]]
        elif isinstance(payload.get("to"), str):
            candidates.append(payload["to"])
        if isinstance(payload.get("additionalTo"), str):
            candidates.append(payload["additionalTo"])
        if not candidates and self.test_to:
            candidates.append(self.test_to)
        to = extract_emails(",".join(candidates))
        if not to:
            return {"error": "missing_to"}

        today = today or datetime.utcnow().date()
        parent_name = payload.get("parentName") or "genitori"
        assessment = BlackAssessment(
            subject=payload.get("subject") or "Matematica",
            topics=payload.get("topics") or None,
            when_at=_parse_test_date(payload.get("date")) or today + timedelta(days=1),
        )
        logs = payload.get("logs") if isinstance(payload.get("logs"), list) else []
        brief_md = payload.get("briefMd")
        if not isinstance(brief_md, str) or not brief_md.strip():
            brief_md = default_test_brief(parent_name, today)

        plan = self.generator.generate(
            context=build_prompt_context(
                parent_name=parent_name,
                assessment=assessment,
                brief_md=brief_md,
                logs=[log for log in map(_parse_test_log, logs) if log is not None],
                goal=payload.get("goal") or None,
                difficulty=payload.get("difficulty") or None,
            )
        )
        if plan is None:
            return {"error": "ai_generation_failed"}
        email = compose_email(
            parent_name=parent_name, assessment=assessment, plan=plan, brief_md=brief_md
        )
        if email is None:
            return {"error": "email_compose_failed"}

        prefix = payload.get("subjectPrefix")
        prefix = prefix.strip() if isinstance(prefix, str) else TEST_SUBJECT_PREFIX
        mail_subject = f"{prefix} {email.subject}" if prefix else email.subject
        try:
            self.mailer.send(to=to, cc=None, subject=mail_subject, text=email.text, html_body=email.html)
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("Pre-exam test email failed")
            return {"error": str(exc) or "send_failed"}

        return {
            "sent": True,
            "to": to,
            "subject": mail_subject,
            "preview": email.preview,
            "ai": plan.model_dump(exclude_none=True),
        }


def default_pre_exam_service() -> PreExamTipService:
    return PreExamTipService(
        default_tip_generator(),
        default_mailer(),
        cc=settings.BLACK_PRE_EXAM_CC,
        test_to=settings.BLACK_PRE_EXAM_TEST_TO or settings.BLACK_PRE_EXAM_CC or settings.GMAIL_USER,
    )
