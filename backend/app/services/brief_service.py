import uuid
from datetime import date, datetime

from sqlalchemy.orm import Session

from app.models.assessment import BlackAssessment
from app.models.brief import BlackStudentBrief
from app.models.grade import BlackGrade
from app.models.student import BlackStudent

RECENT_GRADES_LIMIT = 5


def _format_number(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{float(value):g}"


class BriefService:
    """Recomputes the denormalized per-student brief read by admin tools and digests."""

    def refresh(self, db: Session, student_id: uuid.UUID, *, today: date | None = None) -> BlackStudentBrief | None:
        student = db.get(BlackStudent, student_id)
        if not student:
            return None
        today = today or datetime.utcnow().date()

        upcoming = (
            db.query(BlackAssessment)
            .filter(
                BlackAssessment.student_id == student_id,
                BlackAssessment.when_at.is_not(None),
                BlackAssessment.when_at >= today,
            )
            .order_by(BlackAssessment.when_at.asc(), BlackAssessment.created_at.asc())
            .first()
        )
        grades = (
            db.query(BlackGrade)
            .filter(BlackGrade.student_id == student_id)
            .order_by(BlackGrade.when_at.desc(), BlackGrade.created_at.desc())
            .limit(RECENT_GRADES_LIMIT)
            .all()
        )

        student.next_assessment_date = upcoming.when_at if upcoming else None
        student.next_assessment_subject = upcoming.subject if upcoming else None

        brief_md = self.render(student, upcoming, grades, today=today)
        brief = db.get(BlackStudentBrief, student_id)
        if brief is None:
            brief = BlackStudentBrief(student_id=student_id, brief_md=brief_md)
        brief.brief_md = brief_md
        brief.updated_at = datetime.utcnow()
        db.add_all([student, brief])
        db.commit()
        return brief

    def render(
        self,
        student: BlackStudent,
        upcoming: BlackAssessment | None,
        grades: list[BlackGrade],
        *,
        today: date,
    ) -> str:
        name = student.full_name or "Studente"
        lines = [f"{name} — Brief Black", ""]

        contacts = [
            value
            for value in (student.parent_name, student.parent_email, student.student_email)
            if value
        ]
        if contacts:
            lines += ["Contatti", " — ".join(contacts), ""]
        if student.goal:
            lines += ["Obiettivo", student.goal, ""]
        if student.difficulty_focus:
            lines += ["Focus", student.difficulty_focus, ""]

        lines.append("Stato")
        lines.append(f"Readiness: {student.readiness}/100")
        lines.append(f"Rischio: {student.risk_level}")
        if upcoming:
            subject = upcoming.subject or "verifica"
            lines.append(f"Prossima verifica: {subject} — {upcoming.when_at.isoformat()}")
            if upcoming.topics:
                lines.append(f"Argomenti: {upcoming.topics.splitlines()[0]}")
        else:
            lines.append("Prossima verifica: nessuna")
        lines.append("")

        if grades:
            lines.append("Ultimi voti")
            for grade in grades:
                when = grade.when_at.isoformat() if grade.when_at else "data sconosciuta"
                subject = grade.subject or "verifica"
                lines.append(
                    f"- {when} {subject}: {_format_number(grade.score)}/{_format_number(grade.max_score)}"
                )
            lines.append("")

        lines.append(f"Aggiornato: {today.isoformat()}")
        return "\n".join(lines)


# Singleton instance
brief_service = BriefService()
