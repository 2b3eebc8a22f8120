from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)

from portal.db import Base

ROLES = ("Admin", "Recruiter", "Viewer")
CANDIDATE_STAGES = ("onboarding", "marketing", "interviewing", "offered", "placed", "inactive")
APPLICATION_STATUSES = ("sent", "viewed", "shortlisted", "interviewing", "offered", "hired", "rejected")
INTERVIEW_STATUSES = ("scheduled", "completed", "feedback_pending", "rejected", "advanced")
INTERVIEW_TYPES = ("phone", "video", "in_person", "technical", "hr", "final")
ASSESSMENT_STATUSES = ("assigned", "submitted", "passed", "failed", "waived")
REMINDER_STATUSES = ("pending", "sent", "snoozed", "dismissed")
ALERT_STATUSES = ("open", "acknowledged", "resolved")
ATTENDANCE_STATUSES = ("present", "half-day", "absent", "leave")
APPROVAL_STATUSES = ("pending", "approved", "rejected")
LEAVE_CATEGORIES = ("cl", "sl", "emergency", "lwp")

# Upper bounds for numeric input.
MAX_BREAK_MINUTES = 24 * 60
MAX_APPLICATIONS_PER_ENTRY = 1000
MAX_DAILY_QUOTA = 1000
MAX_INTERVIEW_ROUND = 20
MAX_EXPERIENCE_YEARS = 80


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="Recruiter", index=True)
    daily_quota = Column(Integer, nullable=False, default=60)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(Text, nullable=False, default="")
    last_active_at = Column(Text, nullable=False, default="")
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    phone = Column(String(64), nullable=False, default="")
    visa_status = Column(String(64), nullable=False, default="")
    skills = Column(Text, nullable=False, default="")
    experience_years = Column(Integer, nullable=True)
    current_stage = Column(String(32), nullable=False, default="onboarding", index=True)
    marketing_start_date = Column(Date, nullable=True)
    assigned_recruiter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class CandidateAssignment(Base):
    __tablename__ = "candidate_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    recruiter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(Text, nullable=False, default="")
    unassigned_at = Column(Text, nullable=False, default="")


class Application(Base):
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    recruiter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    company_name = Column(String(255), nullable=False)
    job_title = Column(String(255), nullable=False)
    job_description = Column(Text, nullable=False, default="")
    channel = Column(String(64), nullable=False, default="")
    status = Column(String(32), nullable=False, default="sent", index=True)
    application_date = Column(Date, nullable=False, index=True)
    applications_count = Column(Integer, nullable=False, default=1)
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(Text, nullable=False, default="")
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class Interview(Base):
    __tablename__ = "interviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    application_id = Column(Integer, ForeignKey("applications.id", ondelete="SET NULL"), nullable=True)
    recruiter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    company_name = Column(String(255), nullable=False)
    interview_type = Column(String(32), nullable=False, default="phone")
    round_number = Column(Integer, nullable=False, default=1)
    scheduled_date = Column(DateTime, nullable=False, index=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    status = Column(String(32), nullable=False, default="scheduled")
    feedback = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(Text, nullable=False, default="")
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    application_id = Column(Integer, ForeignKey("applications.id", ondelete="SET NULL"), nullable=True)
    recruiter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    assessment_platform = Column(String(128), nullable=False)
    assessment_type = Column(String(128), nullable=False, default="")
    assigned_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True, index=True)
    status = Column(String(32), nullable=False, default="assigned")
    score = Column(Float, nullable=True)
    notes = Column(Text, nullable=False, default="")
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(Text, nullable=False, default="")
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class Note(Base):
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class Reminder(Base):
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recruiter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=True)
    interview_id = Column(Integer, ForeignKey("interviews.id", ondelete="CASCADE"), nullable=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    due_date = Column(Text, nullable=False, default="")
    reminder_status = Column(String(32), nullable=False, default="pending")
    priority = Column(Integer, nullable=False, default=1)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    alert_type = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default="open", index=True)
    priority = Column(Integer, nullable=False, default=1)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="SET NULL"), nullable=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(Text, nullable=False, default="")
    acknowledged_at = Column(Text, nullable=False, default="")
    resolved_at = Column(Text, nullable=False, default="")


class DailyActivity(Base):
    __tablename__ = "daily_activity"
    __table_args__ = (UniqueConstraint("user_id", "activity_date", name="uq_daily_activity_user_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_date = Column(Date, nullable=False, index=True)
    applications_count = Column(Integer, nullable=False, default=0)
    interviews_count = Column(Integer, nullable=False, default=0)
    assessments_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(Text, nullable=False, default="")


class RecruiterCandidateActivity(Base):
    __tablename__ = "recruiter_candidate_activity"
    __table_args__ = (
        UniqueConstraint("recruiter_id", "candidate_id", "activity_date", name="uq_rc_activity_triplet"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    recruiter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False)
    activity_date = Column(Date, nullable=False)
    applications_count = Column(Integer, nullable=False, default=0)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class AttendanceEntry(Base):
    __tablename__ = "attendance_entries"
    __table_args__ = (UniqueConstraint("user_id", "attendance_date", name="uq_attendance_user_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    attendance_date = Column(Date, nullable=False, index=True)
    reported_status = Column(String(16), nullable=False, default="present")
    approval_status = Column(String(16), nullable=False, default="pending", index=True)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(Text, nullable=False, default="")
    reviewer_note = Column(Text, nullable=False, default="")
    check_in_time = Column(Time, nullable=True)
    check_out_time = Column(Time, nullable=True)
    break_minutes = Column(Integer, nullable=False, default=0)
    leave_category = Column(String(16), nullable=False, default="")
    informed_leave = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False, default="")
    updated_at = Column(Text, nullable=False, default="")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(64), nullable=False, index=True)
    table_name = Column(String(64), nullable=False, default="", index=True)
    record_id = Column(Integer, nullable=True)
    old_values = Column(Text, nullable=False, default="")
    new_values = Column(Text, nullable=False, default="")
    ip_address = Column(String(64), nullable=False, default="")
    user_agent = Column(Text, nullable=False, default="")
    created_at = Column(Text, nullable=False, default="", index=True)
