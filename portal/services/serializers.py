from __future__ import annotations

from typing import Any

from portal.models import Alert, Application, Assessment, Candidate, Interview, Note, Reminder


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def candidate_dict(c: Candidate, *, recruiter_name: str | None = None) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone or None,
        "visaStatus": c.visa_status or None,
        "skills": c.skills or None,
        "experienceYears": c.experience_years,
        "currentStage": c.current_stage,
        "marketingStartDate": _iso(c.marketing_start_date),
        "assignedRecruiterId": c.assigned_recruiter_id,
        "recruiterName": recruiter_name,
        "createdAt": c.created_at,
        "updatedAt": c.updated_at,
    }


def application_dict(a: Application) -> dict[str, Any]:
    return {
        "id": a.id,
        "candidateId": a.candidate_id,
        "recruiterId": a.recruiter_id,
        "companyName": a.company_name,
        "jobTitle": a.job_title,
        "jobDescription": a.job_description or None,
        "channel": a.channel or None,
        "status": a.status,
        "applicationDate": _iso(a.application_date),
        "applicationsCount": a.applications_count,
        "isApproved": bool(a.is_approved),
        "approvedBy": a.approved_by,
        "approvedAt": a.approved_at or None,
        "createdAt": a.created_at,
        "updatedAt": a.updated_at,
    }


def interview_dict(i: Interview) -> dict[str, Any]:
    return {
        "id": i.id,
        "candidateId": i.candidate_id,
        "applicationId": i.application_id,
        "recruiterId": i.recruiter_id,
        "companyName": i.company_name,
        "interviewType": i.interview_type,
        "roundNumber": i.round_number,
        "scheduledDate": _iso(i.scheduled_date),
        "timezone": i.timezone,
        "status": i.status,
        "feedback": i.feedback or None,
        "notes": i.notes or None,
        "isApproved": bool(i.is_approved),
        "approvedBy": i.approved_by,
        "approvedAt": i.approved_at or None,
        "createdAt": i.created_at,
        "updatedAt": i.updated_at,
    }


def assessment_dict(a: Assessment) -> dict[str, Any]:
    return {
        "id": a.id,
        "candidateId": a.candidate_id,
        "applicationId": a.application_id,
        "recruiterId": a.recruiter_id,
        "assessmentPlatform": a.assessment_platform,
        "assessmentType": a.assessment_type or None,
        "assignedDate": _iso(a.assigned_date),
        "dueDate": _iso(a.due_date),
        "status": a.status,
        "score": a.score,
        "notes": a.notes or None,
        "isApproved": bool(a.is_approved),
        "approvedBy": a.approved_by,
        "approvedAt": a.approved_at or None,
        "createdAt": a.created_at,
        "updatedAt": a.updated_at,
    }


def note_dict(n: Note, *, author_name: str | None = None) -> dict[str, Any]:
    return {
        "id": n.id,
        "candidateId": n.candidate_id,
        "authorId": n.author_id,
        "authorName": author_name,
        "content": n.content,
        "isPrivate": bool(n.is_private),
        "createdAt": n.created_at,
        "updatedAt": n.updated_at,
    }


def reminder_dict(r: Reminder) -> dict[str, Any]:
    return {
        "id": r.id,
        "recruiterId": r.recruiter_id,
        "candidateId": r.candidate_id,
        "interviewId": r.interview_id,
        "assessmentId": r.assessment_id,
        "title": r.title,
        "description": r.description or None,
        "dueDate": r.due_date or None,
        "status": r.reminder_status,
        "priority": r.priority,
        "createdAt": r.created_at,
    }


def alert_dict(a: Alert) -> dict[str, Any]:
    return {
        "id": a.id,
        "userId": a.user_id,
        "alertType": a.alert_type,
        "title": a.title,
        "message": a.message,
        "status": a.status,
        "priority": a.priority,
        "candidateId": a.candidate_id,
        "assessmentId": a.assessment_id,
        "createdAt": a.created_at,
        "acknowledgedAt": a.acknowledged_at or None,
        "resolvedAt": a.resolved_at or None,
    }
