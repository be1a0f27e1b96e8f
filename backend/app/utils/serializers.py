from datetime import datetime

from ..models.application import Application
from ..models.job import Job
from ..models.user import User


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else value


def user_to_public(user: User) -> dict:
    # Never include the password hash.
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "profileData": user.profile_data,
        "createdAt": _iso(user.created_at),
    }


def job_to_public(job: Job, *, employer: User | None = None) -> dict:
    payload = {
        "id": job.id,
        "employerId": job.employer_id,
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "jobType": job.job_type,
        "experienceLevel": job.experience_level,
        "salaryMin": job.salary_min,
        "salaryMax": job.salary_max,
        "description": job.description,
        "requirements": job.requirements,
        "skills": list(job.skills or []),
        "contactEmail": job.contact_email,
        "deadline": _iso(job.deadline),
        "status": job.status,
        "createdAt": _iso(job.created_at),
        "updatedAt": _iso(job.updated_at),
    }
    if employer is not None:
        payload["employer"] = user_to_public(employer)
    return payload


def application_to_public(application: Application, *, job: Job | None = None, candidate: User | None = None) -> dict:
    payload = {
        "id": application.id,
        "jobId": application.job_id,
        "candidateId": application.candidate_id,
        "status": application.status,
        "coverLetter": application.cover_letter,
        "matchScore": application.match_score,
        "appliedAt": _iso(application.applied_at),
        "updatedAt": _iso(application.updated_at),
    }
    if job is not None:
        payload["job"] = job_to_public(job)
    if candidate is not None:
        payload["candidate"] = user_to_public(candidate)
    return payload
