"""
Read-only rollups for the dashboard. Recomputed on every call.
"""
import logging
from collections import Counter, defaultdict
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.application import Application, ApplicationStatus
from ..models.job import Job
from ..models.user import Role, User

logger = logging.getLogger(__name__)

# Checked in order; first keyword hit wins.
INDUSTRY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("Technology", ("software", "developer", "engineer")),
    ("Marketing & Sales", ("marketing", "sales")),
    ("Finance", ("finance", "accounting")),
    ("Design & Creative", ("design", "creative")),
]
OTHER_INDUSTRY = "Other"
TOP_N = 10


def classify_industry(title: str | None) -> str:
    t = (title or "").lower()
    for industry, keywords in INDUSTRY_KEYWORDS:
        if any(k in t for k in keywords):
            return industry
    return OTHER_INDUSTRY


def _jobs_by_industry(titles: list[str]) -> list[dict]:
    counts = Counter(classify_industry(t) for t in titles)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [{"industry": name, "count": n} for name, n in ordered]


def _day(value) -> str:
    # func.date() gives a string on SQLite and a date on MySQL.
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _application_trends(db: Session) -> list[dict]:
    day = func.date(Application.applied_at)
    rows = (
        db.query(day, func.count(Application.id))
        .group_by(day)
        .order_by(day.asc())
        .all()
    )
    return [{"date": _day(d), "count": int(n)} for d, n in rows if d is not None]


def _skill_demand(skill_lists: list) -> list[dict]:
    counts: Counter = Counter()
    spelling: dict[str, str] = {}
    for skills in skill_lists:
        if not isinstance(skills, list):
            continue
        for s in {str(x).strip() for x in skills if str(x).strip()}:
            key = s.lower()
            spelling.setdefault(key, s)
            counts[key] += 1
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_N]
    return [{"skill": spelling[k], "count": n} for k, n in ordered]


def _avg_salary_by_role(rows) -> list[dict]:
    midpoints: dict[str, list[float]] = defaultdict(list)
    for title, salary_min, salary_max in rows:
        if salary_min is None and salary_max is None:
            continue
        low = salary_min if salary_min is not None else salary_max
        high = salary_max if salary_max is not None else salary_min
        midpoints[title].append((low + high) / 2)

    averages = [
        {"role": title, "avgSalary": int(round(sum(values) / len(values))), "postings": len(values)}
        for title, values in midpoints.items()
    ]
    averages.sort(key=lambda r: (-r["avgSalary"], r["role"]))
    return averages[:TOP_N]


def _applications_by_status(db: Session) -> dict[str, int]:
    counts = {s.value: 0 for s in ApplicationStatus}
    for status, n in db.query(Application.status, func.count(Application.id)).group_by(Application.status).all():
        if status in counts:
            counts[status] = int(n)
        else:
            logger.warning("Ignoring %s application(s) with unknown status %r", n, status)
    return counts


def compute_summary(db: Session) -> dict:
    job_rows = db.query(Job.title, Job.salary_min, Job.salary_max, Job.skills).all()
    by_status = _applications_by_status(db)

    return {
        "totalJobs": len(job_rows),
        "activeCandidates": db.query(func.count(User.id)).filter(User.role == Role.JOB_SEEKER.value).scalar() or 0,
        "totalApplications": db.query(func.count(Application.id)).scalar() or 0,
        "successfulHires": by_status[ApplicationStatus.HIRED.value],
        "jobsByIndustry": _jobs_by_industry([r.title for r in job_rows]),
        "applicationTrends": _application_trends(db),
        "skillDemand": _skill_demand([r.skills for r in job_rows]),
        "avgSalaryByRole": _avg_salary_by_role((r.title, r.salary_min, r.salary_max) for r in job_rows),
        "applicationsByStatus": by_status,
    }
