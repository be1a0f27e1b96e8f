import re
from typing import Any

# Framework -> language style aliases so "FastAPI" on a profile satisfies a
# posting that asks for "Python".
_SKILL_ALIASES = {
    "fastapi": "python",
    "django": "python",
    "flask": "python",
    "pandas": "python",
    "spring": "java",
    "springboot": "java",
    "node": "javascript",
    "nodejs": "javascript",
    "node.js": "javascript",
    "reactjs": "react",
    "react.js": "react",
    "postgresql": "sql",
    "postgres": "sql",
    "mysql": "sql",
    "sqlite": "sql",
    "restapi": "rest",
    "k8s": "kubernetes",
    "golang": "go",
}


def _normalize_skill(s: str) -> str:
    s = (s or "").strip().lower()
    s = re.sub(r"[^a-z0-9+#. ]+", " ", s).strip()
    s = re.sub(r"\s{2,}", " ", s)
    return s


def canonical_skill(s: str) -> str:
    n = _normalize_skill(s)
    key = n.replace(" ", "")
    return _SKILL_ALIASES.get(key, _SKILL_ALIASES.get(n, n))


def canonical_skills(values: Any) -> list[str]:
    """Canonical, de-duplicated skill tokens from a list or a comma separated string."""
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple)):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for v in values:
        c = canonical_skill(str(v))
        if c and c not in seen:
            seen.add(c)
            out.append(c)
    return out


def profile_skills(profile_data: Any) -> list[str]:
    if not isinstance(profile_data, dict):
        return []
    return canonical_skills(profile_data.get("skills"))


def skills_overlap_score(*, candidate_skills: list[str], job_skills: list[str]) -> tuple[float, list[str], list[str]]:
    """
    Recall-style: share of the posting's skills the candidate lists.
    Returns (score in [0,1], matched_skills, missing_skills)
    """
    cs = set(candidate_skills or [])
    js = list(job_skills or [])
    if not js:
        return 0.0, [], []
    matched = [j for j in js if j in cs]
    missing = [j for j in js if j not in cs]
    return len(matched) / len(js), matched, missing


def compute_match_score(*, profile_data: Any, job_skills: Any) -> int | None:
    """0-100 match of a candidate profile against a posting, None when either side lists no skills."""
    candidate = profile_skills(profile_data)
    job = canonical_skills(job_skills)
    if not candidate or not job:
        return None
    score, _, _ = skills_overlap_score(candidate_skills=candidate, job_skills=job)
    return max(0, min(100, int(round(score * 100))))
