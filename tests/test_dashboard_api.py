"""Tests for dashboard analytics and the job browsing helpers."""
from datetime import datetime, timedelta

import pytest

import models


@pytest.fixture
def make_application(db):
    def _make(job, applicant, status="Pending", withdrawn=False):
        application = models.Application(
            job_id=job.id,
            employee_id=applicant.id,
            status=status,
            is_withdrawn=withdrawn,
            withdrawn_at=models.utcnow() if withdrawn else None,
        )
        db.add(application)
        db.commit()
        return application

    return _make


@pytest.fixture
def market(make_job, make_user, make_application, employer, employee):
    """Two employers' jobs with a handful of applications between them."""
    rival = make_user("employer", company_name="Rival Ltd")
    popular = make_job(employer, title="Popular Engineering Role", views_count=3, salary_min=40000, salary_max=90000)
    quiet = make_job(employer, title="Quiet Role", type="Internship", views_count=50, applications_count=1)
    old = make_job(
        employer,
        title="Old Role",
        status="Inactive",
        created_at=models.utcnow() - timedelta(days=60),
    )
    theirs = make_job(rival, title="Rival Sales Role", views_count=7, location="Berlin Mitte")

    second, third = make_user("employee"), make_user("employee")
    make_application(popular, employee, "Accepted")
    make_application(popular, second)
    make_application(popular, third, withdrawn=True)
    make_application(quiet, employee, "Rejected")
    make_application(theirs, employee, "Accepted")
    return {"popular": popular, "quiet": quiet, "old": old, "theirs": theirs, "rival": rival}


def test_application_analytics_for_employer(client, auth_headers, employer, market):
    body = client.get("/dashboard/applications/analytics", headers=auth_headers(employer)).json()

    assert body["total_applications"] == 4
    assert body["by_status"]["Pending"] == 2
    assert body["by_status"]["Accepted"] == 1
    assert body["by_status"]["Shortlisted"] == 0
    assert body["withdrawn_applications"] == 1
    assert body["recent_applications"] == 4
    assert body["acceptance_rate"] == 25
    # Withdrawn applications are left out of the per-job ranking.
    assert body["top_jobs"] == [
        {"job_id": market["popular"].id, "title": "Popular Engineering Role", "applications": 2},
        {"job_id": market["quiet"].id, "title": "Quiet Role", "applications": 1},
    ]


def test_application_analytics_for_admin_covers_every_job(client, auth_headers, admin, market):
    body = client.get("/dashboard/applications/analytics", headers=auth_headers(admin)).json()

    assert body["total_applications"] == 5
    assert body["by_status"]["Accepted"] == 2
    assert body["acceptance_rate"] == 40
    assert len(body["top_jobs"]) == 3


def test_analytics_are_closed_to_employees(client, auth_headers, employee):
    for path in ("/dashboard/applications/analytics", "/dashboard/jobs/analytics", "/dashboard/jobs/top"):
        assert client.get(path, headers=auth_headers(employee)).status_code == 403


def test_job_analytics_for_employer(client, auth_headers, employer, market):
    body = client.get("/dashboard/jobs/analytics", headers=auth_headers(employer)).json()

    assert body["total_jobs"] == 3
    assert body["active_jobs"] == 2
    assert body["inactive_jobs"] == 1
    assert body["active_rate"] == 67
    assert body["by_type"]["Internship"] == 1
    assert body["by_type"]["Full time"] == 2
    assert body["by_type"]["Freelance"] == 0
    assert body["by_experience"]["Mid"] == 3
    assert {job["title"] for job in body["recent_jobs"]} == {"Popular Engineering Role", "Quiet Role"}
    assert body["lowest_salary"] == 40000
    assert body["highest_salary"] == 90000


def test_top_jobs(client, auth_headers, employer, admin, market):
    body = client.get("/dashboard/jobs/top", headers=auth_headers(employer)).json()

    assert [job["title"] for job in body["by_applications"]] == ["Popular Engineering Role", "Quiet Role"]
    assert body["by_applications"][0]["applications"] == 2
    assert body["by_applications"][0]["company_name"] == employer.company_name
    assert [job["title"] for job in body["by_views"]] == ["Quiet Role", "Popular Engineering Role", "Old Role"]

    body = client.get("/dashboard/jobs/top", params={"limit": 1}, headers=auth_headers(admin)).json()
    assert [job["title"] for job in body["by_views"]] == ["Quiet Role"]
    assert len(body["by_applications"]) == 1


def test_recent_activity(client, auth_headers, admin, employer, market):
    response = client.get("/dashboard/activity", headers=auth_headers(admin))

    assert response.status_code == 200
    events = response.json()
    kinds = [event["type"] for event in events]
    assert kinds.count("job_created") == 3
    assert kinds.count("application_submitted") == 5
    assert kinds.count("employer_registered") == 2
    assert kinds.count("employee_registered") == 3
    assert "Rival Ltd posted Rival Sales Role" in {event["summary"] for event in events}
    timestamps = [datetime.fromisoformat(event["timestamp"]) for event in events]
    assert timestamps == sorted(timestamps, reverse=True)

    assert client.get("/dashboard/activity", headers=auth_headers(employer)).status_code == 403


def test_popular_skills(client, make_job, make_user, employer):
    make_job(employer, skills=["Python", "SQL"])
    make_job(employer, skills=["Python", "Go"])
    make_job(employer, skills=["Cobol"], status="Inactive")
    make_user("employee", skills=["SQL", "Python"])

    body = client.get("/search/skills/popular", params={"limit": 3}).json()

    assert body == [
        {"skill": "Python", "count": 3},
        {"skill": "SQL", "count": 2},
        {"skill": "Go", "count": 1},
    ]


def test_location_suggestions(client, make_job, employer):
    make_job(employer, location="Berlin")
    make_job(employer, location="Berlin")
    make_job(employer, location="Bern")
    make_job(employer, location="Paris")

    assert client.get("/search/locations", params={"query": "ber"}).json() == ["Berlin", "Bern"]
    assert client.get("/search/locations").status_code == 400


def test_job_categories(client, make_job, employer):
    make_job(employer, title="Software Engineering Lead")
    make_job(employer, title="Sales Engineering Manager")
    make_job(employer, title="Finance Analyst", status="Inactive")

    counts = {c["name"]: c["count"] for c in client.get("/search/categories").json()}

    assert counts["Engineering"] == 2
    assert counts["Sales"] == 1
    assert counts["Finance"] == 0
