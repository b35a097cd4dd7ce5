import itertools
import os

# Keep the app's own engine off disk; every test gets a fresh in-memory database below.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
import models
from auth import create_access_token, get_password_hash
from database import get_db
from rate_limit import api_rate_limit, auth_rate_limit

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db] = override_get_db
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    auth_rate_limit.reset()
    api_rate_limit.reset()
    yield


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role="employee", **fields):
        n = next(counter)
        fields.setdefault("email", f"{role}{n}@example.com")
        fields.setdefault("full_name", f"{role.title()} {n}")
        if role == "employer":
            fields.setdefault("company_name", f"Company {n}")
        user = models.User(role=role, hashed_password=PASSWORD_HASH, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_job(db):
    def _make(employer, **fields):
        values = dict(
            title="Backend Engineer",
            description="Build and run our APIs.",
            requirements=["3 years of Python"],
            responsibilities="Own the job service.",
            type=models.JobType.FULL_TIME.value,
            experience=models.ExperienceLevel.MID.value,
            education=models.EducationLevel.BACHELOR.value,
            skills=["Python", "SQL"],
            hours_of_work="40h/week",
            location="Berlin",
            is_remote=False,
            status=models.JobStatus.ACTIVE.value,
            salary_min=50000,
            salary_max=70000,
        )
        values.update(fields)
        job = models.Job(employer_id=employer.id, **values)
        db.add(job)
        db.commit()
        db.refresh(job)
        return job

    return _make


@pytest.fixture
def employee(make_user):
    return make_user("employee")


@pytest.fixture
def employer(make_user):
    return make_user("employer")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def job(make_job, employer):
    return make_job(employer)


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers
