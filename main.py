import logging
import os
from datetime import timedelta
from typing import List, Optional

# --- Third-party libraries ---
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

# --- Project-specific imports ---
import dashboard
import jobs
import lifecycle
import models
import schemas
import users
from auth import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    TOKEN_COOKIE_NAME,
    create_access_token,
    decode_access_token,
    get_password_hash,
    oauth2_scheme,
)
from database import engine, get_db
from errors import Conflict, Forbidden, Unauthorized
from models import ApplicationStatus, EducationLevel, ExperienceLevel, JobStatus, JobType, RoleType
from rate_limit import api_rate_limit, auth_rate_limit

# --- Initial Setup ---
load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost,http://localhost:3000").split(",") if o.strip()]

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create all database tables based on the models
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Job Board API", dependencies=[Depends(api_rate_limit)])


# --- CORS Middleware ---
# This allows the frontend (e.g., running on localhost:3000) to communicate with the backend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


# --- Error Handlers ---
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    detail = "Internal server error" if IS_PRODUCTION else f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": detail})


# --- Dependencies ---
def get_user(db: Session, email: str):
    """Utility function to fetch a user by email."""
    return db.query(models.User).filter(models.User.email == email.lower()).first()


def get_current_active_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    """Dependency to get the current logged-in user from the bearer header or the token cookie."""
    token = token or request.cookies.get(TOKEN_COOKIE_NAME)
    if not token:
        raise Unauthorized("Access token required")
    user_id = decode_access_token(token)
    if user_id is None:
        raise Unauthorized("Invalid or expired token")
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise Unauthorized("Account is disabled")
    return user


def require_roles(*roles: RoleType, message: str):
    allowed = {role.value for role in roles}

    async def dependency(current_user: models.User = Depends(get_current_active_user)):
        if current_user.role not in allowed:
            raise Forbidden(message)
        return current_user

    return dependency


get_current_admin_user = require_roles(RoleType.ADMIN, message="Not enough privileges, admin access required.")
get_current_employee = require_roles(RoleType.EMPLOYEE, message="Forbidden - Employee access required")
get_current_employer = require_roles(RoleType.EMPLOYER, message="Forbidden - Employer access required")
get_current_employer_or_admin = require_roles(
    RoleType.EMPLOYER, RoleType.ADMIN, message="Forbidden - Admin or Employer access required"
)


def issue_token(user: models.User, response: Optional[Response] = None) -> str:
    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    if response is not None:
        response.set_cookie(
            TOKEN_COOKIE_NAME,
            access_token,
            httponly=True,
            secure=IS_PRODUCTION,
            samesite="strict",
            max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
    return access_token


# --- API Endpoints ---
@app.get("/health", tags=["Health"])
def health():
    return {"status": "OK", "environment": ENVIRONMENT}


@app.post(
    "/auth/register",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    dependencies=[Depends(auth_rate_limit)],
)
def register_user(user: schemas.UserCreate, response: Response, db: Session = Depends(get_db)):
    """Registers an employee or employer and logs them in."""
    if get_user(db, email=user.email):
        raise Conflict("User with this email already exists")

    db_user = models.User(
        email=user.email,
        full_name=user.full_name,
        phone_number=user.phone_number,
        hashed_password=get_password_hash(user.password),
        role=user.user_type,
    )
    if user.user_type == RoleType.EMPLOYEE.value:
        db_user.job_title = user.job_title
        db_user.skills = user.skills
        db_user.experience_level = user.experience_level
        db_user.years_of_experience = user.years_of_experience
    else:
        db_user.company_name = user.company_name
        db_user.industry = user.industry

    db.add(db_user)
    # The unique email index settles two sign-ups racing past the check above
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("User with this email already exists")
    db.refresh(db_user)
    logger.info("Registered %s #%s", db_user.role, db_user.id)
    return {"access_token": issue_token(db_user, response), "token_type": "bearer", "user": db_user}


def authenticate(db: Session, email: str, password: str) -> models.User:
    user = get_user(db, email=email)
    if not user or not user.verify_password(password):
        logger.warning("Failed login for %s", email)
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Unauthorized("Account is disabled")
    user.last_login = models.utcnow()
    db.commit()
    db.refresh(user)
    return user


@app.post(
    "/auth/login",
    response_model=schemas.AuthResponse,
    tags=["Authentication"],
    dependencies=[Depends(auth_rate_limit)],
)
def login_json(credentials: schemas.UserLogin, response: Response, db: Session = Depends(get_db)):
    """Logs in with a JSON body and sets the token cookie."""
    user = authenticate(db, credentials.email, credentials.password)
    return {"access_token": issue_token(user, response), "token_type": "bearer", "user": user}


@app.post("/token", response_model=schemas.Token, tags=["Authentication"], dependencies=[Depends(auth_rate_limit)])
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Handles OAuth2 password-form login and returns a JWT access token."""
    user = authenticate(db, form_data.username, form_data.password)
    return {"access_token": issue_token(user), "token_type": "bearer"}


@app.post("/auth/logout", tags=["Authentication"])
def logout(response: Response, current_user: models.User = Depends(get_current_active_user)):
    response.delete_cookie(TOKEN_COOKIE_NAME)
    return {"message": "Logged out successfully"}


@app.get("/users/me/", response_model=schemas.User, tags=["Users"])
def read_current_user(current_user: models.User = Depends(get_current_active_user)):
    """Returns the details of the currently authenticated user."""
    return current_user


@app.get("/auth/profile", response_model=schemas.User, tags=["Users"])
def read_profile(current_user: models.User = Depends(get_current_active_user)):
    return current_user


@app.put("/auth/profile", response_model=schemas.User, tags=["Users"])
def update_profile(
    profile: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    data = profile.model_dump(exclude_unset=True, exclude_none=True)
    return users.update_profile(db, current_user.id, current_user, data)


# --- User management ---
@app.get("/users/", response_model=schemas.UserPage, tags=["Users"])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[RoleType] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(get_current_admin_user),
):
    items, pagination = users.list_users(
        db, role=role.value if role else None, search=search, page=page, page_size=limit
    )
    return {"items": items, "pagination": pagination}


@app.get("/users/search", response_model=schemas.UserSearchResult, tags=["Users"])
def search_users(
    query: str = Query(..., min_length=1),
    role: Optional[RoleType] = None,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(get_current_admin_user),
):
    results = users.search_users(db, query, role=role.value if role else None)
    return {"items": results, "total": len(results)}


@app.get("/users/stats/overview", response_model=schemas.UserStats, tags=["Users"])
def user_stats(db: Session = Depends(get_db), admin_user: models.User = Depends(get_current_admin_user)):
    return users.user_stats(db)


@app.get("/users/{user_id}", response_model=schemas.User, tags=["Users"])
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return users.get_user(db, user_id, current_user)


@app.put("/users/{user_id}", response_model=schemas.User, tags=["Users"])
def update_user(
    user_id: int,
    profile: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    data = profile.model_dump(exclude_unset=True, exclude_none=True)
    return users.update_profile(db, user_id, current_user, data)


@app.put("/users/{user_id}/password", tags=["Users"])
def change_password(
    user_id: int,
    passwords: schemas.PasswordChange,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    users.change_password(db, user_id, current_user, passwords.current_password, passwords.new_password)
    return {"message": "Password changed successfully"}


@app.delete("/users/{user_id}", tags=["Users"])
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(get_current_admin_user),
):
    users.delete_user(db, user_id, admin_user)
    return {"message": "User deleted successfully"}


# --- Jobs ---
@app.post("/jobs/", response_model=schemas.Job, status_code=status.HTTP_201_CREATED, tags=["Jobs"])
def create_job(
    job: schemas.JobCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employer_or_admin),
):
    """Creates a new job posting owned by the caller."""
    return jobs.create_job(db, current_user, job.model_dump(mode="json"))


@app.get("/jobs/", response_model=schemas.JobPage, tags=["Jobs"])
def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    type: Optional[JobType] = None,
    experience: Optional[ExperienceLevel] = None,
    education: Optional[EducationLevel] = None,
    is_remote: Optional[bool] = None,
    skill: Optional[str] = None,
    location: Optional[str] = None,
    min_salary: Optional[float] = Query(None, ge=0),
    max_salary: Optional[float] = Query(None, ge=0),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    """Searches active job postings."""
    items, pagination = jobs.search_jobs(
        db,
        page=page,
        page_size=limit,
        search=search,
        job_type=type.value if type else None,
        experience=experience.value if experience else None,
        education=education.value if education else None,
        is_remote=is_remote,
        skill=skill,
        location=location,
        min_salary=min_salary,
        max_salary=max_salary,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, "pagination": pagination}


@app.get("/jobs/employer/jobs", response_model=schemas.JobPage, tags=["Jobs"])
def list_my_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[JobStatus] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employer),
):
    items, pagination = jobs.list_employer_jobs(
        db, current_user.id, status=status.value if status else None, page=page, page_size=limit
    )
    return {"items": items, "pagination": pagination}


@app.get("/jobs/employer/stats", response_model=schemas.JobStats, tags=["Jobs"])
def my_job_stats(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_employer)):
    return jobs.employer_stats(db, current_user.id)


@app.get("/jobs/{job_id}", response_model=schemas.Job, tags=["Jobs"])
def read_job(job_id: int, db: Session = Depends(get_db)):
    return jobs.view_job(db, job_id)


@app.put("/jobs/{job_id}", response_model=schemas.Job, tags=["Jobs"])
def update_job(
    job_id: int,
    job: schemas.JobUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return jobs.update_job(db, job_id, current_user, job.model_dump(mode="json", exclude_unset=True, exclude_none=True))


@app.delete("/jobs/{job_id}", tags=["Jobs"])
def delete_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    jobs.delete_job(db, job_id, current_user)
    return {"message": "Job deleted successfully"}


# --- Applications ---
@app.post(
    "/applications/apply",
    response_model=schemas.Application,
    status_code=status.HTTP_201_CREATED,
    tags=["Applications"],
)
def apply_to_job(
    application_data: schemas.ApplicationCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employee),
):
    return lifecycle.apply_to_job(
        db,
        current_user,
        application_data.job_id,
        cover_letter=application_data.cover_letter,
        expected_salary=application_data.expected_salary,
        resume=application_data.resume,
        employee_notes=application_data.employee_notes,
    )


@app.get("/applications/employee", response_model=schemas.ApplicationPage, tags=["Applications"])
def list_my_applications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[ApplicationStatus] = None,
    include_withdrawn: bool = False,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employee),
):
    items, pagination = lifecycle.list_for_employee(
        db,
        current_user.id,
        status=status.value if status else None,
        page=page,
        page_size=limit,
        include_withdrawn=include_withdrawn,
    )
    return {"items": items, "pagination": pagination}


@app.get("/applications/employer", response_model=schemas.ApplicationPage, tags=["Applications"])
def list_received_applications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[ApplicationStatus] = None,
    job_id: Optional[int] = None,
    include_withdrawn: bool = False,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employer),
):
    items, pagination = lifecycle.list_for_employer(
        db,
        current_user.id,
        status=status.value if status else None,
        job_id=job_id,
        page=page,
        page_size=limit,
        include_withdrawn=include_withdrawn,
    )
    return {"items": items, "pagination": pagination}


@app.put("/applications/{application_id}/status", response_model=schemas.Application, tags=["Applications"])
def update_application_status(
    application_id: int,
    update: schemas.StatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employer_or_admin),
):
    return lifecycle.transition_status(db, application_id, current_user, update.status, notes=update.employer_notes)


@app.put("/applications/{application_id}/withdraw", response_model=schemas.Application, tags=["Applications"])
def withdraw_application(
    application_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employee),
):
    return lifecycle.withdraw_application(db, application_id, current_user)


@app.get("/applications/{application_id}", response_model=schemas.Application, tags=["Applications"])
def read_application(
    application_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return lifecycle.get_application(db, application_id, current_user)


# --- Dashboard (Admin) ---
@app.get("/dashboard/overview", response_model=schemas.DashboardOverview, tags=["Dashboard (Admin)"])
def dashboard_overview(
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(get_current_admin_user),
):
    return dashboard.overview(db)


@app.get("/dashboard/activity", response_model=List[schemas.ActivityEvent], tags=["Dashboard (Admin)"])
def dashboard_activity(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(get_current_admin_user),
):
    return dashboard.recent_activity(db, limit=limit)


@app.get("/dashboard/jobs/analytics", response_model=schemas.JobAnalytics, tags=["Dashboard"])
def dashboard_job_analytics(
    period: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employer_or_admin),
):
    """Job figures over every job for admins, over the caller's own jobs for employers."""
    return dashboard.job_analytics(db, current_user, period_days=period)


@app.get("/dashboard/applications/analytics", response_model=schemas.ApplicationAnalytics, tags=["Dashboard"])
def dashboard_application_analytics(
    period: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employer_or_admin),
):
    return dashboard.application_analytics(db, current_user, period_days=period)


@app.get("/dashboard/jobs/top", response_model=schemas.TopJobs, tags=["Dashboard"])
def dashboard_top_jobs(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_employer_or_admin),
):
    return dashboard.top_jobs(db, current_user, limit=limit)


# --- Search helpers ---
@app.get("/search/skills/popular", response_model=List[schemas.SkillCount], tags=["Search"])
def popular_skills(limit: int = Query(20, ge=1, le=100), db: Session = Depends(get_db)):
    return jobs.popular_skills(db, limit=limit)


@app.get("/search/locations", response_model=List[str], tags=["Search"])
def location_suggestions(query: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return jobs.location_suggestions(db, query)


@app.get("/search/categories", response_model=List[schemas.CategoryCount], tags=["Search"])
def job_categories(db: Session = Depends(get_db)):
    return jobs.job_categories(db)
