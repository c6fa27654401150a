import os
import tempfile

# must be in place before the app, celery app or rate limiter are imported
_tmpdir = tempfile.mkdtemp(prefix="schooltrack-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["SECRET_KEY"] = "test"
os.environ["APP_ENV"] = "testing"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["PASSWORD_SALT_ROUNDS"] = "4"
for _name in ("REDIS_URL", "EMBEDDING_API_KEY", "OPENAI_API_KEY", "CRON_SECRET",
              "COUNSELOR_ACCESS_CODE", "ALLOWED_ORIGINS", "PUBLIC_APP_URL", "NEXT_PUBLIC_APP_URL"):
    os.environ.pop(_name, None)

import pytest


@pytest.fixture(scope="session")
def app():
    from app import create_app  # type: ignore
    a = create_app()
    a.testing = True
    return a


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _clean_state(app):
    from utils.ratelimit import MemoryRateLimitStore, set_store  # type: ignore
    set_store(MemoryRateLimitStore())
    yield
    from utils.db import Base, get_engine  # type: ignore
    with get_engine().begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    set_store(None)


@pytest.fixture()
def session(app):
    from utils.db import get_session  # type: ignore
    with get_session() as s:
        yield s


@pytest.fixture()
def make_school(app):
    from utils.db import get_session  # type: ignore
    from models import School  # type: ignore

    def _make(slug: str = "north-high"):
        with get_session() as s:
            school = School(slug=slug, name=slug.replace("-", " ").title())
            s.add(school)
            s.commit()
            return school
    return _make


@pytest.fixture()
def make_user(app):
    from utils.db import get_session  # type: ignore
    from utils.security import hash_password  # type: ignore
    from models import User  # type: ignore
    counter = {"n": 0}

    def _make(role: str = "student", email: str | None = None, name: str | None = None,
              school_id: str | None = None, password: str = "password123"):
        counter["n"] += 1
        with get_session() as s:
            u = User(
                email=email or f"{role}{counter['n']}@example.edu",
                name=name or f"{role.title()} {counter['n']}",
                password_hash=hash_password(password),
                role=role,
                school_id=school_id,
            )
            s.add(u)
            s.commit()
            return u
    return _make


@pytest.fixture()
def auth_header(app):
    from utils.auth import issue_token  # type: ignore

    def _header(user) -> dict:
        with app.app_context():
            token = issue_token(user)
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest.fixture()
def make_edition(app):
    from utils.db import get_session  # type: ignore
    from models import Edition, Opportunity  # type: ignore
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        with get_session() as s:
            opp = Opportunity(slug=f"opp-{counter['n']}", title=fields.pop("title", f"Opportunity {counter['n']}"))
            s.add(opp)
            s.flush()
            ed = Edition(opportunity_id=opp.id, name=f"Edition {counter['n']}", **fields)
            s.add(ed)
            s.commit()
            return ed
    return _make
