import os

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from edumeet.auth import jwt_handler  # noqa: E402
from edumeet.auth.dependencies import TEACHER_ROLE  # noqa: E402
from edumeet.auth.passwords import hash_password  # noqa: E402
from edumeet.core import rate_limit  # noqa: E402
from edumeet.database import Base, get_db  # noqa: E402
from edumeet.main import app  # noqa: E402
from edumeet.models.appointment import Appointment  # noqa: E402,F401
from edumeet.models.notification import Notification  # noqa: E402,F401
from edumeet.models.teacher import Teacher  # noqa: E402
from edumeet.models.user import ADMIN_ROLE, STUDENT_ROLE, User  # noqa: E402

DEFAULT_PASSWORD = 'Passw0rd'


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture
def make_student(db):
    def factory(name: str = 'Sam Student', email: str = 'sam@example.com', password: str = DEFAULT_PASSWORD, **fields) -> User:
        student = User(name=name, email=email, hashed_password=hash_password(password), role=STUDENT_ROLE, **fields)
        db.add(student)
        db.commit()
        db.refresh(student)
        return student

    return factory


@pytest.fixture
def make_admin(db):
    def factory(name: str = 'Ada Admin', email: str = 'admin@example.com', password: str = DEFAULT_PASSWORD) -> User:
        admin = User(name=name, email=email, hashed_password=hash_password(password), role=ADMIN_ROLE)
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return factory


@pytest.fixture
def make_teacher(db):
    def factory(
        name: str = 'Tina Teacher',
        email: str = 'tina@example.com',
        password: str | None = DEFAULT_PASSWORD,
        **fields,
    ) -> Teacher:
        values = {
            'phone': '+15550100',
            'department': 'Mathematics',
            'subject': 'Algebra',
            'experience': '5 years',
            'qualification': 'MSc Mathematics',
            'availability': ['2:00 PM - 3:00 PM'],
        }
        values.update(fields)
        teacher = Teacher(
            name=name,
            email=email,
            hashed_password=hash_password(password) if password else None,
            has_account=password is not None,
            **values,
        )
        db.add(teacher)
        db.commit()
        db.refresh(teacher)
        return teacher

    return factory


def auth_headers(account: User | Teacher) -> dict[str, str]:
    role = account.role if isinstance(account, User) else TEACHER_ROLE
    token = jwt_handler.create_access_token(subject=str(account.id), role=role, email=account.email)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def headers_for():
    return auth_headers
