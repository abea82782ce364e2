import uuid
from datetime import date

import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import wavelength.main as m
from wavelength import config
from wavelength.auth.security import create_access_token
from wavelength.database import Base
from wavelength.deps import get_db
from wavelength.models import UserAccount, UserRole, touch
from wavelength.services.encryption import MessageCipher, get_message_cipher
from wavelength.services.rate_limit import limiter


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cipher():
    return MessageCipher(Fernet.generate_key())


@pytest.fixture
def client(monkeypatch, session_factory, cipher):
    monkeypatch.setattr(m, "wait_for_db", lambda *args, **kwargs: None)
    monkeypatch.setattr(m, "init_schema", lambda: None)
    monkeypatch.setattr(config, "JWT_SECRET", "test-secret")
    limiter.reset()

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    m.app.dependency_overrides[get_db] = _get_db
    m.app.dependency_overrides[get_message_cipher] = lambda: cipher
    yield TestClient(m.app)
    m.app.dependency_overrides = {}


@pytest.fixture
def make_user(session_factory):
    def _make(first_name: str = "Alex", last_name: str = "Doe", *, roles: tuple[str, ...] = (), tags: list[str] | None = None) -> str:
        user_id = str(uuid.uuid4())
        with session_factory() as s:
            s.add(
                touch(
                    UserAccount(
                        id=user_id,
                        first_name=first_name,
                        last_name=last_name,
                        birthday=date(1995, 5, 17),
                        email=f"{first_name.lower()}.{user_id[:8]}@example.com",
                        tags=tags or [],
                    ),
                    created=True,
                )
            )
            s.flush()
            for role in roles:
                s.add(UserRole(user_id=user_id, role=role))
            s.commit()
        return user_id

    return _make


@pytest.fixture
def auth_headers(monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET", "test-secret")

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
