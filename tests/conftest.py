"""Shared test fixtures."""
from datetime import datetime
from decimal import Decimal

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine

from app.database import Base, SessionLocal, import_models
import app.database as database


@pytest.fixture(autouse=True)
def db_engine(tmp_path):
    """
    File-backed SQLite engine with schema created.

    SessionLocal is rebound to it, so every get_session() inside the services
    opens its own connection to the test database and close() behaves as in
    production.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={'check_same_thread': False},
    )
    import_models()
    Base.metadata.create_all(engine)
    SessionLocal.configure(bind=engine)
    yield engine
    SessionLocal.configure(bind=database.engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session for arranging fixtures and asserting on committed state."""
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def mock_redis():
    """Mock Redis client. The round-robin lock is always granted."""
    mock = MagicMock()
    mock.lock.return_value.acquire.return_value = True
    with patch('app.extensions.redis_client', mock):
        yield mock


@pytest.fixture(autouse=True)
def _no_slack():
    """Keep notifications offline unless a test opts in."""
    with patch('app.services.notifications.SLACK_WEBHOOK_URL', None):
        yield


@pytest.fixture
def app():
    """Flask test app."""
    from app import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Factories ────────────────────────────────────────────────────────────────

@pytest.fixture
def make_affiliate(db_session):
    from app.models.affiliate import Affiliate

    def _make(**overrides):
        defaults = dict(
            id='aff-1',
            name='Jane Partner',
            email='jane@partners.example.com',
            referral_code='JANE10',
            custom_link=None,
            commission_rate=Decimal('0.1000'),
            is_approved=True,
            is_active=True,
        )
        defaults.update(overrides)
        affiliate = Affiliate(**defaults)
        db_session.add(affiliate)
        db_session.commit()
        return affiliate
    return _make


@pytest.fixture
def make_closer(db_session):
    from app.models.closer import Closer

    def _make(**overrides):
        defaults = dict(id='closer-1', name='Closer', is_active=True, is_approved=True, total_calls=0)
        defaults.update(overrides)
        closer = Closer(**defaults)
        db_session.add(closer)
        db_session.commit()
        return closer
    return _make


@pytest.fixture
def quiz_questions(db_session):
    """One question per role."""
    from app.models.quiz import QuizQuestion
    questions = {
        'name': QuizQuestion(id='q-name', prompt='Your name?', role='name', position=1),
        'email': QuizQuestion(id='q-email', prompt='Your email?', role='email', position=2),
        'other': QuizQuestion(id='q-goal', prompt='Your goal?', role='other', position=3),
    }
    db_session.add_all(questions.values())
    db_session.commit()
    return questions


@pytest.fixture
def make_quiz_session(db_session, quiz_questions):
    """Completed (by default) quiz session with name / email answers."""
    from app.models.quiz import QuizAnswer, QuizSession

    def _make(id, name='Jane', email='jane@x.com', status='completed', affiliate_code=None,
              started_at=datetime(2024, 1, 1, 9, 0), completed_at=datetime(2024, 1, 1, 9, 5)):
        quiz_session = QuizSession(
            id=id,
            status=status,
            affiliate_code=affiliate_code,
            started_at=started_at,
            completed_at=completed_at if status == 'completed' else None,
        )
        db_session.add(quiz_session)
        if name is not None:
            db_session.add(QuizAnswer(session_id=id, question_id='q-name', value=name))
        if email is not None:
            db_session.add(QuizAnswer(session_id=id, question_id='q-email', value=email))
        db_session.commit()
        return quiz_session
    return _make


@pytest.fixture
def make_appointment(db_session):
    from app.models.appointment import Appointment

    def _make(**overrides):
        defaults = dict(
            id='appt-1',
            customer_name='Jane Doe',
            customer_email='jane@x.com',
            scheduled_at=datetime(2024, 1, 2, 15, 0),
            status='confirmed',
            created_at=datetime(2024, 1, 1, 10, 0),
            updated_at=datetime(2024, 1, 1, 10, 0),
        )
        defaults.update(overrides)
        appointment = Appointment(**defaults)
        db_session.add(appointment)
        db_session.commit()
        return appointment
    return _make
