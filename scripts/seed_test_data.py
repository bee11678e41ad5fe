#!/usr/bin/env python3
"""
Seed test data for exercising the ledger locally.

Creates:
  1. Quiz questions with name / email roles
  2. Two affiliates (one with a custom link) and three approved closers
  3. Completed quiz sessions attributed to the first affiliate
  4. Appointments booked through the API service (round-robin assigned),
     one of them converted so a held commission exists

Usage:
    python scripts/seed_test_data.py          # seed everything
    python scripts/seed_test_data.py --clear  # wipe seeded data first

Requires: DATABASE_URL set (or defaults to sqlite:///local.db). Redis is used
for the round-robin lock when reachable.
"""
import sys
import os
import argparse
from datetime import timedelta
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.config import ROLE_EMAIL, ROLE_NAME, ROLE_OTHER, SESSION_COMPLETED
from app.database import get_session, engine, Base
from app.models.affiliate import Affiliate, AffiliateClick, AffiliateConversion, AffiliatePayout
from app.models.appointment import Appointment, AppointmentOutcomeEvent
from app.models.closer import Closer
from app.models.quiz import QuizAnswer, QuizQuestion, QuizSession
from app.services.appointments import create_appointment
from app.services.ledger import update_outcome
from app.services.validation import utcnow


# Prefix for seeded IDs so we can clear them
SEED_PREFIX = 'seed-'

AFFILIATES = [
    {'id': 'seed-aff-1', 'name': 'Jane Morrison', 'referral_code': 'JANE10', 'custom_link': '/jane', 'rate': '0.1000'},
    {'id': 'seed-aff-2', 'name': 'Carlos Reyes', 'referral_code': 'CARLOS', 'custom_link': None, 'rate': '0.1500'},
]

CLOSERS = [
    {'id': 'seed-closer-1', 'name': 'Priya Sharma'},
    {'id': 'seed-closer-2', 'name': 'Liam O\'Brien'},
    {'id': 'seed-closer-3', 'name': 'Emma Chen'},
]

LEADS = [
    ('Sophie Laurent', 'sophie@example.com'),
    ('Derek Williams', 'derek@example.com'),
    ('Natalia Torres', 'natalia@example.com'),
]


def seed_reference_data(session):
    questions = [
        QuizQuestion(id='seed-q-name', prompt='What is your name?', role=ROLE_NAME, position=1),
        QuizQuestion(id='seed-q-email', prompt='Where should we send your results?', role=ROLE_EMAIL, position=2),
        QuizQuestion(id='seed-q-goal', prompt='What is your main goal?', role=ROLE_OTHER, position=3),
    ]
    session.add_all(questions)

    for a in AFFILIATES:
        session.add(Affiliate(
            id=a['id'], name=a['name'], email=f"{a['referral_code'].lower()}@partners.example.com",
            referral_code=a['referral_code'], custom_link=a['custom_link'],
            commission_rate=Decimal(a['rate']), is_approved=True, is_active=True,
        ))
    for c in CLOSERS:
        session.add(Closer(id=c['id'], name=c['name'], email=f"{c['id']}@example.com",
                           is_active=True, is_approved=True))
    session.flush()
    print(f'  [1] {len(questions)} questions, {len(AFFILIATES)} affiliates, {len(CLOSERS)} closers')


def seed_quiz_leads(session):
    now = utcnow()
    for i, (name, email) in enumerate(LEADS):
        quiz_session = QuizSession(
            id=f'{SEED_PREFIX}session-{i}', status=SESSION_COMPLETED, affiliate_code='JANE10',
            started_at=now - timedelta(days=3, minutes=10), completed_at=now - timedelta(days=3),
        )
        session.add(quiz_session)
        session.add(QuizAnswer(session_id=quiz_session.id, question_id='seed-q-name', value=name))
        session.add(QuizAnswer(session_id=quiz_session.id, question_id='seed-q-email', value=email))
        session.add(AffiliateClick(affiliate_id='seed-aff-1', referral_code='JANE10',
                                   created_at=now - timedelta(days=3, minutes=15)))
    affiliate = session.get(Affiliate, 'seed-aff-1')
    affiliate.total_clicks = len(LEADS)
    affiliate.total_leads = len(LEADS)
    session.flush()
    print(f'  [2] {len(LEADS)} completed quiz sessions for JANE10')


def seed_appointments():
    """Goes through the services so assignment and conversions follow the real path."""
    created = []
    for name, email in LEADS:
        appointment = create_appointment({
            'customerName': name,
            'customerEmail': email,
            'scheduledAt': (utcnow() + timedelta(days=1)).isoformat(),
            'affiliateCode': 'JANE10',
        })
        created.append(appointment)
    print(f'  [3] {len(created)} appointments booked')

    update_outcome(created[0]['id'], 'converted', sale_value='2000.00', notes='Paid in full')
    update_outcome(created[1]['id'], 'needs_follow_up')
    print(f'  [4] Outcome recorded — {created[0]["id"]} converted')


def clear_seeded_data(session):
    """Remove everything created by this script."""
    seeded_affiliates = [a['id'] for a in AFFILIATES]
    seeded_closers = [c['id'] for c in CLOSERS]

    appointment_ids = [a.id for a in session.query(Appointment.id).filter(
        Appointment.closer_id.in_(seeded_closers),
    ).all()]

    session.query(AffiliatePayout).filter(AffiliatePayout.affiliate_id.in_(seeded_affiliates)).delete(synchronize_session=False)
    session.query(AffiliateConversion).filter(AffiliateConversion.affiliate_id.in_(seeded_affiliates)).delete(synchronize_session=False)
    session.query(AffiliateClick).filter(AffiliateClick.affiliate_id.in_(seeded_affiliates)).delete(synchronize_session=False)
    if appointment_ids:
        session.query(AppointmentOutcomeEvent).filter(AppointmentOutcomeEvent.appointment_id.in_(appointment_ids)).delete(synchronize_session=False)
        session.query(Appointment).filter(Appointment.id.in_(appointment_ids)).delete(synchronize_session=False)
    session.query(QuizAnswer).filter(QuizAnswer.session_id.like(f'{SEED_PREFIX}%')).delete(synchronize_session=False)
    session.query(QuizSession).filter(QuizSession.id.like(f'{SEED_PREFIX}%')).delete(synchronize_session=False)
    session.query(QuizQuestion).filter(QuizQuestion.id.like(f'{SEED_PREFIX}%')).delete(synchronize_session=False)
    session.query(Closer).filter(Closer.id.in_(seeded_closers)).delete(synchronize_session=False)
    deleted = session.query(Affiliate).filter(Affiliate.id.in_(seeded_affiliates)).delete(synchronize_session=False)
    session.commit()

    print(f'Cleared {deleted} affiliates and {len(appointment_ids)} appointments.')


def main():
    parser = argparse.ArgumentParser(description='Seed ledger test data')
    parser.add_argument('--clear', action='store_true', help='Clear seeded data before (or instead of) seeding')
    parser.add_argument('--clear-only', action='store_true', help='Only clear, do not re-seed')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        # Ensure tables exist (for SQLite local dev)
        Base.metadata.create_all(engine)

        session = get_session()
        try:
            if args.clear or args.clear_only:
                clear_seeded_data(session)
                if args.clear_only:
                    return

            print('Seeding test data...')
            seed_reference_data(session)
            seed_quiz_leads(session)
            session.commit()
        except Exception as e:
            session.rollback()
            print(f'Error: {e}')
            raise
        finally:
            session.close()

        seed_appointments()
        print('\nDone! Try GET /api/affiliates/seed-aff-1/stats')


if __name__ == '__main__':
    main()
