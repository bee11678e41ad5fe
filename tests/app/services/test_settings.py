"""Tests for the settings service."""
import logging
from decimal import Decimal

import pytest

from app.errors import ValidationError
from app.models.setting import Setting
from app.services.settings import (
    get_commission_hold_days,
    get_settings,
    is_terminal_outcome,
    load_settings,
    update_settings,
)


class TestDefaults:

    def test_empty_table_returns_documented_defaults(self):
        assert get_settings() == {
            'commissionHoldDays': 30,
            'qualificationThreshold': 17,
            'minimumPayout': 50.0,
            'payoutSchedule': 'monthly-1st',
            'terminalOutcomes': ['converted', 'not_interested', 'wrong_number'],
        }

    def test_missing_hold_days_warns_and_defaults(self, db_session, caplog):
        with caplog.at_level(logging.WARNING, logger='services.settings'):
            assert get_commission_hold_days(db_session) == 30
        assert 'commission_hold_days' in caplog.text

    @pytest.mark.parametrize('raw', ['abc', '-5', ''])
    def test_unreadable_hold_days_defaults(self, db_session, raw):
        db_session.add(Setting(key='commission_hold_days', value=raw))
        db_session.commit()
        assert get_commission_hold_days(db_session) == 30

    def test_configured_hold_days(self, db_session):
        db_session.add(Setting(key='commission_hold_days', value='14'))
        db_session.commit()
        assert get_commission_hold_days(db_session) == 14

    def test_malformed_value_falls_back_per_key(self, db_session):
        db_session.add_all([
            Setting(key='terminal_outcomes', value='not json'),
            Setting(key='minimum_payout', value='75.50'),
        ])
        db_session.commit()
        settings = load_settings(db_session)
        assert settings['terminal_outcomes'] == ['converted', 'not_interested', 'wrong_number']
        assert settings['minimum_payout'] == Decimal('75.50')


class TestUpdateSettings:

    def test_round_trip(self):
        result = update_settings({'commissionHoldDays': 14, 'payoutSchedule': 'weekly'})
        assert result['commissionHoldDays'] == 14
        assert result['payoutSchedule'] == 'weekly'
        assert get_settings()['commissionHoldDays'] == 14

    def test_overwrites_existing(self):
        update_settings({'minimumPayout': 25})
        update_settings({'minimumPayout': 100})
        assert get_settings()['minimumPayout'] == 100.0

    @pytest.mark.parametrize('changes', [
        {'commissionHoldDays': 366},
        {'commissionHoldDays': -1},
        {'commissionHoldDays': '30'},
        {'commissionHoldDays': True},
        {'qualificationThreshold': 0},
        {'minimumPayout': 20000},
        {'minimumPayout': 'lots'},
        {'payoutSchedule': 'daily'},
        {'terminalOutcomes': ['converted', 'ghosted']},
        {'terminalOutcomes': 'converted'},
        {'colour': 'blue'},
        {},
    ])
    def test_invalid_rejected(self, changes):
        with pytest.raises(ValidationError):
            update_settings(changes)

    def test_one_invalid_value_writes_nothing(self, db_session):
        with pytest.raises(ValidationError):
            update_settings({'commissionHoldDays': 10, 'payoutSchedule': 'daily'})
        assert db_session.get(Setting, 'commission_hold_days') is None


class TestTerminalOutcome:

    def test_uses_configured_set(self):
        settings = {'terminal_outcomes': ['converted']}
        assert is_terminal_outcome('converted', settings)
        assert not is_terminal_outcome('no_answer', settings)
