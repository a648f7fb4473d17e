import logging
import time

import pytest

from core.errors import ValidationFailed
from core.security_manager import SecurityManager, security_manager


@pytest.fixture
def manager(app):
    return security_manager


def test_password_hash_round_trip(manager) -> None:
    stored = manager.make_password_hash('Scholar#2024')
    salt, _ = stored.split('$', 1)

    assert len(salt) == 32
    assert manager.check_password('Scholar#2024', stored)
    assert not manager.check_password('scholar#2024', stored)
    assert not manager.check_password('Scholar#2024', None)
    assert not manager.check_password('Scholar#2024', 'malformed')
    assert manager.make_password_hash('Scholar#2024') != stored


def test_password_strength_rules(manager) -> None:
    assert manager.validate_password_strength('Scholar#2024') == []
    assert manager.validate_password_strength('abc') == [
        'Password must be at least 8 characters long',
        'Password must contain at least one uppercase letter',
        'Password must contain at least one number',
        'Password must contain at least one special character',
    ]
    assert 'Please choose a less common password' in manager.validate_password_strength('Password123')


def test_require_strong_password_reports_field(manager) -> None:
    with pytest.raises(ValidationFailed) as excinfo:
        manager.require_strong_password('weak', field='newPassword')
    assert {issue['field'] for issue in excinfo.value.errors} == {'newPassword'}


def test_invite_token_round_trip(manager) -> None:
    token = manager.create_invite_token({'inviterId': 7, 'inviteeEmail': 'parent@stp.com'})
    assert manager.read_invite_token(token) == {'inviterId': 7, 'inviteeEmail': 'parent@stp.com'}


def test_invite_token_rejects_tampering_and_expiry(manager, monkeypatch) -> None:
    token = manager.create_invite_token({'inviterId': 7})
    assert manager.read_invite_token(token[:-4] + 'AAAA') is None
    assert manager.read_invite_token('') is None

    later = time.time() + manager.invite_ttl.total_seconds() + 60
    monkeypatch.setattr(time, 'time', lambda: later)
    assert manager.read_invite_token(token) is None


def test_reset_token_digest() -> None:
    token, digest = SecurityManager.generate_reset_token()
    assert digest == SecurityManager.digest_token(token)
    assert token not in digest


def test_sanitize_text() -> None:
    assert SecurityManager.sanitize_text('  <b>Merit</b> Award ') == 'Merit Award'
    assert SecurityManager.sanitize_text(None) is None


def test_normalize_email() -> None:
    assert SecurityManager.normalize_email('Jamie.Cruz@STP.com') == 'jamie.cruz@stp.com'
    with pytest.raises(ValidationFailed):
        SecurityManager.normalize_email('jamie@')


def test_security_events_use_configured_audit_level(app, caplog) -> None:
    app.config['AUDIT_LOG_LEVEL'] = 'warning'
    audit = SecurityManager(app)

    with caplog.at_level(logging.INFO, logger='core.security_manager'):
        audit.log_security_event('login_failed', {'reason': 'invalid_credentials'})

    records = [r for r in caplog.records if 'login_failed' in r.getMessage()]
    assert [r.levelno for r in records] == [logging.WARNING]
