# core/security_manager.py
"""
Security Manager for Scholarship Tracker Pro
Implements the account security features:
- Password hashing and strength rules
- Signed, expiring invite tokens for parent/counselor connections
- Free-text sanitising and email normalisation
- Audit logging of account and data events
"""

import base64
import hashlib
import hmac
import json
import logging
import re
import secrets
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

import bleach
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from email_validator import validate_email, EmailNotValidError
from flask import has_request_context, request, session

from core.database_models import db, ActivityLog, ActivityType
from core.errors import ValidationFailed

logger = logging.getLogger(__name__)


class SecurityManager:
    """
    Security helpers bound to the application configuration
    """

    PASSWORD_MIN_LENGTH = 8
    SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

    COMMON_PASSWORDS = frozenset([
        'password', '123456', '123456789', 'qwerty', 'abc123', 'password123',
        'admin', 'letmein', 'welcome', 'monkey', '1234567890', 'password1'
    ])

    def __init__(self, app=None):
        self.app = app
        self.hash_iterations = 200000
        self.invite_ttl = timedelta(days=7)
        self.reset_ttl = timedelta(hours=1)
        self.cipher = None
        self.audit_level = logging.INFO

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """
        Bind to a Flask application

        Args:
            app: Flask application instance
        """
        self.app = app
        self.hash_iterations = app.config.get('PASSWORD_HASH_ITERATIONS', self.hash_iterations)
        self.invite_ttl = app.config.get('INVITE_TOKEN_TTL', self.invite_ttl)
        self.reset_ttl = app.config.get('PASSWORD_RESET_TTL', self.reset_ttl)
        self.audit_level = getattr(logging, str(app.config.get('AUDIT_LOG_LEVEL', 'INFO')).upper(), logging.INFO)
        self._init_encryption(app.config['ENCRYPTION_KEY'])
        app.extensions['security_manager'] = self
        logger.info("SecurityManager initialized")

    def _init_encryption(self, master_key: str):
        """Derive the Fernet key used for invite tokens"""
        try:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=b'scholarship_tracker_invites',
                iterations=100000,
                backend=default_backend()
            )
            key = base64.urlsafe_b64encode(kdf.derive(master_key.encode()))
            self.cipher = Fernet(key)
        except Exception as e:
            logger.error(f"Encryption initialization failed: {str(e)}")
            raise

    # Passwords

    def hash_password(self, password: str, salt: Optional[str] = None) -> Tuple[str, str]:
        """
        Hash password with secure salt

        Args:
            password: Plain text password
            salt: Optional salt (generates new if not provided)

        Returns:
            Tuple of (hashed_password, salt)
        """
        if salt is None:
            salt = secrets.token_hex(16)

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode(),
            iterations=self.hash_iterations,
            backend=default_backend()
        )

        hashed = base64.b64encode(kdf.derive(password.encode())).decode()
        return hashed, salt

    def make_password_hash(self, password: str) -> str:
        """Stored form is ``<salt>$<hash>``"""
        hashed, salt = self.hash_password(password)
        return f"{salt}${hashed}"

    def check_password(self, password: str, stored: Optional[str]) -> bool:
        if not stored or '$' not in stored:
            return False
        salt, hashed = stored.split('$', 1)
        computed, _ = self.hash_password(password, salt)
        return hmac.compare_digest(hashed, computed)

    def validate_password_strength(self, password: str) -> List[str]:
        """
        Check a candidate password against the strength rules

        Returns:
            List of human readable problems, empty when the password is acceptable
        """
        errors = []

        if len(password) < self.PASSWORD_MIN_LENGTH:
            errors.append(f"Password must be at least {self.PASSWORD_MIN_LENGTH} characters long")
        if not re.search(r'[A-Z]', password):
            errors.append('Password must contain at least one uppercase letter')
        if not re.search(r'[a-z]', password):
            errors.append('Password must contain at least one lowercase letter')
        if not re.search(r'\d', password):
            errors.append('Password must contain at least one number')
        if not self.SPECIAL_CHARACTERS.search(password):
            errors.append('Password must contain at least one special character')
        if password.lower() in self.COMMON_PASSWORDS:
            errors.append('Please choose a less common password')

        return errors

    def require_strong_password(self, password: str, field: str = 'password'):
        errors = self.validate_password_strength(password)
        if errors:
            raise ValidationFailed(
                'Password does not meet requirements',
                [{'field': field, 'message': message} for message in errors]
            )

    # Tokens

    def create_invite_token(self, payload: Dict[str, Any]) -> str:
        """Encrypt an invitation payload; expiry is enforced on read"""
        return self.cipher.encrypt(json.dumps(payload).encode('utf-8')).decode('ascii')

    def read_invite_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Decrypt an invitation token

        Returns:
            The payload, or None when the token is malformed, tampered with
            or older than the invite TTL
        """
        try:
            data = self.cipher.decrypt(token.encode('ascii'), ttl=int(self.invite_ttl.total_seconds()))
        except (InvalidToken, ValueError, UnicodeEncodeError):
            logger.warning("Rejected invalid or expired invite token")
            return None
        return json.loads(data.decode('utf-8'))

    @staticmethod
    def generate_reset_token() -> Tuple[str, str]:
        """Returns (token for the user, digest to persist)"""
        token = secrets.token_urlsafe(32)
        return token, SecurityManager.digest_token(token)

    @staticmethod
    def digest_token(token: str) -> str:
        return hashlib.sha256(token.encode('utf-8')).hexdigest()

    # Input hygiene

    @staticmethod
    def sanitize_text(value: Optional[str]) -> Optional[str]:
        """Strip markup from user supplied free text"""
        if value is None:
            return None
        return bleach.clean(value, tags=[], attributes={}, strip=True).strip()

    @staticmethod
    def normalize_email(email: str) -> str:
        """
        Validate and normalise an email address

        Raises:
            ValidationFailed: when the address is not syntactically valid
        """
        try:
            result = validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationFailed('Validation failed', [{'field': 'email', 'message': str(e)}])
        return result.normalized.lower()

    # Audit

    def log_security_event(self, event_type: str, details: Dict[str, Any] = None):
        """
        Log security event for audit trail

        Args:
            event_type: Type of security event
            details: Additional event details
        """
        context = {}
        if has_request_context():
            context = {
                'source_ip': request.remote_addr,
                'endpoint': request.endpoint,
                'method': request.method,
                'user_id': session.get('user_id'),
            }
        context.update(details or {})
        logger.log(self.audit_level, f"Security event logged: {event_type} {context}")

    def log_activity(self, user_id: int, action: ActivityType, entity_type: str = None,
                     entity_id: int = None, details: Dict[str, Any] = None) -> ActivityLog:
        """
        Record a user activity row in the current transaction

        The caller owns the commit so the audit row lands atomically with
        the change it describes.
        """
        entry = ActivityLog(
            user_id=user_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
        if has_request_context():
            entry.ip_address = request.remote_addr
            entry.user_agent = request.headers.get('User-Agent')
        db.session.add(entry)
        logger.info(f"Activity recorded: user={user_id} action={action.value}")
        return entry


security_manager = SecurityManager()


def init_security_manager(app):
    """Initialize global security manager"""
    security_manager.init_app(app)
    return security_manager
