# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every action must be attributable to a user. Passwords are hashed with bcrypt
(cost factor 12 by default, configurable through BCRYPT_ROUNDS for tests).

SECURITY NOTES:
- Minimum 6 characters
- Login is by email; deactivated accounts are refused with a distinct message
- Tokens are issued by token_service (stateless JWT, no server-side session)
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, SalesStaffDistributor, Distributor
from .errors import AuthenticationError
from ..validation import ValidationError

MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for length before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def authenticate(email: str, password: str) -> User:
    """
    Authenticate user with email and password.

    Raises AuthenticationError with the message the client should see.
    """
    user = db.session.query(User).filter(db.func.lower(User.email) == (email or "").strip().lower()).first()

    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Please contact administrator.")

    return user


def change_password(
    *,
    user: User,
    current_password: str,
    new_password: str,
    confirm_password: str,
) -> None:
    if new_password != confirm_password:
        raise ValidationError("Password confirmation does not match")
    validate_password_strength(new_password)

    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()


def count_assigned_distributors(user_id: int) -> int:
    """Active assignments to active distributors."""
    return (
        db.session.query(db.func.count(SalesStaffDistributor.assignment_id))
        .join(Distributor, Distributor.distributor_id == SalesStaffDistributor.distributor_id)
        .filter(
            SalesStaffDistributor.sales_staff_id == user_id,
            SalesStaffDistributor.is_active.is_(True),
            Distributor.is_active.is_(True),
        )
        .scalar()
        or 0
    )


def get_profile(user: User) -> dict:
    profile = user.to_dict()
    if user.role == "sales_staff":
        profile["assigned_distributors_count"] = count_assigned_distributors(user.user_id)
    return profile
