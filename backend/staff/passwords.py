import re

from core_backend.exceptions import ValidationError

MIN_LENGTH = 8
MAX_LENGTH = 100
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>\-_=+\[\];'/\\`~]")


def password_policy_errors(password):
    """Return the list of policy rules the password fails (empty when it passes)."""
    password = password or ""
    errors = []
    if len(password) < MIN_LENGTH:
        errors.append(f"Password must be at least {MIN_LENGTH} characters long")
    if len(password) > MAX_LENGTH:
        errors.append(f"Password must be at most {MAX_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain at least one special character")
    return errors


def enforce_password_policy(password):
    errors = password_policy_errors(password)
    if errors:
        raise ValidationError(
            "Password does not meet security requirements",
            details={"requirements": errors},
            code="WEAK_PASSWORD",
        )
