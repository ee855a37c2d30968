"""
auth/validators.py -- Password and username rules driven by IdentityOptions.

Validators return a list of human-readable messages (empty = valid) so the
caller can report every problem at once. The store wraps a non-empty list
in IdentityError.
"""

from __future__ import annotations

from auth.options import PasswordOptions, UserOptions


class IdentityError(ValueError):
    """Raised by the identity store when a write violates an identity rule."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


def validate_password(password: str, options: PasswordOptions) -> list[str]:
    errors: list[str] = []
    if len(password) < options.required_length:
        errors.append(f"Passwords must be at least {options.required_length} characters.")
    if options.require_non_alphanumeric and password.isalnum():
        errors.append("Passwords must have at least one non alphanumeric character.")
    if options.require_digit and not any(c.isdigit() for c in password):
        errors.append("Passwords must have at least one digit ('0'-'9').")
    if options.require_lowercase and not any(c.islower() for c in password):
        errors.append("Passwords must have at least one lowercase ('a'-'z').")
    if options.require_uppercase and not any(c.isupper() for c in password):
        errors.append("Passwords must have at least one uppercase ('A'-'Z').")
    if len(set(password)) < options.required_unique_chars:
        errors.append(f"Passwords must use at least {options.required_unique_chars} different characters.")
    return errors


def validate_username(username: str, options: UserOptions) -> list[str]:
    if not username:
        return ["Username is required."]
    allowed = options.allowed_username_characters
    if allowed and any(c not in allowed for c in username):
        return [f"Username '{username}' is invalid, can only contain letters or digits."]
    return []
