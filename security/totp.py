import pyotp
from flask import current_app


def new_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, email: str) -> str:
    issuer = current_app.config.get("MFA_ISSUER", "Campus Grievance Portal")
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=issuer)


def verify_code(secret: str, code: str) -> bool:
    if not secret or not code:
        return False
    code = str(code).strip()
    if len(code) != 6 or not code.isdigit():
        return False
    # one step of clock drift either way
    return pyotp.TOTP(secret).verify(code, valid_window=1)
