import re
from typing import List, Tuple

MIN_LENGTH = 6

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SPECIAL = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

# (label, check) pairs, in the order they are shown to the user
_CRITERIA = [
    (f"At least {MIN_LENGTH} characters", lambda pw: len(pw) >= MIN_LENGTH),
    ("Contains uppercase letter", lambda pw: bool(_UPPER.search(pw))),
    ("Contains lowercase letter", lambda pw: bool(_LOWER.search(pw))),
    ("Contains a number", lambda pw: bool(_DIGIT.search(pw))),
    ("Contains special character", lambda pw: bool(_SPECIAL.search(pw))),
]

_LEVELS = [
    (2, "weak", "Weak"),
    (3, "medium", "Medium"),
    (4, "good", "Good"),
    (5, "strong", "Strong"),
]


def evaluate_criteria(pw: str) -> List[dict]:
    return [{"label": label, "met": check(pw)} for label, check in _CRITERIA]


def validate_password(pw: str) -> Tuple[bool, List[str]]:
    if not isinstance(pw, str):
        return False, ["Password must be a string"]

    errors = [c["label"] for c in evaluate_criteria(pw) if not c["met"]]
    return (len(errors) == 0), errors


def password_strength(pw: str) -> dict:
    if not isinstance(pw, str):
        pw = ""

    criteria = evaluate_criteria(pw)
    met = sum(1 for c in criteria if c["met"])

    level, label = "weak", "Weak"
    for upper_bound, lvl, lbl in _LEVELS:
        if met <= upper_bound:
            level, label = lvl, lbl
            break

    return {
        "level": level,
        "label": label,
        "percentage": int(met * 100 / len(criteria)),
        "criteria": criteria,
        "valid": met == len(criteria),
    }
