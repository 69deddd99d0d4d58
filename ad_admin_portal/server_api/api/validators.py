from __future__ import annotations
from zxcvbn import zxcvbn

# characters Active Directory does not accept in sAMAccountName
_FORBIDDEN = set('"/\\[]:;|=,+*?<>@')


def valid_sam_account_name(name: str) -> str:
    bad = sorted(_FORBIDDEN.intersection(name))
    if bad:
        raise ValueError(f"contains forbidden characters {''.join(bad)}")
    if not name.strip(". "):
        raise ValueError("can't consist of dots and spaces only")
    return name


def check_password(password: str, *user_inputs: str | None) -> None:
    validation = zxcvbn(
        password=password,
        user_inputs=[value for value in user_inputs if value],
    )
    feedback = validation["feedback"]
    if validation["score"] <= 2:
        raise ValueError(
            f"Password is too weak {feedback['warning']}, "
            f"{' '.join(feedback['suggestions'])}"
        )
