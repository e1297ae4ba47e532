import hmac
import re
import secrets
import string

ACCESS_TOKEN_LENGTH = 40
_TOKEN_ALPHABET = string.ascii_letters + string.digits
_TOKEN_PATTERN = re.compile(rf"^[A-Za-z0-9]{{{ACCESS_TOKEN_LENGTH}}}$")


def generate_access_token(length: int = ACCESS_TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def is_well_formed_token(token: str) -> bool:
    return bool(_TOKEN_PATTERN.fullmatch(token or ""))


def tokens_match(candidate: str, stored: str | None) -> bool:
    if stored is None:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), stored.encode("utf-8"))


def client_offer_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/firm-offer/{token}"


def speaker_review_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/speaker-review/{token}"
