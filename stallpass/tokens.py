"""
Token Codec — QR identity tokens.

Student tokens are short HS256 JWTs carrying only the registration number, the
rotation window they were minted in and a nonce. A token minted in window `w`
verifies while the current window is in `[w, w + grace_windows]`.

Stall tokens are printed once and displayed statically, so they carry no
signature: `STALL_{stall_number}_{epoch_ms}_{random6}`. They prove identity by
existing (and being active) in the stall directory.
"""

import math
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime

import jwt

from stallpass.clock import as_utc
from stallpass.errors import (
    BadSignature,
    ExpiredToken,
    FutureWindow,
    MalformedToken,
)

ROTATION_INTERVAL_SECONDS = 30
GRACE_WINDOWS = 1
ALGORITHM = "HS256"

KIND_STUDENT = "STUDENT"
STALL_PREFIX = "STALL_"

NONCE_LENGTH = 6
_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class ParticipantToken:
    raw: str


@dataclass(frozen=True)
class StallToken:
    raw: str
    subject_id: str
    minted_ms: int
    suffix: str


@dataclass(frozen=True)
class VerifiedToken:
    subject_id: str
    kind: str
    issued_window: int
    valid: bool = True


def _random_suffix(length=NONCE_LENGTH):
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _epoch(now):
    if now is None:
        return time.time()
    if isinstance(now, datetime):
        return as_utc(now).timestamp()
    return float(now)


class TokenCodec:
    def __init__(self, app=None, secret=None,
                 rotation_interval=ROTATION_INTERVAL_SECONDS,
                 grace_windows=GRACE_WINDOWS):
        self.secret = secret
        self.rotation_interval = rotation_interval
        self.grace_windows = grace_windows
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.secret = app.config["QR_TOKEN_SECRET"]
        self.rotation_interval = int(
            app.config.get("QR_ROTATION_SECONDS", ROTATION_INTERVAL_SECONDS)
        )
        self.grace_windows = int(app.config.get("QR_GRACE_WINDOWS", GRACE_WINDOWS))
        if self.rotation_interval <= 0:
            raise ValueError("QR_ROTATION_SECONDS must be positive")
        if self.grace_windows < 0:
            raise ValueError("QR_GRACE_WINDOWS cannot be negative")
        app.extensions["token_codec"] = self

    def _signing_key(self):
        if not self.secret:
            raise RuntimeError("TokenCodec has no secret; call init_app first")
        return self.secret

    # --- rotation windows ------------------------------------------------

    def window_for(self, now=None):
        return math.floor(_epoch(now) / self.rotation_interval)

    def seconds_until_next_rotation(self, now=None):
        elapsed = _epoch(now) % self.rotation_interval
        return max(1, math.ceil(self.rotation_interval - elapsed))

    def rotation_info(self, now=None):
        return {
            "expires_in_seconds": self.seconds_until_next_rotation(now),
            "rotation_interval": self.rotation_interval,
            "grace_period_seconds": self.grace_windows * self.rotation_interval,
        }

    # --- student tokens --------------------------------------------------

    def generate_participant_token(self, subject_id, now=None):
        claims = {
            "sub": str(subject_id),
            "w": self.window_for(now),
            "n": _random_suffix(),
            "k": KIND_STUDENT,
        }
        return jwt.encode(claims, self._signing_key(), algorithm=ALGORITHM)

    def verify_participant_token(self, token, now=None):
        """
        Verify a rotating student token.
        Raises BadSignature, MalformedToken, FutureWindow or ExpiredToken;
        nothing else escapes.
        """
        if not isinstance(token, str) or not token:
            raise MalformedToken()

        try:
            claims = jwt.decode(
                token,
                self._signing_key(),
                algorithms=[ALGORITHM],
                options={"require": ["sub", "w", "k"]},
            )
        except jwt.InvalidSignatureError as exc:
            raise BadSignature() from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken() from exc

        window = claims["w"]
        if claims["k"] != KIND_STUDENT or isinstance(window, bool) or not isinstance(window, int):
            raise MalformedToken()
        if not claims["sub"]:
            raise MalformedToken()

        current = self.window_for(now)
        if window > current:
            raise FutureWindow()
        if window < current - self.grace_windows:
            raise ExpiredToken()

        return VerifiedToken(subject_id=claims["sub"], kind=KIND_STUDENT, issued_window=window)

    # --- stall tokens ----------------------------------------------------

    def generate_stall_token(self, subject_id, now=None):
        minted_ms = int(_epoch(now) * 1000)
        return f"{STALL_PREFIX}{subject_id}_{minted_ms}_{_random_suffix()}"

    @staticmethod
    def parse_stall_token(token):
        """Structural check only; existence is the directory's job."""
        if not isinstance(token, str) or not token.startswith(STALL_PREFIX):
            raise MalformedToken()

        parts = token[len(STALL_PREFIX):].rsplit("_", 2)
        if len(parts) != 3:
            raise MalformedToken()

        subject_id, minted_ms, suffix = parts
        if not subject_id or not minted_ms.isdigit():
            raise MalformedToken()
        if len(suffix) != NONCE_LENGTH or not suffix.isalnum():
            raise MalformedToken()

        return StallToken(raw=token, subject_id=subject_id, minted_ms=int(minted_ms), suffix=suffix)

    def classify(self, token):
        if not isinstance(token, str) or not token.strip():
            raise MalformedToken()
        token = token.strip()
        if token.startswith(STALL_PREFIX):
            return self.parse_stall_token(token)
        return ParticipantToken(raw=token)
