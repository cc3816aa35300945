"""
auth/credential.py -- The stored credential bundle and its structural parser.

Wire format (one cookie value):
    {"token": "<jwt>", "user": {"userId": "<id>", "email": "<email>"}}

parse_credential() never raises and never touches the signing secret. It
returns a tagged result so callers branch on the type instead of probing
nested keys:

    parsed = parse_credential(raw)
    if isinstance(parsed, StructurallyValid):
        ... parsed.credential ...
    else:
        ... parsed.reason ...

Passing the structural check does NOT mean the token is trustworthy -- only
TokenCodec.verify() establishes that.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional, Union

from auth.models import Identity
from auth.tokens import has_token_shape


@dataclass(frozen=True)
class StoredCredential:
    token: str
    user: Identity

    def to_json(self) -> str:
        return json.dumps({"token": self.token, "user": self.user.to_wire()}, separators=(",", ":"))


@dataclass(frozen=True)
class Malformed:
    reason: str


@dataclass(frozen=True)
class StructurallyValid:
    credential: StoredCredential


ParsedCredential = Union[Malformed, StructurallyValid]


def parse_credential(raw: Optional[str]) -> ParsedCredential:
    if not raw:
        return Malformed("empty")
    try:
        data = json.loads(raw)
    except ValueError:
        return Malformed("not valid JSON")

    if not isinstance(data, dict):
        return Malformed("not a JSON object")
    token = data.get("token")
    user = data.get("user")
    if not isinstance(token, str) or not token:
        return Malformed("missing token")
    if not isinstance(user, dict):
        return Malformed("missing user")
    user_id = user.get("userId")
    email = user.get("email")
    if not isinstance(user_id, str) or not user_id or not isinstance(email, str) or not email:
        return Malformed("missing user identity")
    if not has_token_shape(token):
        return Malformed("token is not three dot-separated segments")

    return StructurallyValid(StoredCredential(token=token, user=Identity(user_id=user_id, email=email)))
