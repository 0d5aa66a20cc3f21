"""
Namespace-scoped, time-bounded delegated credentials.

A credential is a query string (leading ``?`` included) that can be appended
to any object URL inside one namespace:

    ?sv=1&sr=c&ns=user-alice&sp=rwl&st=...&se=...&spr=https,http&sig=...

``sig`` is an HMAC-SHA256 over the other fields, keyed by the gateway's
signing key. The validity window is ``[st, se)``.
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlencode

CREDENTIAL_VERSION = "1"
PERMISSION_ORDER = "rwdl"
TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class DelegatedCredential:
    namespace: str
    permissions: str
    start: datetime
    end: datetime
    token: str

    def covers(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def _format_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(TIME_FORMAT)


def _parse_time(value: str) -> datetime:
    return datetime.strptime(value, TIME_FORMAT).replace(tzinfo=timezone.utc)


def normalize_permissions(permissions: str) -> str:
    unknown = set(permissions) - set(PERMISSION_ORDER)
    if unknown:
        raise ValueError(f"Unknown permission(s): {''.join(sorted(unknown))}")
    return "".join(p for p in PERMISSION_ORDER if p in permissions)


def _string_to_sign(fields: dict) -> str:
    return "\n".join(
        [
            fields["sv"],
            fields["sr"],
            fields["ns"],
            fields["sp"],
            fields["st"],
            fields["se"],
            fields["spr"],
        ]
    )


def _sign(key: bytes, fields: dict) -> str:
    digest = hmac.new(key, _string_to_sign(fields).encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def issue(key: bytes, namespace: str, permissions: str, start: datetime, end: datetime) -> DelegatedCredential:
    if end <= start:
        raise ValueError("Credential end must be after its start")

    # second precision, so the signed window is exactly what gets verified
    start = start.replace(microsecond=0)
    end = end.replace(microsecond=0)
    fields = {
        "sv": CREDENTIAL_VERSION,
        "sr": "c",
        "ns": namespace,
        "sp": normalize_permissions(permissions),
        "st": _format_time(start),
        "se": _format_time(end),
        "spr": "https,http",
    }
    fields["sig"] = _sign(key, fields)
    return DelegatedCredential(
        namespace=namespace,
        permissions=fields["sp"],
        start=start,
        end=end,
        token="?" + urlencode(fields, safe=","),
    )


def verify(
    key: bytes,
    token: str,
    namespace: str,
    permission: str,
    now: datetime | None = None,
) -> bool:
    """Check that ``token`` grants ``permission`` on ``namespace`` at ``now``."""
    parsed = parse_qs(token.lstrip("?"), keep_blank_values=True)
    try:
        fields = {name: parsed[name][0] for name in ("sv", "sr", "ns", "sp", "st", "se", "spr", "sig")}
        start = _parse_time(fields["st"])
        end = _parse_time(fields["se"])
    except (KeyError, IndexError, ValueError):
        return False

    expected = _sign(key, fields)
    if not hmac.compare_digest(expected, fields["sig"]):
        return False
    if fields["ns"] != namespace or permission not in fields["sp"]:
        return False

    now = now or datetime.now(timezone.utc)
    return start <= now < end
