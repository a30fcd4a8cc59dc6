"""Detect browsers that block third-party cookies by default.

Inside the admin iframe these browsers never send the app's session
cookie, so requests from them have to authenticate with session tokens.
"""

import re
from dataclasses import dataclass

from .config import settings


@dataclass(frozen=True)
class BrowserSignature:
    name: str
    pattern: re.Pattern[str]
    min_version: tuple[int, ...] = (0,)
    excludes: re.Pattern[str] | None = None

    def matches(self, user_agent: str) -> bool:
        if self.excludes is not None and self.excludes.search(user_agent):
            return False
        match = self.pattern.search(user_agent)
        if not match:
            return False
        version = tuple(int(part) for part in match.groups() if part is not None)
        return version >= self.min_version


SIGNATURES: tuple[BrowserSignature, ...] = (
    # Every browser on iOS and iPadOS runs on WebKit.
    BrowserSignature(
        "ios_webkit",
        re.compile(r"\((?:iPhone|iPad|iPod)[^)]*OS (\d+)(?:_(\d+))?"),
        (12,),
    ),
    BrowserSignature(
        "safari",
        re.compile(r"Version/(\d+)(?:\.(\d+))?.*Safari/"),
        (12,),
        excludes=re.compile(r"Chrome|Chromium|CriOS|Edg|OPR|Android"),
    ),
    BrowserSignature("firefox", re.compile(r"Firefox/(\d+)"), (103,)),
    BrowserSignature("brave", re.compile(r"Brave(?:/(\d+))?"), ()),
)


def is_itp_affected(user_agent: str | None) -> bool:
    if not user_agent:
        return False
    return any(signature.matches(user_agent) for signature in SIGNATURES)


def needs_test_cookie(user_agent: str | None, embedded: bool | None = None) -> bool:
    if embedded is None:
        embedded = settings.embedded_app
    return embedded and is_itp_affected(user_agent)
