from __future__ import annotations

import html
import re

import requests


TITLE_RE = re.compile(r"<title\b[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def decode_title(raw: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(raw or "")).strip()


class PageTitleClient:
    """Fetches the live ``<title>`` of a page for report context."""

    USER_AGENT = "Mozilla/5.0 (compatible; SeoRankTracker-CTR-Bot/1.0)"

    def __init__(self, timeout_sec: float = 10.0) -> None:
        self.timeout_sec = timeout_sec

    def fetch_title(self, url: str) -> str:
        # Titles only decorate the report; an unreachable page yields "".
        if not re.match(r"^https?://", str(url or ""), re.IGNORECASE):
            return ""
        try:
            response = requests.get(
                url,
                timeout=self.timeout_sec,
                headers={"User-Agent": self.USER_AGENT},
                allow_redirects=True,
            )
        except requests.RequestException:
            return ""
        match = TITLE_RE.search(response.text or "")
        return decode_title(match.group(1)) if match else ""
