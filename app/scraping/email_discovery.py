"""
Website email discovery over plain HTTP.

The finder walks a small, fixed page plan per site (homepage, well-known
contact paths, contact-like links from the homepage, team pages) and stops at
the first page that yields a usable address.
"""

from __future__ import annotations

import asyncio
import html
import logging
import re
import time
from urllib.parse import unquote, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from app.config import EmailDiscoverySettings
from app.domain.business import derive_domain
from app.scraping.base import EmailFinder
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

CONTACT_PATHS = (
    "/contact",
    "/contact-us",
    "/contact_us",
    "/contactus",
    "/contacto",
    "/about",
    "/about-us",
    "/about_us",
    "/aboutus",
    "/get-in-touch",
    "/reach-us",
    "/support",
    "/connect",
    "/email-us",
    "/email",
    "/info",
)
TEAM_PATHS = ("/team", "/staff", "/our-team", "/our-staff", "/people", "/management")

_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,24}")
_OBFUSCATED = (
    (re.compile(r"\s*\[\s*at\s*\]\s*", re.I), "@"),
    (re.compile(r"\s*\(\s*at\s*\)\s*", re.I), "@"),
    (re.compile(r"\s*\[\s*dot\s*\]\s*", re.I), "."),
    (re.compile(r"\s*\(\s*dot\s*\)\s*", re.I), "."),
)
_JUNK_SUBSTRINGS = (
    "example.com",
    "youremail",
    "sample",
    "domain.com",
    "wixpress.com",
    "sentry.io",
    "godaddy.com",
)
_BAD_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".css", ".js")
_CONTACT_LINK_HINTS = ("contact", "about")


def is_junk_email(candidate: str) -> bool:
    low = (candidate or "").strip().lower()
    if "@" not in low or "." not in low.split("@", 1)[1]:
        return True
    if low.endswith(_BAD_SUFFIXES):
        return True
    return any(bad in low for bad in _JUNK_SUBSTRINGS)


def _clean_candidate(raw: str) -> str:
    cleaned = unquote(raw or "").strip()
    return cleaned.strip(" \t\r\n\"'<>[](){}.,;:").lower()


def extract_emails(page_html: str) -> list[str]:
    """
    Distinct, non-junk addresses from a page, in discovery order.

    mailto links and data-email attributes come first, then regex matches over
    the visible text, then over the raw source.
    """

    if not page_html:
        return []

    soup = BeautifulSoup(page_html, "html.parser")
    candidates: list[str] = []

    for anchor in soup.select('a[href^="mailto:"]'):
        candidates.append(anchor.get("href", "")[len("mailto:") :].split("?", 1)[0])
    for element in soup.select("[data-email], [data-mail]"):
        candidates.append(element.get("data-email") or element.get("data-mail") or "")

    text = html.unescape(soup.get_text(" "))
    for pattern, replacement in _OBFUSCATED:
        text = pattern.sub(replacement, text)
    candidates.extend(_EMAIL_RE.findall(text))
    candidates.extend(_EMAIL_RE.findall(page_html))

    found: list[str] = []
    for raw in candidates:
        email = _clean_candidate(raw)
        if email and _EMAIL_RE.fullmatch(email) and not is_junk_email(email) and email not in found:
            found.append(email)
    return found


def pick_best_email(emails: list[str], site_domain: str | None) -> str | None:
    """
    Prefer an address on the site's own domain; otherwise the first one found.
    """

    if not emails:
        return None
    if site_domain:
        for email in emails:
            email_domain = email.split("@", 1)[1]
            if email_domain == site_domain or email_domain.endswith("." + site_domain):
                return email
    return emails[0]


def contact_links(page_html: str, base_url: str) -> list[str]:
    """
    Absolute same-site links whose text or href mentions contact/about.
    """

    soup = BeautifulSoup(page_html, "html.parser")
    base_host = urlparse(base_url).hostname
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        label = anchor.get_text(" ").strip().lower()
        if not any(hint in href.lower() or hint in label for hint in _CONTACT_LINK_HINTS):
            continue
        absolute = urljoin(base_url, href)
        parsed = urlparse(absolute)
        if parsed.scheme not in {"http", "https"} or parsed.hostname != base_host:
            continue
        absolute = absolute.split("#", 1)[0]
        if absolute not in links:
            links.append(absolute)
    return links


class HttpEmailFinder(EmailFinder):
    """
    requests + BeautifulSoup email finder, run off the event loop.
    """

    def __init__(
        self,
        *,
        settings: EmailDiscoverySettings,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.request_headers = {"User-Agent": settings.user_agent}

    async def find_email(self, website: str) -> str | None:
        return await asyncio.to_thread(self.find_email_sync, website)

    def find_email_sync(self, website: str) -> str | None:
        site_domain = derive_domain(website)
        visited: set[str] = set()
        budget = self.settings.max_pages_per_site

        homepage_html = self._fetch(website)
        visited.add(website)
        if homepage_html:
            email = pick_best_email(extract_emails(homepage_html), site_domain)
            if email:
                return email

        plan = [urljoin(website, path) for path in CONTACT_PATHS]
        if homepage_html:
            plan.extend(contact_links(homepage_html, website))
        plan.extend(urljoin(website, path) for path in TEAM_PATHS)

        for url in plan:
            if url in visited:
                continue
            if len(visited) >= budget:
                break
            visited.add(url)
            page_html = self._fetch(url)
            if not page_html:
                continue
            email = pick_best_email(extract_emails(page_html), site_domain)
            if email:
                log_event(
                    logger,
                    logging.DEBUG,
                    "email_found",
                    website=website,
                    page_url=url,
                    pages_checked=len(visited),
                )
                return email

        return None

    def _fetch(self, url: str) -> str | None:
        try:
            response = self._request_with_retry(url)
        except (requests.RequestException, RuntimeError) as exc:
            logger.debug("Email page fetch failed url=%s error=%s", url, exc)
            return None
        content_type = response.headers.get("Content-Type", "")
        if content_type and "html" not in content_type and "text" not in content_type:
            return None
        return response.text

    def _request_with_retry(self, url: str) -> requests.Response:
        last_error: Exception | None = None

        for attempt in range(self.settings.max_retries + 1):
            try:
                response = self.session.get(
                    url,
                    headers=self.request_headers,
                    timeout=self.settings.timeout_seconds,
                    allow_redirects=True,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable status={response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except (requests.Timeout, requests.ConnectionError, requests.HTTPError) as exc:
                last_error = exc
                if isinstance(exc, requests.HTTPError):
                    status_code = exc.response.status_code if exc.response is not None else None
                    if status_code not in RETRYABLE_STATUS_CODES:
                        raise

            if attempt >= self.settings.max_retries:
                break

            backoff_seconds = self.settings.backoff_initial_seconds * (
                self.settings.backoff_multiplier**attempt
            )
            time.sleep(backoff_seconds)

        raise RuntimeError(f"Failed to fetch {url} after retries: {last_error}")
