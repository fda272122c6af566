"""Lightweight webpage and LinkedIn URL extraction."""

import re
from html.parser import HTMLParser
from typing import Any, Iterable
from urllib.parse import urljoin, urlparse

import requests

from utils.logger import setup_logger

logger = setup_logger(name=__name__)

USER_AGENT = "Mozilla/5.0 (compatible; HeysMeBot/1.0; +https://heysme.app)"
MAX_LINKS = 20
MAX_TEXT = 2000


class _PageParser(HTMLParser):
    """Collects title, meta description, headings, links and visible text."""

    _SKIP = {"script", "style", "noscript", "svg"}
    _HEADINGS = {"h1", "h2", "h3"}

    def __init__(self):
        super().__init__()
        self.title = ""
        self.description = ""
        self.headings: list[str] = []
        self.links: list[str] = []
        self.text: list[str] = []
        self._stack: list[str] = []

    def handle_starttag(self, tag, attrs):
        attrs = dict(attrs)
        if tag == "meta":
            name = (attrs.get("name") or attrs.get("property") or "").lower()
            if name in ("description", "og:description") and not self.description:
                self.description = (attrs.get("content") or "").strip()
            return
        if tag == "a" and attrs.get("href"):
            self.links.append(attrs["href"])
        self._stack.append(tag)

    def handle_endtag(self, tag):
        if tag in self._stack:
            while self._stack and self._stack.pop() != tag:
                pass

    def handle_data(self, data):
        text = data.strip()
        if not text or any(tag in self._SKIP for tag in self._stack):
            return
        current = self._stack[-1] if self._stack else ""
        if current == "title":
            self.title = self.title or text
        elif current in self._HEADINGS:
            self.headings.append(text)
        self.text.append(text)


def scrape_webpage(url: str, target_sections: Iterable[str] = ("all",), timeout: int = 15) -> dict[str, Any]:
    """
    Fetch a page and extract what a profile builder needs from it.

    Args:
        url: http(s) URL of the page
        target_sections: Sections of interest; 'all' keeps everything, otherwise
                         only headings mentioning one of them are kept
        timeout: Request timeout in seconds

    Returns:
        Dict with url, title, description, headings, links, text_excerpt

    Raises:
        ValueError: If the URL is not http(s)
        requests.RequestException: On network or HTTP errors
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL: {url}")

    response = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    response.raise_for_status()

    parser = _PageParser()
    parser.feed(response.text)

    links = []
    for href in parser.links:
        absolute = urljoin(url, href)
        if absolute.startswith(("http://", "https://")) and absolute not in links:
            links.append(absolute)

    headings = parser.headings
    sections = [s.lower() for s in target_sections]
    if "all" not in sections:
        headings = [h for h in headings if any(s in h.lower() for s in sections)]

    text = re.sub(r"\s+", " ", " ".join(parser.text)).strip()
    logger.info(f"Scraped {url}: {len(headings)} headings, {len(links)} links")
    return {
        "url": url,
        "title": parser.title,
        "description": parser.description,
        "headings": headings,
        "links": links[:MAX_LINKS],
        "text_excerpt": text[:MAX_TEXT],
    }


def extract_linkedin(profile_url: str) -> dict[str, Any]:
    """
    Describe a LinkedIn profile from its URL alone.

    LinkedIn blocks anonymous scraping, so only what the URL reveals is
    returned and the user is asked to paste details themselves.
    """
    match = re.search(r"linkedin\.com/in/([^/?#\s]+)", profile_url)
    if not match:
        raise ValueError(f"Not a LinkedIn profile URL: {profile_url}")

    slug = match.group(1)
    # Slugs often end in a numeric or hex disambiguator: jane-doe-1a2b3c
    name_parts = [p for p in slug.split("-") if p.isalpha()]
    name = " ".join(p.capitalize() for p in name_parts) or None
    return {
        "profile_url": f"https://www.linkedin.com/in/{slug}",
        "username": slug,
        "name": name,
        "summary": None,
        "message": "LinkedIn profiles cannot be read automatically; ask the user for role and experience details.",
    }
