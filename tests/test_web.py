"""Tests for webpage scraping and LinkedIn URL extraction."""

import pytest
from unittest.mock import Mock, patch

from integrations.web import extract_linkedin, scrape_webpage

PAGE = """
<html>
  <head>
    <title>Ada Lovelace</title>
    <meta name="description" content="Engineer and writer">
    <style>body { color: red; }</style>
  </head>
  <body>
    <h1>About me</h1>
    <p>I build analytical engines.</p>
    <h2>Projects</h2>
    <a href="/projects/engine">Engine</a>
    <a href="https://github.com/ada">GitHub</a>
    <a href="mailto:ada@example.com">Mail</a>
    <a href="/projects/engine">Engine again</a>
    <script>var tracking = 1;</script>
  </body>
</html>
"""


class TestScrapeWebpage:
    @patch("integrations.web.requests.get")
    def test_extracts_page(self, mock_get):
        mock_get.return_value = Mock(text=PAGE)

        result = scrape_webpage("https://ada.dev/")

        assert result["title"] == "Ada Lovelace"
        assert result["description"] == "Engineer and writer"
        assert result["headings"] == ["About me", "Projects"]
        assert result["links"] == ["https://ada.dev/projects/engine", "https://github.com/ada"]
        assert "analytical engines" in result["text_excerpt"]
        assert "tracking" not in result["text_excerpt"]
        assert "color" not in result["text_excerpt"]

    @patch("integrations.web.requests.get")
    def test_filters_headings_by_section(self, mock_get):
        mock_get.return_value = Mock(text=PAGE)
        result = scrape_webpage("https://ada.dev/", ["projects"])
        assert result["headings"] == ["Projects"]

    @pytest.mark.parametrize("url", ["ftp://ada.dev", "ada.dev", "javascript:alert(1)"])
    def test_rejects_non_http_urls(self, url):
        with pytest.raises(ValueError, match="Invalid URL"):
            scrape_webpage(url)


class TestExtractLinkedIn:
    def test_name_from_slug(self):
        result = extract_linkedin("https://linkedin.com/in/ada-lovelace-1a2b3c/")
        assert result["profile_url"] == "https://www.linkedin.com/in/ada-lovelace-1a2b3c"
        assert result["name"] == "Ada Lovelace"
        assert result["username"] == "ada-lovelace-1a2b3c"

    def test_numeric_slug_has_no_name(self):
        assert extract_linkedin("https://www.linkedin.com/in/12345")["name"] is None

    def test_not_a_profile(self):
        with pytest.raises(ValueError):
            extract_linkedin("https://linkedin.com/company/heysme")
