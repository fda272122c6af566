"""Helpers for describing generated project files."""

import hashlib

_LANGUAGES = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "json": "json",
    "css": "css",
    "scss": "scss",
    "html": "html",
    "md": "markdown",
    "yml": "yaml",
    "yaml": "yaml",
}

_CONFIG_NAMES = ("package.json", "tsconfig", "next.config", "tailwind.config", "postcss.config", ".eslintrc")


def file_extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def detect_language(path: str) -> str:
    """Map a file path to the language label stored with the file."""
    return _LANGUAGES.get(file_extension(path), "text")


def file_type(path: str) -> str:
    """
    Classify a file by its role in a generated Next.js project.

    Returns one of: page, component, config, styles, data, other.
    """
    lowered = path.lower()
    name = lowered.rsplit("/", 1)[-1]
    ext = file_extension(lowered)

    if any(name.startswith(config_name) for config_name in _CONFIG_NAMES):
        return "config"
    if ext in ("css", "scss"):
        return "styles"
    if "/pages/" in f"/{lowered}" or name.startswith("page.") or name.startswith("layout."):
        return "page"
    if "components/" in lowered or ext in ("tsx", "jsx"):
        return "component"
    if ext in ("json", "yml", "yaml"):
        return "data"
    return "other"


def content_checksum(content: str) -> str:
    """MD5 of the file content, used only to detect changes."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()
