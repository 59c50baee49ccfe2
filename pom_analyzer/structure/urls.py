"""URL comparison and pattern helpers for page boundary detection."""

import re
from fnmatch import fnmatchcase
from urllib.parse import urlsplit

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)
TEMPLATE_PREFIX_PATTERN = re.compile(r"^\$\{[^}]*\}")
REGEX_URL_PATTERN = re.compile(r"^/(.+)/([dgimsuy]*)$")


def is_regex_argument(expression: str | None) -> bool:
    """Check whether a URL argument was written as a regex literal."""
    return bool(expression) and bool(REGEX_URL_PATTERN.match(expression.strip()))


def _strip_template(url: str) -> str:
    return TEMPLATE_PREFIX_PATTERN.sub("", url.strip("`'\""))


def url_host(url: str | None) -> str | None:
    if not url:
        return None
    parts = urlsplit(_strip_template(url))
    return parts.hostname


def url_path(url: str | None) -> str | None:
    """Return the normalized path of a URL or URL glob, '/' for the root."""
    if url is None:
        return None
    text = _strip_template(url)
    if text.startswith("**"):
        text = text[2:]
    parts = urlsplit(text)
    path = parts.path if (parts.scheme or parts.netloc) else text.split("?")[0].split("#")[0]
    path = re.sub(r"/{2,}", "/", path)
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def path_segments(url: str | None) -> list[str]:
    path = url_path(url)
    if not path:
        return []
    return [segment for segment in path.split("/") if segment]


def _dynamic(segment: str) -> str | None:
    if "${" in segment or segment.startswith(":"):
        return ":param"
    if segment.isdigit() or UUID_PATTERN.match(segment):
        return ":id"
    return None


def url_pattern(url: str | None, regex: bool = False) -> str | None:
    """Generalize a URL into a path pattern with `:id`/`:param` placeholders."""
    if url is None:
        return None
    if regex:
        return url
    segments = []
    for segment in path_segments(url):
        if set(segment) <= {"*"}:
            continue
        segments.append(_dynamic(segment) or segment)
    return "/" + "/".join(segments)


def meaningful_segments(url: str | None) -> list[str]:
    """Path segments that describe the page, skipping ids, params and globs."""
    return [s for s in path_segments(url) if not set(s) <= {"*"} and _dynamic(s) is None]


def _regex_search(pattern: str, value: str) -> bool:
    match = REGEX_URL_PATTERN.match(pattern)
    body, flags = (match.group(1), match.group(2)) if match else (pattern, "")
    try:
        return re.search(body, value, re.I if "i" in flags else 0) is not None
    except re.error:
        return False


def same_page(
    target: str,
    current: str | None,
    threshold: str,
    target_is_regex: bool = False,
) -> bool:
    """Decide whether a wait-for-URL target still refers to the current page.

    Args:
        target: URL, glob or regex source the script waits for
        current: URL of the current page, None when unknown
        threshold: "full", "path" or "domain"
        target_is_regex: Target was written as a regex literal
    """
    if current is None:
        return False

    if threshold == "domain":
        target_host = url_host(target)
        if target_host is None:
            return True
        return target_host == url_host(current)

    if target_is_regex:
        value = current if threshold == "full" else (url_path(current) or "")
        return _regex_search(target, value)

    if threshold == "full":
        if "*" in target:
            return fnmatchcase(current, target) or fnmatchcase(current, target.lstrip("*"))
        return target.rstrip("/") == current.rstrip("/")

    target_path = url_path(target) or "/"
    current_path = url_path(current) or "/"
    if "*" in target_path:
        return fnmatchcase(current_path, target_path)
    if target_path == current_path:
        return True
    return current_path != "/" and target_path.startswith(current_path + "/")
