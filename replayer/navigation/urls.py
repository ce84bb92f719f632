"""URL comparison helpers used for page-state validation."""

from urllib.parse import urlsplit, urlunsplit

WEB_SCHEMES = ("http", "https")


def _host_and_path(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    path = parts.path.rstrip("/") or "/"
    return (parts.hostname or "").lower(), path


def urls_match(first: str | None, second: str | None) -> bool:
    """Whether two URLs point at the same page (host and path only).

    Query strings, fragments and a trailing slash are ignored. Values that do
    not parse as absolute URLs fall back to plain string equality.
    """
    if not first or not second:
        return False
    if not urlsplit(first).netloc or not urlsplit(second).netloc:
        return first == second
    return _host_and_path(first) == _host_and_path(second)


def hostname(url: str | None) -> str:
    """Lower-cased hostname of a URL, empty when there is none."""
    if not url:
        return ""
    return (urlsplit(url).hostname or "").lower()


def same_host(first: str | None, second: str | None) -> bool:
    return hostname(first) == hostname(second)


def is_plausible_cross_domain(
    expected_url: str,
    actual_url: str,
    known_hosts: set[str] | None = None,
) -> bool:
    """Whether landing on ``actual_url`` looks like an intentional domain jump.

    The live page must be a regular web page on a different host. When the
    recording's hosts are known, the live host must be one of them.
    """
    actual = urlsplit(actual_url)
    if actual.scheme not in WEB_SCHEMES or not actual.hostname:
        return False
    if same_host(expected_url, actual_url):
        return False
    if known_hosts is not None:
        return actual.hostname.lower() in {h.lower() for h in known_hosts}
    return True


def normalize_url(url: str) -> str:
    """Drop the fragment and trailing slash for grouping pages together."""
    parts = urlsplit(url)
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def url_path(url: str) -> str:
    """Path component of a URL, always starting with a slash."""
    return _host_and_path(url)[1]
