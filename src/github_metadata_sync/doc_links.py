import re
from urllib.parse import urlsplit, urlunsplit

DOC_URL_PREFIX = "https://docs.github.com/rest/"

DOC_URL_PREFIX_PATTERN = re.compile(r"^https://docs\.github\.com.*?/rest/")

ENTERPRISE_CLOUD_DOUBLE_SLASH = "docs.github.com/enterprise-cloud@latest//"
ENTERPRISE_CLOUD = "docs.github.com/enterprise-cloud@latest/"


def normalize_doc_url(url: str) -> str:
    """Normalize a GitHub documentation URL to the form used in generated comments.

    - The first `/en/` locale segment is removed.
    - Non-enterprise `https://docs.github.com/.../rest/` URLs are rewritten to `https://docs.github.com/rest/`.
    - The `enterprise-cloud@latest//` double slash is removed.
    """

    url = url.replace("/en/", "/", 1)

    prefix = DOC_URL_PREFIX_PATTERN.match(url)
    if prefix is None:
        return url

    if ENTERPRISE_CLOUD in url or ENTERPRISE_CLOUD_DOUBLE_SLASH in url:
        return url.replace(ENTERPRISE_CLOUD_DOUBLE_SLASH, ENTERPRISE_CLOUD)

    if "docs.github.com/enterprise-server" in url:
        return url

    return DOC_URL_PREFIX + url[prefix.end() :]


def strip_url_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit(parts._replace(query=""))


def same_doc_link(left: str, right: str) -> bool:
    """Whether two documentation links render the same section of the same page.

    URLs under `/rest/` are compared after normalization and without their query. Other URLs must be identical.
    """

    if not DOC_URL_PREFIX_PATTERN.match(left) or not DOC_URL_PREFIX_PATTERN.match(right):
        return left == right

    return strip_url_query(normalize_doc_url(left)) == strip_url_query(normalize_doc_url(right))
