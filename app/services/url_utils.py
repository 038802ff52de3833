from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

ALLOWED_REDIRECT_SCHEMES = {"http", "https"}


def append_query_param(url: str, key: str, value: str | int) -> str:
    """Add ``key=value`` to the query string, keeping existing params and the fragment."""
    parts = urlsplit(url)
    params = parse_qsl(parts.query, keep_blank_values=True)
    params.append((key, str(value)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))


def validate_checkout_redirect_url(url: str, field_name: str) -> str:
    """Accept only absolute http(s) URLs without embedded credentials; raise ValueError otherwise."""
    parts = urlsplit(url)
    if parts.scheme not in ALLOWED_REDIRECT_SCHEMES or not parts.netloc:
        raise ValueError(f"{field_name} must be an absolute http(s) URL")
    if parts.username or parts.password:
        raise ValueError(f"{field_name} must not contain credentials")
    return url
