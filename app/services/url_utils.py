from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from app.services.errors import InvalidRequest

ALLOWED_REDIRECT_SCHEMES = {"http", "https"}


def append_query_params(url: str, params: dict[str, str | int | None]) -> str:
    """Append query parameters to URL while preserving existing query params and fragments."""
    parts = urlsplit(url)
    query_params = parse_qsl(parts.query, keep_blank_values=True)
    query_params.extend((key, str(value)) for key, value in params.items() if value is not None)
    updated_query = urlencode(query_params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, updated_query, parts.fragment))


def validate_callback_url(url: str, field_name: str) -> str:
    """Validate a caller-provided gateway callback URL.

    Allows only absolute HTTP(S) URLs without embedded user credentials.
    """
    parts = urlsplit(url)
    if parts.scheme not in ALLOWED_REDIRECT_SCHEMES or not parts.netloc:
        raise InvalidRequest(f"{field_name} must be an absolute http(s) URL")
    if parts.username or parts.password:
        raise InvalidRequest(f"{field_name} must not contain credentials")
    return url
