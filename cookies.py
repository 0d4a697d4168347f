"""Cookie header parsing and the cookies the counter hands out."""

VISITOR_COOKIE = "visitor_id"
CLICKS_COOKIE = "user_clicks"

# One year
COOKIE_MAX_AGE = 31536000


def parse_cookies(header):
    """Split a raw Cookie header into a dict.

    Pairs are separated by ``;`` and split on the first ``=``. A bare key maps to
    an empty string, segments without a key are ignored and the first occurrence
    of a repeated key wins.
    """
    cookies = {}
    if not header:
        return cookies
    for segment in header.split(";"):
        key, _, value = segment.strip().partition("=")
        key = key.strip()
        if not key or key in cookies:
            continue
        cookies[key] = value.strip()
    return cookies


def get_cookie_value(header, key):
    return parse_cookies(header).get(key)


def parse_click_count(value) -> int:
    # Only plain ASCII decimals count; anything else restarts from zero
    if not value or not value.isascii() or not value.isdigit():
        return 0
    return int(value)


def visitor_cookie_options() -> dict:
    return {
        "path": "/",
        "max_age": COOKIE_MAX_AGE,
        "httponly": True,
        "secure": True,
        "samesite": "lax",
    }


def clicks_cookie_options() -> dict:
    # Readable from the page script, so no HttpOnly
    return {
        "path": "/",
        "max_age": COOKIE_MAX_AGE,
        "samesite": "lax",
    }
