"""src/streamkeeper/utils/url.py

Translation of logical server addresses into concrete transport endpoints.

Accepted inputs::

    "localhost:3000"
    "subdomain.example.com"
    "http://subdomain.example.com"
    "/"                                  (needs ``root_url``)
    "ddp+sockjs://ddp--****-foo.example.com/sockjs"
"""

import random
import re
import urllib.parse
from typing import Optional

__all__ = ["translate_url", "to_websocket_url", "to_sockjs_url"]

_DDP_SCHEME = re.compile(r"^ddp(i?)\+sockjs://")
_HTTP_SCHEME = re.compile(r"^http(s?)://")


def translate_url(
    url: str,
    scheme_base: str = "http",
    sub_path: str = "",
    root_url: Optional[str] = None,
) -> str:
    """
    Rewrite ``url`` to use ``scheme_base`` and end with ``sub_path``.

    Secure inputs (``https``, ``ddp+sockjs``) map to ``<scheme_base>s``;
    insecure ones (``http``, ``ddpi+sockjs``) map to ``<scheme_base>``. In
    ``ddp+sockjs`` hosts every ``*`` becomes a random digit so that several
    streams can spread over distinct host names.

    Args:
        url: Logical address.
        scheme_base: Insecure scheme of the target, e.g. ``"ws"``.
        sub_path: Path segment appended to the result.
        root_url: Base used to resolve relative addresses such as ``"/"``.

    Raises:
        ValueError: If ``url`` is relative and no ``root_url`` is given.
    """
    ddp_match = _DDP_SCHEME.match(url)
    http_match = _HTTP_SCHEME.match(url)

    if ddp_match:
        rest = url[ddp_match.end():]
        scheme = scheme_base if ddp_match.group(1) == "i" else scheme_base + "s"
        host, slash, path = rest.partition("/")
        host = re.sub(r"\*", lambda _: str(random.randrange(10)), host)
        url = f"{scheme}://{host}{slash}{path}"

    elif http_match:
        scheme = scheme_base + "s" if http_match.group(1) else scheme_base
        url = f"{scheme}://{url[http_match.end():]}"

    elif url.startswith("/"):
        if not root_url:
            raise ValueError(f"Relative address {url!r} requires a root_url")
        url = translate_url(urllib.parse.urljoin(root_url, url), scheme_base)

    elif "://" not in url:
        url = f"{scheme_base}://{url}"

    if not sub_path:
        return url

    if url.endswith("/"):
        return url + sub_path
    return url + "/" + sub_path


def to_websocket_url(url: str, root_url: Optional[str] = None) -> str:
    """Endpoint of the raw WebSocket transport for ``url``."""
    return translate_url(url, "ws", "websocket", root_url=root_url)


def to_sockjs_url(url: str, root_url: Optional[str] = None) -> str:
    """Endpoint of the SockJS polling transport for ``url``."""
    return translate_url(url, "http", "sockjs", root_url=root_url)
