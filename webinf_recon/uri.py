"""
uri.py
------

Maps Java class names onto the location their ``.class`` file would have in a
conventionally deployed web application, i.e. under ``/WEB-INF/classes/``.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

from webinf_recon.errors import MalformedURIError

WEBINF_ROOT = "/WEB-INF/"
CLASSES_PREFIX = WEBINF_ROOT + "classes/"
CLASS_SUFFIX = ".class"

_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*")
_IDENT_CHARS_RE = re.compile(r"[0-9A-Za-z_.]+")
_BAD_AUTHORITY_CHARS = set("/?#\\ \t\r\n<>\"{}|^`")
_BAD_NAME_CHARS = set("?#\\ \t\r\n<>\"{}|^`%")


def _check_base(scheme: str, authority: str) -> None:
    if not scheme or not _SCHEME_RE.fullmatch(scheme):
        raise MalformedURIError(f"invalid scheme {scheme!r}")
    if not authority or any(c in _BAD_AUTHORITY_CHARS for c in authority):
        raise MalformedURIError(f"invalid authority {authority!r}")


def derive_class_uri(scheme: str, authority: str, identifier: str) -> str:
    """Return the candidate URI of the compiled class ``identifier``.

    ``com.acme.Foo`` on ``http``/``example.com:8080`` becomes
    ``http://example.com:8080/WEB-INF/classes/com/acme/Foo.class``.
    """
    _check_base(scheme, authority)
    if not identifier or not _IDENT_CHARS_RE.fullmatch(identifier):
        raise MalformedURIError(f"identifier {identifier!r} contains characters not allowed in a URI path")
    path = CLASSES_PREFIX + identifier.replace(".", "/") + CLASS_SUFFIX
    return urlunsplit((scheme, authority, path, "", ""))


def marker_uri(scheme: str, authority: str, marker: str) -> str:
    """Return the URI of a marker file such as ``web.xml`` under ``/WEB-INF/``."""
    _check_base(scheme, authority)
    name = marker.lstrip("/")
    if not name or any(c in _BAD_NAME_CHARS for c in name):
        raise MalformedURIError(f"invalid marker name {marker!r}")
    return urlunsplit((scheme, authority, WEBINF_ROOT + name, "", ""))


def split_base(url: str) -> tuple:
    """Split ``url`` into ``(scheme, authority)``; paths and queries are dropped."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise MalformedURIError(f"not an absolute URL: {url!r}")
    return parts.scheme, parts.netloc
