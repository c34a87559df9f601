"""
extractor.py
------------

Pattern scans that pull Java class names out of text.

Two scans are provided:

* ``scan_free_text`` looks for anything shaped like a package-qualified class
  name.  It is meant for marker files such as ``web.xml`` and deliberately
  over-matches (version strings, file names); those candidates simply fail to
  fetch later on.
* ``scan_imports`` only looks at ``import a.b.C;`` lines.  It is meant for
  decompiled source, where class-body references would be too noisy.

Neither scan deduplicates; the crawler owns that.
"""

from __future__ import annotations

import re
from typing import Iterator, List

# Must not start with a dot, so every match carries an internal separator.
CLASSNAME_RE = re.compile(r"[0-9A-Za-z_][0-9A-Za-z_.]*\.[0-9A-Za-z_]+")

IMPORT_RE = re.compile(
    r"^[ \t]*import[ \t]+([0-9A-Za-z_][0-9A-Za-z_.]*\.[0-9A-Za-z_]+)[ \t]*;",
    re.MULTILINE,
)


class IdentifierExtractor:
    """Interface for class-name extraction strategies."""

    def scan_free_text(self, text: str) -> List[str]:
        raise NotImplementedError

    def scan_imports(self, source: str) -> List[str]:
        raise NotImplementedError


class RegexIdentifierExtractor(IdentifierExtractor):
    """Regular-expression implementation of :class:`IdentifierExtractor`."""

    def __init__(self, classname_re: re.Pattern = CLASSNAME_RE, import_re: re.Pattern = IMPORT_RE) -> None:
        self.classname_re = classname_re
        self.import_re = import_re

    def iter_free_text(self, text: str) -> Iterator[str]:
        for m in self.classname_re.finditer(text):
            yield m.group(0)

    def iter_imports(self, source: str) -> Iterator[str]:
        for m in self.import_re.finditer(source):
            yield m.group(1)

    def scan_free_text(self, text: str) -> List[str]:
        return list(self.iter_free_text(text))

    def scan_imports(self, source: str) -> List[str]:
        return list(self.iter_imports(source))
