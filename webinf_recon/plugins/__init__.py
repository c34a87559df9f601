"""
Plugins package
===============

All scanner plugins live in this package.  To add a new plugin, create a
module in this directory that defines a subclass of
``webinf_recon.core.BasePlugin``.  The plugin manager will automatically
discover and register it.  Heavy imports should be performed lazily in the
plugin's ``setup`` method.

Plugins provided out of the box:

* ``webinf_disclosure`` – crawls ``/WEB-INF/classes`` from class names found
  in marker files and decompiled imports, and records disclosed source.
* ``report_generator`` – collates results into JSON, Markdown and HTML
  reports.
"""

__all__ = [
    "webinf_disclosure",
    "report_generator",
]
