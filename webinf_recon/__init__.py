"""
WEB-INF Recon Package
=====================

Scanner that looks for Java classes disclosed through a web application's
``/WEB-INF`` folder and decompiles them to recover source code.  Class names
are seeded from well-known files such as ``web.xml`` and every decompiled
class feeds its ``import`` statements back into the work list, so a single
exposed class can lead to most of the code base.

The engine lives in ``extractor``, ``uri``, ``fetch``, ``decompiler``,
``seeds`` and ``crawler``; ``core`` and ``plugins`` wrap it in the plugin
runner.  The main entry point is ``webinf_recon.main.main``.
"""

__version__ = "0.1.0"

__all__ = [
    "core",
    "crawler",
    "decompiler",
    "errors",
    "extractor",
    "fetch",
    "main",
    "plugins",
    "seeds",
    "uri",
]
