"""
core.py
-------

Core abstractions for the scanner: targets, the shared scan context, the
plugin base class, the plugin manager and the runner that drives plugins over
every target.

A target is anything the user typed on the command line: a URL, a host name,
an IP address or a CIDR range.  Each one expands into one or more base URLs
(``scheme://authority``).  The runner creates a session directory per base URL
and hands it to every plugin in priority order.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import ipaddress
import os
import re
import sys
import time
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Iterable, List, Optional, Type
from urllib.parse import urlsplit

import toml

from webinf_recon.decompiler import DECOMPILE_TIMEOUT, DEFAULT_DECOMPILER
from webinf_recon.errors import ConfigError
from webinf_recon.fetch import DEFAULT_USER_AGENT, HTTP_TIMEOUT
from webinf_recon.seeds import DEFAULT_MARKERS

CONFIG_SECTION = "webinf"


@dataclass
class Target:
    """Represents a single scan target.

    URLs keep their scheme and authority; anything else is scanned over
    ``http``.  CIDR ranges are expanded into their host addresses on demand.
    """

    raw: str

    @property
    def hosts(self) -> Iterable[str]:
        try:
            network = ipaddress.ip_network(self.raw, strict=False)
            for addr in network.hosts():
                yield str(addr)
        except ValueError:
            yield self.raw

    @property
    def base_urls(self) -> Iterable[str]:
        raw = self.raw.strip()
        if "://" in raw:
            parts = urlsplit(raw)
            if parts.scheme and parts.netloc:
                yield f"{parts.scheme.lower()}://{parts.netloc}"
            return
        for host in self.hosts:
            if ":" in host and not host.startswith("["):
                try:
                    ipaddress.IPv6Address(host)
                    host = f"[{host}]"
                except ValueError:
                    pass
            yield f"http://{host}"


@dataclass
class ScanContext:
    """Holds configuration and intermediate results for a scan session."""

    results_dir: Path = field(default_factory=lambda: Path(os.getcwd()) / "results")
    plugins: List[str] = field(default_factory=list)

    # Marker files under /WEB-INF/ used to seed the crawl
    marker_files: List[str] = field(default_factory=lambda: list(DEFAULT_MARKERS))
    # Decompiler launcher, e.g. "procyon" or "java -jar procyon.jar"
    decompiler: str = DEFAULT_DECOMPILER
    decompile_timeout: float = DECOMPILE_TIMEOUT
    http_timeout: float = HTTP_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    # Optional cap on class investigations per host; None means unbounded
    max_investigations: Optional[int] = None
    # Disable colour output to console if set
    no_color: bool = False
    # Show DEBUG lines on the console
    verbose: bool = False
    # Set to stop crawls after the class currently being investigated
    cancel_event: Optional[asyncio.Event] = None

    def __post_init__(self) -> None:
        self.results_dir = Path(self.results_dir)
        self.results_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def option_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name != "cancel_event"]


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Read the ``[webinf]`` table of a TOML file.

    Unknown keys are rejected so that typos do not silently fall back to
    defaults.
    """
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    try:
        data = toml.load(str(p))
    except (toml.TomlDecodeError, OSError) as exc:
        raise ConfigError(f"Failed to parse {p}: {exc}") from exc

    section = data.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{CONFIG_SECTION}] in {p} must be a table")
    known = set(ScanContext.option_names())
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigError(f"Unknown option(s) in {p}: {', '.join(unknown)}")

    markers = section.get("marker_files")
    if markers is not None and (not isinstance(markers, list) or not all(isinstance(m, str) for m in markers)):
        raise ConfigError("marker_files must be a list of strings")
    limit = section.get("max_investigations")
    if limit is not None and (not isinstance(limit, int) or limit < 1):
        raise ConfigError("max_investigations must be a positive integer")
    if "results_dir" in section:
        section["results_dir"] = Path(section["results_dir"])
    return section


def session_dir_name(base_url: str) -> str:
    """Filesystem-safe directory name for a base URL."""
    parts = urlsplit(base_url)
    name = f"{parts.scheme}_{parts.netloc}" if parts.scheme else base_url
    return re.sub(r"[^0-9A-Za-z_.\-]", "_", name)


class BasePlugin:
    """Abstract base class for all scanner plugins.

    The framework calls ``setup`` once at startup, ``scan_target`` for each
    base URL, and ``teardown`` at the end.
    """

    name: str = "BasePlugin"
    description: str = ""
    priority: int = 50  # plugins run in ascending order of priority

    def __init__(self, context: ScanContext) -> None:
        self.context = context

    # ------------------------------------------------------------------
    # Logging helper
    # Plugins should call this instead of using print() directly.  It
    # honours the global colour setting and appends messages to
    # scanner.log in the target's output directory.  DEBUG lines always go
    # to the file but only reach the console in verbose mode.
    def log(self, message: str, out_dir: Path, level: str = "INFO") -> None:
        """Log a message to both the console and a log file.

        :param message: The message to log.
        :param out_dir: The directory of the current target session where
                        ``scanner.log`` will be written.
        :param level: The severity level (DEBUG, INFO, WARN, ERROR).
        """
        level = level.upper()
        if level != "DEBUG" or self.context.verbose:
            if not self.context.no_color:
                colour_map = {
                    "INFO": "\033[94m",  # blue
                    "WARN": "\033[93m",  # yellow
                    "ERROR": "\033[91m",  # red
                    "DEBUG": "\033[90m",  # grey
                }
                reset = "\033[0m"
                prefix = colour_map.get(level, "")
                console_msg = f"{prefix}[{self.name}] {message}{reset}"
            else:
                console_msg = f"[{self.name}] {message}"
            stream = sys.stderr if level in ("WARN", "ERROR") else sys.stdout
            print(console_msg, file=stream)
        try:
            log_path = out_dir / "scanner.log"
            with open(log_path, "a", encoding="utf-8") as fh:
                fh.write(f"{time.strftime('%Y-%m-%dT%H:%M:%S')} {level:<5} [{self.name}] {message}\n")
        except OSError as exc:
            sys.stderr.write(f"[{self.name}] could not write scanner.log: {exc}\n")

    async def setup(self) -> None:
        """Perform any one-time initialisation before targets are scanned."""
        return None

    async def scan_target(self, target: str, out_dir: Path) -> None:
        """Run the plugin against a single base URL.

        :param target: ``scheme://authority`` of the web server.
        :param out_dir: Directory unique to this target/session.  Plugins
                        must not write outside of it.
        """
        raise NotImplementedError

    async def teardown(self) -> None:
        """Perform cleanup once all targets have been scanned."""
        return None


class PluginManager:
    """Loads and manages plugins.

    Built-in plugins are discovered from ``webinf_recon.plugins``; extra
    plugins can be supplied via the context's ``plugins`` list as dotted
    module paths.
    """

    def __init__(self, context: ScanContext) -> None:
        self.context = context
        self._registry: List[Type[BasePlugin]] = []
        self._instances: List[BasePlugin] = []

    def discover_plugins(self) -> None:
        """Register every ``BasePlugin`` subclass in ``webinf_recon.plugins``."""
        import webinf_recon.plugins as pkg
        package_path = Path(pkg.__file__).parent
        for file in sorted(package_path.glob("*.py")):
            if file.name.startswith("_"):
                continue
            module = importlib.import_module(f"webinf_recon.plugins.{file.stem}")
            self._register_from_module(module)

    def load_additional(self) -> None:
        for module_path in self.context.plugins:
            try:
                module = importlib.import_module(module_path)
            except ImportError as exc:
                print(f"[PluginManager] Failed to load plugin module {module_path}: {exc}", file=sys.stderr)
                continue
            self._register_from_module(module)

    def _register_from_module(self, module: ModuleType) -> None:
        for _, obj in inspect.getmembers(module, inspect.isclass):
            if obj is not BasePlugin and issubclass(obj, BasePlugin) and obj not in self._registry:
                self._registry.append(obj)

    def instantiate_plugins(self) -> None:
        """Instantiate registered plugin classes in ascending priority."""
        sorted_classes = sorted(self._registry, key=lambda c: getattr(c, "priority", 50))
        for cls in sorted_classes:
            try:
                self._instances.append(cls(self.context))
            except Exception as exc:
                print(f"[PluginManager] Failed to instantiate plugin {cls.__name__}: {exc}", file=sys.stderr)

    async def setup(self) -> None:
        for plugin in self._instances:
            await plugin.setup()

    async def teardown(self) -> None:
        for plugin in self._instances:
            await plugin.teardown()

    async def scan_target(self, target: str, out_dir: Path) -> None:
        """Invoke ``scan_target`` on each plugin in turn.

        If one plugin raises, the error is printed and the remaining plugins
        still run.
        """
        for plugin in self._instances:
            try:
                await plugin.scan_target(target, out_dir)
            except Exception as exc:
                print(f"[PluginManager] Error in {plugin.name} while scanning {target}: {exc}", file=sys.stderr)


class ReconRunner:
    """Coordinates scanning of multiple targets using registered plugins."""

    def __init__(self, context: ScanContext) -> None:
        self.context = context
        self.manager = PluginManager(context)

    async def run(self, targets: List[Target]) -> List[Path]:
        """Run every plugin against every base URL and return the session dirs."""
        self.manager.discover_plugins()
        self.manager.load_additional()
        self.manager.instantiate_plugins()
        await self.manager.setup()

        timestamp = int(time.time())
        sessions: List[Path] = []
        seen = set()
        try:
            for target in targets:
                for base_url in target.base_urls:
                    if base_url in seen:
                        continue
                    seen.add(base_url)
                    session_dir = self.context.results_dir / session_dir_name(base_url) / f"session_{timestamp}"
                    session_dir.mkdir(parents=True, exist_ok=True)
                    print(f"[*] Scanning {base_url}... results will be stored in {session_dir}")
                    await self.manager.scan_target(base_url, session_dir)
                    sessions.append(session_dir)
        finally:
            await self.manager.teardown()
        return sessions
