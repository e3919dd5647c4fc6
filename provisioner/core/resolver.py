"""
Version resolution from ordered manifest sources.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from config.settings import ToolPolicy
from ..errors import ManifestParseError
from ..models.manifest import ManifestEntry, VersionManifest
from ..models.tool import BenignFailureRule, ResolvedToolchain, ToolSpec


_NAME_RE = r"[A-Za-z_][A-Za-z0-9_.+-]*"
_LINE_RE = re.compile(
    rf"^(?:export\s+)?(?P<name>{_NAME_RE})\s*=\s*"
    r"(?P<value>\"[^\"]*\"|'[^']*'|[^\s'\"]*)"
    r"(?:\s+#.*)?$"
)


def parse_manifest(text: str, source: str) -> VersionManifest:
    """
    Parse ``NAME=VALUE`` declarations, one per line.

    Accepts an optional ``export`` prefix, single or double quoted values and
    trailing comments, so shell version files can be read without being
    executed. As in the shell, ``#`` starts a comment only after whitespace;
    ``tool=1.0#rc1`` pins ``1.0#rc1``.

    Raises:
        ManifestParseError: on a malformed line, an empty or whitespace-containing
            value, or a name declared twice in the same source
    """
    entries: List[ManifestEntry] = []
    seen: Dict[str, int] = {}

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        match = _LINE_RE.match(line)
        if not match:
            raise ManifestParseError(source, line_number, "expected NAME=VERSION", raw_line)

        name = match.group("name")
        value = match.group("value")
        if value[:1] in ("'", '"'):
            value = value[1:-1]
        if not value or any(ch.isspace() for ch in value):
            raise ManifestParseError(source, line_number, f"invalid version for {name}", raw_line)

        if name in seen:
            raise ManifestParseError(
                source, line_number, f"{name} already declared on line {seen[name]}", raw_line
            )
        seen[name] = line_number
        entries.append(ManifestEntry(tool_name=name, version=value, line_number=line_number))

    return VersionManifest(source=source, entries=entries)


class FileManifestSource:
    """A manifest read from a file on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return str(self.path)

    def load(self) -> VersionManifest:
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestParseError(self.path, 0, f"cannot read manifest: {e}")
        return parse_manifest(text, self.name)

    def __repr__(self) -> str:
        return f"FileManifestSource({self.name!r})"


class InlineManifestSource:
    """Pins declared directly in configuration or on the command line."""

    def __init__(self, name: str, versions: Mapping[str, str]):
        self._name = name
        self.versions = dict(versions)

    @property
    def name(self) -> str:
        return self._name

    def load(self) -> VersionManifest:
        text = "\n".join(f"{tool}={version}" for tool, version in self.versions.items())
        return parse_manifest(text, self.name)

    def __repr__(self) -> str:
        return f"InlineManifestSource({self._name!r})"


ManifestSource = Union[FileManifestSource, InlineManifestSource]


class VersionResolver:
    """Merges manifest sources into a resolved toolchain, later sources winning."""

    def __init__(self, policies: Optional[Mapping[str, ToolPolicy]] = None):
        """
        Args:
            policies: Installation parameters keyed by tool name
        """
        self.logger = logging.getLogger(__name__)
        self.policies: Dict[str, ToolPolicy] = dict(policies or {})
        self.aliases: Dict[str, str] = {}
        for tool, policy in self.policies.items():
            for alias in policy.aliases:
                self.aliases[alias] = tool

    def resolve(self, manifest_sources: Sequence[ManifestSource]) -> ResolvedToolchain:
        """
        Read every source in order and build the toolchain.

        Raises:
            ManifestParseError: if any source fails to load; nothing is resolved
        """
        pins: Dict[str, str] = {}
        origin: Dict[str, str] = {}

        for source in manifest_sources:
            manifest = source.load()
            self.logger.debug(f"Loaded {len(manifest.entries)} pins from {manifest.source}")
            for entry in manifest.entries:
                tool = self.aliases.get(entry.tool_name, entry.tool_name)
                if tool in pins and pins[tool] != entry.version:
                    self.logger.info(
                        f"{tool}: {manifest.source} overrides {pins[tool]} "
                        f"from {origin[tool]} with {entry.version}"
                    )
                pins[tool] = entry.version
                origin[tool] = manifest.source

        tools = {tool: self._tool_spec(tool, version) for tool, version in pins.items()}
        self.logger.info(f"Resolved {len(tools)} tools: "
                         + (", ".join(f"{n}={v}" for n, v in pins.items()) or "none"))
        return ResolvedToolchain(tools=tools)

    def _tool_spec(self, tool: str, version: str) -> ToolSpec:
        policy = self.policies.get(tool, ToolPolicy())
        return ToolSpec(
            name=tool,
            version=version,
            force=policy.force,
            extra_args=list(policy.extra_args),
            optional=policy.optional,
            manager=policy.manager,
            benign_failures=BenignFailureRule(
                exit_codes=list(policy.benign_exit_codes),
                patterns=list(policy.benign_patterns)
            )
        )
