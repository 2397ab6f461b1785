"""YAML prompt templates for the decision requester.

A template file holds the ``system`` and ``user`` messages in
ChatPromptTemplate f-string syntax, the ``json_only`` instruction prepended
on the plain-text retry, and integer ``limits`` for how much task context
is embedded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

TEMPLATE_SUFFIX = ".yaml"


class TemplateNotFoundError(Exception):
    """Raised when no file exists for a template name."""

    def __init__(self, template_name: str, path: Path) -> None:
        self.template_name = template_name
        self.path = path
        super().__init__(f"Template not found: {template_name} at {path}")


class TemplateParseError(Exception):
    """Raised when a template file is empty, malformed or has bad fields."""

    def __init__(self, template_name: str, reason: str) -> None:
        self.template_name = template_name
        self.reason = reason
        super().__init__(f"Failed to parse template '{template_name}': {reason}")


@dataclass(frozen=True)
class PromptTemplate:
    """Decision prompt text loaded from a template file.

    Attributes:
        name: Template name, from the file unless it declares one.
        description: Human-readable purpose.
        system: System message template.
        user: User message template.
        json_only: System instruction for the plain-text JSON retry.
        limits: Named integer limits such as ``sources`` or ``perceived_facts``.
    """

    name: str
    description: str
    system: str
    user: str
    json_only: str = ""
    limits: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any], name: str) -> PromptTemplate:
        """Build a template from decoded YAML.

        Raises:
            TemplateParseError: If ``limits`` holds a non-integer value.
        """
        try:
            limits = {str(key): int(value) for key, value in (data.get("limits") or {}).items()}
        except (TypeError, ValueError, AttributeError) as e:
            raise TemplateParseError(name, f"Invalid limits: {e}") from e

        return cls(
            name=str(data.get("name") or name),
            description=str(data.get("description") or ""),
            system=str(data.get("system") or ""),
            user=str(data.get("user") or ""),
            json_only=str(data.get("json_only") or ""),
            limits=limits,
        )


def default_templates_path() -> Path:
    """Directory of the templates shipped with the package."""
    return Path(__file__).parent / "templates"


class PromptLoader:
    """Read templates from a directory and cache them by name."""

    def __init__(self, templates_path: Path | None = None) -> None:
        self.templates_path = templates_path or default_templates_path()
        self._yaml = YAML(typ="safe")
        self._cache: dict[str, PromptTemplate] = {}

    def path_for(self, template_name: str) -> Path:
        return self.templates_path / f"{template_name}{TEMPLATE_SUFFIX}"

    def exists(self, template_name: str) -> bool:
        return self.path_for(template_name).is_file()

    def load(self, template_name: str) -> PromptTemplate:
        """Load a template, reusing the cached copy after the first read.

        Args:
            template_name: File stem of the template.

        Raises:
            TemplateNotFoundError: If the file does not exist.
            TemplateParseError: If the file is empty, not a mapping or not YAML.
        """
        cached = self._cache.get(template_name)
        if cached is not None:
            return cached

        path = self.path_for(template_name)
        if not path.is_file():
            raise TemplateNotFoundError(template_name, path)

        try:
            data = self._yaml.load(path.read_text(encoding="utf-8"))
        except YAMLError as e:
            raise TemplateParseError(template_name, str(e)) from e

        if data is None:
            raise TemplateParseError(template_name, "Empty file")
        if not isinstance(data, dict):
            raise TemplateParseError(template_name, "Top level must be a mapping")

        template = PromptTemplate.from_mapping(data, template_name)
        self._cache[template_name] = template
        return template

    def list_templates(self) -> list[str]:
        """Names of the templates available in the directory."""
        if not self.templates_path.is_dir():
            return []
        files = self.templates_path.glob(f"*{TEMPLATE_SUFFIX}")
        return sorted(p.stem for p in files if p.is_file())

    def clear_cache(self) -> None:
        self._cache.clear()
