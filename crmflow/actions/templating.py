"""Placeholder rendering for action configuration (Jinja, sandboxed)."""

from collections.abc import Mapping
from typing import Any

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment


class TemplateRenderer:
    """Renders string values of an action config against the trigger context.

    Templates see ``payload``, ``trigger`` and ``rule_id``, plus every
    top-level payload key directly: ``"Hi {{ lead_name }}"`` and
    ``"Hi {{ payload.lead_name }}"`` are equivalent.
    """

    def __init__(self) -> None:
        self._env = SandboxedEnvironment(autoescape=False)

    def render(self, template: str, context: Mapping[str, Any]) -> str:
        if "{{" not in template and "{%" not in template:
            return template
        return self._env.from_string(template).render(**context)

    def render_config(self, config: Mapping[str, Any], context: Mapping[str, Any]) -> dict[str, Any]:
        """Render every string in the config, recursing into lists and mappings.

        Raises:
            TemplateError: If a template does not compile or render
        """
        return {key: self._render_value(value, context) for key, value in config.items()}

    def _render_value(self, value: Any, context: Mapping[str, Any]) -> Any:
        if isinstance(value, str):
            return self.render(value, context)
        if isinstance(value, Mapping):
            return {key: self._render_value(item, context) for key, item in value.items()}
        if isinstance(value, list):
            return [self._render_value(item, context) for item in value]
        return value


def build_context(payload: Mapping[str, Any], trigger_event: str, rule_id: str) -> dict[str, Any]:
    """Build the template context for one action run."""
    return {
        **payload,
        "payload": payload,
        "trigger": trigger_event,
        "rule_id": rule_id,
    }


__all__ = ["TemplateError", "TemplateRenderer", "build_context"]
