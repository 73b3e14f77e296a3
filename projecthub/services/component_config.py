"""
Per-type component config payloads.

``StageComponent.config`` is stored as a JSON map, but each component type
has its own payload shape. Every type gets a dataclass here; known keys are
type-checked against it on create and on every merge-update. Keys a type
does not declare are kept as-is so newer clients can store extra data.

    payload = parse_config("link", {"url": "https://x.io", "label": "Docs"})
    merged = merge_config("upload_request", existing, {"submitted_urls": [...]})
"""

from dataclasses import dataclass, field, fields

from projecthub.core.exceptions import ValidationError


@dataclass
class UploadRequestConfig:
    description: str | None = None
    submitted_urls: list = field(default_factory=list)

    def check(self) -> dict:
        if not all(isinstance(u, str) for u in self.submitted_urls):
            return {"submitted_urls": "Every submitted url must be a string"}
        return {}


@dataclass
class ChecklistConfig:
    items: list = field(default_factory=list)

    def check(self) -> dict:
        return {}


@dataclass
class PrototypeConfig:
    url: str | None = None
    description: str | None = None

    def check(self) -> dict:
        return {}


@dataclass
class ApprovalConfig:
    description: str | None = None
    instructions: str | None = None

    def check(self) -> dict:
        return {}


@dataclass
class TextBlockConfig:
    content: str | None = None

    def check(self) -> dict:
        return {}


@dataclass
class FormConfig:
    fields: list = field(default_factory=list)
    responses: dict = field(default_factory=dict)

    def check(self) -> dict:
        return {}


@dataclass
class LinkConfig:
    url: str | None = None
    label: str | None = None

    def check(self) -> dict:
        return {}


@dataclass
class MilestoneConfig:
    description: str | None = None
    due_date: str | None = None

    def check(self) -> dict:
        return {}


@dataclass
class TasklistConfig:
    tasks: list = field(default_factory=list)

    def check(self) -> dict:
        if not all(isinstance(t, dict) for t in self.tasks):
            return {"tasks": "Every task must be an object"}
        return {}


CONFIG_TYPES = {
    "upload_request": UploadRequestConfig,
    "checklist": ChecklistConfig,
    "prototype": PrototypeConfig,
    "approval": ApprovalConfig,
    "text_block": TextBlockConfig,
    "form": FormConfig,
    "link": LinkConfig,
    "milestone": MilestoneConfig,
    "tasklist": TasklistConfig,
}


def parse_config(component_type: str, config: dict | None):
    """Validate ``config`` for ``component_type`` and return the typed payload.

    Raises:
        ValidationError: unknown component type, non-object config, or a
                         declared key holding a value of the wrong type.
    """
    payload_cls = CONFIG_TYPES.get(component_type)
    if payload_cls is None:
        raise ValidationError(
            "Invalid component type",
            details={"component_type": f"Must be one of: {', '.join(CONFIG_TYPES)}"},
        )
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValidationError("Config must be a JSON object", details={"config": "Must be an object"})

    errors: dict[str, str] = {}
    known = {}
    for f in fields(payload_cls):
        if f.name not in config or config[f.name] is None:
            continue
        value = config[f.name]
        if not isinstance(value, f.type):
            errors[f.name] = f"Invalid type for {component_type} config"
            continue
        known[f.name] = value
    if errors:
        raise ValidationError("Invalid component config", details=errors)

    payload = payload_cls(**known)
    errors = payload.check()
    if errors:
        raise ValidationError("Invalid component config", details=errors)
    return payload


def normalize_config(component_type: str, config: dict | None) -> dict:
    """Validated config as a plain dict; undeclared keys are preserved."""
    if config is not None and not isinstance(config, dict):
        raise ValidationError("Config must be a JSON object", details={"config": "Must be an object"})
    config = dict(config or {})
    parse_config(component_type, config)
    return config


def merge_config(component_type: str, existing: dict | None, patch: dict | None) -> dict:
    """Shallow merge ``patch`` over ``existing``: ``{**existing, **patch}``.

    Keys absent from the patch survive. The merged result is validated as a
    whole before it is returned.
    """
    if patch is not None and not isinstance(patch, dict):
        raise ValidationError("Config must be a JSON object", details={"config": "Must be an object"})
    merged = {**(existing or {}), **(patch or {})}
    return normalize_config(component_type, merged)
