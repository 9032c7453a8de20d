"""YAML frontmatter parsing and generation for wiki content files.

Pages are stored as Markdown preceded by a YAML block:

    ---
    title: Welcome
    tags: [intro]
    acl: null
    modifiedAt: 2024-05-01T12:00:00+00:00
    modifiedBy: a1b2c3
    ---
    # Hello

Folder index files carry the YAML block only.
"""

import re
from typing import Any, Dict, Tuple

import yaml
from pydantic import ValidationError

from ..errors import FrontmatterError
from ..models.content import ContentMeta


class FrontmatterCodec:
    """Converts between file text and (ContentMeta, body) pairs."""

    FRONTMATTER_PATTERN = re.compile(r"\A---\n(?:(.*?)\n)?---(?:\n|\Z)", re.DOTALL)

    # Maximum allowed depth for YAML structures
    MAX_YAML_DEPTH = 10

    @classmethod
    def _validate_yaml_depth(cls, obj: Any, current_depth: int = 0) -> None:
        if current_depth > cls.MAX_YAML_DEPTH:
            raise FrontmatterError(
                f"YAML structure exceeds maximum depth of {cls.MAX_YAML_DEPTH}"
            )
        if isinstance(obj, dict):
            for value in obj.values():
                cls._validate_yaml_depth(value, current_depth + 1)
        elif isinstance(obj, list):
            for item in obj:
                cls._validate_yaml_depth(item, current_depth + 1)

    @classmethod
    def parse(cls, text: str) -> Tuple[ContentMeta, str]:
        """Split text into metadata and body.

        Text without a frontmatter block yields empty metadata and the
        whole text as body. One blank line after the closing fence is
        dropped.

        Raises:
            FrontmatterError: If the YAML is malformed or not a mapping
        """
        text = text.replace("\r\n", "\n")
        match = cls.FRONTMATTER_PATTERN.match(text)
        if not match:
            return ContentMeta(), text

        body = text[match.end():]
        if body.startswith("\n"):
            body = body[1:]

        raw = match.group(1) or ""
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise FrontmatterError(f"Invalid YAML syntax: {e}")

        if data is None:
            return ContentMeta(), body
        if not isinstance(data, dict):
            raise FrontmatterError(
                f"Frontmatter must be a YAML mapping, got {type(data).__name__}"
            )
        cls._validate_yaml_depth(data)

        return cls.meta_from_dict(data), body

    @classmethod
    def serialize(cls, meta: ContentMeta, body: str = "") -> str:
        """Render metadata and body back into file text."""
        dumped = yaml.safe_dump(
            cls.meta_to_dict(meta),
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
        return f"---\n{dumped.strip()}\n---\n{body}"

    @staticmethod
    def meta_from_dict(data: Dict[str, Any]) -> ContentMeta:
        title = data.get("title")
        tags = data.get("tags") or []
        if isinstance(tags, list):
            tags = [str(tag) for tag in tags]
        fields = {
            "title": "" if title is None else str(title),
            "tags": tags,
            "acl": data.get("acl"),
            "modifiedAt": data.get("modifiedAt"),
            "modifiedBy": data.get("modifiedBy") or "",
        }
        try:
            return ContentMeta.model_validate(fields)
        except ValidationError as e:
            raise FrontmatterError(f"Invalid frontmatter fields: {e}")

    @staticmethod
    def meta_to_dict(meta: ContentMeta) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": meta.title,
            "tags": list(meta.tags),
            "acl": None,
        }
        if meta.acl is not None:
            data["acl"] = [
                {"subject": rule.subject, "ops": list(rule.operations)}
                for rule in meta.acl
            ]
        if meta.modified_at is not None:
            data["modifiedAt"] = meta.modified_at
        if meta.modified_by:
            data["modifiedBy"] = meta.modified_by
        return data
