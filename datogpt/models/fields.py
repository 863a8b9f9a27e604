"""
Field, block and generation-context models for DatoGPT.

These structures describe *where* a value is being generated: which field,
inside which block, inside which fieldset of which model. They are created
fresh for every generation request and never persisted.
"""

import json
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class FieldDescriptor(BaseModel):
    """
    Identifies a CMS field and the constraints handed to the LLM.

    Validators are advisory only: they are rendered into prompts and never
    enforced on the parsed value.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Human-readable label of the field")
    api_key: str = Field(..., description="API key of the field in its model or block")
    field_type: str = Field(default="single_line", description="Appearance editor of the field")
    validators: Optional[Dict[str, Any]] = Field(default=None, description="CMS validators")
    hint: Optional[str] = Field(default=None, description="Editor hint shown under the field")

    def validators_json(self) -> Optional[str]:
        """Validators rendered for prompt inclusion, or None when there are none."""
        if not self.validators:
            return None
        return json.dumps(self.validators, indent=2)

    def available_blocks(self) -> List[str]:
        """Block model ids permitted inside this field (rich or structured text)."""
        validators = self.validators or {}
        for key in ("structured_text_blocks", "rich_text_blocks"):
            item_types = (validators.get(key) or {}).get("item_types")
            if item_types:
                return list(item_types)
        return []


class FieldsetInfo(BaseModel):
    """Title and hint of the fieldset a field belongs to."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    hint: Optional[str] = None


class BlockInfo(BaseModel):
    """
    The block a block-scoped generation call should produce.

    Either a concrete block model (``block_model_id`` set) or a request for the
    LLM to pick block models from ``available_blocks`` (``auto_select``).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    api_key: str
    block_model_id: Optional[str] = None
    available_blocks: List[str] = Field(default_factory=list)
    auto_select: bool = False

    @classmethod
    def auto(cls, field_name: str, available_blocks: List[str]) -> "BlockInfo":
        """Descriptor asking the engine to choose among ``available_blocks``."""
        return cls(
            name=field_name,
            api_key=field_name,
            block_model_id=available_blocks[0] if available_blocks else None,
            available_blocks=list(available_blocks),
            auto_select=True,
        )


class ParentBlockInfo(BaseModel):
    """
    The enclosing block of a field being generated.

    ``generated_fields`` holds the values already produced for earlier sibling
    fields of the same block instance. It is a snapshot: later siblings never
    change what an earlier sibling saw.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    api_key: str
    generated_fields: Dict[str, Any] = Field(default_factory=dict)


class GenerationContext(BaseModel):
    """
    Parameter bundle threaded through every recursive generation call.

    ``block_level`` grows by exactly one each time generation crosses into a
    nested block.
    """

    model_config = ConfigDict(frozen=True)

    prompt: str
    field_type: str
    field_info: FieldDescriptor
    locale: str = "en"
    is_improve: bool = False
    block_level: int = 0
    block_info: Optional[BlockInfo] = None
    parent_block_info: Optional[ParentBlockInfo] = None
    fieldset_info: Optional[FieldsetInfo] = None
    model_name: str = ""
    form_values: Dict[str, Any] = Field(default_factory=dict)
    resolution: str = "1024x1024"

    def derive(self, **changes: Any) -> "GenerationContext":
        """Copy of this context with ``changes`` applied."""
        return self.model_copy(update=changes)


class FieldSchema(BaseModel):
    """A field as listed by the host CMS schema."""

    api_key: str
    label: str = ""
    field_type: str = Field(..., description="Appearance editor (single_line, gallery, rich_text, ...)")
    position: int = 0
    fieldset_id: Optional[str] = None
    localized: bool = False
    validators: Optional[Dict[str, Any]] = None
    hint: Optional[str] = None

    def to_descriptor(self) -> FieldDescriptor:
        """Descriptor handed to the generation engine."""
        return FieldDescriptor(
            name=self.label or self.api_key,
            api_key=self.api_key,
            field_type=self.field_type,
            validators=self.validators or None,
            hint=self.hint,
        )


class FieldsetSchema(BaseModel):
    """A fieldset as listed by the host CMS schema."""

    id: str
    title: Optional[str] = None
    hint: Optional[str] = None
    position: int = 0

    def to_info(self) -> FieldsetInfo:
        return FieldsetInfo(name=self.title, hint=self.hint)


class ItemTypeInfo(BaseModel):
    """Name and API key of a model or block model."""

    id: str
    name: str
    api_key: str
