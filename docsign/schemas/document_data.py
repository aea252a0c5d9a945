"""Typed view over the document data blob.

Documents persist their working data as a JSON object whose keys are fixed by
the template designer and the editor client::

    {
      "title": "", "content": "",
      "coordinateFields": [{"id", "type", "x", "y", "width", "height",
                            "fontSize", "fontColor", "reviewerEmail"?, "value"}],
      "coordinateData": {"<fieldId>": "<text>"},
      "signatures": {"<email>": "<base64 image>"},
      "table init fields": [{"tableId", "x", "y", "width", "height",
                             "columns": [{"width"}]}],
      "table data": [{"tableId", "location_row", "location_column", "value"}]
    }

The models below validate that shape at the workflow and compositor boundary.
Unknown keys are preserved so a round trip through ``to_blob`` never drops
client data.
"""

from __future__ import annotations

import copy
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

# ---------------------------------------------------------------------------
# Field descriptors (template schema)
# ---------------------------------------------------------------------------


class TableColumn(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    width: float | None = None
    title: str | None = None

    @field_validator("width", mode="before")
    @classmethod
    def _lenient_width(cls, value):
        # Unparsable widths are redistributed at layout time
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


class _FieldBase(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    x: float
    y: float
    width: float
    height: float
    font_size: float = Field(default=12, alias="fontSize")
    font_color: str = Field(default="#000000", alias="fontColor")
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, value):
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class TextField(_FieldBase):
    type: Literal["text"] = "text"


class SignatureField(_FieldBase):
    type: Literal["signature"]
    reviewer_email: str | None = Field(default=None, alias="reviewerEmail")


class TableField(_FieldBase):
    type: Literal["table"]
    table_id: str | None = Field(default=None, alias="tableId")
    columns: list[TableColumn] = Field(default_factory=list)


FieldDescriptor = Annotated[
    Union[TextField, SignatureField, TableField], Field(discriminator="type")
]

_field_list_adapter = TypeAdapter(list[FieldDescriptor])


def _normalize_field(raw):
    if not isinstance(raw, dict):
        return raw
    item = dict(raw)
    if not item.get("type"):
        item["type"] = "text"
    if "id" in item and item["id"] is not None:
        item["id"] = str(item["id"])
    return item


def parse_field_schema(raw_fields) -> list:
    """Validate a template field schema into typed descriptors."""
    if raw_fields is None:
        return []
    items = [
        field if isinstance(field, BaseModel) else _normalize_field(field)
        for field in raw_fields
    ]
    return _field_list_adapter.validate_python(items)


def blank_copy(raw_fields) -> list[dict]:
    """Owned copy of a field schema with every value cleared."""
    fields = []
    for field in parse_field_schema(raw_fields):
        dumped = copy.deepcopy(field.model_dump(by_alias=True))
        dumped["value"] = ""
        fields.append(dumped)
    return fields


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class TableSpec(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    table_id: str | None = Field(default=None, alias="tableId")
    x: float
    y: float
    width: float
    height: float
    columns: list[TableColumn] = Field(default_factory=list)

    @classmethod
    def from_field(cls, field: TableField) -> "TableSpec":
        return cls(
            table_id=field.table_id or field.id,
            x=field.x,
            y=field.y,
            width=field.width,
            height=field.height,
            columns=[column.model_copy() for column in field.columns],
        )


class TableCell(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    kind: Literal["table_cell"] = Field(default="table_cell", exclude=True)
    table_id: str | None = Field(default=None, alias="tableId")
    location_row: int
    location_column: int
    value: str = ""

    @field_validator("table_id", "value", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


def table_specs_from_schema(raw_fields) -> list[dict]:
    return [
        TableSpec.from_field(field).model_dump(by_alias=True)
        for field in parse_field_schema(raw_fields)
        if isinstance(field, TableField)
    ]


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    field_id: str
    value: str


class SignatureValue(BaseModel):
    kind: Literal["signature"] = "signature"
    email: str
    image: str


FieldValue = Annotated[
    Union[TextValue, SignatureValue, TableCell], Field(discriminator="kind")
]


class DocumentData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = ""
    content: str = ""
    coordinate_fields: list[FieldDescriptor] = Field(
        default_factory=list, alias="coordinateFields"
    )
    coordinate_data: dict[str, Any] = Field(
        default_factory=dict, alias="coordinateData"
    )
    signatures: dict[str, str] = Field(default_factory=dict)
    table_specs: list[TableSpec] = Field(
        default_factory=list, alias="table init fields"
    )
    table_cells: list[TableCell] = Field(default_factory=list, alias="table data")

    @field_validator("coordinate_fields", mode="before")
    @classmethod
    def _normalize_fields(cls, value):
        if value is None:
            return []
        return [_normalize_field(item) for item in value]

    @field_validator("coordinate_data", "signatures", "table_specs", "table_cells", mode="before")
    @classmethod
    def _none_as_empty(cls, value, info):
        if value is None:
            return [] if info.field_name in ("table_specs", "table_cells") else {}
        return value

    @classmethod
    def from_blob(cls, blob: dict | None) -> "DocumentData":
        return cls.model_validate(blob or {})

    def to_blob(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    def text_value(self, field_id: str) -> TextValue | None:
        raw = self.coordinate_data.get(field_id)
        if raw is None:
            return None
        text = str(raw)
        if not text:
            return None
        return TextValue(field_id=field_id, value=text)

    def signature_for(self, email: str | None) -> SignatureValue | None:
        if not email or email not in self.signatures:
            return None
        return SignatureValue(email=email, image=self.signatures[email])

    def values(self) -> list:
        """Every filled value as a tagged ``FieldValue``."""
        items: list = []
        for field_id in self.coordinate_data:
            text = self.text_value(field_id)
            if text is not None:
                items.append(text)
        for email in self.signatures:
            items.append(self.signature_for(email))
        items.extend(self.table_cells)
        return items
