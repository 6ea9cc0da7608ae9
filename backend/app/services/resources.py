"""
Travel Admin Backend — Resource Descriptors
=============================================

What:  Per-type configuration consumed by the generic record store,
       resource service and router factory.
Why:   Products, notices and representatives differ only in their fields,
       whether they carry an image, and one or two validation rules. A
       descriptor captures that so the handlers exist once.
How:   `FieldSpec` describes one field (kind, required, default, limit);
       `ResourceDescriptor.parse()` turns a raw form/JSON payload into typed,
       trimmed ORM attribute values.

Parsing rules:
    str     trimmed; blank counts as absent; optional max length
    number  parsed as float; must be finite and >= 0
    list    explicit decode step (see decode_list); items trimmed

    create  every required field present and non-blank; defaults filled
    update  absent/blank fields are dropped so the stored value is kept
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from app.exceptions import ValidationError
from app.models.records import Notice, Product, Representative
from app.schemas.records import NoticeOut, ProductOut, RecordOut, RepresentativeOut

STR = "str"
NUMBER = "number"
LIST = "list"


def decode_list(raw: Any) -> List[str]:
    """
    Decode a list-valued field that may arrive as a list or a string.

        ["a", "b"]          → ["a", "b"]
        '["a", "b"]'        → ["a", "b"]   (JSON-encoded form value)
        '"a"' / '5'         → ["a"] / ["5"] (JSON scalar)
        'free text'         → ["free text"] (not JSON)
    """
    if raw is None:
        return []
    # Native lists come from JSON bodies and repeated form keys
    if isinstance(raw, (list, tuple)):
        items = list(raw)
    elif isinstance(raw, str):
        # Form clients send JSON-encoded arrays; anything else is one item
        try:
            decoded = json.loads(raw)
        except ValueError:
            decoded = raw
        if isinstance(decoded, list):
            items = decoded
        elif decoded is None:
            items = []
        else:
            items = [decoded]
    else:
        items = [raw]
    return [str(item).strip() for item in items if item is not None]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


@dataclass(frozen=True)
class FieldSpec:
    """One record field as seen by clients (`key`) and the ORM (`attr`)."""

    attr: str
    key: str
    kind: str = STR
    required: bool = False
    default: Any = None
    max_length: Optional[int] = None

    def coerce(self, value: Any) -> Any:
        if self.kind == NUMBER:
            return self._coerce_number(value)
        if self.kind == LIST:
            return decode_list(value)

        text = str(value).strip()
        if self.max_length is not None and len(text) > self.max_length:
            raise ValidationError(
                message=f"{self.key} must be at most {self.max_length} characters",
                field=self.key,
                context={"max_length": self.max_length, "length": len(text)},
            )
        return text

    def _coerce_number(self, value: Any) -> float:
        # bool is an int subclass; true/false are not prices
        if isinstance(value, bool):
            raise self._number_error(value)
        try:
            number = float(str(value).strip()) if isinstance(value, str) else float(value)
        except (TypeError, ValueError):
            raise self._number_error(value)
        if not math.isfinite(number):
            raise self._number_error(value)
        if number < 0:
            raise ValidationError(
                message=f"{self.key} must be zero or greater",
                field=self.key,
                context={"value": number},
            )
        return number

    def _number_error(self, value: Any) -> ValidationError:
        return ValidationError(
            message=f"{self.key} must be a number",
            field=self.key,
            context={"value": str(value)},
        )


FieldsHook = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Everything the generic layers need to know about one record type.

    Attributes:
        name / plural:   "product" / "products" (plural is the URL segment)
        model:           ORM class
        schema:          response schema
        fields:          field specs in request order
        supports_asset:  whether records carry an image
        upload_route:    also expose POST /api/<plural>/with-image
        validate_create / validate_update: extra per-type rules run on the
                         parsed fields
    """

    name: str
    plural: str
    model: Type[Any]
    schema: Type[RecordOut]
    fields: Tuple[FieldSpec, ...]
    supports_asset: bool = False
    upload_route: bool = False
    validate_create: Optional[FieldsHook] = field(default=None, compare=False)
    validate_update: Optional[FieldsHook] = field(default=None, compare=False)

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def required_keys(self) -> List[str]:
        return [spec.key for spec in self.fields if spec.required]

    def required_message(self) -> str:
        keys = self.required_keys
        if len(keys) == 1:
            return f"{keys[0].capitalize()} is required"
        return f"All fields required ({', '.join(keys)})"

    def parse(self, payload: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
        """
        Turn a raw payload into ORM attribute values.

        Raises:
            ValidationError: missing required field (create only) or a
                             malformed/out-of-range value.
        """
        values: Dict[str, Any] = {}
        missing = []
        for spec in self.fields:
            raw = payload.get(spec.key)
            if _is_blank(raw):
                if partial:
                    # Omitted on update: keep the stored value
                    continue
                if spec.required:
                    missing.append(spec.key)
                    continue
                default = spec.default
                values[spec.attr] = list(default) if isinstance(default, list) else default
                continue
            values[spec.attr] = spec.coerce(raw)

        if missing:
            raise ValidationError(
                message=self.required_message(),
                field=missing[0],
                context={"missing": missing},
            )

        # Per-type rules run on the parsed values
        hook = self.validate_update if partial else self.validate_create
        if hook is not None:
            hook(values)
        return values

    def check_required(self, values: Mapping[str, Any]) -> None:
        """Guard used by the record store right before an insert."""
        missing = [
            spec.key
            for spec in self.fields
            if spec.required and _is_blank(values.get(spec.attr))
        ]
        if missing:
            raise ValidationError(
                message=self.required_message(),
                field=missing[0],
                context={"missing": missing},
            )

    def serialize(self, record: Any) -> Dict[str, Any]:
        return self.schema.model_validate(record).model_dump(mode="json", by_alias=True)


# ══════════════════════════════════════════════════════════════════════════
# Record Types
# ══════════════════════════════════════════════════════════════════════════


def _require_title(values: Dict[str, Any]) -> None:
    # Notices have a single field, so an update without it is rejected
    if "title" not in values:
        raise ValidationError(message="Title is required", field="title")


PRODUCTS = ResourceDescriptor(
    name="product",
    plural="products",
    model=Product,
    schema=ProductOut,
    fields=(
        FieldSpec("title", "title", required=True),
        FieldSpec("category", "category", required=True),
        FieldSpec("price", "price", kind=NUMBER, required=True),
        FieldSpec("offer_price", "offerPrice", kind=NUMBER, required=True),
        FieldSpec("features", "features", kind=LIST, default=[]),
    ),
    supports_asset=True,
)

NOTICES = ResourceDescriptor(
    name="notice",
    plural="notices",
    model=Notice,
    schema=NoticeOut,
    fields=(
        FieldSpec("title", "title", required=True, max_length=500),
    ),
    validate_update=_require_title,
)

REPRESENTATIVES = ResourceDescriptor(
    name="representative",
    plural="representatives",
    model=Representative,
    schema=RepresentativeOut,
    fields=(
        FieldSpec("name", "name", required=True, max_length=100),
        FieldSpec("facebook", "facebook", default=""),
        FieldSpec("twitter", "twitter", default=""),
        FieldSpec("instagram", "instagram", default=""),
    ),
    supports_asset=True,
    upload_route=True,
)

RESOURCES = (PRODUCTS, NOTICES, REPRESENTATIVES)
