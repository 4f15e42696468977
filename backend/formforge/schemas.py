from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Any, Annotated, Dict, List, Literal, Optional, Union
from datetime import date, datetime, timezone


FieldType = Literal["text", "number", "textarea", "select", "radio", "checkbox", "date"]

# Known computation kinds. Stored configs may carry any other string; the
# evaluator turns unknown kinds into an empty value instead of rejecting them.
COMPUTATION_TYPES = ("age", "sum", "concat", "custom")
COMPUTATION_ALIASES = {"concatenate": "concat"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequiredRule(BaseModel):
    type: Literal["required"] = "required"


class MinLengthRule(BaseModel):
    type: Literal["minLength"] = "minLength"
    value: int


class MaxLengthRule(BaseModel):
    type: Literal["maxLength"] = "maxLength"
    value: int


class EmailRule(BaseModel):
    type: Literal["email"] = "email"


class PasswordRule(BaseModel):
    type: Literal["password"] = "password"


ValidationRule = Annotated[
    Union[RequiredRule, MinLengthRule, MaxLengthRule, EmailRule, PasswordRule],
    Field(discriminator="type"),
]


class SelectOption(BaseModel):
    label: str
    value: str


class DerivedFieldConfig(BaseModel):
    isDerived: bool = False
    parentFields: List[str] = Field(default_factory=list)
    computationType: str = "concat"
    customLogic: Optional[str] = None

    @field_validator("computationType")
    @classmethod
    def _normalize_computation_type(cls, v: str) -> str:
        return COMPUTATION_ALIASES.get(v, v)


class FormField(BaseModel):
    id: str
    type: FieldType = "text"
    label: str = ""
    required: bool = False
    defaultValue: Optional[Union[str, int, float, bool, List[str]]] = None
    validationRules: List[ValidationRule] = Field(default_factory=list)
    options: Optional[List[SelectOption]] = None  # select / radio only
    derivedConfig: Optional[DerivedFieldConfig] = None
    order: int = 0

    @property
    def is_derived(self) -> bool:
        return bool(self.derivedConfig and self.derivedConfig.isDerived)


class FormSchema(BaseModel):
    id: str
    name: str = "Untitled Form"
    fields: List[FormField] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=_utcnow)
    updatedAt: datetime = Field(default_factory=_utcnow)


class ValidationError(BaseModel):
    fieldId: str
    message: str


class SchemaIssue(BaseModel):
    code: Literal["duplicate_field_id", "missing_parent_field", "derived_cycle"]
    fieldId: str
    detail: str


class FormSummary(BaseModel):
    id: str
    name: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    fieldCount: int = 0


class EvaluateIn(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)
    # "validate" on the wire; "showValidation" is what the editing surface sends
    showValidation: bool = Field(default=False, validation_alias=AliasChoices("validate", "showValidation"))
    # evaluation date for "age" fields; defaults to today
    now: Optional[date] = None
    resolveDependencies: bool = False


class EvaluateOut(BaseModel):
    values: Dict[str, Any]
    changed: bool
    errors: List[ValidationError] = Field(default_factory=list)


class ValidateIn(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)


class ValidateOut(BaseModel):
    valid: bool
    errors: List[ValidationError]
