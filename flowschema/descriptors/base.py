"""Parameter descriptor models.

A descriptor is one declared parameter of a node or credential type. Plugins
hand them over as plain mappings in camelCase; these models give them a typed
shape without dropping any key the plugin declared.
"""

import operator
import re
from enum import Enum
from functools import cached_property
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from flowschema.exceptions import DescriptorError

# Ternary on the node version, e.g. "={{ $nodeVersion >= 3.2 ? 2 : 1 }}".
VERSION_TERNARY = re.compile(
    r"^=\{\{\s*\$nodeVersion\s*(>=|<=|===|!==|==|!=|>|<)\s*([\d.]+)\s*"
    r"\?\s*([\d.]+)\s*:\s*([\d.]+)\s*\}\}$"
)

VERSION_COMPARISONS = {
    ">=": operator.ge,
    ">": operator.gt,
    "<=": operator.le,
    "<": operator.lt,
    "==": operator.eq,
    "===": operator.eq,
    "!=": operator.ne,
    "!==": operator.ne,
}


class ParameterType(str, Enum):
    """Parameter type enumeration."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    OPTIONS = "options"
    MULTI_OPTIONS = "multiOptions"
    COLLECTION = "collection"
    FIXED_COLLECTION = "fixedCollection"
    FILTER = "filter"
    RESOURCE_LOCATOR = "resourceLocator"
    CREDENTIALS = "credentials"
    CREDENTIALS_SELECT = "credentialsSelect"
    NOTICE = "notice"
    HIDDEN = "hidden"
    COLOR = "color"
    DATE_TIME = "dateTime"
    ASSIGNMENT_COLLECTION = "assignmentCollection"
    RESOURCE_MAPPER = "resourceMapper"
    BUTTON = "button"
    CURL_IMPORT = "curlImport"


# Types that only render UI and never carry a value.
DISPLAY_ONLY_TYPES = frozenset({
    ParameterType.NOTICE.value,
    ParameterType.BUTTON.value,
    ParameterType.CURL_IMPORT.value,
})

ENUM_TYPES = frozenset({ParameterType.OPTIONS.value, ParameterType.MULTI_OPTIONS.value})


class DescriptorModel(BaseModel):
    """Common configuration for descriptor models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


def _as_condition_map(value: Any) -> Dict[str, List[Any]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("display condition must be a mapping")
    return {
        str(key): list(allowed) if isinstance(allowed, (list, tuple)) else [allowed]
        for key, allowed in value.items()
    }


class DisplayOptions(DescriptorModel):
    """Show/hide visibility predicate attached to a descriptor."""

    show: Dict[str, List[Any]] = Field(default_factory=dict)
    hide: Dict[str, List[Any]] = Field(default_factory=dict)

    @field_validator("show", "hide", mode="before")
    @classmethod
    def normalize_conditions(cls, v: Any) -> Dict[str, List[Any]]:
        return _as_condition_map(v)

    @property
    def is_empty(self) -> bool:
        return not self.show and not self.hide

    def referenced_fields(self) -> List[str]:
        """Names of the fields this predicate depends on, in declaration order."""
        names: List[str] = []
        for key in list(self.show) + list(self.hide):
            if key not in names:
                names.append(key)
        return names

    def to_dict(self) -> Dict[str, Dict[str, List[Any]]]:
        data: Dict[str, Dict[str, List[Any]]] = {}
        if self.show:
            data["show"] = self.show
        if self.hide:
            data["hide"] = self.hide
        return data


class TypeOptions(DescriptorModel):
    """Type-specific bounds and flags."""

    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    multiple_of: Optional[float] = None
    number_precision: Optional[int] = None
    pattern: Optional[str] = None
    multiple_values: Optional[bool] = None
    load_options_method: Optional[str] = None
    filter: Optional[Dict[str, Any]] = None

    @property
    def filter_version(self) -> Optional[float]:
        """Declared filter shape version, when given as a literal number."""
        return self.filter_version_for(None)

    def filter_version_for(self, node_version: Optional[float]) -> Optional[float]:
        """Filter shape version in effect at ``node_version``.

        Plugins give either a number or a ternary on ``$nodeVersion``. The
        ternary only resolves against a concrete node version; anything else
        yields None.
        """
        if not self.filter:
            return None
        version = self.filter.get("version")
        if isinstance(version, bool):
            return None
        if isinstance(version, (int, float)):
            return version
        if not isinstance(version, str) or node_version is None:
            return None

        match = VERSION_TERNARY.match(version.strip())
        if match is None:
            return None
        comparison, bound, when_true, when_false = match.groups()
        try:
            chosen = when_true if VERSION_COMPARISONS[comparison](node_version, float(bound)) else when_false
            return float(chosen)
        except ValueError:
            return None


class ParameterDescriptor(DescriptorModel):
    """One declared field on a node or credential."""

    name: str
    display_name: Optional[str] = None
    type: str = ParameterType.STRING.value
    default: Any = None
    description: Optional[str] = None
    required: Optional[bool] = None
    options: Optional[List[Dict[str, Any]]] = None
    type_options: Optional[TypeOptions] = None
    display_options: Optional[DisplayOptions] = None
    modes: Optional[List[Dict[str, Any]]] = None
    placeholder: Optional[str] = None
    no_data_expression: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("descriptor name must not be empty")
        return v

    @property
    def has_default(self) -> bool:
        """True when the plugin declared a default, even a null one."""
        return "default" in self.model_fields_set

    @property
    def has_display_options(self) -> bool:
        return self.display_options is not None and not self.display_options.is_empty

    @property
    def carries_value(self) -> bool:
        return self.type not in DISPLAY_ONLY_TYPES

    @property
    def multiple_values(self) -> bool:
        return bool(self.type_options and self.type_options.multiple_values)

    @property
    def enum_values(self) -> List[Any]:
        """Allowed values of an options/multiOptions field.

        Empty when the choices are loaded dynamically at runtime.
        """
        if self.type not in ENUM_TYPES or not self.options:
            return []
        if self.type_options and self.type_options.load_options_method:
            return []
        return [option.get("value") for option in self.options if "value" in option]

    @property
    def option_names(self) -> List[str]:
        return [option["name"] for option in self.options or [] if "name" in option]

    @cached_property
    def collection_options(self) -> List["ParameterDescriptor"]:
        """Nested descriptors of a collection field."""
        if self.type != ParameterType.COLLECTION.value:
            return []
        return parse_descriptors(self.options or [])

    @cached_property
    def fixed_collection_groups(self) -> List[Tuple[str, List["ParameterDescriptor"]]]:
        """Named sub-groups of a fixedCollection field with their nested descriptors."""
        if self.type != ParameterType.FIXED_COLLECTION.value:
            return []
        groups = []
        for option in self.options or []:
            values = option.get("values")
            if values is not None and not isinstance(values, list):
                raise ValueError(
                    f"fixedCollection option {option.get('name')!r} of {self.name!r} "
                    "must declare a list of values"
                )
            groups.append((option.get("name"), parse_descriptors(values or [])))
        return groups

    @property
    def resource_locator_modes(self) -> List[str]:
        return [mode["name"] for mode in self.modes or [] if "name" in mode]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the plugin's camelCase shape."""
        data = self.model_dump(by_alias=True, exclude_none=True, exclude={"default"})
        if self.has_default:
            data["default"] = self.default
        return data


def parse_descriptors(raw: Any) -> List[ParameterDescriptor]:
    """Parse a raw property list, keeping declaration order.

    Entries without a name are skipped, as they cannot be addressed.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise DescriptorError("properties must be a list")
    descriptors = []
    for entry in raw:
        if isinstance(entry, ParameterDescriptor):
            descriptors.append(entry)
            continue
        if not isinstance(entry, dict) or not entry.get("name"):
            continue
        descriptors.append(ParameterDescriptor.model_validate(entry))
    return descriptors
