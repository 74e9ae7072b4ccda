"""
Stage validator.

Stage payloads are checked with DRF serializers generated from the
registry's field specs, so the same field classes that guard the API
requests also guard clinical data.  Validation is a pure function of
``(stage, data)``: nothing is coerced or stored.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping

from django.utils import timezone
from rest_framework import serializers
from rest_framework.exceptions import ErrorDetail
from rest_framework.settings import api_settings

from .errors import ValidationFailed
from .registry import CHOICE, DATE, FLAG, NUMBER, RECORD, TEXT, FieldSpec, StageDefinition, StageRegistry

# DRF error codes that mean "absent or empty" rather than "wrong type".
MISSING_CODES = frozenset({'required', 'null', 'blank', 'empty'})


@dataclass(frozen=True)
class ValidationResult:
    missing_fields: frozenset[str] = frozenset()
    type_errors: frozenset[tuple[str, str]] = frozenset()

    @property
    def valid(self) -> bool:
        return not self.missing_fields and not self.type_errors

    def __bool__(self) -> bool:
        return self.valid

    def raise_for_errors(self) -> None:
        if not self.valid:
            raise ValidationFailed(self.missing_fields, self.type_errors)


VALID = ValidationResult()


def not_in_future(value) -> None:
    if value > timezone.localdate():
        raise serializers.ValidationError('date cannot be in the future', code='future')


# Stage data is stored as sent: values must already carry their JSON type.
class StrictIntegerField(serializers.IntegerField):
    def to_internal_value(self, data):
        if isinstance(data, bool) or not isinstance(data, (int, float)):
            self.fail('invalid')
        return super().to_internal_value(data)


class StrictFloatField(serializers.FloatField):
    def to_internal_value(self, data):
        if isinstance(data, bool) or not isinstance(data, (int, float)):
            self.fail('invalid')
        return super().to_internal_value(data)


class StrictBooleanField(serializers.BooleanField):
    def to_internal_value(self, data):
        if not isinstance(data, bool):
            self.fail('invalid')
        return data


class StrictCharField(serializers.CharField):
    def to_internal_value(self, data):
        if not isinstance(data, str):
            self.fail('invalid')
        return super().to_internal_value(data)


def _scalar_field(spec: FieldSpec, *, required: bool) -> serializers.Field:
    optional = {'required': False, 'allow_null': True} if not required else {}
    if spec.type == NUMBER:
        bounds = {}
        if spec.min_value is not None:
            bounds['min_value'] = int(spec.min_value) if spec.integer else spec.min_value
        if spec.max_value is not None:
            bounds['max_value'] = int(spec.max_value) if spec.integer else spec.max_value
        if spec.integer:
            return StrictIntegerField(**bounds, **optional)
        return StrictFloatField(**bounds, **optional)
    if spec.type == TEXT:
        return StrictCharField(max_length=spec.max_length, allow_blank=not required, **optional)
    if spec.type == DATE:
        validators = [not_in_future] if spec.retrospective else []
        return serializers.DateField(validators=validators, **optional)
    if spec.type == CHOICE:
        return serializers.ChoiceField(choices=spec.choices, **optional)
    if spec.type == FLAG:
        return StrictBooleanField(**optional)
    raise ValueError(f'{spec.name}: {spec.type} is not a scalar field type')


def _field_for(spec: FieldSpec, *, required: bool) -> serializers.Field:
    if spec.type == RECORD:
        nested = _record_serializer(spec.name, spec.required_fields, spec.optional_fields)
        if spec.repeated:
            return nested(many=True, allow_empty=False, required=required, allow_null=not required)
        return nested(required=required, allow_null=not required)
    if spec.repeated:
        child = _scalar_field(spec, required=True)
        return serializers.ListField(child=child, allow_empty=False, required=required,
                                     allow_null=not required)
    return _scalar_field(spec, required=required)


def _record_serializer(name: str, required_fields, optional_fields) -> type[serializers.Serializer]:
    attrs: dict[str, Any] = {}
    for spec in required_fields:
        attrs[spec.name] = _field_for(spec, required=True)
    for spec in optional_fields:
        attrs[spec.name] = _field_for(spec, required=False)
    class_name = ''.join(part[:1].upper() + part[1:] for part in name.split('_')) + 'Serializer'
    metaclass = type(serializers.Serializer)
    return metaclass(class_name, (serializers.Serializer,), attrs)


@lru_cache(maxsize=None)
def serializer_for(stage: StageDefinition) -> type[serializers.Serializer]:
    return _record_serializer(stage.stage_id, stage.required_fields, stage.optional_fields)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, Mapping):
        return {key: _blank_to_none(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_blank_to_none(item) for item in value]
    return value


def _collect(errors: Any, path: str, missing: set, invalid: set) -> None:
    if isinstance(errors, Mapping):
        for key, detail in errors.items():
            if key == api_settings.NON_FIELD_ERRORS_KEY:
                child = path
            elif isinstance(key, int):
                child = f'{path}[{key}]'
            else:
                child = f'{path}.{key}' if path else str(key)
            _collect(detail, child, missing, invalid)
    elif isinstance(errors, list):
        for index, item in enumerate(errors):
            if isinstance(item, (Mapping, list)):
                _collect(item, f'{path}[{index}]', missing, invalid)
            else:
                _collect(item, path, missing, invalid)
    elif isinstance(errors, ErrorDetail):
        if errors.code in MISSING_CODES:
            missing.add(path or 'data')
        else:
            invalid.add((path or 'data', str(errors)))


def validate_stage(stage: StageDefinition, data: Any) -> ValidationResult:
    """Check ``data`` against ``stage``'s declared fields."""
    if not isinstance(data, Mapping):
        return ValidationResult(type_errors=frozenset({('data', 'expected an object')}))
    serializer = serializer_for(stage)(data=_blank_to_none(dict(data)))
    if serializer.is_valid():
        return VALID
    missing: set[str] = set()
    invalid: set[tuple[str, str]] = set()
    _collect(serializer.errors, '', missing, invalid)
    return ValidationResult(frozenset(missing), frozenset(invalid))


class StageValidator:
    """Validates stage payloads for one protocol registry."""

    def __init__(self, registry: StageRegistry) -> None:
        self.registry = registry

    def validate(self, stage_id: str, data: Any) -> ValidationResult:
        return validate_stage(self.registry.definition_for(stage_id), data)
