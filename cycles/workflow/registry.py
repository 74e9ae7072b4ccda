"""
Stage schema registry.

A registry is the ordered, immutable list of stages for one treatment
protocol together with the fields each stage records.  Its ordering is
the only definition of forward progress used by the transition engine.
Registries are built once per process and shared read-only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterator, Optional

from .errors import NotFound, StageNotFound

NUMBER = 'number'
TEXT = 'text'
DATE = 'date'
CHOICE = 'choice'
RECORD = 'record'
FLAG = 'flag'

FIELD_TYPES = frozenset({NUMBER, TEXT, DATE, CHOICE, RECORD, FLAG})


@dataclass(frozen=True)
class FieldSpec:
    """One named field and its semantic type.

    ``record`` fields carry their own required/optional children.  Any
    field may be ``repeated``, meaning a non-empty list of such values.
    """
    name: str
    type: str
    choices: tuple[str, ...] = ()
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    integer: bool = False
    max_length: Optional[int] = None
    retrospective: bool = False
    repeated: bool = False
    required_fields: tuple['FieldSpec', ...] = ()
    optional_fields: tuple['FieldSpec', ...] = ()

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f'{self.name}: unknown field type {self.type!r}')
        if self.type == CHOICE and not self.choices:
            raise ValueError(f'{self.name}: choice fields need at least one choice')
        if self.type == RECORD and not (self.required_fields or self.optional_fields):
            raise ValueError(f'{self.name}: record fields need children')
        if self.min_value is not None and self.max_value is not None and self.min_value > self.max_value:
            raise ValueError(f'{self.name}: min_value is greater than max_value')

    def as_dict(self) -> dict:
        data: dict = {'name': self.name, 'type': self.type}
        if self.choices:
            data['choices'] = list(self.choices)
        if self.min_value is not None:
            data['min'] = self.min_value
        if self.max_value is not None:
            data['max'] = self.max_value
        if self.type == NUMBER:
            data['integer'] = self.integer
        if self.max_length:
            data['maxLength'] = self.max_length
        if self.type == DATE:
            data['retrospective'] = self.retrospective
        if self.repeated:
            data['repeated'] = True
        if self.type == RECORD:
            data['requiredFields'] = [f.as_dict() for f in self.required_fields]
            data['optionalFields'] = [f.as_dict() for f in self.optional_fields]
        return data


def number(name: str, *, minimum: Optional[float] = None, maximum: Optional[float] = None,
           integer: bool = False, repeated: bool = False) -> FieldSpec:
    return FieldSpec(name, NUMBER, min_value=minimum, max_value=maximum, integer=integer, repeated=repeated)


def count(name: str, *, maximum: Optional[int] = None) -> FieldSpec:
    """Non-negative integer such as an oocyte or embryo count."""
    return number(name, minimum=0, maximum=maximum, integer=True)


def text(name: str, *, max_length: int = 255, repeated: bool = False) -> FieldSpec:
    return FieldSpec(name, TEXT, max_length=max_length, repeated=repeated)


def date(name: str, *, retrospective: bool = True) -> FieldSpec:
    return FieldSpec(name, DATE, retrospective=retrospective)


def choice(name: str, choices: tuple[str, ...]) -> FieldSpec:
    return FieldSpec(name, CHOICE, choices=tuple(choices))


def flag(name: str) -> FieldSpec:
    return FieldSpec(name, FLAG)


def record(name: str, *, required: tuple[FieldSpec, ...] = (), optional: tuple[FieldSpec, ...] = (),
           repeated: bool = False) -> FieldSpec:
    return FieldSpec(name, RECORD, repeated=repeated, required_fields=tuple(required),
                     optional_fields=tuple(optional))


@dataclass(frozen=True)
class StageDefinition:
    stage_id: str
    order: int
    title: str
    required_fields: tuple[FieldSpec, ...] = ()
    optional_fields: tuple[FieldSpec, ...] = ()

    def __post_init__(self) -> None:
        names = [f.name for f in (*self.required_fields, *self.optional_fields)]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f'{self.stage_id}: duplicate field names {duplicates}')

    def as_dict(self) -> dict:
        return {
            'stageId': self.stage_id,
            'order': self.order,
            'title': self.title,
            'requiredFields': [f.as_dict() for f in self.required_fields],
            'optionalFields': [f.as_dict() for f in self.optional_fields],
        }


@dataclass(frozen=True)
class StageRegistry:
    """Ordered stages of one treatment protocol."""
    treatment_type: str
    stages: tuple[StageDefinition, ...]
    _by_id: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.stages:
            raise ValueError(f'{self.treatment_type}: a registry needs at least one stage')
        by_id: dict[str, StageDefinition] = {}
        previous = None
        for stage in self.stages:
            if stage.stage_id in by_id:
                raise ValueError(f'{self.treatment_type}: duplicate stage id {stage.stage_id!r}')
            if previous is not None and stage.order <= previous.order:
                raise ValueError(
                    f'{self.treatment_type}: stage order must strictly increase '
                    f'({previous.stage_id}={previous.order}, {stage.stage_id}={stage.order})'
                )
            by_id[stage.stage_id] = stage
            previous = stage
        object.__setattr__(self, '_by_id', by_id)

    def __contains__(self, stage_id: object) -> bool:
        return stage_id in self._by_id

    def __iter__(self) -> Iterator[StageDefinition]:
        return iter(self.stages)

    def definition_for(self, stage_id: str) -> StageDefinition:
        try:
            return self._by_id[stage_id]
        except KeyError:
            raise StageNotFound(stage_id, self.treatment_type) from None

    def order_of(self, stage_id: str) -> int:
        return self.definition_for(stage_id).order

    @property
    def first(self) -> StageDefinition:
        return self.stages[0]

    @property
    def final(self) -> StageDefinition:
        return self.stages[-1]

    def next_after(self, stage_id: str) -> Optional[StageDefinition]:
        """Stage that follows ``stage_id``, or ``None`` for the final stage."""
        index = self.stages.index(self.definition_for(stage_id))
        if index + 1 < len(self.stages):
            return self.stages[index + 1]
        return None


@lru_cache(maxsize=None)
def get_registry(treatment_type: str) -> StageRegistry:
    from .protocols import PROTOCOLS

    try:
        stages = PROTOCOLS[treatment_type]
    except KeyError:
        raise NotFound(f'unknown treatment type {treatment_type!r}') from None
    return StageRegistry(treatment_type, stages)


def treatment_types() -> tuple[str, ...]:
    from .protocols import PROTOCOLS

    return tuple(PROTOCOLS)
