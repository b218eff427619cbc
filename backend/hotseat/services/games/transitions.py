"""Apply state-machine transitions to the database.

Each ``Mutation`` becomes one committed step of a ``Saga`` whose undo
either deletes the inserted row, restores the previous column values, or
reverses an increment.
"""

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, Optional

from flask import current_app

from hotseat import db
from hotseat.models import MODELS
from . import state_machine as sm
from .saga import Saga


@dataclass
class Outcome:
    """Result of an operation. ``success`` is False only for unmet preconditions."""
    kind: str
    changed: bool = False
    reason: Optional[str] = None
    game_over: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.kind != sm.BLOCKED

    @classmethod
    def from_transition(cls, transition: sm.Transition, **data) -> 'Outcome':
        return cls(kind=transition.kind, changed=transition.changed, reason=transition.reason,
                   game_over=transition.game_over, data=data)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'success': self.success,
            'kind': self.kind,
            'changed': self.changed,
            'game_over': self.game_over,
        }
        if self.reason:
            payload['reason'] = self.reason
        payload.update(self.data)
        return payload


def _resolve(value, created):
    if isinstance(value, sm.Ref):
        return created[value.alias].id
    return value


def _keys(key, created):
    if isinstance(key, tuple):
        return [_resolve(k, created) for k in key]
    return [_resolve(key, created)]


def _delete_row(model, row_id):
    model.query.filter_by(id=row_id).delete()
    db.session.commit()


def _restore_rows(model, previous):
    for row_id, values in previous.items():
        model.query.filter_by(id=row_id).update(values, synchronize_session=False)
    db.session.commit()


def _add_to_columns(model, ids, deltas, sign):
    if not ids:
        return
    model.query.filter(model.id.in_(ids)).update(
        {getattr(model, col): getattr(model, col) + sign * delta for col, delta in deltas.items()},
        synchronize_session=False,
    )
    db.session.commit()


def execute(mutation: sm.Mutation, created: Dict[str, Any]):
    """Apply one mutation and commit it; return its undo callable, if any."""
    model = MODELS[mutation.table]
    values = {k: _resolve(v, created) for k, v in mutation.values.items()}

    if mutation.op == 'insert':
        row = model(**values)
        db.session.add(row)
        db.session.commit()
        if mutation.alias:
            created[mutation.alias] = row
        return partial(_delete_row, model, row.id)

    ids = _keys(mutation.key, created)
    if mutation.op == 'increment':
        _add_to_columns(model, ids, values, 1)
        return partial(_add_to_columns, model, ids, values, -1)

    rows = model.query.filter(model.id.in_(ids)).all() if ids else []
    previous = {row.id: {k: getattr(row, k) for k in values} for row in rows}
    for row in rows:
        for k, v in values.items():
            setattr(row, k, v)
        db.session.add(row)
    db.session.commit()
    if not mutation.reversible:
        return None
    return partial(_restore_rows, model, previous)


def add_transition_steps(saga: Saga, transition: sm.Transition, created: Dict[str, Any]) -> None:
    """Run every mutation of ``transition`` as a step of ``saga``."""
    for mutation in transition.mutations:
        saga.step(mutation.step, partial(execute, mutation, created))


def apply_transition(transition: sm.Transition, operation: str) -> Dict[str, Any]:
    """Apply ``transition`` step by step; return the rows it inserted, by alias."""
    created: Dict[str, Any] = {}
    if not transition.mutations:
        return created
    saga = Saga(operation, rollback=db.session.rollback, logger=current_app.logger)
    add_transition_steps(saga, transition, created)
    return created
