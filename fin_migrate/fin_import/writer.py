"""Atomic commit/rollback boundaries around migration stages."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.exceptions import DatabaseError, StageFailure
from fin_migrate.shared.logging import Logger

R = TypeVar("R")


@contextmanager
def entity_errors(stage: str, entity_id: str | None) -> Iterator[None]:
    """Attribute database failures inside the block to one source entity."""
    try:
        yield
    except StageFailure:
        raise
    except DatabaseError as exc:
        raise StageFailure(stage, entity_id, str(exc)) from exc


class TransactionalWriter:
    """Run each stage inside its own transaction on the target store.

    A failing stage is rolled back and its error propagates; stages that
    already committed stay in the store.
    """

    def __init__(self, store: TargetStore, logger: Logger) -> None:
        self.store = store
        self.logger = logger

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        with entity_errors(name, None):
            self.store.begin()
        try:
            yield
        except DatabaseError as exc:
            self._rollback(name)
            if isinstance(exc, StageFailure):
                raise
            raise StageFailure(name, None, str(exc)) from exc
        except BaseException:
            self._rollback(name)
            raise
        with entity_errors(name, None):
            self.store.commit()

    def run(self, name: str, func: Callable[..., R], *args: object) -> R:
        with self.stage(name):
            return func(*args)

    def _rollback(self, name: str) -> None:
        self.logger.error(f"Stage '{name}' failed; rolling back its changes.")
        try:
            self.store.rollback()
        except DatabaseError as exc:
            self.logger.error(f"Rollback of stage '{name}' failed: {exc}")
