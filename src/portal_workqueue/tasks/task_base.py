# src/portal_workqueue/tasks/task_base.py

"""
Memoized, deduplicated units of async work.

A Task binds an argument tuple to an async ``execute`` body and the named
providers that body needs. ``run()`` returns a cached result while it is
still valid, joins an identical execution that is already running, or starts
the body, caching its result under ``TaskName:<fingerprint>``.

Concrete tasks register themselves with ``@task_registry.register`` so a
persisted TaskRecord can be turned back into a live task.
"""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from ..errors import TaskDecodeError, UnknownTaskError
from . import codec
from .fingerprint import Arguments, JsonArguments
from .task_models import TaskRecord

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)

R = TypeVar("R")


class TaskRegistry:
    """Process-wide task name -> task class table."""

    def __init__(self) -> None:
        self._classes: dict[str, type[Task[Any]]] = {}

    def register(self, cls: type[Task[Any]]) -> type[Task[Any]]:
        """Class decorator."""
        name = cls.task_name()
        existing = self._classes.get(name)
        if existing is not None and existing is not cls:
            raise ValueError(
                f"Task name {name!r} already registered by {existing.__module__}.{existing.__qualname__}"
            )
        self._classes[name] = cls
        return cls

    def get(self, name: str) -> type[Task[Any]] | None:
        return self._classes.get(name)

    def require(self, name: str) -> type[Task[Any]]:
        cls = self._classes.get(name)
        if cls is None:
            raise UnknownTaskError(name)
        return cls

    def names(self) -> list[str]:
        return sorted(self._classes)

    def verify_complete(self, kinds: Iterable[str], *, package: str) -> None:
        """
        Check that every kind has a class and every class under ``package`` is a kind.

        Raises RuntimeError listing the mismatches.
        """
        expected = {str(k) for k in kinds}
        missing = sorted(expected - set(self._classes))
        unknown = sorted(
            name
            for name, cls in self._classes.items()
            if cls.__module__.startswith(package) and name not in expected
        )
        if missing or unknown:
            raise RuntimeError(
                f"Task registry mismatch: missing={missing} unknown={unknown}"
            )

    def __contains__(self, name: object) -> bool:
        return name in self._classes

    def __len__(self) -> int:
        return len(self._classes)


task_registry = TaskRegistry()


class Task(abc.ABC, Generic[R]):
    # Provider names resolved at construction; passed to execute() in this order.
    requires: ClassVar[tuple[str, ...]] = ()

    # Seconds a result stays cached; None keeps it forever.
    ttl: ClassVar[float | None] = None

    priority: int = 0

    def __init__(self, state: AppState, *args: Any) -> None:
        if len(args) == 1 and isinstance(args[0], Arguments):
            self.args: Arguments = args[0]
        else:
            self.args = JsonArguments(args)

        self.state = state
        # Fail fast: a task that cannot reach its collaborators is never queued or run.
        self.storage = state.providers.storage
        self.providers: tuple[Any, ...] = state.providers.resolve(self.requires)

        self.expires_at: float | None = self.expiry_for(state.clock.now(), *self.args.values())

    # ---- declaration hooks ----

    @abc.abstractmethod
    async def execute(self, providers: tuple[Any, ...], *args: Any) -> R: ...

    def expiry_for(self, now: float, *args: Any) -> float | None:
        """Unix seconds after which the result is stale; None means never."""
        if self.ttl is None:
            return None
        return now + self.ttl

    @classmethod
    def task_name(cls) -> str:
        return cls.__name__

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        """Rebuild constructor arguments from their decoded JSON form."""
        return tuple(raw)

    @classmethod
    def decode_result(cls, raw: Any) -> R:
        """Rebuild a cached result from its decoded JSON form."""
        return raw

    def should_cache(self, result: R) -> bool:
        return True

    # ---- execution ----

    @property
    def cache_key(self) -> str:
        return f"{self.task_name()}:{self.args.fingerprint()}"

    async def run(self) -> R:
        key = self.cache_key

        cached = self.storage.cache_get(key, now_ts=self.state.clock.now())
        if cached is not None:
            logger.debug("Cache hit key=%s", key)
            return self.decode_result(codec.loads(cached))

        # No await between the lookup and start(): a concurrent caller sees the entry.
        fut = self.state.inflight.get(key)
        if fut is None:
            fut = self.state.inflight.start(key, self._execute_and_store(key))
        else:
            logger.debug("Joining in-flight task key=%s", key)

        return await asyncio.shield(fut)

    async def _execute_and_store(self, key: str) -> R:
        me = asyncio.current_task()
        logger.debug("Task start key=%s", key)
        try:
            result = await self.execute(self.providers, *self.args.values())
            self._store_result(key, result)
            logger.debug("Task done key=%s", key)
            return result
        finally:
            self.state.inflight.discard(key, me)

    def _store_result(self, key: str, result: Any) -> None:
        if self.expires_at is not None and self.expires_at <= self.state.clock.now():
            return
        if not self.should_cache(result):
            return
        try:
            encoded = codec.dumps(result)
        except TypeError:
            logger.exception("Result of %s is not encodable; not caching.", key)
            return
        self.storage.cache_set(key, encoded, self.expires_at)

    # ---- persistence ----

    def serialize(self) -> TaskRecord:
        return TaskRecord(
            id=0,
            task_name=self.task_name(),
            arguments=codec.dumps(list(self.args.values())),
            added_at=self.state.clock.now(),
            expires_at=self.expires_at,
            priority=int(self.priority),
        )

    @classmethod
    def _arity(cls) -> tuple[int, int] | None:
        """(min, max) positional arguments execute() accepts after ``providers``."""
        params = list(inspect.signature(cls.execute).parameters.values())[2:]
        if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params):
            return None
        positional = [
            p
            for p in params
            if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        ]
        required = [p for p in positional if p.default is inspect.Parameter.empty]
        return len(required), len(positional)

    @staticmethod
    def deserialize(state: AppState, record: TaskRecord) -> Task[Any]:
        """Rebuild a task from a record; providers are resolved against current bindings."""
        task_cls = task_registry.require(record.task_name)

        raw = codec.loads(record.arguments)
        if not isinstance(raw, list):
            raise TaskDecodeError(f"Arguments of {record.task_name} are not a list")

        try:
            args = task_cls.decode_args(raw)
        except TaskDecodeError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise TaskDecodeError(f"Cannot decode arguments of {record.task_name}: {e}") from e

        arity = task_cls._arity()
        if arity is not None and not arity[0] <= len(args) <= arity[1]:
            raise TaskDecodeError(
                f"{record.task_name} expects {arity[0]}..{arity[1]} arguments, got {len(args)}"
            )

        return task_cls(state, *args)

    def __repr__(self) -> str:
        return f"<{self.task_name()} key={self.cache_key[:24]}...>"
