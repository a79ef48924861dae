"""Selection of a code generation backend."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Optional, Union

from .emit import Emitter
from .model import Function, TypeTable
from .native import NativeBackend


@dataclass
class BackendConfig:
    """Chooses and configures a backend: target "c11" (default) or "native"."""

    types: TypeTable
    target: str = ""
    optimize: bool = False
    drop_types: Optional[Mapping[int, bool]] = None


class C11Backend:
    """Backend that produces C11 source."""

    name = "c11"

    def __init__(
        self, types: TypeTable, drop_types: Optional[Mapping[int, bool]] = None
    ) -> None:
        self._emitter = Emitter(types, drop_types)

    def emit(self, functions: Iterable[Function]) -> bytes:
        """Generate C11 source for ``functions``."""
        return self._emitter.emit(functions).encode("utf-8")


def new_backend(config: BackendConfig) -> Union[C11Backend, NativeBackend]:
    """Create the backend selected by ``config``."""
    if config.target == "native":
        return NativeBackend(config.types, config.optimize)
    return C11Backend(config.types, config.drop_types)