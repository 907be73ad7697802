"""Runtime modules exposed by the xfer package."""
from __future__ import annotations

from typing import Any

from . import cli as _cli
from . import file_browser as _file_browser
from . import file_transfer_protocols as _file_transfer_protocols
from . import line_input as _line_input
from . import transfer_supervisor as _transfer_supervisor
from . import transports as _transports

_modules = [
    _cli,
    _file_browser,
    _file_transfer_protocols,
    _line_input,
    _transfer_supervisor,
    _transports,
]

__all__: list[str] = []
_seen: set[str] = set()
for _module in _modules:
    for _name in _module.__all__:
        if _name not in _seen:
            _seen.add(_name)
            __all__.append(_name)
        globals()[_name] = getattr(_module, _name)


def __getattr__(name: str) -> Any:
    for _module in _modules:
        if hasattr(_module, name):
            return getattr(_module, name)
    raise AttributeError(name)


def __dir__() -> list[str]:
    return sorted(__all__)
