from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = [
    "__version__",
    "CancelToken",
    "LoopController",
    "LoopObserver",
    "LoopOptions",
    "LoopResult",
    "ToolEvent",
    "run_loop",
]

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .config import LoopOptions
    from .control import CancelToken
    from .events import LoopObserver, ToolEvent
    from .loop import LoopController, LoopResult, run_loop


def __getattr__(name: str):
    if name == "LoopOptions":
        from .config import LoopOptions

        return LoopOptions
    if name == "CancelToken":
        from .control import CancelToken

        return CancelToken
    if name in {"LoopObserver", "ToolEvent"}:
        from .events import LoopObserver, ToolEvent

        return {"LoopObserver": LoopObserver, "ToolEvent": ToolEvent}[name]
    if name in {"LoopController", "LoopResult", "run_loop"}:
        from .loop import LoopController, LoopResult, run_loop

        return {
            "LoopController": LoopController,
            "LoopResult": LoopResult,
            "run_loop": run_loop,
        }[name]
    raise AttributeError(f"module 'ralph' has no attribute {name!r}")
