"""Command interpreter module for linegate.

Defines the boundary between the gateway and the shared command
interpreter, plus reference implementations.

Public API:
    CommandInterpreter -- Abstract base class
    InterpreterError -- Raised when loading or running an interpreter fails
    load_interpreter -- Resolve an interpreter from config
    EchoInterpreter -- Writes each command back to its sender
    ShellInterpreter -- Runs each command through a shell
"""

from linegate.interpreter.base import CommandInterpreter, InterpreterError, load_interpreter

__all__ = [
    "CommandInterpreter",
    "InterpreterError",
    "load_interpreter",
    "EchoInterpreter",
    "ShellInterpreter",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations."""
    if name == "EchoInterpreter":
        from linegate.interpreter.echo import EchoInterpreter
        return EchoInterpreter
    if name == "ShellInterpreter":
        from linegate.interpreter.shell import ShellInterpreter
        return ShellInterpreter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
