"""
cmd-dsl package initialization.

Public exports are minimal; consumers should import specific modules.
"""

__all__ = [
    "model",
    "parser",
    "resolver",
    "builder",
    "output",
    "invoker",
    "ok",
    "cli",
]
