from .generation import command_generate

__all__ = [
    "command_generate",
]
