"""Errors reported by the compiler."""


class CompileError(Exception):
    """A source program could not be compiled."""