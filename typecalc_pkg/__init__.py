"""typecalc package: expression buffer, notation transformer, evaluator and CLI."""

__all__ = [
    "config",
    "notation",
    "buffer",
    "scheduling",
    "evaluator",
    "display",
    "cli",
    "types",
    "api",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "to_latex",
    "result_to_latex",
    "evaluate",
    "new_session",
]
