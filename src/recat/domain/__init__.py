"""Domain layer for recat application."""

_SERVICES = {
    "AccountService": "recat.domain.account",
    "CategoryService": "recat.domain.category",
    "TransactionService": "recat.domain.transaction",
    "RuleService": "recat.domain.rule",
    "RetroactiveRuleService": "recat.domain.retroactive",
}

__all__ = list(_SERVICES)


# Services import the database layer, which imports domain entities, so
# load them lazily to avoid circular imports
def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
