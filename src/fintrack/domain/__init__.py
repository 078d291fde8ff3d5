"""Domain layer for fintrack application.

Services are resolved lazily so that the database layer can import
``fintrack.domain.entities`` without pulling in the services that depend on it.
"""

_SERVICES = {
    "AccountService": "fintrack.domain.account",
    "CategoryService": "fintrack.domain.category",
    "TransactionService": "fintrack.domain.transaction",
    "ImportFormatService": "fintrack.domain.csv_format",
    "CSVImportService": "fintrack.domain.csv_import",
    "RuleService": "fintrack.domain.rule",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
