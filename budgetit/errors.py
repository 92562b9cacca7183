"""Exception hierarchy for budgetit."""


class BudgetitError(Exception):
    """Base exception for all budgetit errors."""


class ConfigurationError(BudgetitError):
    """Raised when settings cannot be loaded or contain unknown keys."""


class CurrencyError(BudgetitError):
    """Raised when a currency operation would break the primary/visibility rules."""


class ExchangeRateError(BudgetitError):
    """Raised when no exchange-rate table is available, fresh or cached."""
