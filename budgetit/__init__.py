"""Predictive spending analytics and currency conversion."""

from . import analytics, config, currency, errors, exchange_rates, features, log_config, models, periods, storage, synth, utils

__all__ = [
	"analytics",
	"config",
	"currency",
	"errors",
	"exchange_rates",
	"features",
	"log_config",
	"models",
	"periods",
	"storage",
	"synth",
	"utils",
]
