"""Likelihood families, data generation, and posterior summaries."""

from . import families as families
from . import data_generation as data_generation
from . import posterior as posterior
