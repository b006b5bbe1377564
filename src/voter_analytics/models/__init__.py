"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from voter_analytics.models.census_tract import CensusTract
from voter_analytics.models.voter import Voter

__all__ = [
    "CensusTract",
    "Voter",
]
