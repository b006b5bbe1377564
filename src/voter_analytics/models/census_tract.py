"""CensusTract model: ACS statistics keyed by tract GEOID."""

from sqlalchemy import Double, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from voter_analytics.models.base import Base, TimestampMixin, UUIDMixin


class CensusTract(Base, UUIDMixin, TimestampMixin):
    """American Community Survey figures for one census tract and survey year."""

    __tablename__ = "census_tracts"

    tract_id: Mapped[str] = mapped_column(String(11), nullable=False, index=True)
    census_data_year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_population: Mapped[int | None] = mapped_column(Integer, nullable=True)
    voting_age_population: Mapped[int | None] = mapped_column(Integer, nullable=True)
    median_household_income: Mapped[float | None] = mapped_column(Double, nullable=True)
    pct_bachelors_degree_only: Mapped[float | None] = mapped_column(Double, nullable=True)
    pct_bachelors_degree_or_higher: Mapped[float | None] = mapped_column(Double, nullable=True)
    labor_force: Mapped[int | None] = mapped_column(Integer, nullable=True)
    unemployment_rate: Mapped[float | None] = mapped_column(Double, nullable=True)

    __table_args__ = (UniqueConstraint("tract_id", "census_data_year", name="uq_census_tract_year"),)
