"""Voter model: one row per registration in the statewide voter file.

Derived columns (``geom``, ``census_tract``, ``voting_events``,
``derived_last_vote_date``, ``participation_score``,
``participated_election_years`` and the redistricting flags) are populated
by batch jobs outside this service and are read-only here.
"""

from datetime import date
from decimal import Decimal

from geoalchemy2 import Geometry
from sqlalchemy import Boolean, Date, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from voter_analytics.models.base import Base, TimestampMixin, UUIDMixin


class Voter(Base, UUIDMixin, TimestampMixin):
    """Individual voter registration enriched with geospatial and participation data."""

    __tablename__ = "voter_registrations"

    # Core identification
    voter_registration_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Name fields
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    suffix: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Demographics
    birth_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    race: Mapped[str | None] = mapped_column(String(50), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    last_party_voted: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Residence address
    residence_street_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    residence_pre_direction: Mapped[str | None] = mapped_column(String(10), nullable=True)
    residence_street_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    residence_street_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    residence_post_direction: Mapped[str | None] = mapped_column(String(10), nullable=True)
    residence_apt_unit_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    residence_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    residence_zipcode: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)

    # Registered districts
    county_code: Mapped[str | None] = mapped_column(String(5), nullable=True)
    county_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    congressional_district: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    state_senate_district: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    state_house_district: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    county_precinct: Mapped[str | None] = mapped_column(String(20), nullable=True)
    municipal_precinct: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Geospatial enrichment
    geom: Mapped[object | None] = mapped_column(Geometry(geometry_type="POINT", srid=4326), nullable=True)
    census_tract: Mapped[str | None] = mapped_column(String(11), nullable=True, index=True)

    # Voting history: live per-event records and derived summaries
    voting_events: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    derived_last_vote_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    participation_score: Mapped[Decimal | None] = mapped_column(Numeric(3, 1), nullable=True)
    participated_election_years: Mapped[list[int] | None] = mapped_column(ARRAY(Integer), nullable=True)

    # Redistricting
    redistricting_cong_affected: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    redistricting_senate_affected: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    redistricting_house_affected: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    __table_args__ = (
        Index("ix_voter_registrations_name_search", "last_name", "first_name"),
        Index("ix_voter_registrations_voting_events", "voting_events", postgresql_using="gin"),
        Index(
            "ix_voter_registrations_participated_years",
            "participated_election_years",
            postgresql_using="gin",
        ),
        Index(
            "ix_voter_registrations_address",
            "residence_street_number",
            "residence_street_name",
            "residence_zipcode",
        ),
    )
