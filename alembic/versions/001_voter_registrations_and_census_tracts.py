"""Add voter_registrations and census_tracts tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import geoalchemy2
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # Create census_tracts table
    op.create_table(
        "census_tracts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tract_id", sa.String(11), nullable=False),
        sa.Column("census_data_year", sa.Integer, nullable=False),
        sa.Column("total_population", sa.Integer, nullable=True),
        sa.Column("voting_age_population", sa.Integer, nullable=True),
        sa.Column("median_household_income", sa.Double, nullable=True),
        sa.Column("pct_bachelors_degree_only", sa.Double, nullable=True),
        sa.Column("pct_bachelors_degree_or_higher", sa.Double, nullable=True),
        sa.Column("labor_force", sa.Integer, nullable=True),
        sa.Column("unemployment_rate", sa.Double, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("tract_id", "census_data_year", name="uq_census_tract_year"),
    )
    op.create_index("ix_census_tracts_tract_id", "census_tracts", ["tract_id"])

    # Create voter_registrations table
    op.create_table(
        "voter_registrations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("voter_registration_number", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("status_reason", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("middle_name", sa.String(100), nullable=True),
        sa.Column("suffix", sa.String(20), nullable=True),
        sa.Column("birth_year", sa.Integer, nullable=True),
        sa.Column("race", sa.String(50), nullable=True),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("last_party_voted", sa.String(20), nullable=True),
        # Residence address
        sa.Column("residence_street_number", sa.String(50), nullable=True),
        sa.Column("residence_pre_direction", sa.String(10), nullable=True),
        sa.Column("residence_street_name", sa.String(100), nullable=True),
        sa.Column("residence_street_type", sa.String(20), nullable=True),
        sa.Column("residence_post_direction", sa.String(10), nullable=True),
        sa.Column("residence_apt_unit_number", sa.String(20), nullable=True),
        sa.Column("residence_city", sa.String(100), nullable=True),
        sa.Column("residence_zipcode", sa.String(10), nullable=True),
        # Registered districts
        sa.Column("county_code", sa.String(5), nullable=True),
        sa.Column("county_name", sa.String(100), nullable=False),
        sa.Column("congressional_district", sa.String(10), nullable=True),
        sa.Column("state_senate_district", sa.String(10), nullable=True),
        sa.Column("state_house_district", sa.String(10), nullable=True),
        sa.Column("county_precinct", sa.String(20), nullable=True),
        sa.Column("municipal_precinct", sa.String(20), nullable=True),
        # Geospatial enrichment
        sa.Column(
            "geom",
            geoalchemy2.Geometry(geometry_type="POINT", srid=4326, spatial_index=False),
            nullable=True,
        ),
        sa.Column("census_tract", sa.String(11), nullable=True),
        # Voting history
        sa.Column("voting_events", JSONB, nullable=True),
        sa.Column("derived_last_vote_date", sa.Date, nullable=True),
        sa.Column("participation_score", sa.Numeric(3, 1), nullable=True),
        sa.Column("participated_election_years", ARRAY(sa.Integer), nullable=True),
        # Redistricting
        sa.Column("redistricting_cong_affected", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("redistricting_senate_affected", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("redistricting_house_affected", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_voter_registrations_voter_registration_number",
        "voter_registrations",
        ["voter_registration_number"],
        unique=True,
    )
    op.create_index("ix_voter_registrations_status", "voter_registrations", ["status"])
    op.create_index("ix_voter_registrations_county_name", "voter_registrations", ["county_name"])
    op.create_index("ix_voter_registrations_residence_zipcode", "voter_registrations", ["residence_zipcode"])
    op.create_index("ix_voter_registrations_congressional_district", "voter_registrations", ["congressional_district"])
    op.create_index("ix_voter_registrations_state_senate_district", "voter_registrations", ["state_senate_district"])
    op.create_index("ix_voter_registrations_state_house_district", "voter_registrations", ["state_house_district"])
    op.create_index("ix_voter_registrations_census_tract", "voter_registrations", ["census_tract"])
    op.create_index("ix_voter_registrations_name_search", "voter_registrations", ["last_name", "first_name"])
    op.create_index(
        "ix_voter_registrations_address",
        "voter_registrations",
        ["residence_street_number", "residence_street_name", "residence_zipcode"],
    )
    op.create_index("idx_voter_registrations_geom", "voter_registrations", ["geom"], postgresql_using="gist")
    op.create_index(
        "ix_voter_registrations_voting_events",
        "voter_registrations",
        ["voting_events"],
        postgresql_using="gin",
    )
    op.create_index(
        "ix_voter_registrations_participated_years",
        "voter_registrations",
        ["participated_election_years"],
        postgresql_using="gin",
    )


def downgrade() -> None:
    op.drop_table("voter_registrations")
    op.drop_table("census_tracts")
