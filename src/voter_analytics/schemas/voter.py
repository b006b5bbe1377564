"""Voter Pydantic v2 response schemas for list, household, and map views."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from voter_analytics.schemas.common import PaginationMeta


class VoterSummaryResponse(BaseModel):
    """Compact voter summary for list views."""

    id: UUID
    voter_registration_number: str
    county_name: str
    status: str
    last_name: str
    first_name: str
    middle_name: str | None = None
    birth_year: int | None = None
    gender: str | None = None
    race: str | None = None
    residence_street_number: str | None = None
    residence_pre_direction: str | None = None
    residence_street_name: str | None = None
    residence_street_type: str | None = None
    residence_post_direction: str | None = None
    residence_apt_unit_number: str | None = None
    residence_city: str | None = None
    residence_zipcode: str | None = None
    participation_score: float | None = None
    derived_last_vote_date: date | None = None

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def residence_address(self) -> str:
        """Reconstruct the single-line residence address."""
        parts = [
            self.residence_street_number,
            self.residence_pre_direction,
            self.residence_street_name,
            self.residence_street_type,
            self.residence_post_direction,
        ]
        street = " ".join(p for p in parts if p)
        if self.residence_apt_unit_number:
            street = f"{street} APT {self.residence_apt_unit_number}"
        city_zip = ", ".join(p for p in [self.residence_city, self.residence_zipcode] if p)
        return f"{street}, {city_zip}" if city_zip else street


class PaginatedVoterResponse(BaseModel):
    """Paginated list of voter summaries."""

    items: list[VoterSummaryResponse]
    pagination: PaginationMeta


class MapStatsResponse(BaseModel):
    """Average participation and voter count inside a map viewport."""

    model_config = ConfigDict(populate_by_name=True)

    score: float | None = Field(description="Average participation score, null when no voter is scored")
    voter_count: int = Field(alias="voterCount", description="Matching voters in the viewport")


class LookupValuesResponse(BaseModel):
    """Distinct values for filter dropdowns, keyed by field name."""

    values: dict[str, list[str]]
