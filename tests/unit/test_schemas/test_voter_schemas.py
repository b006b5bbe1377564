"""Tests for voter schemas."""

import uuid

from voter_analytics.schemas.voter import MapStatsResponse, VoterSummaryResponse


def _summary(**overrides: object) -> VoterSummaryResponse:
    data: dict[str, object] = {
        "id": uuid.uuid4(),
        "voter_registration_number": "00012345",
        "county_name": "FULTON",
        "status": "ACTIVE",
        "last_name": "SMITH",
        "first_name": "JANE",
    }
    data.update(overrides)
    return VoterSummaryResponse(**data)  # type: ignore[arg-type]


class TestResidenceAddress:
    """Tests for VoterSummaryResponse.residence_address computed_field."""

    def test_full_address_basic(self) -> None:
        voter = _summary(
            residence_street_number="123",
            residence_street_name="MAIN",
            residence_street_type="ST",
            residence_city="ATLANTA",
            residence_zipcode="30303",
        )
        assert voter.residence_address == "123 MAIN ST, ATLANTA, 30303"

    def test_full_address_with_apt_and_directions(self) -> None:
        voter = _summary(
            residence_street_number="789",
            residence_pre_direction="NW",
            residence_street_name="PEACHTREE",
            residence_street_type="RD",
            residence_post_direction="NE",
            residence_apt_unit_number="2B",
            residence_city="ATLANTA",
        )
        assert voter.residence_address == "789 NW PEACHTREE RD NE APT 2B, ATLANTA"

    def test_full_address_no_city_zip(self) -> None:
        voter = _summary(residence_street_number="100", residence_street_name="ELM")
        assert voter.residence_address == "100 ELM"

    def test_address_is_serialized(self) -> None:
        voter = _summary(residence_street_number="1", residence_street_name="OAK")
        assert voter.model_dump()["residence_address"] == "1 OAK"


class TestMapStatsResponse:
    def test_dumps_camel_case(self) -> None:
        stats = MapStatsResponse(score=7.25, voter_count=40)
        assert stats.model_dump(by_alias=True) == {"score": 7.25, "voterCount": 40}

    def test_accepts_alias_on_input(self) -> None:
        stats = MapStatsResponse.model_validate({"score": None, "voterCount": 0})
        assert stats.voter_count == 0
        assert stats.score is None
