"""
Tests for the registration wizard definition and step validation.
"""

import pytest

from kys_portal.modules.applications import wizard
from kys_portal.modules.applications.models import ApplicationStatus


class TestWizardSteps:
    def test_four_steps_in_order(self):
        assert [step.number for step in wizard.WIZARD_STEPS] == [1, 2, 3, 4]
        assert wizard.FIRST_STEP == 1
        assert wizard.LAST_STEP == 4

    def test_get_step(self):
        assert wizard.get_step(2).name == "Contact & Leadership"

    def test_get_unknown_step_raises(self):
        with pytest.raises(ValueError):
            wizard.get_step(5)

    def test_facilities_are_optional(self):
        step = wizard.get_step(3)

        assert "facilities" not in step.required_fields
        assert "facilities" in step.optional_fields


class TestMissingFields:
    """Tests for missing_fields and missing_fields_up_to."""

    def test_complete_application_has_nothing_missing(self, make_application):
        application = make_application(ApplicationStatus.DRAFT)

        for step in wizard.WIZARD_STEPS:
            assert wizard.missing_fields(application, step.number) == []

    def test_empty_and_blank_values_are_missing(self, make_application):
        application = make_application(
            ApplicationStatus.DRAFT, school_name="   ", state=None, location=""
        )

        assert wizard.missing_fields(application, 1) == ["school_name", "state", "location"]

    def test_zero_counts_are_filled(self, make_application):
        application = make_application(
            ApplicationStatus.DRAFT, student_count=0, teacher_count=0
        )

        assert wizard.missing_fields(application, 2) == []

    def test_empty_documents_missing(self, make_application):
        application = make_application(ApplicationStatus.DRAFT, documents=[])

        assert wizard.missing_fields(application, 4) == ["documents"]

    def test_empty_facilities_not_missing(self, make_application):
        application = make_application(ApplicationStatus.DRAFT, facilities=[])

        assert wizard.missing_fields(application, 3) == []

    def test_missing_up_to_step_stops_at_step(self, make_application):
        application = make_application(
            ApplicationStatus.DRAFT, school_name=None, email=None, documents=[]
        )

        assert wizard.missing_fields_up_to(application, 2) == {
            1: ["school_name"],
            2: ["email"],
        }
        assert wizard.missing_fields_up_to(application, wizard.LAST_STEP) == {
            1: ["school_name"],
            2: ["email"],
            4: ["documents"],
        }


class TestCanonicalChoice:
    @pytest.mark.parametrize("value", ["Nigeria", "nigeria", "  NIGERIA "])
    def test_country_matches_case_insensitively(self, value):
        assert wizard.canonical_choice(value, wizard.SUPPORTED_COUNTRIES, "country") == "Nigeria"

    def test_hyphen_treated_as_space(self):
        assert (
            wizard.canonical_choice("computer-lab", wizard.FACILITY_OPTIONS, "facility")
            == "Computer Lab"
        )

    def test_unsupported_value_raises(self):
        with pytest.raises(ValueError, match="Unsupported country 'Atlantis'"):
            wizard.canonical_choice("Atlantis", wizard.SUPPORTED_COUNTRIES, "country")
