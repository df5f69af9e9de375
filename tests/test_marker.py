"""Tests for the provenance marker and ownership stores."""

import pytest

from hydration_kit.engine.marker import MarkerOwnership, ObjectMarker, TemplateNameOwnership

MARKER = "Imported by Intune-Hydration-Kit"
LEGACY = "Imported by Intune Hydration Kit"


class TestStamp:
    @pytest.mark.parametrize("description", [None, "", "   ", "\n"])
    def test_blank_description_becomes_marker(self, description):
        assert ObjectMarker().stamp(description) == MARKER

    def test_existing_text_is_kept(self):
        assert ObjectMarker().stamp("Corporate devices") == f"Corporate devices - {MARKER}"

    def test_custom_separator(self):
        assert ObjectMarker().stamp("Core", separator="\n") == f"Core\n{MARKER}"

    def test_stamping_twice_does_not_repeat_marker(self):
        marker = ObjectMarker()
        once = marker.stamp("Core")
        assert marker.stamp(once) == once


class TestIsOwned:
    @pytest.mark.parametrize("description", [None, "", "  ", 42])
    def test_blank_or_non_text_is_not_owned(self, description):
        assert ObjectMarker().is_owned(description) is False

    def test_both_spellings_are_recognised(self):
        marker = ObjectMarker()
        assert marker.is_owned(f"Policy - {MARKER}")
        assert marker.is_owned(f"{LEGACY}\nold policy")

    def test_match_is_case_sensitive(self):
        assert ObjectMarker().is_owned(MARKER.lower()) is False

    def test_unrelated_description(self):
        assert ObjectMarker().is_owned("Created by the service desk", name="Policy") is False

    @pytest.mark.parametrize("description", [None, "", " ", "x", MARKER, f"a - {LEGACY}", "multi\nline"])
    def test_stamped_description_is_always_owned(self, description):
        """Whatever the description, stamping it makes it owned."""
        marker = ObjectMarker()
        assert marker.is_owned(marker.stamp(description))


class TestOwnershipStores:
    def test_marker_ownership_reads_description(self):
        store = MarkerOwnership()
        assert store.is_owned({"displayName": "A", "description": MARKER}, "displayName", frozenset())
        assert not store.is_owned({"displayName": "A"}, "displayName", frozenset({"A"}))

    def test_template_name_ownership(self):
        store = TemplateNameOwnership()
        names = frozenset({"CA001"})
        assert store.is_owned({"displayName": "CA001"}, "displayName", names)
        assert not store.is_owned({"displayName": "ca001"}, "displayName", names)
        assert not store.is_owned({}, "displayName", names)

    def test_injected_store_replaces_marker_rule(self, graph, make_ctx):
        """A context built with another ownership store uses it for marker kinds."""
        from hydration_kit.engine.kinds import CONDITIONAL_ACCESS, DEVICE_FILTER

        class Nobody:
            def is_owned(self, obj, name_field, template_names):
                return False

        ctx = make_ctx(graph, ownership=Nobody())
        assert isinstance(ctx.ownership_for(DEVICE_FILTER), Nobody)
        assert isinstance(ctx.ownership_for(CONDITIONAL_ACCESS), TemplateNameOwnership)
