"""Unit tests for the checklist definitions and OUT/IN comparison."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fleetdesk.schemas.deployment import DriverChecklist, VehicleChecklist
from fleetdesk.services.checklist_service import (
    DRIVER_CHECKLIST_ITEMS,
    VEHICLE_CHECKLIST_ITEMS,
    checklist_keys,
    damage_note_changed,
    describe_mismatches,
    diff,
    label_for,
)


def full_checklist(**overrides):
    values = {key: True for key in checklist_keys()}
    values.update(overrides)
    return values


class TestChecklistDefinitions:
    def test_vehicle_model_matches_canonical_keys(self):
        aliases = [f.alias for name, f in VehicleChecklist.model_fields.items() if name != "damages"]
        assert aliases == checklist_keys(VEHICLE_CHECKLIST_ITEMS)

    def test_driver_model_matches_canonical_keys(self):
        aliases = [f.alias for f in DriverChecklist.model_fields.values()]
        assert aliases == checklist_keys(DRIVER_CHECKLIST_ITEMS)

    def test_labels(self):
        assert label_for("fireExtinguisher") == "Fire Extinguisher"
        assert label_for("acWorking") == "AC Working"
        assert label_for("roofRack") == "Roof Rack"


class TestDiff:
    def test_only_true_to_false_is_a_mismatch(self):
        out = {"fireExtinguisher": True, "jack": True}
        back = {"fireExtinguisher": False, "jack": True}
        assert diff(out, back) == ["fireExtinguisher"]

    def test_improvement_is_not_flagged(self):
        out = {"fireExtinguisher": False, "jack": True}
        back = {"fireExtinguisher": True, "jack": True}
        assert diff(out, back) == []

    def test_absent_checklist_gives_no_mismatches(self):
        assert diff(None, {"jack": False}) == []
        assert diff({"jack": True}, None) == []
        assert diff(None, None) == []

    def test_canonical_order_not_insertion_order(self):
        out = full_checklist()
        back = dict(reversed(list(full_checklist(hornWorking=False, stepney=False, torch=False).items())))
        assert diff(out, back) == ["stepney", "torch", "hornWorking"]

    def test_damages_note_is_ignored(self):
        out = {"jack": True, "damages": "scratch on bumper"}
        back = {"jack": True, "damages": ""}
        assert diff(out, back) == []

    def test_key_missing_at_return_is_not_compared(self):
        assert diff({"jack": True}, {}) == []

    def test_extra_keys_follow_canonical_keys_alphabetically(self):
        out = {"zeta": True, "alpha": True, "jack": True}
        back = {"zeta": False, "alpha": False, "jack": False}
        assert diff(out, back) == ["jack", "alpha", "zeta"]

    def test_accepts_pydantic_models(self):
        out = VehicleChecklist(fire_extinguisher=True, jack=True, medical_kit=True)
        back = VehicleChecklist(fire_extinguisher=True, jack=False, medical_kit=False)
        assert diff(out, back) == ["medicalKit", "jack"]

    def test_driver_items(self):
        out = DriverChecklist(id_card=True, uniform=True)
        back = DriverChecklist(id_card=False, uniform=True)
        assert diff(out, back, DRIVER_CHECKLIST_ITEMS) == ["idCard"]

    def test_describe_mismatches(self):
        assert describe_mismatches(["fireExtinguisher", "jack"]) == ["Fire Extinguisher", "Jack"]


class TestDamageNote:
    def test_new_note_needs_review(self):
        assert damage_note_changed({"damages": ""}, {"damages": "dent on left door"})

    def test_unchanged_note_does_not(self):
        assert not damage_note_changed({"damages": "old dent"}, {"damages": " old dent "})

    def test_empty_return_note_does_not(self):
        assert not damage_note_changed({"damages": "old dent"}, {"damages": ""})
        assert not damage_note_changed(None, None)

    def test_note_without_out_checklist(self):
        assert damage_note_changed(None, VehicleChecklist(damages="cracked mirror"))
