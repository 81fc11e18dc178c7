"""
Tests for the expected-field editor.

Every accepted edit must keep keys unique and the list within the maximum;
rejected edits must leave the list unchanged.
"""

import json

import pytest

from src.client.field_editor import ExpectedFieldEditor, FieldEditorError, slugify
from src.models.fields import DEFAULT_EXPECTED_FIELDS, ExpectedFieldList


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Vendor", "vendor"),
        ("Invoice #", "invoice"),
        ("  PO Number (ref) ", "po_number_ref"),
        ("VAT -- Rate", "vat_rate"),
        ("__x__", "x"),
        ("###", ""),
    ],
)
def test_slugify(label, expected):
    assert slugify(label) == expected


def test_starts_with_defaults():
    editor = ExpectedFieldEditor()
    assert editor.keys == [f.key for f in DEFAULT_EXPECTED_FIELDS]
    assert editor.is_default


def test_add_field_derives_key_from_label():
    editor = ExpectedFieldEditor()
    field = editor.add_field("  PO Number ", " Purchase order reference ")

    assert field.key == "po_number"
    assert field.label == "PO Number"
    assert field.desc == "Purchase order reference"
    assert editor.keys[-1] == "po_number"
    assert not editor.is_default


def test_colliding_keys_get_numeric_suffix():
    editor = ExpectedFieldEditor()
    assert editor.add_field("Vendor", "Another vendor").key == "vendor_2"
    assert editor.add_field("vendor!", "Yet another").key == "vendor_3"
    assert len(set(editor.keys)) == len(editor.keys)


def test_metadata_names_are_never_used_as_keys():
    editor = ExpectedFieldEditor()
    assert editor.add_field("Storage Path", "Where the file lives").key == "storage_path_2"
    assert editor.add_field("Error", "Error code on the invoice").key == "error_2"


def test_label_without_letters_gets_generic_key():
    editor = ExpectedFieldEditor()
    assert editor.add_field("%%%", "Odd label").key == "field"
    assert editor.add_field("***", "Another odd label").key == "field_2"


@pytest.mark.parametrize(
    "label, desc",
    [
        ("", "Description"),
        ("Label", ""),
        ("   ", "Description"),
        ("L" * 33, "Description"),
        ("Label", "D" * 65),
    ],
)
def test_invalid_input_is_rejected_without_change(label, desc):
    editor = ExpectedFieldEditor()
    before = editor.fields

    with pytest.raises(FieldEditorError):
        editor.add_field(label, desc)

    assert editor.fields == before


def test_max_fields_is_enforced():
    editor = ExpectedFieldEditor(max_fields=10)
    editor.add_field("One", "First extra")
    editor.add_field("Two", "Second extra")
    assert editor.is_full

    with pytest.raises(FieldEditorError, match="Max 10 fields"):
        editor.add_field("Three", "Third extra")
    assert len(editor.fields) == 10


def test_keys_stay_unique_under_many_edits():
    editor = ExpectedFieldEditor(max_fields=15)
    labels = ["Tax", "tax", "TAX", "Tax!", "Fees", "Vendor", "Total Amount", "Line Items", "x"]
    for label in labels:
        try:
            editor.add_field(label, "desc")
        except FieldEditorError:
            pass
        assert len(editor.keys) == len(set(editor.keys))
        assert len(editor.keys) <= editor.max_fields

    editor.remove_field(0)
    editor.add_field("Tax", "desc")
    assert len(editor.keys) == len(set(editor.keys))


def test_remove_field():
    editor = ExpectedFieldEditor()
    removed = editor.remove_field(0)
    assert removed.key == "vendor"
    assert "vendor" not in editor.keys


def test_last_field_cannot_be_removed():
    editor = ExpectedFieldEditor(fields=[DEFAULT_EXPECTED_FIELDS[0]])
    with pytest.raises(FieldEditorError):
        editor.remove_field(0)
    assert editor.keys == ["vendor"]


def test_remove_out_of_range_is_rejected():
    editor = ExpectedFieldEditor()
    with pytest.raises(FieldEditorError):
        editor.remove_field(42)


def test_reset_restores_defaults():
    editor = ExpectedFieldEditor()
    editor.add_field("PO Number", "Purchase order reference")
    editor.remove_field(0)

    editor.reset()

    assert editor.is_default
    assert editor.keys == [f.key for f in DEFAULT_EXPECTED_FIELDS]


def test_to_json_matches_server_schema():
    editor = ExpectedFieldEditor()
    editor.add_field("PO Number", "Purchase order reference")

    payload = json.loads(editor.to_json())

    assert payload[-1] == {"key": "po_number", "label": "PO Number", "desc": "Purchase order reference"}
    parsed = ExpectedFieldList.model_validate(payload, context={"max_fields": editor.max_fields})
    assert [f.key for f in parsed.root] == editor.keys


def test_initial_list_with_duplicate_keys_is_rejected():
    vendor = DEFAULT_EXPECTED_FIELDS[0]
    with pytest.raises(FieldEditorError, match="duplicate field keys: vendor"):
        ExpectedFieldEditor(fields=[vendor, vendor.model_copy()])


def test_initial_list_over_the_limit_is_rejected():
    with pytest.raises(FieldEditorError, match="at most 3"):
        ExpectedFieldEditor(fields=list(DEFAULT_EXPECTED_FIELDS[:4]), max_fields=3)


def test_initial_list_must_not_be_empty():
    with pytest.raises(FieldEditorError):
        ExpectedFieldEditor(fields=[])


def test_valid_initial_list_is_kept():
    editor = ExpectedFieldEditor(fields=list(DEFAULT_EXPECTED_FIELDS[:2]), max_fields=5)
    assert editor.keys == ["vendor", "invoice_number"]
