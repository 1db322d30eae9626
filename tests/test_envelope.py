from __future__ import annotations

import pytest

from dashcore.envelope import (
    FAILURE_FALLBACK_MESSAGE,
    Failed,
    Malformed,
    Ok,
    camel_key,
    collapse_keys,
    is_envelope,
    lookup,
    normalize,
    normalize_result,
)


def test_success_envelope_unwraps_data():
    assert normalize({"success": True, "data": {"totalStudents": 42}}) == {"totalStudents": 42}


def test_failure_envelope_becomes_error_record():
    record = normalize({"Success": False, "Errors": ["DB timeout"]})
    assert record == {"errors": ["DB timeout"]}


def test_pascal_and_camel_envelopes_normalize_alike():
    camel = {"success": True, "data": {"totalStudents": 42, "recentActivities": [], "globalStats": {"a": 1}}}
    pascal = {"Success": True, "Data": {"TotalStudents": 42, "RecentActivities": [], "GlobalStats": {"a": 1}}}
    assert normalize(camel) == normalize(pascal)


@pytest.mark.parametrize("raw", [None, [], [1, 2], "text", 42, 3.5, True])
def test_unexpected_shapes_normalize_to_empty_record(raw):
    assert normalize(raw) == {}


def test_normalize_is_idempotent():
    raw = {"Success": True, "Data": {"TotalRevenue": "12.50", "Items": None, "Name": "x"}}
    once = normalize(raw)
    assert normalize(once) == once
    assert once == {"totalRevenue": 12.5, "items": [], "name": "x"}


def test_failure_messages_are_deduplicated_in_preference_order():
    record = normalize({"success": False, "errors": ["a", "b"], "Errors": ["b", "c"], "message": "a", "Message": "d"})
    assert record["errors"] == ["a", "b", "c", "d"]


def test_failure_without_messages_gets_fallback():
    assert normalize({"success": False})["errors"] == [FAILURE_FALLBACK_MESSAGE]


def test_failure_with_unknown_extra_keys_is_still_a_failure():
    result = normalize_result({"success": False, "message": "Forbidden", "code": 403})
    assert isinstance(result, Failed)
    assert result.errors == ["Forbidden"]


def test_error_objects_contribute_their_message():
    record = normalize({"success": False, "errors": [{"message": "bad id"}, {"Message": "missing"}, {"code": 1}]})
    assert record["errors"] == ["bad id", "missing"]


def test_nested_wrappers_are_peeled():
    raw = {"success": True, "data": {"Success": True, "Data": {"data": {"totalTeachers": "7"}}}}
    assert normalize(raw) == {"totalTeachers": 7}


def test_nested_failure_wins():
    result = normalize_result({"success": True, "data": {"success": False, "errors": ["inner"]}})
    assert isinstance(result, Failed)
    assert result.errors == ["inner"]


def test_application_payload_with_data_field_is_not_unwrapped():
    raw = {"success": True, "data": {"data": [1, 2], "label": "x"}}
    assert normalize(raw) == {"data": [1, 2], "label": "x"}


def test_list_and_scalar_data():
    assert normalize({"success": True, "data": [{"id": 1}]}) == {"items": [{"id": 1}]}
    assert normalize({"success": True, "data": "5"}) == {"value": 5}
    assert normalize({"success": True, "data": None}) == {}


def test_top_level_extras_are_merged():
    record = normalize({"success": True, "data": {"rows": []}, "TotalCount": "3"})
    assert record == {"rows": [], "totalCount": 3}


def test_top_level_data_object_is_unwrapped_without_success_flag():
    assert normalize({"data": {"totalStudents": 42}, "totalCount": 1}) == {"totalStudents": 42, "totalCount": 1}
    assert normalize({"Data": [{"id": 1}], "TotalCount": "1"}) == {"items": [{"id": 1}], "totalCount": 1}
    assert normalize({"data": 5, "label": "x"}) == {"data": 5, "label": "x"}


def test_lower_camel_wins_unless_null():
    assert collapse_keys({"totalStudents": 1, "TotalStudents": 2}) == {"totalStudents": 1}
    assert collapse_keys({"totalStudents": None, "TotalStudents": 2}) == {"totalStudents": 2}
    assert collapse_keys({"TotalStudents": 2, "totalStudents": None}) == {"totalStudents": 2}


def test_null_defaults_by_field_type():
    record = collapse_keys({"charts": None, "stats": None, "totalClasses": None, "nickname": None})
    assert record == {"charts": [], "stats": {}, "totalClasses": 0}
    assert collapse_keys({"nickname": None}, {"nickname": str}) == {"nickname": ""}


def test_malformed_results_are_tagged():
    assert isinstance(normalize_result([1]), Malformed)
    assert normalize_result([1]).record == {}
    assert isinstance(normalize_result({"success": True, "data": {"a": 1}}), Ok)


def test_access_errors_become_synthetic_error():
    class Exploding(dict):
        def items(self):
            raise RuntimeError("boom")

    result = normalize_result({"success": True, "data": Exploding(a=1)})
    assert isinstance(result, Malformed)
    assert result.synthetic
    assert result.record["errors"][0].startswith("Malformed envelope")


def test_envelope_detection():
    assert is_envelope({"success": True})
    assert is_envelope({"Data": {}, "StatusCode": 200})
    assert not is_envelope({"totalStudents": 1})
    assert not is_envelope({"data": [], "label": "x"}, strict=True)
    assert is_envelope({"data": [], "label": "x"})


def test_key_helpers():
    assert camel_key("TotalStudents") == "totalStudents"
    assert camel_key("URLPath") == "urlPath"
    assert camel_key("ID") == "id"
    assert camel_key("already") == "already"
    assert lookup({"TotalStudents": 3}, "totalStudents") == 3
    assert lookup({"totalStudents": None, "TotalStudents": 3}, "totalStudents") == 3
    assert lookup(None, "x", "fallback") == "fallback"
