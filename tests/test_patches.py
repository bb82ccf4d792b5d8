from token_states.engine.patches import (
    apply_patch,
    build_patch,
    delete_patch,
    get_path,
    merge_patch,
    set_path,
)


def test_get_path():
    data = {"flags": {"token-states": {"state": "bloodied", "empty": None}}}
    assert get_path(data, "flags.token-states.state") == "bloodied"
    assert get_path(data, "flags.token-states.missing", "x") == "x"
    assert get_path(data, "flags.token-states.empty", "x") == "x"
    assert get_path(data, "") is data


def test_set_and_build_patch():
    data = {"a": 1}
    set_path(data, "b.c.d", 2)
    assert data == {"a": 1, "b": {"c": {"d": 2}}}
    assert build_patch("flags.token-states.state", None) == {"flags": {"token-states": {"state": None}}}


def test_delete_patch_marks_last_segment():
    assert delete_patch("flags.token-states._defaults") == {
        "flags": {"token-states": {"-=_defaults": None}}
    }
    assert delete_patch("rules") == {"-=rules": None}


def test_merge_patch_is_a_deep_merge():
    target = {"_id": "t1", "texture": {"src": "a.png"}}
    merge_patch(target, {"texture": {"scaleX": 2}, "flags": {"token-states": {"state": "x"}}})
    assert target == {
        "_id": "t1",
        "texture": {"src": "a.png", "scaleX": 2},
        "flags": {"token-states": {"state": "x"}},
    }


def test_merge_patch_set_and_delete_cancel_out():
    target = {"flags": {"token-states": {"_defaults": {"texture": {}}}}}
    merge_patch(target, delete_patch("flags.token-states._defaults"))
    assert target == {"flags": {"token-states": {"-=_defaults": None}}}

    merge_patch(target, build_patch("flags.token-states._defaults", {"ring": {}}))
    assert target == {"flags": {"token-states": {"_defaults": {"ring": {}}}}}


def test_apply_patch_resolves_deletions_and_copies_values():
    document = {"texture": {"src": "a.png", "scaleX": 1}, "flags": {"token-states": {"rules": [], "state": "x"}}}
    value = {"version": 1}
    patch = {"texture": {"src": "b.png"}, "flags": {"token-states": {"-=rules": None, "config": value}}}

    apply_patch(document, patch)
    value["version"] = 2

    assert document == {
        "texture": {"src": "b.png", "scaleX": 1},
        "flags": {"token-states": {"state": "x", "config": {"version": 1}}},
    }


def test_apply_patch_never_stores_markers_in_new_branches():
    document = {}
    apply_patch(document, {"flags": {"token-states": {"-=config": None, "config": {"a": 1}}}})
    assert document == {"flags": {"token-states": {"config": {"a": 1}}}}
