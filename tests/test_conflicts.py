from keymap_governance.keymaps import (
    Binding,
    ConflictDetector,
    ContextExpression,
    contexts_overlap,
    normalize_key_combination,
    surfaced_conflicts,
)


def make_binding(
    key: str,
    command: str,
    when: str | None = None,
    *,
    source: str = "extension",
    extension_id: str | None = "pub.ext",
) -> Binding:
    return Binding.create(
        key,
        command,
        when,
        source=source,  # type: ignore[arg-type]
        extension_id=extension_id if source == "extension" else None,
    )


def test_user_and_extension_on_same_key_conflict() -> None:
    user = make_binding("ctrl+k", "foo", source="user")
    ext = make_binding("ctrl+k", "bar")

    groups = ConflictDetector().detect_conflicts([user], [ext])

    assert len(groups) == 1
    group = groups[0]
    assert [b.command for b in group.bindings] == ["foo", "bar"]
    assert group.involves_user_binding
    assert group.key == "ctrl+k"


def test_spaced_user_key_conflicts_with_compact_extension_key() -> None:
    user = make_binding("ctrl + k", "foo", source="user")
    ext = make_binding("ctrl+k", "bar")

    groups = ConflictDetector().detect_conflicts([user], [ext])

    assert len(groups) == 1
    assert groups[0].normalized_key == "ctrl+k"
    assert [b.command for b in groups[0].bindings] == ["foo", "bar"]


def test_negated_contexts_do_not_conflict() -> None:
    first = make_binding("ctrl+k", "foo", "editorTextFocus")
    second = make_binding("ctrl+k", "bar", "!editorTextFocus")

    assert ConflictDetector().detect_conflicts([], [first, second]) == []


def test_keys_are_compared_after_normalization() -> None:
    first = make_binding("Ctrl+Shift+K", "foo")
    second = make_binding("shift+ctrl+k", "bar")

    groups = ConflictDetector().detect_conflicts([], [first, second])

    assert len(groups) == 1
    assert groups[0].key == "Ctrl+Shift+K"
    assert groups[0].normalized_key == "ctrl+k+shift"


def test_grouping_follows_seed_order() -> None:
    # a overlaps b and c; b and c are disjoint.
    a = make_binding("ctrl+k", "a")
    b = make_binding("ctrl+k", "b", "editorTextFocus")
    c = make_binding("ctrl+k", "c", "!editorTextFocus")

    groups = ConflictDetector().detect_conflicts([], [a, b, c])
    assert [[x.command for x in g.bindings] for g in groups] == [["a", "b", "c"]]

    reordered = ConflictDetector().detect_conflicts([], [b, c, a])
    assert [[x.command for x in g.bindings] for g in reordered] == [["b", "a"]]


def test_singletons_are_not_conflicts() -> None:
    groups = ConflictDetector().detect_conflicts(
        [make_binding("ctrl+a", "one", source="user")],
        [make_binding("ctrl+b", "two")],
    )

    assert groups == []


def test_groups_keep_first_arrival_order() -> None:
    bindings = [
        make_binding("ctrl+b", "b1"),
        make_binding("ctrl+a", "a1"),
        make_binding("ctrl+b", "b2"),
        make_binding("ctrl+a", "a2"),
    ]

    groups = ConflictDetector().detect_conflicts([], bindings)

    assert [group.normalized_key for group in groups] == [
        normalize_key_combination("ctrl+b"),
        normalize_key_combination("ctrl+a"),
    ]


def test_context_overlap_rules() -> None:
    assert contexts_overlap(make_binding("k", "a"), make_binding("k", "b", "x"))
    assert contexts_overlap(
        make_binding("k", "a", "editorLangId == python"),
        make_binding("k", "b", "editorTextFocus"),
    )
    assert not contexts_overlap(
        make_binding("k", "a", "editorLangId == python"),
        make_binding("k", "b", "editorLangId == rust"),
    )
    assert not contexts_overlap(
        make_binding("k", "a", "editorLangId == python"),
        make_binding("k", "b", "editorLangId != python"),
    )


def test_disjunctions_are_unconstrained() -> None:
    expression = ContextExpression.parse("editorTextFocus || terminalFocus")

    assert expression.unconstrained
    assert contexts_overlap(
        make_binding("k", "a", "editorTextFocus || terminalFocus"),
        make_binding("k", "b", "!editorTextFocus"),
    )


def test_conflict_helpers() -> None:
    user = make_binding("ctrl+k", "foo", source="user")
    ext = make_binding("ctrl+k", "bar")
    other = make_binding("ctrl+j", "baz")
    groups = ConflictDetector().detect_conflicts([user], [ext, other])

    assert ConflictDetector.conflicts_for_binding(ext, groups) == groups
    assert ConflictDetector.conflicts_for_binding(other, groups) == []
    assert ConflictDetector.conflicting_keys(groups) == {"ctrl+k"}
    assert ConflictDetector.has_conflict("CTRL+K", groups)
    assert ext in groups[0]


def test_user_only_groups_are_not_surfaced() -> None:
    groups = ConflictDetector().detect_conflicts(
        [
            make_binding("ctrl+k", "foo", source="user"),
            make_binding("ctrl+k", "bar", source="user"),
        ],
        [],
    )

    assert len(groups) == 1
    assert surfaced_conflicts(groups) == []
