from changescribe.classifier import classify
from changescribe.merger import merge_context, parse_edit
from changescribe.models import CommitRecord, DiffStat, OperatorContext


def _merge(subjects, diff, operator=None):
    commits = [CommitRecord.from_subject(s) for s in subjects]
    return merge_context(classify(commits, diff), commits, diff, operator)


def test_operator_why_is_used_verbatim(diff_factory):
    diff = diff_factory([f"src/m{i}.py" for i in range(12)], 300, 20)
    operator = OperatorContext(why="Need to protect API endpoints")

    merged = _merge(["feat: add jwt middleware"], diff, operator)

    assert merged.why == "Need to protect API endpoints"
    assert "jwt middleware" in merged.what


def test_operator_text_keeps_its_exact_whitespace(diff_factory):
    operator = OperatorContext(what="  Adds the thing.\n")

    merged = _merge(["fix: x"], diff_factory(["a.py"], 1, 1), operator)

    assert merged.what == "  Adds the thing.\n"


def test_blank_operator_field_falls_back_to_machine_text(diff_factory):
    merged = _merge(["fix: handle null token"], diff_factory(["a.py"], 3, 2), OperatorContext(why="   "))

    assert merged.why == "This change fixes a defect: handle null token."


def test_trivial_change_omits_how_even_when_operator_supplies_it(diff_factory):
    operator = OperatorContext(how="Added a guard clause")

    merged = _merge(["fix: handle null token"], diff_factory(["src/parser.py"], 4, 1), operator)

    assert merged.how is None
    assert merged.testing is None


def test_dependency_change_gets_how_even_when_trivial(diff_factory):
    merged = _merge(["chore: bump requests"], diff_factory(["requirements.txt"], 1, 1))

    assert "`requirements.txt`" in merged.how


def test_breaking_change_gets_how(diff_factory):
    merged = _merge(["feat!: rename config key"], diff_factory(["src/config.py"], 2, 2))

    assert "breaking" in merged.how.lower()
    assert merged.why.endswith("It includes breaking changes.")


def test_architectural_how_lists_top_level_areas(diff_factory):
    paths = ["api/a.py", "web/b.ts", "infra/c.tf"]

    merged = _merge(["feat: x", "feat: y"], diff_factory(paths, 30, 3))

    assert "3 top-level areas" in merged.how
    assert "`api/`" in merged.how and "`infra/`" in merged.how
    assert "architectural" in merged.why


def test_operator_how_wins_when_how_is_included(diff_factory):
    merged = _merge(["feat: x"], diff_factory(["a.py", "b.py", "c.py"], 40, 0), OperatorContext(how="By hand"))

    assert merged.how == "By hand"


def test_testing_from_test_paths_or_operator(diff_factory):
    with_tests = _merge(["fix: x"], diff_factory(["src/a.py", "tests/test_a.py"], 3, 1))
    assert "`tests/test_a.py`" in with_tests.testing

    supplied = _merge(["fix: x"], diff_factory(["src/a.py"], 3, 1), OperatorContext(testing="Ran it locally"))
    assert supplied.testing == "Ran it locally"


def test_what_lists_deduplicated_summaries_oldest_first(diff_factory):
    merged = _merge(
        ["feat: add form", "fix: typo", "fix: typo", "Update docs"],
        diff_factory(["a.py", "b.py", "c.py"], 10, 2),
    )

    lines = merged.what.splitlines()
    assert lines[:3] == ["- add form", "- typo", "- Update docs"]
    assert lines[-1] == "3 files changed, 10 insertions(+), 2 deletions(-)"


def test_mixed_why_counts_commits(diff_factory):
    merged = _merge(["feat: a", "fix: b"], diff_factory(["a.py", "b.py", "c.py"], 10, 2))

    assert merged.why.startswith("This change combines 2 commits of different kinds, starting with: a.")


def test_no_commits_gives_placeholder_text():
    merged = merge_context(classify([], DiffStat()), [], DiffStat(), None)

    assert merged.why.startswith("No commit history")
    assert merged.what.startswith("No commits were found")
    assert merged.how is None
    assert merged.testing is None


def test_parse_edit_routes_labeled_and_unlabeled_text():
    edit = parse_edit(
        "Customers were locked out after password reset.\n"
        "WHAT: Reset now clears the lockout counter\n"
        "and logs the event\n"
        "testing: manual run against staging"
    )

    assert edit.why == "Customers were locked out after password reset."
    assert edit.what == "Reset now clears the lockout counter\nand logs the event"
    assert edit.testing == "manual run against staging"
    assert edit.how is None


def test_parse_edit_ignores_empty_labels():
    edit = parse_edit("how:\n")

    assert edit.empty


def test_operator_context_update_keeps_unedited_fields():
    ctx = OperatorContext(why="old why", what="old what")

    updated = ctx.updated(OperatorContext(why="new why", how="   "))

    assert updated.why == "new why"
    assert updated.what == "old what"
    assert updated.how is None
    assert ctx.why == "old why"


def test_why_keeps_acronyms_and_mixed_case_names(diff_factory):
    acronym = _merge(["fix: JWT validation skips expired tokens"], diff_factory(["auth.py"], 2, 1))
    brand = _merge(["feat: GitHub login button"], diff_factory(["auth.py"], 2, 1))
    plain = _merge(["fix: Handle null token"], diff_factory(["auth.py"], 2, 1))

    assert acronym.why == "This change fixes a defect: JWT validation skips expired tokens."
    assert brand.why == "This change adds new functionality: GitHub login button."
    assert plain.why == "This change fixes a defect: handle null token."


def test_single_line_counts_are_singular(diff_factory):
    merged = _merge(["feat: x", "feat: y"], diff_factory(["a.py", "b.py", "c.py"], 1, 1))

    assert merged.what.splitlines()[-1] == "3 files changed, 1 insertion(+), 1 deletion(-)"
    assert merged.how == "- Touches 3 files (1 insertion, 1 deletion)"
