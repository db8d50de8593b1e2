from shipit.core.reconciler import BranchReconciler, format_summary

from conftest import FakeGitHub


def test_only_identical_branches_are_deleted():
    github = FakeGitHub(
        branches=["main", "ai-task/merged-1", "ai-task/ahead-2", "ai-task/behind-3", "ai-task/diverged-4"],
        comparisons={
            "ai-task/merged-1": {"ahead_by": 0, "behind_by": 0},
            "ai-task/ahead-2": {"ahead_by": 3, "behind_by": 0},
            "ai-task/behind-3": {"ahead_by": 0, "behind_by": 2},
            "ai-task/diverged-4": {"ahead_by": 1, "behind_by": 5},
        },
    )

    result = BranchReconciler(github, base_branch="main").reconcile()

    assert result.deleted_branches == ["ai-task/merged-1"]
    assert github.deleted == ["ai-task/merged-1"]
    assert result.errors == []
    assert result.cleaned_tasks == []


def test_base_branch_is_never_scanned():
    github = FakeGitHub(branches=["main"], comparisons={})

    result = BranchReconciler(github, base_branch="main").reconcile()

    assert github.compared == []
    assert result.deleted_branches == []


def test_per_branch_failures_do_not_stop_the_scan():
    github = FakeGitHub(
        branches=["main", "broken-compare", "broken-delete", "fine"],
        comparisons={
            "broken-delete": {"ahead_by": 0, "behind_by": 0},
            "fine": {"ahead_by": 0, "behind_by": 0},
        },
        fail_compare={"broken-compare"},
        fail_delete={"broken-delete"},
    )

    result = BranchReconciler(github, base_branch="main").reconcile()

    assert result.deleted_branches == ["fine"]
    assert len(result.errors) == 2
    assert result.errors[0].startswith("broken-compare: ")
    assert result.errors[1].startswith("broken-delete: ")


def test_listing_failure_is_reported():
    result = BranchReconciler(FakeGitHub(fail_list=True), base_branch="main").reconcile()

    assert result.deleted_branches == []
    assert "Bad credentials" in result.errors[0]


def test_format_summary():
    github = FakeGitHub(branches=["main", "a"], comparisons={"a": {"ahead_by": 0, "behind_by": 0}})
    text = format_summary(BranchReconciler(github, base_branch="main").reconcile())

    assert "Deleted 1 merged branch(es)" in text
    assert "`a`" in text
