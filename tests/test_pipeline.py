from __future__ import annotations

import asyncio
from datetime import date

import allure
import pytest

from conftest import (
    FakeMetadataProvider,
    FakeScheduleProvider,
    FakeTaskStore,
    filmweb_task,
    make_settings,
)
from vod_sync.config import LabelSettings
from vod_sync.reconcile.contracts import SetupError
from vod_sync.reconcile.models import RemoteLabel, RemoteTask, RunReport, SubscriptionEntry
from vod_sync.reconcile.pipeline import ReconciliationPipeline, run_reconciliation

pytestmark = [
    allure.epic("Reconciliation Run"),
    allure.feature("Enrich & Update Tasks"),
]

TODAY = date(2026, 10, 18)
MARKER = "2026-10-18"
URL_A = "https://www.filmweb.pl/a"


def _run(store, provider, settings=None, **kwargs) -> RunReport:
    return asyncio.run(
        run_reconciliation(
            settings=settings or make_settings(),
            store=store,
            provider=provider,
            today=TODAY,
            **kwargs,
        ),
    )


class _CountingProgress:
    def __init__(self) -> None:
        self.total: int | None = None
        self.advanced = 0
        self.stopped = False

    def start(self, total: int) -> None:
        self.total = total

    def advance(self) -> None:
        self.advanced += 1

    def stop(self) -> None:
        self.stopped = True


def test_end_to_end_duplicate_missing_url_and_processed_task() -> None:
    store = FakeTaskStore(
        [
            RemoteTask(id="1", label_ids=[], content=f"Film A ({URL_A})"),
            RemoteTask(id="2", label_ids=[], content=f"Film A again ({URL_A})"),
            RemoteTask(id="3", label_ids=[], content="no url here"),
        ],
    )
    provider = FakeMetadataProvider(
        {URL_A: [SubscriptionEntry(type="abonament", provider_name="HBO Max")]},
    )

    report = _run(store, provider)

    assert store.close_calls == ["2"]
    assert report.closes.closed == 1
    assert report.counters.without_url_count == 1
    assert provider.calls == [URL_A]
    task = store.tasks["1"]
    assert task.label_ids == [store.label_id("VOD.HBOMAX")]
    assert task.description == MARKER
    assert [(item.task_id, item.url, item.labels) for item in report.processed] == [
        ("1", URL_A, ["VOD.HBOMAX"]),
    ]
    assert report.failed == []
    assert report.created_labels == ["VOD.HBOMAX"]
    assert report.run_marker == MARKER


def test_task_marked_today_never_reaches_provider_or_update() -> None:
    store = FakeTaskStore([filmweb_task("1", "a", description=MARKER)])
    provider = FakeMetadataProvider()

    report = _run(store, provider)

    assert provider.calls == []
    assert store.update_calls == []
    assert report.counters.marked_today_count == 1
    assert report.processed == []


def test_only_subscription_entries_become_labels_and_excluded_are_dropped() -> None:
    store = FakeTaskStore(
        [filmweb_task("1", "a")],
        labels=[RemoteLabel(id="7", name="VOD.DISNEY")],
    )
    provider = FakeMetadataProvider(
        {
            URL_A: [
                SubscriptionEntry(type="abonament", provider_name="Netflix"),
                SubscriptionEntry(type="wypożyczenie", provider_name="Rakuten TV"),
                SubscriptionEntry(type="abonament", provider_name="Disney+"),
            ],
        },
    )
    settings = make_settings()
    settings.labels = LabelSettings(excluded_names=frozenset({"NETFLIX"}))

    report = _run(store, provider, settings)

    assert store.tasks["1"].label_ids == ["7"]
    assert report.processed[0].labels == ["VOD.DISNEY"]
    assert store.create_calls == []


def test_update_failing_every_attempt_is_reported_and_task_left_unchanged() -> None:
    store = FakeTaskStore([filmweb_task("1", "a", labels=["99"], description="old")])
    store.fail_update_for = {"1"}
    provider = FakeMetadataProvider(
        {URL_A: [SubscriptionEntry(type="abonament", provider_name="HBO Max")]},
    )

    report = _run(store, provider)

    assert [call[0] for call in store.update_calls] == ["1", "1", "1"]
    assert provider.calls == [URL_A, URL_A, URL_A]
    assert store.tasks["1"].label_ids == ["99"]
    assert store.tasks["1"].description == "old"
    assert report.processed == []
    assert [(item.task_id, item.url) for item in report.failed] == [("1", URL_A)]
    assert "HTTP 500" in report.failed[0].reason


def test_transient_fetch_failure_recovers_on_retry() -> None:
    store = FakeTaskStore([filmweb_task("1", "a")])
    provider = FakeMetadataProvider(
        {URL_A: [SubscriptionEntry(type="abonament", provider_name="Max")]},
    )
    provider.failures_left[URL_A] = 2

    report = _run(store, provider)

    assert len(provider.calls) == 3
    assert [item.task_id for item in report.processed] == ["1"]
    assert report.failed == []


def test_one_task_failure_does_not_stop_siblings() -> None:
    store = FakeTaskStore([filmweb_task("1", "a"), filmweb_task("2", "b"), filmweb_task("3", "c")])
    store.fail_update_for = {"2"}
    provider = FakeMetadataProvider()

    report = _run(store, provider)

    assert [item.task_id for item in report.processed] == ["1", "3"]
    assert [item.task_id for item in report.failed] == ["2"]


def test_concurrency_is_bounded_and_report_sorted_by_url() -> None:
    slugs = ["j", "c", "h", "a", "e", "b", "i", "d", "g", "f"]
    store = FakeTaskStore([filmweb_task(str(index), slug) for index, slug in enumerate(slugs)])
    provider = FakeMetadataProvider(delay_seconds=0.01)
    progress = _CountingProgress()

    report = _run(store, provider, progress=progress)

    assert provider.max_in_flight == 3
    assert [item.url for item in report.processed] == [
        f"https://www.filmweb.pl/{slug}" for slug in sorted(slugs)
    ]
    assert progress.total == 10
    assert progress.advanced == 10
    assert progress.stopped


def test_summary_mode_writes_marker_labels_and_schedule() -> None:
    store = FakeTaskStore([filmweb_task("1", "a")])
    provider = FakeScheduleProvider(
        {URL_A: [SubscriptionEntry(type="abonament", provider_name="HBO Max")]},
        {URL_A: ["2026-10-19: 20:00,23:10 @ TVP1"]},
    )

    _run(store, provider, make_settings(description_mode="summary"))

    assert store.tasks["1"].description == (
        f"{MARKER}\nVOD.HBOMAX; \n2026-10-19: 20:00,23:10 @ TVP1"
    )


def test_summary_mode_task_is_skipped_on_second_run_same_day() -> None:
    store = FakeTaskStore([filmweb_task("1", "a")])
    provider = FakeScheduleProvider(
        {URL_A: [SubscriptionEntry(type="abonament", provider_name="HBO Max")]},
    )
    settings = make_settings(description_mode="summary")

    _run(store, provider, settings)
    second = _run(store, provider, settings)

    assert len(provider.calls) == 1
    assert second.counters.marked_today_count == 1


def test_dry_run_writes_nothing() -> None:
    store = FakeTaskStore([filmweb_task("1", "a"), filmweb_task("2", "a")])
    provider = FakeMetadataProvider(
        {URL_A: [SubscriptionEntry(type="abonament", provider_name="HBO Max")]},
    )

    report = _run(store, provider, dry_run=True)

    assert store.close_calls == []
    assert store.create_calls == []
    assert store.update_calls == []
    assert report.counters.duplicate_count == 1
    assert report.processed[0].labels == ["VOD.HBOMAX"]
    assert report.dry_run


def test_setup_errors_abort_before_processing() -> None:
    store = FakeTaskStore([filmweb_task("1", "a")])
    store.fail_list_tasks = True
    provider = FakeMetadataProvider()

    with pytest.raises(SetupError, match="Cannot list tasks"):
        _run(store, provider)
    assert provider.calls == []


def test_pipeline_state_is_per_instance() -> None:
    store = FakeTaskStore([filmweb_task("1", "a")])
    settings = make_settings()

    first = ReconciliationPipeline(settings=settings, store=store, provider=FakeMetadataProvider())
    second = ReconciliationPipeline(settings=settings, store=store, provider=FakeMetadataProvider())

    assert first.results is not second.results
    assert first.labels is not second.labels
