"""Tests for the in-memory webhook store."""

from datetime import timedelta

import pytest

from courier.exceptions import NotFoundError
from courier.models import EventStatus, FilterRule, RetryableEvent, WebhookTarget, utcnow
from courier.storage import FilterSource, InMemoryWebhookStore, RetryStore


class TestProtocols:
    """Tests for protocol conformance."""

    def test_implements_protocols(self, store):
        """The store satisfies both collaborator protocols."""
        assert isinstance(store, RetryStore)
        assert isinstance(store, FilterSource)


class TestWebhooksAndRules:
    """Tests for webhook and rule registration."""

    @pytest.mark.asyncio
    async def test_lookup_webhook(self, store, webhook):
        """Registered webhooks can be looked up."""
        await store.add_webhook(webhook)
        found = await store.lookup_webhook(webhook.id)
        assert found == webhook
        assert await store.lookup_webhook("whk_missing") is None

    @pytest.mark.asyncio
    async def test_remove_webhook_drops_rules(self, store, webhook):
        """Removing a webhook removes its rules."""
        await store.add_webhook(webhook)
        await store.add_rule(FilterRule(webhook_id=webhook.id, field_path="a", operator="exists"))

        await store.remove_webhook(webhook.id)

        assert await store.lookup_webhook(webhook.id) is None
        assert await store.rules_for_webhook(webhook.id) == []

    @pytest.mark.asyncio
    async def test_rules_in_insertion_order(self, store):
        """Rules are returned in insertion order, disabled ones included."""
        first = FilterRule(webhook_id="whk_1", field_path="a", operator="exists")
        second = FilterRule(webhook_id="whk_1", field_path="b", operator="exists", enabled=False)
        await store.add_rule(first)
        await store.add_rule(second)

        rules = await store.rules_for_webhook("whk_1")

        assert [r.id for r in rules] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_rule_requires_webhook(self, store):
        """Rules without a webhook cannot be stored."""
        with pytest.raises(ValueError):
            await store.add_rule(FilterRule(field_path="a", operator="exists"))


class TestFetchDueRetries:
    """Tests for claiming due events."""

    @pytest.mark.asyncio
    async def test_orders_by_next_retry_at(self, store, make_failed_event):
        """The most overdue events come first, limited by batch size."""
        late = make_failed_event(due_in=timedelta(minutes=-1))
        later = make_failed_event(due_in=timedelta(minutes=-10))
        recent = make_failed_event(due_in=timedelta(seconds=-1))
        for event in (late, later, recent):
            await store.save_event(event)

        batch = await store.fetch_due_retries(2)

        assert [e.id for e in batch] == [later.id, late.id]

    @pytest.mark.asyncio
    async def test_skips_terminal_and_future(self, store, make_failed_event):
        """Only failed, non-permanent, elapsed events are due."""
        future = make_failed_event(due_in=timedelta(hours=1))
        permanent = make_failed_event(next_retry_at=None, permanently_failed=True)
        received = RetryableEvent(webhook_id="whk_test123")
        for event in (future, permanent, received):
            await store.save_event(event)

        assert await store.fetch_due_retries(10) == []

    @pytest.mark.asyncio
    async def test_claimed_events_not_refetched(self, store, make_failed_event):
        """A second fetch does not return events already claimed."""
        event = make_failed_event()
        await store.save_event(event)

        assert len(await store.fetch_due_retries(10)) == 1
        assert await store.fetch_due_retries(10) == []

    @pytest.mark.asyncio
    async def test_state_change_releases_claim(self, store, make_failed_event):
        """Rescheduling releases the claim so the event can be fetched again."""
        event = make_failed_event()
        await store.save_event(event)
        await store.fetch_due_retries(10)

        await store.schedule_retry(event.id, "HTTP 503", 1, utcnow() - timedelta(seconds=1))

        assert [e.id for e in await store.fetch_due_retries(10)] == [event.id]

    @pytest.mark.asyncio
    async def test_stale_claim_expires(self, make_failed_event):
        """Claims older than the timeout are released."""
        store = InMemoryWebhookStore(claim_timeout=timedelta(minutes=5))
        event = make_failed_event()
        await store.save_event(event)
        now = utcnow()
        await store.fetch_due_retries(10, now=now)

        refetched = await store.fetch_due_retries(10, now=now + timedelta(minutes=6))

        assert [e.id for e in refetched] == [event.id]


class TestTransitions:
    """Tests for event state transitions."""

    @pytest.mark.asyncio
    async def test_mark_processed(self, store, make_failed_event):
        """Processed events clear retry scheduling."""
        event = make_failed_event(retry_count=1)
        await store.save_event(event)

        await store.mark_processed(event.id, "exec_9", 42)

        stored = await store.get_event(event.id)
        assert stored.status == EventStatus.PROCESSED
        assert stored.next_retry_at is None
        assert stored.retry_error is None
        assert stored.execution_id == "exec_9"
        assert stored.processing_time_ms == 42
        assert stored.retry_count == 1

    @pytest.mark.asyncio
    async def test_mark_permanently_failed(self, store, make_failed_event):
        """Permanent failures clear next_retry_at and keep the reason."""
        event = make_failed_event()
        await store.save_event(event)

        await store.mark_permanently_failed(event.id, "HTTP 401")

        stored = await store.get_event(event.id)
        assert stored.permanently_failed
        assert stored.next_retry_at is None
        assert stored.retry_error == "HTTP 401"
        assert stored.last_retry_at is not None

    @pytest.mark.asyncio
    async def test_mark_filtered(self, store):
        """Filtered events record the reason."""
        event = RetryableEvent(webhook_id="whk_test123")
        await store.save_event(event)

        await store.mark_filtered(event.id, "no logic groups passed: group 0")

        stored = await store.get_event(event.id)
        assert stored.status == EventStatus.FILTERED
        assert stored.filter_reason == "no logic groups passed: group 0"

    @pytest.mark.asyncio
    async def test_invalid_transition_rejected(self, store, make_failed_event):
        """Transitions that break event invariants are rejected."""
        event = make_failed_event(max_retries=2)
        await store.save_event(event)

        with pytest.raises(ValueError):
            await store.schedule_retry(event.id, "HTTP 503", 3, utcnow())

    @pytest.mark.asyncio
    async def test_unknown_event(self, store):
        """Updating an unknown event raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await store.mark_processed("evt_missing", None, 0)

    @pytest.mark.asyncio
    async def test_get_event_returns_copy(self, store):
        """Mutating a returned event does not change the store."""
        event = RetryableEvent(webhook_id="whk_test123", payload={"a": 1})
        await store.save_event(event)

        copy = await store.get_event(event.id)
        copy.payload["a"] = 2

        assert (await store.get_event(event.id)).payload == {"a": 1}


class TestRetryStatistics:
    """Tests for aggregate retry figures."""

    @pytest.mark.asyncio
    async def test_statistics(self, store, make_failed_event):
        """Statistics cover retried, permanent and pending events for one webhook."""
        await store.save_event(make_failed_event(retry_count=1))
        await store.save_event(make_failed_event(retry_count=2))
        await store.save_event(
            make_failed_event(retry_count=3, next_retry_at=None, permanently_failed=True)
        )
        await store.save_event(RetryableEvent(webhook_id="whk_test123"))
        await store.save_event(make_failed_event(webhook_id="whk_other", retry_count=3))

        stats = await store.get_retry_statistics("whk_test123")

        assert stats.total_retried_events == 3
        assert stats.permanently_failed_events == 1
        assert stats.pending_retries == 2
        assert stats.max_retry_count == 3
        assert stats.avg_retry_count == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_empty(self, store):
        """A webhook without events has zeroed statistics."""
        stats = await store.get_retry_statistics("whk_none")
        assert stats.total_retried_events == 0
        assert stats.avg_retry_count == 0.0


class TestWebhookTarget:
    """Tests for WebhookTarget defaults."""

    def test_defaults(self):
        """Webhooks are enabled and defer their retry allowance by default."""
        target = WebhookTarget(url="https://example.com")
        assert target.enabled
        assert target.max_retries is None
        assert target.id.startswith("whk_")
