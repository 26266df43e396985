#!/usr/bin/env python3
"""
Tests for the event stream and its observers
"""

import logging
from unittest.mock import MagicMock, patch

import requests

from deploy_sequencer.events import Event, EventStream, SlackNotifier, log_event
from deploy_sequencer.models import StepStatus


class TestEventStream:
    """Ordered delivery to observers"""

    def test_delivers_in_order_to_every_observer(self):
        stream = EventStream()
        first, second = [], []
        stream.subscribe(first.append)
        stream.subscribe(second.append)

        events = [
            Event(run_id="r", step="A", status=StepStatus.IN_FLIGHT),
            Event(run_id="r", step="A", status=StepStatus.SUCCEEDED, detail={"address": "0xaaa"}),
        ]
        for event in events:
            stream.emit(event)

        assert first == events
        assert second == events
        assert stream.history == events

    def test_event_to_dict(self):
        event = Event(run_id="r", step="A", status=StepStatus.FAILED, action="transfer_ownership:B",
                      detail={"error": "reverted"}, timestamp="2024-01-01T00:00:00+00:00")
        assert event.to_dict() == {
            "run_id": "r", "step": "A", "status": "failed", "action": "transfer_ownership:B",
            "detail": {"error": "reverted"}, "timestamp": "2024-01-01T00:00:00+00:00",
        }


class TestLogEvent:
    """Logging observer"""

    def test_logs_failures_as_errors(self, caplog):
        with caplog.at_level(logging.INFO, logger="deploy_sequencer.events"):
            log_event(Event(run_id="r", step="B", status=StepStatus.FAILED, detail={"error": "reverted"}))
            log_event(Event(run_id="r", step="A", status=StepStatus.SUCCEEDED,
                            detail={"address": "0xaaa", "transaction_id": "0x01"}))

        assert caplog.records[0].levelno == logging.ERROR
        assert "B: failed - reverted" in caplog.records[0].getMessage()
        assert "address 0xaaa, tx 0x01" in caplog.records[1].getMessage()


class TestSlackNotifier:
    """Webhook alerts for failures"""

    @patch("deploy_sequencer.events.requests.post")
    def test_posts_failures(self, mock_post):
        notifier = SlackNotifier("https://hooks.slack.example/T000")
        notifier(Event(run_id="r", step="B", status=StepStatus.FAILED, detail={"error": "reverted"},
                       timestamp="2024-01-01T00:00:00+00:00"))

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "https://hooks.slack.example/T000"
        assert kwargs["timeout"] == 10
        assert "failed at B" in kwargs["json"]["text"]
        fields = {f["title"]: f["value"] for f in kwargs["json"]["attachments"][0]["fields"]}
        assert fields == {
            "Step": "B", "Action": "deploy", "Error": "reverted", "Time": "2024-01-01T00:00:00+00:00",
        }

    @patch("deploy_sequencer.events.requests.post")
    def test_ignores_other_statuses(self, mock_post):
        notifier = SlackNotifier("https://hooks.slack.example/T000")
        notifier(Event(run_id="r", step="A", status=StepStatus.SUCCEEDED))
        mock_post.assert_not_called()

    @patch("deploy_sequencer.events.requests.post")
    def test_webhook_errors_are_logged(self, mock_post, caplog):
        mock_post.return_value = MagicMock()
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        notifier = SlackNotifier("https://hooks.slack.example/T000")

        with caplog.at_level(logging.ERROR, logger="deploy_sequencer.events"):
            notifier(Event(run_id="r", step="B", status=StepStatus.FAILED))

        assert "Failed to send Slack alert" in caplog.text
