"""
Unit tests for intent classification.
"""

import re

import pytest

from voice_agent.core.intent import Intent, IntentClassifier, classify, is_calendar_request


class TestClassify:
    """Tests for the default rule set."""

    @pytest.mark.parametrize("text", [
        "Can you book a meeting tomorrow at 3pm?",
        "Schedule a call with Dana",
        "Add a team event on friday",
        "What's on my calendar?",
        "ready tomorrow 3",
        "3pm tomorrow works for me",
        "friday at 10:30am",
    ])
    def test_calendar_requests(self, text):
        assert classify(text) is Intent.CREATE_CALENDAR_EVENT

    @pytest.mark.parametrize("text", [
        "Draw a picture of a cat",
        "Please generate an image of a sunset over the sea",
        "make me some art with dragons",
    ])
    def test_image_requests(self, text):
        assert classify(text) is Intent.CREATE_IMAGE

    @pytest.mark.parametrize("text", [
        "Open the report in my drive",
        "Can you read this PDF?",
        "Summarize the document I sent",
    ])
    def test_document_requests(self, text):
        assert classify(text) is Intent.READ_DOCUMENT

    @pytest.mark.parametrize("text", [
        "What's the weather like?",
        "Tell me a joke",
        "hello",
    ])
    def test_general_chat(self, text):
        assert classify(text) is Intent.GENERAL_CHAT

    def test_empty_text_is_general_chat(self):
        assert classify("") is Intent.GENERAL_CHAT

    def test_calendar_outranks_image(self):
        assert classify("create an image for the meeting") is Intent.CREATE_CALENDAR_EVENT

    def test_image_outranks_document(self):
        assert classify("draw a picture of my file cabinet") is Intent.CREATE_IMAGE

    def test_case_insensitive(self):
        assert classify("BOOK A MEETING") is Intent.CREATE_CALENDAR_EVENT

    def test_is_calendar_request(self):
        assert is_calendar_request("schedule lunch")
        assert not is_calendar_request("how are you")

    def test_intent_values(self):
        assert Intent.CREATE_CALENDAR_EVENT.value == "create_calendar_event"
        assert Intent.GENERAL_CHAT == "general_chat"


class TestIntentClassifier:
    """Tests for a narrowed classifier."""

    def test_disabled_intent_falls_through(self):
        classifier = IntentClassifier(enabled=[Intent.CREATE_IMAGE])
        assert classifier.classify("book a meeting tomorrow") is Intent.GENERAL_CHAT

    def test_disabled_calendar_lets_image_win(self):
        classifier = IntentClassifier(enabled=[Intent.CREATE_IMAGE, Intent.READ_DOCUMENT])
        assert classifier.classify("create an image for the meeting") is Intent.CREATE_IMAGE

    def test_custom_rules(self):
        classifier = IntentClassifier(rules=[
            (Intent.READ_DOCUMENT, (re.compile(r"\bspreadsheet\b"),)),
        ])
        assert classifier.classify("open the spreadsheet") is Intent.READ_DOCUMENT
        assert classifier.classify("book a meeting") is Intent.GENERAL_CHAT
