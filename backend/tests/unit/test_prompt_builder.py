"""Tests for completion payload construction."""

import pytest

from app.core.errors import ValidationError
from app.services.prompt_builder import (
    INPUT_IMAGE,
    INPUT_OCR,
    INPUT_TEXT,
    PROMPT_ANSWER,
    PROMPT_ASK,
    PROMPT_AUTO_SOLVE,
    build_completion_request,
    reasoning_config,
)

_IMAGE = "data:image/png;base64,iVBORw0KGgo="


def _build(**overrides):
    params = {
        "question": None,
        "image_data": None,
        "ocr_text": None,
        "prompt_type": PROMPT_ANSWER,
        "reasoning_level": 1,
    }
    params.update(overrides)
    return build_completion_request(**params)


class TestReasoningConfig:
    """Tests for reasoning level selection."""

    def test_level_zero_is_legacy_model_without_reasoning(self):
        config = reasoning_config(0)
        assert config.model == "openai/gpt-4.1-nano"
        assert config.label == "none"
        assert config.reasoning_effort is None
        assert config.legacy_token_param is True

    @pytest.mark.parametrize("level", [None, 1, 7, -1])
    def test_default_and_unknown_levels_use_low(self, level):
        config = reasoning_config(level)
        assert config.label == "low"
        assert config.reasoning_effort == "low"

    def test_level_two_is_medium(self):
        assert reasoning_config(2).label == "medium"


class TestBuildCompletionRequest:
    """Tests for build_completion_request()."""

    def test_nothing_to_send_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _build(question="   ", ocr_text="")
        assert exc_info.value.field == "question"

    def test_image_answer_payload(self):
        request = _build(image_data=_IMAGE)

        assert request.input_method == INPUT_IMAGE
        assert request.model_label == "low"
        assert request.payload["model"] == "openai/gpt-5-nano"
        assert request.payload["max_completion_tokens"] == 2500
        assert request.payload["reasoning_effort"] == "low"
        content = request.payload["messages"][0]["content"]
        assert content[0] == {"type": "text", "text": "Reply with answer only."}
        assert content[1]["image_url"]["url"] == _IMAGE

    def test_ocr_text_is_appended_to_prompt(self):
        request = _build(image_data=_IMAGE, ocr_text="What is 2 + 2?")
        text = request.payload["messages"][0]["content"][0]["text"]
        assert text.endswith("\n\nExtracted text from image:\nWhat is 2 + 2?")
        assert request.input_method == INPUT_IMAGE

    def test_ocr_only_uses_text_messages(self):
        request = _build(ocr_text="What is 2 + 2?")
        messages = request.payload["messages"]
        assert request.input_method == INPUT_OCR
        assert messages[0]["role"] == "system"
        assert "What is 2 + 2?" in messages[1]["content"]

    def test_ask_gets_larger_token_budget(self):
        request = _build(question="Explain recursion", prompt_type=PROMPT_ASK)
        assert request.input_method == INPUT_TEXT
        assert request.prompt_type == PROMPT_ASK
        assert request.payload["max_completion_tokens"] == 4000
        assert request.payload["messages"][1]["content"] == "Explain recursion"

    def test_auto_solve_asks_for_choice_number(self):
        request = _build(image_data=_IMAGE, prompt_type=PROMPT_AUTO_SOLVE)
        text = request.payload["messages"][0]["content"][0]["text"]
        assert "number" in text
        assert request.prompt_type == PROMPT_AUTO_SOLVE

    def test_level_zero_uses_max_tokens(self):
        request = _build(image_data=_IMAGE, reasoning_level=0)
        assert request.payload["max_tokens"] == 2500
        assert "max_completion_tokens" not in request.payload
        assert "reasoning_effort" not in request.payload
        assert request.model_label == "none"

    def test_missing_prompt_type_defaults_to_answer(self):
        request = _build(image_data=_IMAGE, prompt_type=None)
        assert request.prompt_type == PROMPT_ANSWER

    def test_unknown_prompt_type_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _build(image_data=_IMAGE, prompt_type="essay")
        assert exc_info.value.details == [{"field": "promptType"}]
