"""Chat-completion payloads for the three prompt modes.

Reasoning levels select the upstream model and its reasoning effort:

| level | model               | effort | token param           | label  |
|-------|---------------------|--------|-----------------------|--------|
| 0     | openai/gpt-4.1-nano | -      | max_tokens            | none   |
| 1     | openai/gpt-5-nano   | low    | max_completion_tokens | low    |
| 2     | openai/gpt-5-nano   | medium | max_completion_tokens | medium |

Unknown levels use level 1. The label, not the model id, is what the usage
ledger stores and prices.
"""

from dataclasses import dataclass
from typing import Any

from app.core.errors import ValidationError

PROMPT_ASK = "ask"
PROMPT_AUTO_SOLVE = "auto_solve"
PROMPT_ANSWER = "answer"
PROMPT_TYPES = (PROMPT_ASK, PROMPT_AUTO_SOLVE, PROMPT_ANSWER)

INPUT_IMAGE = "image"
INPUT_OCR = "ocr"
INPUT_TEXT = "text"

DEFAULT_REASONING_LEVEL = 1

_SYSTEM_PROMPT = "You are a helpful assistant."
_AUTO_SOLVE_PROMPT = "Answer with only the number (1, 2, 3, or 4) of the correct choice."
_ANSWER_PROMPT = "Reply with answer only."

_ASK_MAX_TOKENS = 4000
_DEFAULT_MAX_TOKENS = 2500


@dataclass(frozen=True)
class ReasoningConfig:
    model: str
    label: str
    reasoning_effort: str | None
    legacy_token_param: bool


REASONING_LEVELS: dict[int, ReasoningConfig] = {
    0: ReasoningConfig("openai/gpt-4.1-nano", "none", None, legacy_token_param=True),
    1: ReasoningConfig("openai/gpt-5-nano", "low", "low", legacy_token_param=False),
    2: ReasoningConfig("openai/gpt-5-nano", "medium", "medium", legacy_token_param=False),
}


@dataclass(frozen=True)
class CompletionRequest:
    """Everything the gateway call and the usage record need.

    Attributes:
        payload: Chat completions request body.
        model_label: Reasoning-tier label for pricing.
        input_method: image, ocr, or text.
        prompt_type: ask, auto_solve, or answer.
    """

    payload: dict[str, Any]
    model_label: str
    input_method: str
    prompt_type: str


def reasoning_config(level: int | None) -> ReasoningConfig:
    """Config for a reasoning level; unknown or missing levels use level 1."""
    if level is None:
        return REASONING_LEVELS[DEFAULT_REASONING_LEVEL]
    return REASONING_LEVELS.get(level, REASONING_LEVELS[DEFAULT_REASONING_LEVEL])


def _with_ocr(prompt: str, ocr_text: str | None) -> str:
    if ocr_text:
        return f"{prompt}\n\nExtracted text from image:\n{ocr_text}"
    return prompt


def _image_message(text: str, image_data: str) -> list[dict[str, Any]]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": image_data}},
            ],
        }
    ]


def _text_messages(text: str) -> list[dict[str, Any]]:
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": text},
    ]


def _build_messages(
    question: str | None,
    image_data: str | None,
    ocr_text: str | None,
    prompt_type: str,
) -> list[dict[str, Any]]:
    if prompt_type == PROMPT_ASK and question:
        if image_data:
            return _image_message(_with_ocr(question, ocr_text), image_data)
        if ocr_text:
            return _text_messages(_with_ocr(question, ocr_text))
        return _text_messages(question)

    if prompt_type == PROMPT_AUTO_SOLVE:
        prompt = _with_ocr(_AUTO_SOLVE_PROMPT, ocr_text)
        if image_data:
            return _image_message(prompt, image_data)
        return _text_messages(prompt)

    if image_data:
        return _image_message(_with_ocr(_ANSWER_PROMPT, ocr_text), image_data)
    if ocr_text:
        return _text_messages(_with_ocr(_ANSWER_PROMPT, ocr_text))

    raise ValidationError("Image data or OCR text required", field="imageData")


def build_completion_request(
    *,
    question: str | None,
    image_data: str | None,
    ocr_text: str | None,
    prompt_type: str | None,
    reasoning_level: int | None,
) -> CompletionRequest:
    """Build the gateway payload for a completion request.

    Args:
        question: Free-text question (ask mode).
        image_data: Data URL of the captured screenshot.
        ocr_text: Text extracted from the screenshot client-side.
        prompt_type: ask, auto_solve, or answer. Defaults to answer.
        reasoning_level: 0, 1, or 2. Defaults to 1.

    Returns:
        CompletionRequest with the payload and ledger metadata.

    Raises:
        ValidationError: If the prompt type is unknown or there is no question,
            image, or OCR text to send.
    """
    question = question.strip() if question else None
    ocr_text = ocr_text.strip() if ocr_text else None
    image_data = image_data or None
    prompt_type = prompt_type or PROMPT_ANSWER
    if prompt_type not in PROMPT_TYPES:
        raise ValidationError(f"Unknown prompt type '{prompt_type}'", field="promptType")

    if not question and not image_data and not ocr_text:
        raise ValidationError(
            "Question, image data, or OCR text required", field="question"
        )

    config = reasoning_config(reasoning_level)
    payload: dict[str, Any] = {
        "model": config.model,
        "messages": _build_messages(question, image_data, ocr_text, prompt_type),
    }
    max_tokens = _ASK_MAX_TOKENS if prompt_type == PROMPT_ASK else _DEFAULT_MAX_TOKENS
    if config.legacy_token_param:
        payload["max_tokens"] = max_tokens
    else:
        payload["max_completion_tokens"] = max_tokens
    if config.reasoning_effort:
        payload["reasoning_effort"] = config.reasoning_effort

    if ocr_text and not image_data:
        input_method = INPUT_OCR
    elif image_data:
        input_method = INPUT_IMAGE
    else:
        input_method = INPUT_TEXT

    return CompletionRequest(
        payload=payload,
        model_label=config.label,
        input_method=input_method,
        prompt_type=prompt_type,
    )
