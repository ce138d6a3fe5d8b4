# perfreport/services/ai_service.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from ..errors import RateLimitError, TextServiceError

logger = logging.getLogger("AIService")

GEMINI_API = "https://generativelanguage.googleapis.com/v1beta"

TICKET_PROMPT = (
    "Act as a Solution Architect in performance testing. Imagine that you need to generate a ticket for developers. "
    "The ticket must contain only: Ticket title, Ticket description, Ticket suggestions. Nothing else may be included. "
    "The ticket title must be informative and understandable and must contain the displayValue from the json. "
    "The ticket description must be constructed from the items specified in the json. The first 10 items with data "
    "from headings (if present) must be included as separate action items in the description, each described using "
    "the numbers in the json. The description must contain the concrete actions to perform and state that the main "
    "focus is to optimize performance, analyse the findings in detail and carry out the optimization. "
    "Ticket suggestions must contain concrete recommendations based on the json that correlate with the title and "
    "description. The estimated impact must focus on performance, cost and revenue increase outcomes. "
    "Generate the ticket using the requirements above, based on the json provided by the user."
)

ESTIMATION_PROMPT = (
    "Estimate the ticket provided by the user: the working time required to analyse it and perform its action items. "
    "The ticket is handled by one senior engineer. Take into account an application complexity of 8 out of 10. "
    "Your reply must contain only the total estimate as a number of working hours and nothing else."
)


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str


def ticket_messages(finding_json: str) -> List[ChatMessage]:
    return [ChatMessage("system", TICKET_PROMPT), ChatMessage("user", finding_json)]


def estimation_messages(ticket_text: str) -> List[ChatMessage]:
    return [ChatMessage("system", ESTIMATION_PROMPT), ChatMessage("user", ticket_text)]


class TextService(Protocol):
    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        ...


class GeminiTextService:
    """
    Chat-style completions through the Gemini `generateContent` REST call.

    System messages go to `systemInstruction`; user/assistant messages become
    `contents`. HTTP 429 raises RateLimitError, every other failure raises
    TextServiceError.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        *,
        temperature: float = 0.7,
        top_p: float = 1.0,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model if model.startswith("models/") else f"models/{model}"
        self.temperature = temperature
        self.top_p = top_p
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GeminiTextService":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def build_body(self, messages: Sequence[ChatMessage]) -> Dict[str, Any]:
        system = [{"text": m.content} for m in messages if m.role == "system"]
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
            if m.role != "system"
        ]
        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"temperature": self.temperature, "topP": self.top_p},
        }
        if system:
            body["systemInstruction"] = {"parts": system}
        return body

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        cand = (data.get("candidates") or [{}])[0]
        parts = (cand.get("content") or {}).get("parts") or [{}]
        return "".join(p.get("text", "") for p in parts).strip()

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        url = f"{GEMINI_API}/{self.model}:generateContent"
        try:
            r = await self._client.post(
                url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=self.build_body(messages),
            )
        except httpx.HTTPError as e:
            raise TextServiceError(f"Text service request failed: {e}") from e

        if r.status_code == 429:
            raise RateLimitError()
        if r.status_code >= 400:
            logger.warning("Text service HTTP %s: %s", r.status_code, r.text[:300])
            raise TextServiceError(f"Text service returned HTTP {r.status_code}", status_code=r.status_code)

        try:
            txt = self.extract_text(r.json())
        except ValueError as e:
            raise TextServiceError("Text service returned invalid JSON") from e
        if not txt:
            raise TextServiceError("Text service returned an empty completion")
        return txt
