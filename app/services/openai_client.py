"""
OpenAI Chat Analysis Client

Uses any OpenAI-compatible chat-completions endpoint through the
openai library (OPENAI_BASE_URL switches providers).

USAGE:
- AI is used ONLY to summarise one child conversation for a parent
- The transcript is built server-side; the model never sees user ids
- Output is a plain-text paragraph, it is not stored
"""
from openai import OpenAI
from app.core.config import get_settings

settings = get_settings()

SAFETY_SYSTEM_PROMPT = (
    "You are an AI assistant trained in child psychology and online safety. "
    "Your task is to analyze a chat conversation involving a child and provide a concise, "
    "easy-to-understand summary for their parent. Analyze the following transcript and "
    "determine the child's overall mental and emotional state. Specifically, look for signs "
    "of sadness, bullying, or grooming. Based on your analysis, provide a one-paragraph "
    "summary starting with a clear conclusion, like 'The child seems to be doing well,' or "
    "'There are potential concerns.' Do not quote messages directly."
)


class AnalysisNotConfiguredError(RuntimeError):
    """Raised when OPENAI_API_KEY is missing."""


class ChatAnalysisClient:
    """
    Wrapper for the chat-completions API.
    """

    def __init__(self):
        self.client = None
        if settings.openai_api_key:
            self.client = OpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url
            )
        self.model = settings.openai_model

    def _call_api(self, system_prompt: str, user_content: str, max_tokens: int = 500, temperature: float = 0.3) -> str:
        """
        Internal method to call the API.
        Returns raw text response.
        """
        if self.client is None:
            raise AnalysisNotConfiguredError("OpenAI API key is missing")
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=temperature
        )
        return (response.choices[0].message.content or "").strip()

    def analyze_conversation(self, transcript: str) -> str:
        """
        Summarise a child's conversation for their parent.
        """
        return self._call_api(SAFETY_SYSTEM_PROMPT, transcript, max_tokens=500, temperature=0.3)

    def test_connection(self) -> bool:
        """Test if the API is reachable"""
        response = self._call_api(
            "You are a test assistant.",
            "Reply with exactly: OK",
            max_tokens=10,
            temperature=0
        )
        return "OK" in response.upper()


# Singleton instance
_analysis_client: ChatAnalysisClient = None


def get_analysis_client() -> ChatAnalysisClient:
    """Get or create analysis client (singleton pattern)"""
    global _analysis_client
    if _analysis_client is None:
        _analysis_client = ChatAnalysisClient()
    return _analysis_client
