"""Remote answer scorer backed by a generative-language HTTP API."""

import re
from dataclasses import dataclass
from typing import Optional

import httpx

from hotseat.errors import ScoringError

SCORE_RE = re.compile(r'Score:\s*(\d+)')
FEEDBACK_RE = re.compile(r'Feedback:\s*([\s\S]+)')

PERSONAS = {
    'Relationship Drama': (
        "You are ToxicTinderBot, a savage judge of messy love lives. Read the relationship scenario "
        "and judge the answer like you are spilling tea with your unhinged best friend. Be sarcastic, "
        "but tie every jab to the scenario."
    ),
    'Hilarious Chaos': (
        "You are YeetLord420, a chaos gremlin raised on cursed memes. Rate the answer like you are "
        "judging a dumpster fire, with unfiltered humor grounded in the scenario."
    ),
    'Life-or-Death Dilemmas': (
        "You are GrimReaperLad, a melodramatic judge who treats every choice like a B-movie apocalypse. "
        "Praise bold moves and clown cowardly ones."
    ),
    'Embarrassing Moments': (
        "You are CringeKing69, the god of awkwardness. Judge the cringe factor of the answer like you "
        "are live-tweeting someone's worst moment."
    ),
    'Technology': (
        "You are Glitch, a sarcastic sysadmin who has seen every outage. Judge the answer like a post-mortem "
        "written at 3 AM."
    ),
}
DEFAULT_PERSONA = 'Hilarious Chaos'

INSTRUCTIONS = """
Scoring guidelines (1-10 points):
- 1-2: irrelevant, nonsensical or keyboard smash.
- 3-5: barely relevant or minimal effort.
- 6-8: relevant, sensible and somewhat creative.
- 9-10: clever, insightful and well expressed.

Keep the feedback to 3-5 lines of simple, everyday words, in your persona.

Respond only in this format, with nothing before or after:
Score: [score]
Feedback: [feedback]
"""


@dataclass(frozen=True)
class ScoreResult:
    score: int
    feedback: str


def build_prompt(category: str, scenario_text: str, context: str, answer_text: str) -> str:
    persona = PERSONAS.get(category) or PERSONAS[DEFAULT_PERSONA]
    return (
        f"{persona}\n{INSTRUCTIONS}\n"
        f'Scenario: "{scenario_text}"\n'
        f"Context: {context}\n"
        f'Answer: "{answer_text}"\n'
    )


def parse_score_response(text: str) -> ScoreResult:
    """Parse the ``Score: X`` / ``Feedback: Y`` reply; both parts are required."""
    score_match = SCORE_RE.search(text or '')
    feedback_match = FEEDBACK_RE.search(text or '')
    if not score_match or not feedback_match:
        raise ScoringError('Malformed scoring response')
    feedback = feedback_match.group(1).strip()
    if not feedback:
        raise ScoringError('Malformed scoring response')
    return ScoreResult(int(score_match.group(1)), feedback)


class GenerativeScorer:
    """Scores one answer per call. Safe to call from worker threads."""

    def __init__(self, base_url: str, model: str, api_key: Optional[str], timeout: float = 20.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config) -> 'GenerativeScorer':
        return cls(
            base_url=config.get('SCORER_BASE_URL', 'https://generativelanguage.googleapis.com'),
            model=config.get('SCORER_MODEL', 'gemini-2.0-flash'),
            api_key=config.get('SCORER_API_KEY'),
            timeout=float(config.get('SCORING_TIMEOUT_SEC', 20.0)),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def score(self, category: str, scenario_text: str, context: str, answer_text: str) -> ScoreResult:
        if not self.api_key:
            raise ScoringError('Scorer API key is not configured')
        body = {
            'contents': [{
                'role': 'user',
                'parts': [{'text': build_prompt(category, scenario_text, context, answer_text)}],
            }],
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.endpoint, params={'key': self.api_key}, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise ScoringError(f'Scoring request failed: {exc}') from exc
        except ValueError as exc:
            raise ScoringError('Scoring response was not JSON') from exc

        try:
            text = data['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError) as exc:
            raise ScoringError('Scoring response had no text') from exc
        return parse_score_response(text)
