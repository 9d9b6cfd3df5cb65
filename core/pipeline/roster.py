"""
The research council: which agent plays which role.

Roles whose provider has no API key are left empty; the pipeline skips
optional roles and fails the stage for required ones.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from core.langchain.agents import LangChainAgent, TextGenerator
from core.pipeline import prompts
from core.pipeline.models import Strategy

logger = logging.getLogger(__name__)

ANALYST_NAMES = {
    Strategy.VALUE: "value-analyst",
    Strategy.SPECIAL_SITUATIONS: "special-sits-analyst",
    Strategy.DISTRESSED: "distressed-analyst",
}

ANALYST_INSTRUCTIONS = {
    Strategy.VALUE: prompts.VALUE_ANALYST_INSTRUCTIONS,
    Strategy.SPECIAL_SITUATIONS: prompts.SPECIAL_SITS_ANALYST_INSTRUCTIONS,
    Strategy.DISTRESSED: prompts.DISTRESSED_ANALYST_INSTRUCTIONS,
}


@dataclass
class CouncilRoster:
    """Agents available to one pipeline."""
    discovery: Optional[TextGenerator] = None
    verdict: Optional[TextGenerator] = None
    skeptic: Optional[TextGenerator] = None
    risk_officer: Optional[TextGenerator] = None
    analysts: Dict[Strategy, TextGenerator] = field(default_factory=dict)
    bull_advocate: Optional[TextGenerator] = None
    synthesizer: Optional[TextGenerator] = None
    interrogator: Optional[TextGenerator] = None

    def analyst_for(self, strategy: Strategy) -> Optional[TextGenerator]:
        """Strategy analyst for a tag; the general strategy has none."""
        if strategy == Strategy.GENERAL:
            return None
        return self.analysts.get(strategy)

    def available_roles(self) -> Dict[str, bool]:
        return {
            "discovery": self.discovery is not None,
            "verdict": self.verdict is not None,
            "skeptic": self.skeptic is not None,
            "risk_officer": self.risk_officer is not None,
            "bull_advocate": self.bull_advocate is not None,
            "synthesizer": self.synthesizer is not None,
            "interrogator": self.interrogator is not None,
            **{f"analyst:{s.value}": True for s in self.analysts},
        }


def _api_key(settings, provider: str) -> str:
    if provider == "openai":
        return settings.openai_api_key
    if provider == "anthropic":
        return settings.anthropic_api_key
    if provider == "google":
        return settings.gemini_key
    return ""


def _agent(settings, name: str, provider: str, model: str, instructions: str,
           temperature: float = 0.4) -> Optional[LangChainAgent]:
    key = _api_key(settings, provider)
    if not key:
        logger.warning(f"[PIPELINE] {name} disabled: no API key for {provider}")
        return None
    return LangChainAgent(
        name=name,
        provider=provider,
        system_prompt=instructions,
        model=model or None,
        temperature=temperature,
        max_tokens=settings.max_output_tokens,
        api_key=key,
    )


def build_roster(settings) -> CouncilRoster:
    """Assemble the council from application settings."""
    council = (settings.council_provider, settings.council_model)
    critic = (settings.critic_provider, settings.critic_model)

    analysts = {}
    for strategy, instructions in ANALYST_INSTRUCTIONS.items():
        agent = _agent(settings, ANALYST_NAMES[strategy], *council, instructions)
        if agent:
            analysts[strategy] = agent

    roster = CouncilRoster(
        discovery=_agent(settings, "thesis-discovery", *council,
                         prompts.DISCOVERY_INSTRUCTIONS, temperature=0.7),
        verdict=_agent(settings, "investment-verdict", *council,
                       prompts.VERDICT_INSTRUCTIONS, temperature=0.2),
        skeptic=_agent(settings, "skeptic", *critic, prompts.SKEPTIC_INSTRUCTIONS),
        risk_officer=_agent(settings, "risk-officer", *critic,
                            prompts.RISK_OFFICER_INSTRUCTIONS),
        interrogator=_agent(settings, "interrogator", *critic,
                            prompts.INTERROGATOR_INSTRUCTIONS),
        analysts=analysts,
    )
    if settings.enable_debate:
        roster.bull_advocate = _agent(settings, "bull-advocate", *council,
                                      prompts.BULL_ADVOCATE_INSTRUCTIONS)
        roster.synthesizer = _agent(settings, "synthesizer", *council,
                                    prompts.SYNTHESIZER_INSTRUCTIONS)
    return roster
