"""Domain system prompt: the identity of the diet-plan specialist."""

from __future__ import annotations

AYURVEDA_DOMAIN_SYSTEM_PROMPT = """\
You are an expert Ayurvedic doctor and nutritionist. You create personalized \
Ayurvedic diet plans based on patient constitution (Prakriti), current imbalances \
(Vikriti), health conditions, and other factors. Always provide detailed, authentic \
Ayurvedic recommendations with proper explanations of Rasa, Guna, Virya, Vipaka, \
and Prabhava for each meal."""


def build_full_system_prompt(extra_instructions: str = "") -> str:
    """Combine the domain system prompt with optional call-specific instructions."""
    if not extra_instructions:
        return AYURVEDA_DOMAIN_SYSTEM_PROMPT
    return f"""{AYURVEDA_DOMAIN_SYSTEM_PROMPT}

---

{extra_instructions}"""
