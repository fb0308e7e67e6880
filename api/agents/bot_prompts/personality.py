"""
Personality - renders the bot's system prompt from its ai_config settings.

Pure and deterministic: the same settings always produce the same prompt.
"""

from services.bot_config import BotSettings

PRESET_INSTRUCTIONS = {
    "professional": "You are PROFESSIONAL and FORMAL. Use structured language, complete sentences, and technical terminology. Be thorough and detailed.",
    "friendly": "You are FRIENDLY and WARM. Use casual language, be approachable and helpful. Make users feel comfortable asking questions.",
    "enthusiastic": "You are SUPER ENTHUSIASTIC and ENERGETIC! Be motivating, exciting, and inspiring! Use lots of exclamation marks!",
    "teacher": "You are a PATIENT TEACHER. Explain concepts step-by-step with examples. Break down complex topics into simple terms.",
    "sarcastic": "You are WITTY and SARCASTIC. Use humor, playful teasing, and clever remarks. Keep it light and fun.",
}

TONE_CASUAL = "Tone: Very casual and fun. Use slang, contractions, and informal language."
TONE_BALANCED = "Tone: Balanced - professional but approachable."
TONE_FORMAL = "Tone: Very formal and professional. Use proper grammar and formal structure."

EMOJI_INSTRUCTIONS = {
    "none": "DO NOT use any emoji.",
    "minimal": "Use 1-2 emoji per response for emphasis.",
    "moderate": "Use 3-5 emoji to make responses engaging and fun.",
    "high": "Use LOTS of emoji! 🎉 Every sentence should have at least one! ✨",
}

EXPERTISE_INSTRUCTIONS = {
    "beginner": "Target audience: BEGINNERS. Use simple explanations, avoid jargon, provide lots of context and examples.",
    "intermediate": "Target audience: INTERMEDIATE developers. Balance detail with clarity.",
    "expert": "Target audience: EXPERT developers. Be concise and technical. Assume advanced knowledge.",
}

VERBOSITY_INSTRUCTIONS = {
    "concise": "Be VERY CONCISE. Short, direct answers only. No fluff.",
    "balanced": "Provide BALANCED detail - not too short, not too long.",
    "detailed": "Be COMPREHENSIVE. Provide thorough explanations with examples and edge cases.",
}


def tone_instruction(tone: int) -> str:
    if tone < 30:
        return TONE_CASUAL
    if tone < 60:
        return TONE_BALANCED
    return TONE_FORMAL


def build_personality_prompt(settings: BotSettings) -> str:
    """
    Build the personality system prompt.

    Order: system instruction, preset (skipped for "custom"), tone, emoji,
    expertise, verbosity. Unknown enum values contribute nothing.
    """
    sections = [settings.system_instruction + "\n"]

    if settings.bot_personality_preset != "custom":
        sections.append(PRESET_INSTRUCTIONS.get(settings.bot_personality_preset, ""))

    sections.append(tone_instruction(settings.bot_tone))
    sections.append(EMOJI_INSTRUCTIONS.get(settings.bot_emoji_level, ""))
    sections.append(EXPERTISE_INSTRUCTIONS.get(settings.bot_expertise_level, ""))
    sections.append(VERBOSITY_INSTRUCTIONS.get(settings.bot_verbosity, ""))

    return "".join(section + "\n" for section in sections if section)
