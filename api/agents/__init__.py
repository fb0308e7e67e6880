"""
Prompt assets for the AI responder.

- bot_prompts: personality and decision prompts sent to the generation provider
"""
