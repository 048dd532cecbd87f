# helper/prompts_helper.py

FORMATTING_INSTRUCTION = """
Analyze only the current input and provide a single, focused response labeled with exactly one type:
- Use 'PARAGRAPHS' (and nothing else) for narrative, explanatory, or creative content. Example: 'write a poem' → 'PARAGRAPHS: The moon rises gently... Stars twinkle...'. Format each sentence or natural line on a new line.
- Use 'POINTS' (and nothing else) for counting, greetings, or lists. Example: 'write counting from 1 to 5' → 'POINTS: 1. One. 2. Two...'. Format each item on a new line, with sentences within items separated by new lines after full stops.
- Use 'UNCLEAR' (and nothing else) if the input is unclear or irrelevant. Example: 'random stuff' → 'UNCLEAR: Please provide a clear request...'.
- Include only the labeled content (e.g., 'PARAGRAPHS:', 'POINTS:', 'UNCLEAR:') followed by the response. Do not mix formats or add unrelated text. Keep responses concise and directly relevant to the input."""


def formatting_instruction() -> str:
    return FORMATTING_INSTRUCTION


def build_prompt(prompt_text: str, instruction: str) -> str:
    """Single user turn: the current message followed by the labelling instruction."""
    return f"{prompt_text}\n{instruction}"
