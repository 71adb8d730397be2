EXTRACTION_SYSTEM = "You are a helpful assistant."

EXTRACTION_USER = (
    "You are a trained nurse in a hospital. You are specifically trained to take anamneses "
    "(medical histories) from patients.\n"
    "Please analyze which questions from the JSON were addressed in the transcript and what the answers are. "
    "Only include questions that were actually addressed. "
    "For some questions, the JSON provides a list of possible answers; in these cases, choose exactly one of them. "
    "Return your answers as a JSON array of entries, each with the question's linkId and your answer, "
    "e.g. [{{\"linkId\": \"...\", \"answer\": \"...\"}}]. "
    "If you must return an object instead, put that array under an \"answers\" key. "
    "Do not provide any explanations for your answers. "
    "Only return the JSON array, with no explanation, no markdown, and no code block. "
    "Do not include any text before or after the JSON.\n\n"
    "Questionnaire JSON:\n{questionnaire}\n\n"
    "Transcript:\n{transcript}"
)


def build_prompt(schema_text: str, transcript_text: str) -> str:
    return EXTRACTION_USER.format(questionnaire=schema_text, transcript=transcript_text)
