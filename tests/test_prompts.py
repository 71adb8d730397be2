from anamnesis.extraction.prompts import build_prompt


def test_prompt_is_deterministic():
    schema_text = '{"properties": {"item": {"items": []}}}'
    transcript = "Nurse: Any pain?\nPatient: No."
    assert build_prompt(schema_text, transcript) == build_prompt(schema_text, transcript)


def test_prompt_embeds_inputs_verbatim():
    schema_text = '{\n  "properties": {"item": {"items": [{"linkId": "1", "text": "Pain?"}]}}\n}'
    transcript = "Patient: it hurts {a lot} since Monday."
    prompt = build_prompt(schema_text, transcript)
    assert schema_text in prompt
    assert transcript in prompt
    assert prompt.index(schema_text) < prompt.index(transcript)


def test_prompt_instructions():
    prompt = build_prompt("{}", "x")
    assert "linkId" in prompt
    assert "no markdown" in prompt
    assert "choose exactly one" in prompt
    assert "actually addressed" in prompt
