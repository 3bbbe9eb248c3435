from __future__ import annotations

import pytest

from agents.instructions import MISSING_VALUE, build_instructions
from agents.schemas import CallContext
from agents.termination import find_closing_phrase, is_conversation_end


def test_context_values_appear_in_instructions():
    context = CallContext.model_validate(
        {
            "customerName": "Alice Smith",
            "vehicleName": "Sedan",
            "rentalStartDate": "2024-05-01",
            "rentalDays": 3,
            "state": "CA",
            "driverLicense": "D1234567",
            "insuranceProvider": "Acme Mutual",
            "policyNumber": "POL-42",
        }
    )

    instructions = build_instructions(context)

    for value in ("Alice Smith", "Sedan", "2024-05-01", "3 days", "CA", "D1234567", "Acme Mutual", "POL-42"):
        assert value in instructions
    assert "Does this policy have full coverage or liability only?" in instructions
    assert "could not be loaded" not in instructions


def test_missing_fields_are_marked_not_provided():
    instructions = build_instructions(CallContext(customer_name="Alice Smith"))

    assert "- Policy Number: " + MISSING_VALUE in instructions
    assert "{" not in instructions


def test_fallback_instructions_ask_for_details_verbally():
    instructions = build_instructions(None)

    assert "could not be loaded" in instructions
    assert "policy number" in instructions
    assert "Have a nice day, goodbye" in instructions


def test_numeric_form_values_are_coerced_to_text():
    assert CallContext.model_validate({"rentalDays": 7}).rental_days == "7"


@pytest.mark.parametrize(
    "transcript, phrase",
    [
        ("Thank you for confirming. Have a nice day, goodbye", "goodbye"),
        ("GOODBYE!", "goodbye"),
        ("Alright, take   care now.", "take care"),
        ("Thanks, have a great\nday.", "have a great day"),
    ],
)
def test_closing_phrases_are_found(transcript, phrase):
    assert find_closing_phrase(transcript) == phrase


def test_ordinary_turns_do_not_end_the_call():
    assert not is_conversation_end("Can you confirm the policy number, please?")
    assert not is_conversation_end("")
