from core.logging_config import MASK, redact, redact_secrets


def test_redact_nested_card_data():
    payload = {
        "card_token": "tok",
        "payments": [{"method": "credit_card", "cvv": "123"}],
        "customer": {"name": "João"},
    }

    cleaned = redact(payload)

    assert cleaned["card_token"] == MASK
    assert cleaned["payments"][0]["cvv"] == MASK
    assert cleaned["payments"][0]["method"] == "credit_card"
    assert cleaned["customer"] == {"name": "João"}


def test_processor_masks_top_level_keys():
    event = redact_secrets(None, "info", {"event": "x", "Authorization": "Basic abc", "body": {"api_key": "k"}})
    assert event["Authorization"] == MASK
    assert event["body"] == {"api_key": MASK}
    assert event["event"] == "x"
