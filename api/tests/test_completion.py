from docdesigner.engine.completion import evaluate_completion, signature_type_for


def field(field_type):
    return {"type": field_type, "properties": {}}


def test_completion_stages():
    assert evaluate_completion([], False, "single") == ("draft", 0)
    assert evaluate_completion([], True, "single") == ("draft", 25)
    assert evaluate_completion([field("text")], True, "single") == ("draft", 75)
    assert evaluate_completion([field("signature")], True, "single") == ("ready", 100)


def test_multi_signature_needs_two_signature_fields():
    assert evaluate_completion([field("signature")], True, "multi") == ("draft", 85)
    assert evaluate_completion([field("signature"), field("signature")], True, "multi") == ("ready", 100)


def test_signature_type_follows_template():
    assert signature_type_for({"signers": [{"id": "a"}]}) == "single"
    assert signature_type_for({"signers": [{"id": "a"}, {"id": "b"}]}) == "multi"
    assert signature_type_for({"signers": [], "multiSignature": True}) == "multi"


def test_signature_type_without_signer_list_counts_signature_fields():
    two_signers = {"schemas": [[{"type": "signature", "signerId": "a"}], [{"type": "signature", "signerId": "b"}]]}
    one_signer = {"schemas": [[{"type": "signature", "signerId": "a"}, {"type": "signature", "signerId": "a"}]]}
    unassigned = {"schemas": [[{"type": "signature"}, {"type": "signature"}]]}

    assert signature_type_for(two_signers) == "multi"
    assert signature_type_for(dict(two_signers, signers=[])) == "multi"
    assert signature_type_for(one_signer) == "single"
    assert signature_type_for(unassigned) == "single"
