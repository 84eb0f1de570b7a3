from lumi.server import compute_signature, verify_signature

BODY = b'{"type":"conversation.ended","conversation_id":"conv_1","agent_id":"agent_1"}'
SECRET = "whsec_test"


def test_valid_signature_is_accepted():
    signature = compute_signature(BODY, SECRET)
    assert signature.startswith("v1=")
    assert verify_signature(signature, BODY, SECRET)


def test_hex_case_is_ignored():
    version, _, digest = compute_signature(BODY, SECRET).partition("=")
    assert verify_signature(f"{version}={digest.upper()}", BODY, SECRET)


def test_tampered_body_is_rejected():
    signature = compute_signature(BODY, SECRET)
    assert not verify_signature(signature, BODY.replace(b"conv_1", b"conv_2"), SECRET)


def test_wrong_secret_is_rejected():
    assert not verify_signature(compute_signature(BODY, "other"), BODY, SECRET)


def test_malformed_signatures_are_rejected():
    digest = compute_signature(BODY, SECRET).partition("=")[2]
    assert not verify_signature(None, BODY, SECRET)
    assert not verify_signature("", BODY, SECRET)
    assert not verify_signature(digest, BODY, SECRET)
    assert not verify_signature(f"v0={digest}", BODY, SECRET)
    assert not verify_signature(f"v1={digest}=", BODY, SECRET)
    assert not verify_signature(compute_signature(BODY, SECRET), BODY, None)
