from gatekeeper.application.signup import SIGNUP_CODE_TOPIC

SIGNUP = {"name": "Ann", "email": "Ann@Example.com", "password": "s3cret"}


def test_signup_then_verify_creates_account(client, deps, coordination):
    r = client.post("/v1/auth/signup", json=SIGNUP)
    assert r.status_code == 200, r.text
    assert r.json()["email"] == "ann@example.com"

    uow = deps["uow"]
    [(topic, payload, _)] = uow.outbox.enqueues
    assert topic == SIGNUP_CODE_TOPIC
    assert "123456" in payload["body"]
    assert uow.db_users.created == []

    r2 = client.post(
        "/v1/auth/verify-code", json={"email": "ann@example.com", "code": "123456"}
    )
    assert r2.status_code == 200, r2.text
    body = r2.json()
    assert body["user"]["email"] == "ann@example.com"
    assert body["user"]["isAdmin"] is False
    assert coordination.tokens.decode(body["token"]).sub == body["user"]["id"]
    assert len(uow.db_users.created) == 1


def test_signup_for_registered_email(client, users):
    r = client.post(
        "/v1/auth/signup",
        json={"name": "Dave", "email": "dave@example.com", "password": "s3cret"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "email already registered"


def test_signup_validation(client):
    assert client.post("/v1/auth/signup", json={**SIGNUP, "password": "12345"}).status_code == 422
    assert client.post("/v1/auth/signup", json={**SIGNUP, "email": "nope"}).status_code == 422
    r = client.post("/v1/auth/signup", json={**SIGNUP, "name": "   "})
    assert r.status_code == 400
    assert r.json()["detail"] == "name is required"


def test_resend_cooldown_and_missing_signup(client, clock):
    r = client.post("/v1/auth/send-verification-code", json={"email": "ann@example.com"})
    assert r.status_code == 404

    client.post("/v1/auth/signup", json=SIGNUP)
    clock.advance(59)
    r = client.post("/v1/auth/send-verification-code", json={"email": "ann@example.com"})
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "1"

    clock.advance(1)
    r = client.post("/v1/auth/send-verification-code", json={"email": "ann@example.com"})
    assert r.status_code == 200


def test_wrong_codes_then_lockout(client, deps):
    client.post("/v1/auth/signup", json=SIGNUP)
    for _ in range(3):
        r = client.post(
            "/v1/auth/verify-code", json={"email": "ann@example.com", "code": "000000"}
        )
        assert r.status_code == 400
        assert r.json()["detail"] == "invalid verification code"

    r = client.post(
        "/v1/auth/verify-code", json={"email": "ann@example.com", "code": "123456"}
    )
    assert r.status_code == 400
    assert r.json()["detail"].startswith("too many invalid attempts")
    assert deps["uow"].db_users.created == []


def test_code_must_be_six_digits(client):
    r = client.post("/v1/auth/verify-code", json={"email": "ann@example.com", "code": "12a"})
    assert r.status_code == 422
