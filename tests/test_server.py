import json

import pytest
import requests
import responses

from webywallet.server import (
    HEALTH_CHECK,
    MINING_REPORT,
    REPLACE,
    TARGET,
    HealthResponse,
    Legalese,
    MiningReportRequest,
    MiningReportResponse,
    NetworkMode,
    ReplaceRequest,
    ReplaceResponse,
    ServerClient,
    ServerConfig,
    ServerError,
    TargetResponse,
)

BASE = "https://webcash.org"


def test_network_base_urls():
    assert NetworkMode.production().base_url() == "https://webcash.org"
    assert NetworkMode.testnet().base_url() == "https://weby.cash/api/webcash/testnet"
    assert NetworkMode.custom("http://localhost:8080").base_url() == "http://localhost:8080"


def test_endpoint_url_joins_base_and_path():
    mode = NetworkMode.custom("http://localhost:8080")
    assert mode.endpoint_url(TARGET) == "http://localhost:8080/api/v1/target"
    assert NetworkMode.production().endpoint_url(REPLACE) == "https://webcash.org/api/v1/replace"


def test_default_network_is_production():
    assert NetworkMode() == NetworkMode.production()
    config = ServerConfig()
    assert config.timeout_seconds == 30
    assert config.base_url() == "https://webcash.org"


def test_replace_request_body():
    request = ReplaceRequest(["e1:secret:aa"], ["e1:secret:bb"], Legalese(terms=True))
    assert request.to_json() == {
        "webcashes": ["e1:secret:aa"],
        "new_webcashes": ["e1:secret:bb"],
        "legalese": {"terms": True},
    }


def test_mining_report_request_body():
    assert MiningReportRequest("abc").to_json() == {
        "preimage": "abc",
        "legalese": {"terms": True},
    }


def test_health_response_optional_fields():
    parsed = HealthResponse.from_json(
        {"status": "success", "results": {"e1:public:aa": {"spent": None}}}
    )
    assert parsed.status == "success"
    assert parsed.results["e1:public:aa"].spent is None
    assert parsed.results["e1:public:aa"].amount is None


def test_health_response_missing_status_raises():
    with pytest.raises(ServerError):
        HealthResponse.from_json({"results": {}})


def test_target_response_rejects_bad_types():
    with pytest.raises(ServerError):
        TargetResponse.from_json(
            {
                "difficulty_target_bits": -1,
                "epoch": 0,
                "mining_amount": "1",
                "mining_subsidy_amount": "0",
                "ratio": 1,
            }
        )


def test_mining_report_response_optional_target():
    assert MiningReportResponse.from_json({"status": "success"}).difficulty_target is None
    assert MiningReportResponse.from_json(
        {"status": "success", "difficulty_target": 20}
    ).difficulty_target == 20


def test_replace_response_requires_object():
    with pytest.raises(ServerError):
        ReplaceResponse.from_json(["success"])


def test_health_check_posts_list_and_parses():
    body = {
        "status": "success",
        "results": {"e1:public:aa": {"spent": False, "amount": "1"}},
    }
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + HEALTH_CHECK, json=body)
        with ServerClient() as client:
            result = client.health_check(["e1:public:aa"])
        sent = rsps.calls[0].request
        assert json.loads(sent.body) == ["e1:public:aa"]
        assert sent.headers["Content-Type"] == "application/json"
    assert result.results["e1:public:aa"].spent is False
    assert result.results["e1:public:aa"].amount == "1"


def test_health_check_failure_status():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + HEALTH_CHECK, status=500)
        client = ServerClient()
        with pytest.raises(ServerError, match="Health check request failed"):
            client.health_check([])


def test_replace_success():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + REPLACE, json={"status": "success"})
        client = ServerClient()
        request = ReplaceRequest(["e1:secret:aa"], ["e1:secret:bb"])
        result = client.replace(request)
        assert json.loads(rsps.calls[0].request.body) == request.to_json()
    assert result.status == "success"


def test_replace_failure_with_error_message():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + REPLACE, status=500, json={"error": "bad input"})
        client = ServerClient()
        with pytest.raises(ServerError) as info:
            client.replace(ReplaceRequest(["a"], ["b"]))
    assert info.value.message == "Replace request failed: bad input"


def test_replace_failure_without_json():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + REPLACE, status=500, body="oops")
        client = ServerClient()
        with pytest.raises(ServerError) as info:
            client.replace(ReplaceRequest(["a"], ["b"]))
    assert "status 500" in info.value.message
    assert info.value.message.endswith(": oops")


def test_replace_invalid_success_body():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + REPLACE, body="not json")
        client = ServerClient()
        with pytest.raises(ServerError):
            client.replace(ReplaceRequest(["a"], ["b"]))


def test_get_target_on_custom_network():
    body = {
        "difficulty_target_bits": 28,
        "epoch": 3,
        "mining_amount": "200000",
        "mining_subsidy_amount": "10000",
        "ratio": 1.5,
    }
    config = ServerConfig(network=NetworkMode.custom("http://localhost:8080"))
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://localhost:8080" + TARGET, json=body)
        target = ServerClient(config).get_target()
    assert target.difficulty_target_bits == 28
    assert target.epoch == 3
    assert target.mining_amount == "200000"
    assert target.mining_subsidy_amount == "10000"
    assert target.ratio == 1.5


def test_get_target_failure():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, BASE + TARGET, status=404)
        with pytest.raises(ServerError, match="Target request failed"):
            ServerClient().get_target()


def test_submit_mining_report():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            BASE + MINING_REPORT,
            json={"status": "success", "difficulty_target": 28},
        )
        result = ServerClient().submit_mining_report(MiningReportRequest("pre"))
        assert json.loads(rsps.calls[0].request.body) == {
            "preimage": "pre",
            "legalese": {"terms": True},
        }
    assert result.status == "success"
    assert result.difficulty_target == 28


def test_submit_mining_report_failure():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + MINING_REPORT, status=400)
        with pytest.raises(ServerError, match="Mining report submission failed"):
            ServerClient().submit_mining_report(MiningReportRequest("pre"))


def test_connection_error_becomes_server_error():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            BASE + TARGET,
            body=requests.ConnectionError("refused"),
        )
        with pytest.raises(ServerError, match="HTTP error"):
            ServerClient().get_target()