import httpx
import pytest

from vibecoin_wallet.wallet.api import RemoteApi
from vibecoin_wallet.wallet.errors import NetworkError, RemoteApiError


def test_collect_fees_posts_only_public_fields(api, fake_api):
    result = api.collect_fees("0xabc", "msg", "0xsig")
    assert result["success"] is True
    assert fake_api.body("/api/collect-fees") == {
        "walletAddress": "0xabc",
        "message": "msg",
        "signature": "0xsig",
    }


def test_get_contracts(api):
    contracts = api.get_contracts()
    assert contracts["feeHookAddress"].startswith("0x")


def test_http_error_with_error_body(api, fake_api):
    fake_api.routes[("GET", "/api/config")] = httpx.Response(503, json={"error": "maintenance"})
    with pytest.raises(RemoteApiError) as exc:
        api.get_contracts()
    assert exc.value.status_code == 503
    assert "maintenance" in str(exc.value)


def test_error_field_on_200(api, fake_api):
    fake_api.routes[("POST", "/api/collect-fees")] = httpx.Response(200, json={"error": "rate limited"})
    with pytest.raises(RemoteApiError):
        api.collect_fees("0xabc", "m", "s")


def test_non_json_error_body(api, fake_api):
    fake_api.routes[("GET", "/api/config")] = httpx.Response(500, text="<html>oops</html>")
    with pytest.raises(RemoteApiError) as exc:
        api.get_contracts()
    assert "HTTP 500" in str(exc.value)


def test_launch_unsuccessful(api, fake_api):
    fake_api.routes[("POST", "/api/launch")] = httpx.Response(200, json={"success": False})
    with pytest.raises(RemoteApiError):
        api.launch({"name": "x"})


def _unreachable(request):
    raise httpx.ConnectError("connection refused", request=request)


def test_transport_failure_is_network_error():
    api = RemoteApi("https://launch.test", transport=httpx.MockTransport(_unreachable))
    with pytest.raises(NetworkError) as exc:
        api.get_contracts()
    assert not isinstance(exc.value, RemoteApiError)


def test_status_never_raises():
    api = RemoteApi("https://launch.test/", transport=httpx.MockTransport(_unreachable))
    status = api.status()
    assert status["available"] is False
    assert status["apiUrl"] == "https://launch.test"


def test_status_available(api):
    assert api.status() == {"available": True, "status": "ok"}
