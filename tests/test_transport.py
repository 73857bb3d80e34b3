from __future__ import annotations

import pytest
import requests

from meekan.errors import MalformedURLError, MeekanApiException
from meekan.transport import DefaultIOHandler, IOHandler, build_api_url, parse_api_envelope


def test_build_api_url_resolves_relative_paths(api_cfg) -> None:
    assert build_api_url(api_cfg, "social_login/google/complete") == (
        "https://api.meekan.test/social_login/google/complete"
    )
    assert build_api_url(api_cfg, "/social_login/google/complete") == (
        "https://api.meekan.test/social_login/google/complete"
    )


@pytest.mark.parametrize("api_url", ["not a url/", "ftp://api.meekan.test/", "https:///", "https://[api.meekan/"])
def test_build_api_url_rejects_malformed_base(api_url) -> None:
    from meekan.config import ApiConfig

    with pytest.raises(MalformedURLError):
        build_api_url(ApiConfig(api_url=api_url), "social_login/google/complete")


def test_parse_envelope_maps_meta_and_data() -> None:
    result = parse_api_envelope(200, {"meta": {"code": 200, "request_id": "abc"}, "data": {"user_id": 7}})

    assert result.ok
    assert result.meta.code == 200
    assert result.meta.request_id == "abc"
    assert result.meta.message == ""
    assert result.data == {"user_id": 7}


def test_parse_envelope_keeps_error_message() -> None:
    result = parse_api_envelope(401, {"meta": {"code": 401, "error_message": "Session expired"}})

    assert not result.ok
    assert result.meta.code == 401
    assert result.meta.message == "Session expired"
    assert result.data is None


def test_parse_envelope_falls_back_to_http_status() -> None:
    result = parse_api_envelope(503, {"meta": {}})
    assert result.meta.code == 503


@pytest.mark.parametrize("payload", [None, [], {"data": {}}, {"meta": "oops"}])
def test_parse_envelope_rejects_non_envelopes(payload) -> None:
    with pytest.raises(MeekanApiException) as exc_info:
        parse_api_envelope(502, payload)
    assert exc_info.value.code == 502


def test_do_api_request_sends_params_and_parses(api_cfg, cookie_jar, fake_session, make_response) -> None:
    resp = make_response(200, json_data={"meta": {"code": 200, "request_id": "r-9"}, "data": {"ok": True}})
    fake_session.request.return_value = resp
    io = DefaultIOHandler(api_cfg, cookie_jar=cookie_jar, session=fake_session)

    result = io.do_api_request("get", "social_login/google/complete", {"state": '{"code":"x"}'})

    assert isinstance(io, IOHandler)
    assert result.meta.request_id == "r-9"
    assert result.data == {"ok": True}
    fake_session.request.assert_called_once_with(
        "GET",
        "https://api.meekan.test/social_login/google/complete",
        params={"state": '{"code":"x"}'},
    )
    resp.close.assert_called_once()
    assert fake_session.cookies is cookie_jar


def test_do_api_request_passes_timeout_when_configured(cookie_jar, fake_session, make_response) -> None:
    from meekan.config import ApiConfig

    fake_session.request.return_value = make_response(200, json_data={"meta": {"code": 200}})
    io = DefaultIOHandler(
        ApiConfig(api_url="https://api.meekan.test/", http_timeout_seconds=2.5), cookie_jar=cookie_jar, session=fake_session
    )

    io.do_api_request("GET", "ping")

    assert fake_session.request.call_args[1]["timeout"] == 2.5


def test_do_api_request_non_json_body_is_api_error(api_cfg, cookie_jar, fake_session, make_response) -> None:
    resp = make_response(502, body=b"<html>Bad Gateway</html>")
    fake_session.request.return_value = resp
    io = DefaultIOHandler(api_cfg, cookie_jar=cookie_jar, session=fake_session)

    with pytest.raises(MeekanApiException, match="status=502"):
        io.do_api_request("GET", "social_login/google/complete")
    resp.close.assert_called_once()


def test_do_api_request_translates_requests_url_errors(api_cfg, cookie_jar, fake_session) -> None:
    fake_session.request.side_effect = requests.exceptions.InvalidURL("Failed to parse")
    io = DefaultIOHandler(api_cfg, cookie_jar=cookie_jar, session=fake_session)

    with pytest.raises(MalformedURLError):
        io.do_api_request("GET", "social_login/google/complete")


def test_do_api_request_lets_network_errors_through(api_cfg, cookie_jar, fake_session) -> None:
    fake_session.request.side_effect = requests.exceptions.ConnectTimeout("timed out")
    io = DefaultIOHandler(api_cfg, cookie_jar=cookie_jar, session=fake_session)

    with pytest.raises(requests.exceptions.ConnectTimeout):
        io.do_api_request("GET", "social_login/google/complete")


@pytest.mark.parametrize("api_url", ["not a url/", "https://[api.meekan/"])
def test_malformed_api_url_yields_400_through_handler(cookie_jar, fake_session, api_url) -> None:
    from meekan.auth.handler import MeekanAuthHandler
    from meekan.auth.models import SocialLoginCredential
    from meekan.config import ApiConfig

    cfg = ApiConfig(api_url=api_url)
    io = DefaultIOHandler(cfg, cookie_jar=cookie_jar, session=fake_session)
    handler = MeekanAuthHandler(io, cookie_jar, cfg=cfg, session=fake_session)

    result = handler.social_login_authenticate(SocialLoginCredential("google", {"code": "x"}))

    assert result.meta.code == 400
    assert result.meta.message == "Malformed URL"
    fake_session.request.assert_not_called()


def test_malformed_api_url_yields_400_for_icloud_completion(cookie_jar, fake_session, make_response) -> None:
    from meekan.auth.handler import MeekanAuthHandler
    from meekan.auth.models import ICloudCredential
    from meekan.config import ApiConfig

    cfg = ApiConfig(api_url="https://[api.meekan/")
    fake_session.get.return_value = make_response(404)
    fake_session.post.return_value = make_response(404)
    io = DefaultIOHandler(cfg, cookie_jar=cookie_jar, session=fake_session)
    handler = MeekanAuthHandler(io, cookie_jar, cfg=cfg, session=fake_session)

    result = handler.icloud_authenticate(ICloudCredential(apple_id="user@example.com", password="secret"))

    assert result.meta.code == 400
    assert result.meta.message == "Malformed URL"
