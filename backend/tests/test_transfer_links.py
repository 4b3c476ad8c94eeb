import pytest

from stusave.services.transfer_errors import InvalidQrPayloadError
from stusave.services.transfer_links import (
    build_transfer_url,
    parse_transfer_url,
    render_qr_png,
)


def test_build_url_embeds_id_as_query_param() -> None:
    assert build_transfer_url("https://stusave.app/", "ab12cd") == "https://stusave.app/?id=ab12cd"


def test_parse_extracts_id_from_built_url() -> None:
    url = build_transfer_url("http://192.168.1.20:9002/", "x9y8z7")
    assert parse_transfer_url(url) == "x9y8z7"
    assert parse_transfer_url(f"  {url}\n") == "x9y8z7"


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "https://stusave.app/",
        "https://stusave.app/?id=",
        "https://stusave.app/?ref=ab12cd",
        "https://stusave.app/?id=AB12CD",
        "https://stusave.app/?id=ab-12",
        "ftp://stusave.app/?id=ab12cd",
        "ab12cd",
        '{"spendings": [], "budget": 500}',
    ],
)
def test_parse_rejects_non_transfer_text(text) -> None:
    with pytest.raises(InvalidQrPayloadError):
        parse_transfer_url(text)


def test_parse_honours_custom_alphabet() -> None:
    assert parse_transfer_url("https://stusave.app/?id=ABC", alphabet="ABC") == "ABC"


def test_render_qr_png_produces_png_bytes() -> None:
    png = render_qr_png("https://stusave.app/?id=ab12cd")
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
