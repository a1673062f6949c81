import pytest

from webserv.config_syntax import (
    count_servers,
    read_config,
    read_config_file,
    validate_structure,
)
from webserv.errors import ConfigFileError, FileNotOpenError

SAMPLE = [
    "server {",
    "listen 8080;",
    "server_name localhost;",
    "location / {",
    "root ./www;",
    "}",
    "}",
]


def _server(port):
    return ["server {", f"listen {port};", "server_name localhost;", "}"]


def test_read_config_drops_blanks_and_comments():
    raw = [
        "# leading comment\n",
        "\n",
        "   server {  \n",
        "\tlisten 8080; # trailing comment\n",
        "   \t  \n",
        "}\n",
    ]
    assert read_config(raw) == ["server {", "listen 8080;", "}"]


def test_read_config_is_idempotent():
    raw = ["  server { ", "listen 80;  # x", "}"]
    once = read_config(raw)
    assert read_config(once) == once


def test_read_config_file(tmp_path):
    path = tmp_path / "site.conf"
    path.write_text("server {\n  listen 8080;\n}\n", encoding="utf-8")
    assert read_config_file(str(path)) == ["server {", "listen 8080;", "}"]


def test_read_config_file_missing(tmp_path):
    with pytest.raises(FileNotOpenError, match="could not be opened"):
        read_config_file(str(tmp_path / "absent.conf"))


def test_validate_accepts_sample():
    assert validate_structure(SAMPLE) is True


def test_validate_rejects_empty():
    assert validate_structure([]) is False


def test_validate_rejects_unterminated_line():
    broken = list(SAMPLE)
    broken[1] = "listen 8080"
    assert validate_structure(broken) is False


def test_validate_rejects_unbalanced_braces():
    assert validate_structure(SAMPLE[:-1]) is False


def test_validate_rejects_closing_first():
    assert validate_structure(["}", "server {"]) is False


def test_validate_rejects_two_statements_on_one_line():
    broken = ["server {", "listen 8080; root ./www;", "}"]
    assert validate_structure(broken) is False


def test_count_single_server():
    assert count_servers(SAMPLE) == 1


def test_count_distinct_ports():
    config = _server(8080) + _server(8081)
    assert count_servers(config) == 2


def test_consecutive_same_port_counts_once():
    config = _server(8080) + _server(8080) + _server(9090)
    assert count_servers(config) == 2


def test_port_reused_after_another_is_error():
    config = _server(8080) + _server(8081) + _server(8080)
    with pytest.raises(ConfigFileError, match="already in use"):
        count_servers(config)


def test_count_ignores_listen_outside_server():
    assert count_servers(["listen 8080;"]) == 0


def test_count_with_nested_blocks_sees_following_servers():
    config = SAMPLE + _server(8081)
    assert count_servers(config) == 2


def test_counting_is_fresh_each_call():
    config = _server(8080) + _server(8081)
    assert count_servers(config) == count_servers(config)
    assert count_servers(_server(8081) + _server(8080)) == 2