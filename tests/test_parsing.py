import pytest

from webserv.directives import DEFAULT_ERROR_CODES, DEFAULT_ERROR_PAGE_DIR, AutoIndex
from webserv.location import Method
from webserv.parsing import ConfigParser, parse_config

FULL_CONFIG = """server {
    listen 127.0.0.1:8080;
    server_name example.com;
    root /www;
    client_max_body_size 2m;
    autoindex on;

    location /upload {
        limit_except POST GET { deny all; }
        upload_store /www/uploads;
    }
    # comment
}
"""


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    page_dir = tmp_path / DEFAULT_ERROR_PAGE_DIR
    page_dir.mkdir(parents=True)
    for code in DEFAULT_ERROR_CODES:
        (page_dir / f"{code}.html").write_text("<html></html>")
    return tmp_path


def write_conf(directory, text):
    path = directory / "test.conf"
    path.write_text(text)
    return path


def test_full_server_block(workdir):
    configs = parse_config(write_conf(workdir, FULL_CONFIG))
    assert len(configs) == 1
    conf = configs[0]
    assert conf.port_host == [("8080", "127.0.0.1")]
    assert conf.name == "example.com"
    assert conf.root_dir == "./www"
    assert conf.client_body_size == 2 * 1024 * 1024
    assert conf.autoindex_mode == AutoIndex.ON
    assert [path for path, _ in conf.locations] == ["/", "/upload"]


def test_location_block_settings(workdir):
    conf = parse_config(write_conf(workdir, FULL_CONFIG))[0]
    upload = dict(conf.locations)["/upload"]
    assert upload.allowed_methods == Method.GET | Method.POST
    assert upload.upload_store_path == "/www/uploads"
    assert upload.location_path == "./www/upload"
    assert upload.autoindex_mode == AutoIndex.ON
    assert upload.client_body_size == conf.client_body_size


def test_default_location_allows_all_methods(workdir):
    conf = parse_config(write_conf(workdir, FULL_CONFIG))[0]
    root_location = dict(conf.locations)["/"]
    assert root_location.allowed_methods == (
        Method.HEAD | Method.GET | Method.POST | Method.DELETE
    )
    assert root_location.root_dir == conf.root_dir


def test_default_listen(workdir):
    conf = parse_config(write_conf(workdir, "server {\nroot /www;\n}\n"))[0]
    assert conf.port_host == [("80", "0.0.0.0")]


def test_semicolon_on_next_line(workdir):
    conf = parse_config(write_conf(workdir, "server {\nroot /www\n;\n}\n"))[0]
    assert conf.root_dir == "./www"


def test_two_servers(workdir):
    text = "server {\nlisten 8080;\n}\nserver {\nlisten 9090;\nserver_name second;\n}\n"
    configs = parse_config(write_conf(workdir, text))
    assert len(configs) == 2
    assert configs[0].port_host == [("8080", "0.0.0.0")]
    assert configs[1].port_host == [("9090", "0.0.0.0")]
    assert configs[1].name == "second"


def test_custom_error_page(workdir):
    (workdir / "site").mkdir()
    (workdir / "site" / "err.html").write_text("gone")
    text = "server {\nroot /site;\nerror_page 404 /err.html;\n}\n"
    conf = parse_config(write_conf(workdir, text))[0]
    assert conf.error_pages[404] == "site/err.html"
    assert dict(conf.locations)["/"].error_pages[404] == conf.error_pages[404]


def test_missing_file_raises(tmp_path):
    with pytest.raises(ValueError, match="couldn't be opened"):
        parse_config(tmp_path / "absent.conf")


def test_line_outside_server_raises(workdir):
    with pytest.raises(ValueError, match="expecting server"):
        parse_config(write_conf(workdir, "listen 80;\n"))


def test_missing_closing_bracket_raises(workdir):
    with pytest.raises(ValueError, match="No closing bracket"):
        parse_config(write_conf(workdir, "server {\nlisten 80;\n"))


def test_unknown_directive_raises(workdir):
    with pytest.raises(ValueError, match="invalid syntax"):
        parse_config(write_conf(workdir, "server {\nlisten 80;\nbogus 1;\n}\n"))


def test_missing_server_bracket_raises(workdir):
    with pytest.raises(ValueError, match="opening curly bracket server"):
        parse_config(write_conf(workdir, "server\nlisten 80;\n"))


def test_print_all(workdir, capsys):
    parser = ConfigParser(write_conf(workdir, FULL_CONFIG))
    parser.print_all()
    out = capsys.readouterr().out
    assert "Server Name: example.com" in out
    assert "location: Path: /upload" in out
    assert "  Upload Store: /www/uploads" in out