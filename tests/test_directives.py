import pytest

from webserv.directives import (
    DEFAULT_ERROR_CODES,
    DEFAULT_ERROR_PAGE_DIR,
    SIZE_MAX,
    AutoIndex,
    BaseConfig,
    DirectiveResult,
)

SPACE = " \t\f\v\r"


def drive(step, line):
    for _ in range(20):
        result = step(line.lstrip(SPACE))
        if result.done:
            return result.rest
        line = result.rest
    raise AssertionError("directive never finished")


@pytest.fixture
def error_page_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    pages = tmp_path / "webPages" / "defaultErrorPages"
    pages.mkdir(parents=True)
    for code in DEFAULT_ERROR_CODES:
        (pages / f"{code}.html").write_text("<html></html>")
    return tmp_path


def test_root_with_semicolon():
    cfg = BaseConfig()
    assert cfg.root("/var/www;") == DirectiveResult(True, "")
    assert cfg.root_dir == "/var/www"


def test_root_keeps_text_after_semicolon():
    cfg = BaseConfig()
    result = cfg.root("/site  ; rest")
    assert result == DirectiveResult(True, " rest")
    assert cfg.root_dir == "/site"


def test_root_without_terminator_leaves_line():
    cfg = BaseConfig()
    assert cfg.root("/data") == DirectiveResult(False, "/data")
    assert cfg.root_dir == "/data"


def test_root_must_start_with_slash():
    cfg = BaseConfig(line_nbr=7)
    with pytest.raises(ValueError, match="^7: root: first character must be /"):
        cfg.root("var/www;")


def test_second_root_is_rejected():
    cfg = BaseConfig()
    cfg.root("/a;")
    with pytest.raises(ValueError, match="second root"):
        cfg.root("/b;")


def test_root_rejects_garbage_before_semicolon():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="invalid input found before semi colon"):
        cfg.root("/a b;")


def test_error_page_assigns_all_pending_codes():
    cfg = BaseConfig()
    rest = drive(cfg.error_page, "404 500 /err.html;")
    assert rest == ""
    assert cfg.error_pages == {404: "/err.html", 500: "/err.html"}


def test_error_page_steps():
    cfg = BaseConfig()
    first = cfg.error_page("404 /e.html;")
    assert first == DirectiveResult(False, "/e.html;")
    second = cfg.error_page(first.rest)
    assert second == DirectiveResult(False, ";")
    assert cfg.error_page(second.rest) == DirectiveResult(True, "")


@pytest.mark.parametrize("line", ["200 /x.html;", "600 /x.html;"])
def test_error_page_code_out_of_range(line):
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="between 300 and 599"):
        cfg.error_page(line)


def test_error_page_semicolon_without_page():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="no error page given"):
        cfg.error_page(";")


def test_error_page_page_without_codes():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="no error codes"):
        cfg.error_page("/x.html;")


def test_error_page_input_after_page():
    cfg = BaseConfig()
    drive_line = cfg.error_page("404 /x.html other;")
    page_step = cfg.error_page(drive_line.rest)
    with pytest.raises(ValueError, match="invalid input found after error page"):
        cfg.error_page(page_step.rest.lstrip())


def test_error_page_bad_character_in_page():
    cfg = BaseConfig()
    step = cfg.error_page("404 /x?.html;")
    with pytest.raises(ValueError, match="invalid character found after error_page"):
        cfg.error_page(step.rest)


def test_error_page_code_at_end_of_line_is_rejected():
    cfg = BaseConfig()
    with pytest.raises(ValueError):
        cfg.error_page("404")


def test_client_max_body_size_kilobytes():
    cfg = BaseConfig()
    assert cfg.client_max_body_size("1k;") == DirectiveResult(True, "")
    assert cfg.client_body_size == 1024


def test_client_max_body_size_upper_case_unit():
    cfg = BaseConfig()
    cfg.client_max_body_size("1M;")
    assert cfg.client_body_size == 1024 * 1024


def test_client_max_body_size_zero_means_unlimited():
    cfg = BaseConfig()
    assert cfg.client_max_body_size("0;").done is True
    assert cfg.client_body_size == SIZE_MAX


def test_client_max_body_size_plain_number_with_space():
    cfg = BaseConfig()
    assert cfg.client_max_body_size("512 ;") == DirectiveResult(True, "")
    assert cfg.client_body_size == 512


@pytest.mark.parametrize("line", ["abc;", "5x;", "10"])
def test_client_max_body_size_invalid(line):
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="client_max_body_size"):
        cfg.client_max_body_size(line)


def test_base_index_page_semicolon_needs_an_index():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="no index given"):
        cfg.index_page(";")


def test_base_index_page_rejects_plain_name():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="invalid index given"):
        cfg.index_page("index.html;")


def test_auto_index_on_and_off():
    on = BaseConfig()
    off = BaseConfig()
    assert on.auto_index("on;").done is True
    assert off.auto_index("off ;").done is True
    assert on.autoindex_mode is AutoIndex.ON
    assert off.autoindex_mode is AutoIndex.OFF


def test_auto_index_without_semicolon():
    cfg = BaseConfig()
    assert cfg.auto_index("on") == DirectiveResult(False, "on")


def test_auto_index_invalid_word():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="expected on/off"):
        cfg.auto_index("maybe;")


def test_return_redirect_full():
    cfg = BaseConfig()
    rest = drive(cfg.return_redirect, "301 /new;")
    assert rest == ""
    assert cfg.redirect == (301, "/new")


def test_return_redirect_invalid_code():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="invalid error code"):
        cfg.return_redirect("200 /x;")


def test_return_redirect_target_without_code():
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="no error code given"):
        cfg.return_redirect("/x;")


def test_return_redirect_semicolon_too_early():
    cfg = BaseConfig()
    cfg.return_redirect("302 ")
    with pytest.raises(ValueError, match="not enough valid arguments"):
        cfg.return_redirect(";")


def test_return_redirect_second_code():
    cfg = BaseConfig()
    cfg.return_redirect("302 ")
    with pytest.raises(ValueError, match="multiple error code redirects"):
        cfg.return_redirect("307 ")


def test_default_error_pages_filled(error_page_dir):
    cfg = BaseConfig(root_dir="./www")
    cfg.set_default_error_pages()
    assert set(cfg.error_pages) == set(DEFAULT_ERROR_CODES)
    for code in DEFAULT_ERROR_CODES:
        assert cfg.error_pages[code] == f"{DEFAULT_ERROR_PAGE_DIR}/{code}.html"


def test_custom_error_page_is_joined_with_root(error_page_dir):
    (error_page_dir / "www").mkdir()
    (error_page_dir / "www" / "404.html").write_text("custom")
    cfg = BaseConfig(root_dir="./www", error_pages={404: "/404.html"})
    cfg.set_default_error_pages()
    assert cfg.error_pages[404] == "www/404.html"


def test_missing_error_page_raises(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = BaseConfig()
    with pytest.raises(ValueError, match="couldn't open error page"):
        cfg.set_default_error_pages()