from core.kilnctl.codec import encode_command, is_temperature_register, parse_line


def test_parses_register_update():
    assert parse_line("T1=2345 raw") == ("T1", 2345)
    assert parse_line("R=1 relays") == ("R", 1)


def test_surrounding_whitespace_is_trimmed():
    assert parse_line("  T2=100 x\r\n") == ("T2", 100)


def test_value_must_be_followed_by_whitespace():
    # The trailing space alone is trimmed away with the line ending
    assert parse_line("T1=2345") is None
    assert parse_line("T1=2345 \n") is None


def test_ignores_other_lines():
    assert parse_line("") is None
    assert parse_line("booting...") is None
    assert parse_line("t1=100 x") is None
    assert parse_line("T1=-100 x") is None
    assert parse_line("T1=12.5 x") is None


def test_temperature_registers():
    assert is_temperature_register("T1")
    assert is_temperature_register("T9")
    assert not is_temperature_register("R")


def test_encode_command():
    assert encode_command("ON") == b"ON\r\n"
