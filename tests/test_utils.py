import pytest

from runcclient.utils import TopResults, parse_ps_output, read_pid_file


def test_read_pid_file(tmp_path):
    path = tmp_path / "pid"
    path.write_text("1234")
    assert read_pid_file(path) == 1234


def test_read_pid_file_accepts_sign(tmp_path):
    path = tmp_path / "pid"
    path.write_text("-17")
    assert read_pid_file(str(path)) == -17


def test_read_pid_file_rejects_trailing_newline(tmp_path):
    path = tmp_path / "pid"
    path.write_text("1234\n")
    with pytest.raises(ValueError):
        read_pid_file(path)


def test_read_pid_file_rejects_garbage(tmp_path):
    path = tmp_path / "pid"
    path.write_text("abc")
    with pytest.raises(ValueError):
        read_pid_file(path)


def test_read_pid_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_pid_file(tmp_path / "absent")


PS_TABLE = (
    "UID        PID  PPID  C STIME TTY          TIME CMD\n"
    "root      4242  4200  0 10:00 ?        00:00:00 sleep 10 --flag\n"
    "root         -     -  0 10:00 ?        00:00:00 defunct\n"
    "\n"
    "root      4243  4242  0 10:01 ?        00:00:01 sh\n"
)


def test_parse_ps_output_headers():
    result = parse_ps_output(PS_TABLE.encode())
    assert result.headers == ["UID", "PID", "PPID", "C", "STIME", "TTY", "TIME", "CMD"]


def test_parse_ps_output_joins_last_column_and_skips_dash():
    result = parse_ps_output(PS_TABLE)
    assert result.processes == [
        ["root", "4242", "4200", "0", "10:00", "?", "00:00:00", "sleep 10 --flag"],
        ["root", "4243", "4242", "0", "10:01", "?", "00:00:01", "sh"],
    ]


def test_parse_ps_output_rows_match_header_width():
    result = parse_ps_output(PS_TABLE)
    assert all(len(row) == len(result.headers) for row in result.processes)


def test_parse_ps_output_header_only():
    result = parse_ps_output(b"PID CMD\n")
    assert result == TopResults(headers=["PID", "CMD"], processes=[])


def test_parse_ps_output_only_ascii_whitespace_splits():
    result = parse_ps_output("PID\tCMD\n7\ta\x0bb\n")
    assert result.processes == [["7", "a\x0bb"]]


def test_parse_ps_output_without_pid_column():
    with pytest.raises(ValueError):
        parse_ps_output("UID CMD\nroot sh\n")


def test_parse_ps_output_blank_row_is_an_error():
    with pytest.raises(ValueError):
        parse_ps_output("PID CMD\n   \n")