import io
import gzip

import pytest

from bioglue.formats.base import DictFile, is_number, must_open, read_block, write_file


def test_must_open_gz(tmp_path):
    gzfile = str(tmp_path / "test.txt.gz")
    fw = must_open(gzfile, "w")
    fw.write("hello\nworld\n")
    fw.close()
    with gzip.open(gzfile, "rt") as fp:
        assert fp.read() == "hello\nworld\n"

    fp = must_open(gzfile)
    assert [x.strip() for x in fp] == ["hello", "world"]
    fp.close()


def test_write_file(tmp_path):
    filename = str(tmp_path / "test.txt")
    write_file(filename, "\nline1\n")
    write_file(filename, "line2", append=True)
    with open(filename) as fp:
        assert fp.read() == "line1\nline2\n"


def test_read_block():
    handle = io.StringIO(">a\nAC\nGT\n>b\n>c\nTT\n")
    blocks = list(read_block(handle, ">"))
    assert blocks == [(">a", ["AC", "GT"]), (">b", []), (">c", ["TT"])]


def test_read_block_no_signal():
    handle = io.StringIO("AC\nGT\n")
    assert list(read_block(handle, ">")) == [(None, ["AC", "GT"])]


def test_dictfile(tmp_path):
    filename = tmp_path / "test.tsv"
    filename.write_text("a\t1\nb\t2\n")
    d = DictFile(str(filename), delimiter="\t", cast=int)
    assert dict(d) == {"a": 1, "b": 2}
    assert d.ncols == 2


def test_dictfile_strict(tmp_path):
    filename = tmp_path / "test.tsv"
    filename.write_text("a\t1\nb\n")
    with pytest.raises(SystemExit):
        DictFile(str(filename), delimiter="\t")


@pytest.mark.parametrize(
    "s,cast,output",
    [("1", int, True), ("1.5", int, False), ("1.5e-3", float, True), ("-", float, False)],
)
def test_is_number(s, cast, output):
    assert is_number(s, cast=cast) == output
