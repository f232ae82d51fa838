# tagsift
#
# Copyright (C) 2025 Genome Research Ltd.
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import gzip

import pysam
import pytest

from tagsift.annotation import GTFRecord, SequenceDictionary, parse_gtf_line, read_gtf, sort_gtf_records
from tagsift.const import GTFFormatError, SequenceDictionaryError

LINE = 'chr1\tHAVANA\texon\t100\t200\t.\t-\t.\tgene_id "G1"; gene_name "ABC"; transcript_id "T1"; transcript_biotype "lncRNA";'


def test_parse_gtf_line():
    record = parse_gtf_line(LINE)
    assert record is not None
    assert record.chromosome == "chr1"
    assert record.source == "HAVANA"
    assert record.feature_type == "exon"
    assert (record.start, record.end, record.length) == (100, 200, 101)
    assert record.negative_strand
    assert record.gene_id == "G1"
    assert record.gene_name == "ABC"
    assert record.transcript_id == "T1"
    assert record.transcript_name is None
    assert record.transcript_type == "lncRNA"


@pytest.mark.parametrize("line", ["", "\n", "#!genome-build GRCh38", "# comment"])
def test_parse_gtf_skips(line):
    assert parse_gtf_line(line) is None


@pytest.mark.parametrize(
    "line",
    [
        "chr1\tsrc\texon\t100",
        'chr1\tsrc\texon\tone\t200\t.\t+\t.\tgene_id "G1";',
    ],
)
def test_parse_gtf_bad_line(line):
    with pytest.raises(GTFFormatError):
        parse_gtf_line(line)


def test_gtf_line_written_back():
    record = parse_gtf_line(LINE)
    again = parse_gtf_line(record.to_gtf_line())
    assert again == record


def test_cds_line_written_back_unchanged():
    line = (
        'chr1\tENSEMBL\tCDS\t100\t200\t7.5\t+\t2\t'
        'gene_id "G1"; transcript_id "T1"; tag "basic"; tag "CCDS"; exon_number 3;'
    )
    record = parse_gtf_line(line)
    assert record.score == "7.5"
    assert record.frame == "2"
    assert record.attribute_values("tag") == ["basic", "CCDS"]
    assert record.attribute_values("exon_number") == ["3"]
    assert record.to_gtf_line() == line


def test_built_record_writes_attributes():
    record = GTFRecord(
        "chr2", 5, 9,
        feature_type="CDS",
        frame="1",
        attributes=(("gene_id", "G2"), ("tag", "basic"), ("tag", "CCDS")),
    )
    assert record.to_gtf_line() == (
        'chr2\t.\tCDS\t5\t9\t.\t+\t1\tgene_id "G2"; tag "basic"; tag "CCDS";'
    )


def test_read_gtf(data_dir):
    records = list(read_gtf(data_dir / "annotation.gtf"))
    assert len(records) == 7
    assert records[0].chromosome == "chr2"


def test_read_gtf_gzipped(data_dir, tmp_path):
    gz = tmp_path / "annotation.gtf.gz"
    with gzip.open(gz, "wt") as fh:
        fh.write((data_dir / "annotation.gtf").read_text())
    assert len(list(read_gtf(gz))) == 7


def test_sequence_dictionary_from_dict_file(data_dir):
    seq_dict = SequenceDictionary.from_path(data_dir / "genome.dict")
    assert seq_dict.names == ("chr1", "chr2", "chrM")
    assert len(seq_dict) == 3
    assert "chrM" in seq_dict
    assert seq_dict.get_sequence_index("chr2") == 1
    assert seq_dict.get_sequence_index("chrUn") == -1


def test_sequence_dictionary_from_header():
    header = pysam.AlignmentHeader.from_dict(
        {"SQ": [{"SN": "1", "LN": 100}, {"SN": "2", "LN": 100}]}
    )
    assert SequenceDictionary.from_header(header).names == ("1", "2")


def test_sequence_dictionary_bad_source(tmp_path):
    with pytest.raises(SequenceDictionaryError):
        SequenceDictionary.from_path(tmp_path / "genome.txt")


def test_sequence_dictionary_duplicates():
    with pytest.raises(SequenceDictionaryError):
        SequenceDictionary(["chr1", "chr1"])


def test_sort_annotation_file(data_dir):
    seq_dict = SequenceDictionary.from_path(data_dir / "genome.dict")
    ordered = sort_gtf_records(read_gtf(data_dir / "annotation.gtf"), seq_dict)
    assert [(r.chromosome, r.start, r.end, r.transcript_id) for r in ordered] == [
        ("chrUn", 10, 20, "TU"),
        ("chr1", 100, 200, "T1c"),
        ("chr1", 100, 200, "T1a"),
        ("chr1", 100, 400, "."),
        ("chr1", 300, 400, "T1b"),
        ("chr2", 50, 80, "T2"),
        ("chrM", 1, 50, "TM"),
    ]
