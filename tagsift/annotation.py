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

"""
Annotation records and their ordering along a reference genome.
"""
import gzip
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from functools import cmp_to_key
from pathlib import Path
from typing import Any, Protocol

import pysam

from tagsift.const import GTF_FIELD_COUNT, TRANSCRIPT_TYPE_KEYS, GTFFormatError, SequenceDictionaryError


class SequenceIndexer(Protocol):
    def get_sequence_index(self, name: str) -> int: ...


@dataclass(frozen=True, slots=True)
class GTFRecord:
    """
    A single feature line from a GTF file. Coordinates are as written in the
    file - 1-based and inclusive.

    `attributes` holds the attribute column as ordered (key, value) pairs, so
    repeated keys such as `tag` are all kept. Where the record was parsed,
    `attribute_text` is the column exactly as read and is written back as is.
    """
    chromosome: str
    start: int
    end: int
    strand: str = "+"
    feature_type: str = "exon"
    source: str = "."
    score: str = "."
    frame: str = "."
    gene_id: str | None = None
    gene_name: str | None = None
    transcript_id: str | None = None
    transcript_name: str | None = None
    transcript_type: str | None = None
    attributes: tuple[tuple[str, str], ...] = field(default=(), compare=False, hash=False)
    attribute_text: str | None = field(default=None, compare=False, hash=False)

    @property
    def negative_strand(self) -> bool:
        return self.strand == "-"

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def attribute_values(self, key: str) -> list[str]:
        return [v for k, v in self.attributes if k == key]

    def to_gtf_line(self) -> str:
        if self.attribute_text is not None:
            attrs = self.attribute_text
        else:
            attrs = " ".join(f'{k} "{v}";' for k, v in self.attributes)
        return "\t".join([
            self.chromosome,
            self.source,
            self.feature_type,
            str(self.start),
            str(self.end),
            self.score,
            self.strand,
            self.frame,
            attrs,
        ])


def _parse_attributes(attr_field: str) -> tuple[tuple[str, str], ...]:
    attrs: list[tuple[str, str]] = []
    for item in attr_field.strip().split(";"):
        item = item.strip()
        if not item:
            continue
        key, _, value = item.partition(" ")
        attrs.append((key, value.strip().strip('"')))
    return tuple(attrs)


def parse_gtf_line(line: str) -> GTFRecord | None:
    """
    Parse one GTF line. Comment, header and blank lines return None.

    Raises GTFFormatError on a line that is not a GTF record.
    """
    line = line.rstrip("\n")
    if not line.strip() or line.startswith("#"):
        return None

    fields = line.split("\t")
    if len(fields) < GTF_FIELD_COUNT:
        raise GTFFormatError(f"expected {GTF_FIELD_COUNT} tab-separated columns, found {len(fields)}: {line!r}")

    try:
        start = int(fields[3])
        end = int(fields[4])
    except ValueError:
        raise GTFFormatError(f"non-integer coordinates in GTF line: {line!r}") from None

    attrs = _parse_attributes(fields[8])
    # first occurrence wins for the named fields
    first: dict[str, str] = {}
    for key, value in attrs:
        first.setdefault(key, value)
    transcript_type = next((first[k] for k in TRANSCRIPT_TYPE_KEYS if k in first), None)

    return GTFRecord(
        chromosome=fields[0],
        source=fields[1],
        feature_type=fields[2],
        start=start,
        end=end,
        score=fields[5],
        strand=fields[6],
        frame=fields[7],
        gene_id=first.get("gene_id"),
        gene_name=first.get("gene_name"),
        transcript_id=first.get("transcript_id"),
        transcript_name=first.get("transcript_name"),
        transcript_type=transcript_type,
        attributes=attrs,
        attribute_text=fields[8],
    )


def read_gtf(path: str | Path) -> Iterator[GTFRecord]:
    path = Path(path)
    opener = gzip.open if path.suffix == ".gz" else open
    with opener(path, "rt") as fh:
        for line in fh:
            record = parse_gtf_line(line)
            if record is not None:
                yield record


class SequenceDictionary:
    """
    Ordered catalogue of reference sequence names, defining the canonical order
    of a genome.
    """
    _ALIGNMENT_SUFFIXES = {".dict", ".sam", ".bam", ".cram"}
    _FASTA_SUFFIXES = {".fa", ".fasta", ".fna", ".fa.gz", ".fasta.gz", ".fna.gz"}

    def __init__(self, names: Iterable[str]):
        self._names: tuple[str, ...] = tuple(names)
        if len(set(self._names)) != len(self._names):
            raise SequenceDictionaryError("duplicate sequence names in sequence dictionary")
        self._index = {name: i for i, name in enumerate(self._names)}

    @classmethod
    def from_header(cls, header: pysam.AlignmentHeader) -> "SequenceDictionary":
        return cls(header.references)

    @classmethod
    def from_path(cls, path: str | Path) -> "SequenceDictionary":
        path = Path(path)
        suffix = "".join(path.suffixes[-2:]) if path.suffix == ".gz" else path.suffix
        if suffix in cls._ALIGNMENT_SUFFIXES:
            # .dict files are header-only SAM
            with pysam.AlignmentFile(str(path), "rb" if suffix == ".bam" else "r", check_sq=False) as aln:
                return cls.from_header(aln.header)
        elif suffix in cls._FASTA_SUFFIXES:
            with pysam.FastaFile(str(path)) as fasta:
                return cls(fasta.references)
        else:
            raise SequenceDictionaryError(f"cannot read a sequence dictionary from {path.name!r}")

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def get_sequence_index(self, name: str) -> int:
        return self._index.get(name, -1)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._names)


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


class GenomicOrderComparator:
    """
    Orders annotation records by reference sequence index, then start, then
    end, then transcript type.

    A chromosome missing from the dictionary takes whatever index the
    dictionary reports for it. A missing transcript type sorts first.
    """

    def __init__(self, sequence_dictionary: SequenceIndexer):
        self.sequence_dictionary = sequence_dictionary

    def _sort_tuple(self, g: GTFRecord) -> tuple[int, int, int, bool, str]:
        return (
            self.sequence_dictionary.get_sequence_index(g.chromosome),
            g.start,
            g.end,
            g.transcript_type is not None,
            g.transcript_type or "",
        )

    def compare(self, g1: GTFRecord, g2: GTFRecord) -> int:
        return _cmp(self._sort_tuple(g1), self._sort_tuple(g2))

    def __call__(self, g1: GTFRecord, g2: GTFRecord) -> int:
        return self.compare(g1, g2)

    @property
    def key(self):
        return cmp_to_key(self.compare)


def sort_gtf_records(
    records: Iterable[GTFRecord],
    sequence_dictionary: SequenceIndexer,
    feature_types: Iterable[str] | None = None,
) -> list[GTFRecord]:
    wanted = set(feature_types) if feature_types else None
    comparator = GenomicOrderComparator(sequence_dictionary)
    return sorted(
        (r for r in records if wanted is None or r.feature_type in wanted),
        key=comparator.key,
    )
