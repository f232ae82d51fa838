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

import logging
from collections.abc import Collection, Iterable, Iterator
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pysam import AlignedSegment

from tagsift import __version__
from tagsift.alignments import add_program_record, open_alignment_reader, open_alignment_writer
from tagsift.const import ReadNumber, TagValuesError


def _tag_value(read: AlignedSegment, tag: str) -> str | None:
    try:
        return str(read.get_tag(tag))
    except KeyError:
        return None


def _excluded_by_value(
    value: str | None,
    values: Collection[str] | None,
    retain_matching: bool,
) -> bool:
    # a read without the tag never matches
    matched = value is not None and (values is None or value in values)
    return not matched if retain_matching else matched


def _two_char_tag(v: str) -> str:
    if len(v) != 2 or not v[0].isalpha() or not v.isalnum():
        raise ValueError(f"SAM tags are two alphanumeric characters starting with a letter, got {v!r}")
    return v


SamTag = Annotated[str, AfterValidator(_two_char_tag)]


def _fails_mapq(read: AlignedSegment, min_mapping_quality: int | None) -> bool:
    return (
        min_mapping_quality is not None
        and not read.is_unmapped
        and read.mapping_quality < min_mapping_quality
    )


def filter_read(
    read: AlignedSegment,
    tag: str,
    values: Collection[str] | None,
    retain_matching: bool,
    min_mapping_quality: int | None = None,
) -> bool:
    """
    Decide whether a read should be excluded from output on the basis of a tag.

    The read matches if it carries `tag` and, where `values` is given, the
    string form of the tag value is one of `values`. When `retain_matching` is
    True, reads that do not match are excluded; when False, reads that match
    are excluded. Mapped reads below `min_mapping_quality` are excluded either way.

    Returns True if the read should be filtered out.
    """
    if _fails_mapq(read, min_mapping_quality):
        return True
    return _excluded_by_value(_tag_value(read, tag), values, retain_matching)


def retain_by_read_number(
    read: AlignedSegment,
    read_number: int,
) -> bool:
    """
    Returns True if the read should be kept when only read `read_number` (1 or 2)
    of each pair is wanted. Unpaired reads are always kept.
    """
    wanted = ReadNumber(read_number)  # ValueError outside 1/2
    if not read.is_paired:
        return True
    match wanted:
        case ReadNumber.FIRST:
            return read.is_read1
        case ReadNumber.SECOND:
            return read.is_read2


class TagFilterSpec(BaseModel):
    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    tag: SamTag
    values: frozenset[str] | None = None
    retain_matching: bool = True
    min_mapping_quality: int | None = Field(default=None, ge=0)

    def excludes(
        self,
        read: AlignedSegment,
        mate_value: str | None = None,
    ) -> bool:
        """
        As `filter_read`, except that a read lacking the tag is judged on
        `mate_value` when one is given.
        """
        if _fails_mapq(read, self.min_mapping_quality):
            return True
        value = _tag_value(read, self.tag)
        if value is None:
            value = mate_value
        return _excluded_by_value(value, self.values, self.retain_matching)


class FilterParams(BaseModel):
    """
    Run configuration for filtering an alignment file by tag. May be populated
    from a config file, the command line, or both.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    tag: SamTag
    tag_values: frozenset[str] = frozenset()
    tag_values_file: Path | None = None
    accept_tag: bool = True
    paired_mode: bool = False
    read_number: ReadNumber | None = None
    min_mapping_quality: int | None = Field(default=None, ge=0)
    passing_read_threshold: float | None = Field(default=None, ge=0)

    def to_spec(self) -> TagFilterSpec:
        values: set[str] | None = None
        if self.tag_values or self.tag_values_file:
            values = set(self.tag_values)
            if self.tag_values_file:
                values |= load_tag_values(self.tag_values_file)
        return TagFilterSpec(
            tag=self.tag,
            values=frozenset(values) if values is not None else None,
            retain_matching=self.accept_tag,
            min_mapping_quality=self.min_mapping_quality,
        )


@dataclass(slots=True)
class FilterSummary:
    reads_accepted: int = 0
    reads_rejected: int = 0
    orphan_reads: int = 0

    @property
    def total_reads(self) -> int:
        return self.reads_accepted + self.reads_rejected

    @property
    def fraction_passing(self) -> float:
        return self.reads_accepted / self.total_reads if self.total_reads else 0.0

    def passes(self, threshold: float | None) -> bool:
        """
        A threshold below 1 is a minimum fraction of reads passing, otherwise
        a minimum count.
        """
        if threshold is None:
            return True
        if threshold < 1:
            return self.fraction_passing >= threshold
        return self.reads_accepted >= threshold

    def to_dict(self) -> dict[str, int | float]:
        d: dict[str, int | float] = asdict(self)
        d['total_reads'] = self.total_reads
        d['fraction_passing'] = self.fraction_passing
        return d


def load_tag_values(path: str | Path) -> frozenset[str]:
    """
    Read accepted tag values, one per line. Blank lines and lines starting
    with # are skipped; duplicates collapse.
    """
    try:
        with open(path, 'r', encoding='utf-8') as fh:
            values = frozenset(
                stripped
                for line in fh
                if (stripped := line.strip()) and not stripped.startswith('#')
            )
    except OSError as er:
        raise TagValuesError(f'failed to read tag values file {str(path)!r}: {er}') from er
    if not values:
        raise TagValuesError(f'no tag values found in {str(path)!r}')
    return values


def iter_templates(
    reads: Iterable[AlignedSegment],
    paired_mode: bool,
) -> Iterator[list[AlignedSegment]]:
    """
    Group reads into templates. In paired mode, adjacent paired reads sharing a
    query name are yielded together, so input should be grouped by query name.
    Everything else is yielded one read at a time.
    """
    template: list[AlignedSegment] = []
    for read in reads:
        if not (paired_mode and read.is_paired):
            if template:
                yield template
                template = []
            yield [read]
            continue
        if template and template[0].query_name != read.query_name:
            yield template
            template = []
        template.append(read)
    if template:
        yield template


def template_excluded(
    template: list[AlignedSegment],
    spec: TagFilterSpec,
) -> bool:
    """
    A template survives only if none of its reads is excluded. Reads without
    the tag are judged on the value carried by their mate.
    """
    mate_value = next(
        (v for v in (_tag_value(r, spec.tag) for r in template) if v is not None),
        None
    )
    return any(spec.excludes(read, mate_value) for read in template)


def filter_alignments(
    reads: Iterable[AlignedSegment],
    spec: TagFilterSpec,
    paired_mode: bool = False,
    read_number: int | None = None,
    summary: FilterSummary | None = None,
) -> Iterator[AlignedSegment]:
    """
    Yield the reads that survive filtering, in input order.
    """
    if summary is None:
        summary = FilterSummary()

    for template in iter_templates(reads, paired_mode):
        if paired_mode and len(template) == 1 and template[0].is_paired:
            summary.orphan_reads += 1
            logging.debug(f'mate of {template[0].query_name!r} not adjacent, filtering read alone')

        if paired_mode:
            excluded = template_excluded(template, spec)
        else:
            excluded = spec.excludes(template[0])

        for read in template:
            if excluded or (read_number is not None and not retain_by_read_number(read, read_number)):
                summary.reads_rejected += 1
            else:
                summary.reads_accepted += 1
                yield read


def filter_bam_by_tag(
    input_path: str | Path,
    output_path: str | Path,
    params: FilterParams,
    reference: str | Path | None = None,
    command_line: str | None = None,
) -> FilterSummary:
    """
    Stream `input_path` to `output_path`, keeping only reads that pass the tag
    filter described by `params`. Output format follows the output file suffix.
    """
    spec = params.to_spec()
    summary = FilterSummary()

    with open_alignment_reader(input_path, reference) as aln_in:
        out_head = add_program_record(aln_in.header, __version__, command_line)
        with open_alignment_writer(output_path, out_head, reference) as aln_out:
            for read in filter_alignments(
                aln_in.fetch(until_eof=True),
                spec,
                paired_mode=params.paired_mode,
                read_number=params.read_number,
                summary=summary,
            ):
                aln_out.write(read)

    if summary.orphan_reads:
        logging.warning(
            f'{summary.orphan_reads} paired reads had no adjacent mate - is the input grouped by query name?'
        )
    logging.info(
        f'{summary.reads_accepted} reads accepted, {summary.reads_rejected} reads rejected '
        f'({summary.fraction_passing:.2%} passing)'
    )
    return summary
