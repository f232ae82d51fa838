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

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import zip_longest
from pathlib import Path
import logging

from tagsift.alignments import infer_mode, open_alignment_reader
from tagsift.const import AlignmentMode


@dataclass(slots=True)
class TagComparison:
    tags: tuple[str, ...]
    records_compared: int = 0
    name_mismatches: int = 0
    length_mismatch: bool = False
    tag_mismatches: dict[str, int] = field(default_factory=dict)

    @property
    def mismatches(self) -> int:
        return self.name_mismatches + sum(self.tag_mismatches.values()) + int(self.length_mismatch)

    def __bool__(self) -> bool:
        return self.mismatches == 0


def compare_tag_values(
    path_1: str | Path,
    path_2: str | Path,
    tags: Iterable[str],
    reference: str | Path | None = None,
) -> TagComparison:
    """
    Walk two alignment files in step, checking that each pair of records has
    the same query name and the same value for each of `tags`. An absent tag
    only equals an absent tag.
    """
    result = TagComparison(tags=tuple(tags))
    result.tag_mismatches = {t: 0 for t in result.tags}

    # the reference only applies to whichever inputs are CRAM
    ref_1 = reference if infer_mode(path_1) == AlignmentMode.CRAM else None
    ref_2 = reference if infer_mode(path_2) == AlignmentMode.CRAM else None

    with open_alignment_reader(path_1, ref_1) as aln_1, open_alignment_reader(path_2, ref_2) as aln_2:
        for r1, r2 in zip_longest(aln_1.fetch(until_eof=True), aln_2.fetch(until_eof=True)):
            if r1 is None or r2 is None:
                result.length_mismatch = True
                logging.warning(f'{str(path_1)!r} and {str(path_2)!r} contain different numbers of records')
                break
            result.records_compared += 1
            if r1.query_name != r2.query_name:
                result.name_mismatches += 1
                logging.debug(f'record {result.records_compared}: query names differ, {r1.query_name!r} vs {r2.query_name!r}')
            for tag, (v1, v2) in zip(result.tags, _tag_values(r1, r2, result.tags)):
                if v1 != v2:
                    result.tag_mismatches[tag] += 1
                    logging.debug(f'{r1.query_name!r}: {tag} differs, {v1!r} vs {v2!r}')

    return result


def _tag_values(r1, r2, tags: Sequence[str]):
    for tag in tags:
        yield (
            r1.get_tag(tag) if r1.has_tag(tag) else None,
            r2.get_tag(tag) if r2.has_tag(tag) else None,
        )
