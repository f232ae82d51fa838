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

from pathlib import Path
from typing import Any

import pysam

from tagsift.const import PROGRAM_NAME, AlignmentFormatError, AlignmentMode


def infer_mode(path: str | Path) -> AlignmentMode:
    """
    Infer the alignment format from the file suffix - .sam, .bam or .cram.
    """
    path = Path(path)
    try:
        match path.suffix[1]:
            case 's' | 'S':
                mode = AlignmentMode.SAM
            case 'b' | 'B':
                mode = AlignmentMode.BAM
            case 'c' | 'C':
                mode = AlignmentMode.CRAM
            case _:
                raise ValueError
    except (IndexError, ValueError):
        raise AlignmentFormatError(
            f'could not infer alignment format from suffix {path.suffix!r} of file {str(path)!r}'
        ) from None
    return mode


def open_alignment_reader(
    path: str | Path,
    reference: str | Path | None = None,
) -> pysam.AlignmentFile:
    mode = infer_mode(path)
    if reference and mode != AlignmentMode.CRAM:
        raise AlignmentFormatError(
            f'CRAM reference provided, but alignment at {str(path)!r} not inferred as cram from suffix'
        )
    return pysam.AlignmentFile(
        str(path),
        mode.value,
        reference_filename=(str(reference) if reference else None),
        check_sq=False,
    )


def open_alignment_writer(
    path: str | Path,
    header: pysam.AlignmentHeader | dict[str, Any],
    reference: str | Path | None = None,
) -> pysam.AlignmentFile:
    # write modes are the read modes with r swapped for w
    mode = infer_mode(path).value.replace('r', 'w')
    return pysam.AlignmentFile(
        str(path),
        mode,
        header=header,
        reference_filename=(str(reference) if reference else None),
    )


def add_program_record(
    header: pysam.AlignmentHeader,
    version: str,
    command_line: str | None = None,
) -> dict[str, Any]:
    """
    Return the header as a dict with a @PG record for this program appended,
    chained to the last existing @PG record.
    """
    headerd: dict[str, Any] = header.to_dict()
    programs: list[dict[str, str]] = headerd.setdefault('PG', [])

    existing_ids = {pg.get('ID') for pg in programs}
    pg_id = PROGRAM_NAME
    n = 1
    while pg_id in existing_ids:
        pg_id = f'{PROGRAM_NAME}.{n}'
        n += 1

    record = {'ID': pg_id, 'PN': PROGRAM_NAME, 'VN': version}
    if programs and 'ID' in programs[-1]:
        record['PP'] = programs[-1]['ID']
    if command_line:
        record['CL'] = command_line
    programs.append(record)
    return headerd
